from typing import Sequence

from .config import ReportConfig
from .errors import LedgerReportError
from .ledger import LedgerCommand
from .models import (
    AccountRecord,
    BalanceMode,
    BalanceQuery,
    PortfolioTotals,
    TrackedAccount,
)
from .parser import parse_cost_basis_table, parse_single_line, parse_summary_line


class ValuationEngine:
    """Turns ledger queries into account and security records.

    Mandatory account failures propagate; per-security failures are skipped.
    """

    def __init__(
        self, config: ReportConfig, ledger: LedgerCommand, verbose: bool = False
    ):
        self.config = config
        self.ledger = ledger
        self.verbose = verbose

    def balance(self, query: BalanceQuery) -> float:
        """Run a query and parse the total of its balance block."""
        output = self.ledger.run(query)
        return parse_summary_line(output, self.config.currency_symbol)

    def basis(self, account: TrackedAccount) -> float:
        return self.balance(BalanceQuery(account.account, BalanceMode.basis))

    def market(self, account: TrackedAccount) -> float:
        return self.balance(
            BalanceQuery(account.account, BalanceMode.market, self.config.price_db)
        )

    def basis_values(self) -> dict[str, float]:
        """Cost basis of every mandatory account, keyed by tag."""
        return {account.tag: self.basis(account) for account in self.config.accounts}

    def market_values(self) -> dict[str, float]:
        """Market value of every mandatory account, keyed by tag."""
        return {account.tag: self.market(account) for account in self.config.accounts}

    def value_accounts(
        self, basis_values: dict[str, float], market_values: dict[str, float]
    ) -> list[AccountRecord]:
        """Combine per-tag basis and market values into records."""
        return [
            AccountRecord.from_values(
                account.tag, basis_values[account.tag], market_values[account.tag]
            )
            for account in self.config.accounts
        ]

    def cost_basis(self) -> dict[str, float]:
        """Total cost basis of each security held in the portfolio."""
        output = self.ledger.run(
            BalanceQuery(self.config.portfolio_account, BalanceMode.lot_prices)
        )
        return parse_cost_basis_table(output, self.config.currency_symbol)

    def security_market(self, ticker: str) -> float:
        account = f"{self.config.security_prefix}:{ticker.upper()}"
        output = self.ledger.run(
            BalanceQuery(account, BalanceMode.market, self.config.price_db)
        )
        return parse_single_line(output, self.config.currency_symbol)

    def value_securities(self) -> list[AccountRecord]:
        """Build a record for every security that can be priced.

        The breakdown is optional: an unreadable lot table gives no rows and
        an unpriced ticker is left out.
        """
        try:
            costs = self.cost_basis()
        except LedgerReportError as e:
            if self.verbose:
                print(f"Skipping security breakdown: {e}")
            return []

        records = []
        for ticker, basis in costs.items():
            try:
                market = self.security_market(ticker)
            except LedgerReportError as e:
                if self.verbose:
                    print(f"Skipping {ticker}: {e}")
                continue
            records.append(AccountRecord.from_values(ticker, basis, market))
        return records

    @staticmethod
    def totals(records: Sequence[AccountRecord]) -> PortfolioTotals:
        """Sum basis and market across records; gain is derived."""
        return PortfolioTotals(
            basis=sum(r.basis for r in records),
            market=sum(r.market for r in records),
        )
