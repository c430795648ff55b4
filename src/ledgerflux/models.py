"""Data models for ledgerflux queries and report records."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class BalanceMode(str, Enum):
    """Which figure a balance query asks the ledger for."""

    basis = "basis"
    market = "market"
    lot_prices = "lot_prices"


@dataclass(frozen=True)
class BalanceQuery:
    """A single `ledger bal` query."""

    account: str
    mode: BalanceMode
    price_db: Optional[str] = None

    def to_args(self) -> list[str]:
        """Return the arguments that follow `bal` on the ledger command line."""
        if self.mode == BalanceMode.basis:
            return ["-B", self.account]
        if self.mode == BalanceMode.market:
            args = ["--price-db", self.price_db] if self.price_db else []
            return args + ["-V", self.account]
        return [self.account, "--average-lot-prices"]


@dataclass(frozen=True)
class TrackedAccount:
    """A mandatory account: the tag it is reported under and its ledger path."""

    tag: str
    account: str


@dataclass(frozen=True)
class CostBasisEntry:
    """One row of the average lot price table."""

    ticker: str
    quantity: float
    unit_cost: float

    @property
    def total_basis(self) -> float:
        return self.quantity * self.unit_cost


@dataclass(frozen=True)
class AccountRecord:
    """Basis, market value and gain for one account or security."""

    name: str
    basis: float
    market: float
    gain: float
    gain_percent: Optional[float] = None

    @classmethod
    def from_values(cls, name: str, basis: float, market: float) -> "AccountRecord":
        """Build a record, deriving gain fields from basis and market only.

        gain_percent is None when basis is exactly zero.
        """
        gain = market - basis
        gain_percent = gain / basis if basis != 0 else None
        return cls(
            name=name,
            basis=basis,
            market=market,
            gain=gain,
            gain_percent=gain_percent,
        )

    def to_fields(self) -> dict[str, float]:
        """Field mapping handed to the reporting sink."""
        fields = {"basis": self.basis, "market": self.market, "gain": self.gain}
        if self.gain_percent is not None:
            fields["gain-percent"] = self.gain_percent
        return fields


@dataclass(frozen=True)
class PortfolioTotals:
    """Sums across the mandatory accounts."""

    basis: float
    market: float

    @property
    def gain(self) -> float:
        return self.market - self.basis


@dataclass
class CycleReport:
    """Everything a single report cycle produced."""

    accounts: list[AccountRecord] = field(default_factory=list)
    securities: list[AccountRecord] = field(default_factory=list)
    totals: Optional[PortfolioTotals] = None
