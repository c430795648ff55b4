from typing import Callable, Optional

from .config import ReportConfig
from .ledger import LedgerCommand
from .models import CycleReport
from .prices import is_market_hours, refresh_price_db
from .repo import sync_repository
from .sink import InfluxSink, ReportingSink, publish
from .valuation import ValuationEngine


def make_influx_sink(config: ReportConfig) -> InfluxSink:
    return InfluxSink(
        url=config.influx_url,
        token=config.influx_token,
        org=config.influx_org,
        bucket=config.influx_bucket,
        measurement=config.measurement,
    )


def make_engine(config: ReportConfig, verbose: bool = False) -> ValuationEngine:
    ledger = LedgerCommand(
        config.ledger_binary, config.ledger_file, timeout=config.command_timeout
    )
    return ValuationEngine(config, ledger, verbose=verbose)


def _should_refresh(config: ReportConfig, refresh: Optional[bool]) -> bool:
    """None means refresh only during market hours."""
    if refresh is not None:
        return refresh
    return is_market_hours(
        timezone=config.market_timezone,
        open_hour=config.market_open_hour,
        close_hour=config.market_close_hour,
    )


def build_report(
    config: ReportConfig,
    engine: ValuationEngine,
    refresh: Optional[bool] = None,
    include_securities: bool = True,
    verbose: bool = False,
) -> CycleReport:
    """Value the mandatory accounts and, optionally, each security.

    Basis is read before the price database is refreshed, market value after.
    Any error on a mandatory account propagates.
    """
    if verbose:
        print("\nReading cost basis...")
    basis_values = engine.basis_values()

    if _should_refresh(config, refresh):
        refresh_price_db(config, verbose=verbose)
    elif verbose:
        print("Outside market hours, using existing prices.")

    if verbose:
        print("Reading market values...")
    market_values = engine.market_values()
    accounts = engine.value_accounts(basis_values, market_values)

    securities = []
    if include_securities:
        if verbose:
            print("Reading per-security values...")
        securities = engine.value_securities()

    totals = engine.totals(accounts) if config.include_totals else None
    return CycleReport(accounts=accounts, securities=securities, totals=totals)


def run_cycle(
    config: ReportConfig,
    sink_factory: Callable[[ReportConfig], ReportingSink] = make_influx_sink,
    refresh: Optional[bool] = None,
    sync: bool = True,
    include_securities: bool = True,
    verbose: bool = False,
) -> CycleReport:
    """Run one full report cycle and write its points.

    Args:
        config: Report configuration
        sink_factory: Builds the sink once every value is known
        refresh: Force (True) or skip (False) the price refresh; None gates on market hours
        sync: Whether to clone/pull the ledger repository first
        include_securities: Whether to add the per-security breakdown
        verbose: If True, print status messages during execution

    Returns:
        The published CycleReport
    """
    if sync:
        sync_repository(config, verbose=verbose)

    engine = make_engine(config, verbose=verbose)
    report = build_report(
        config,
        engine,
        refresh=refresh,
        include_securities=include_securities,
        verbose=verbose,
    )

    sink = sink_factory(config)
    try:
        count = publish(report, sink)
    finally:
        sink.close()

    if verbose:
        print(f"Wrote {count} points to {config.influx_bucket}.")
    return report
