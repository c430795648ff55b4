from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from .config import ReportConfig
from .ledger import run_command

WEEKEND = (5, 6)  # Saturday, Sunday


def is_market_hours(
    now: Optional[datetime] = None,
    timezone: str = "America/Los_Angeles",
    open_hour: int = 2,
    close_hour: int = 17,
) -> bool:
    """Check whether quotes are worth refreshing.

    Args:
        now: Moment to check (defaults to the current time)
        timezone: IANA zone the window is expressed in
        open_hour: First hour of the window
        close_hour: Hour the window closes (exclusive)

    Returns:
        False on weekends or outside [open_hour, close_hour)
    """
    zone = ZoneInfo(timezone)
    local = now.astimezone(zone) if now else datetime.now(zone)
    if local.weekday() in WEEKEND:
        return False
    return open_hour <= local.hour < close_hour


def price_update_args(config: ReportConfig) -> list[str]:
    return [
        config.price_updater,
        "-f",
        config.ledger_file,
        "-p",
        config.price_db,
        "-b",
        config.ledger_binary,
        "-afile",
        config.price_token_file,
    ]


def refresh_price_db(config: ReportConfig, verbose: bool = False) -> None:
    """Regenerate the price database. Any failure is raised."""
    if verbose:
        print(f"Refreshing prices into {config.price_db}...")
    run_command(price_update_args(config), timeout=config.command_timeout)
