from dataclasses import dataclass
from typing import Optional

import keyring

from .models import TrackedAccount

# Constants
KEYRING_SERVICE = "ledgerflux"
SECRET_NAMES = ("git-username", "git-token", "influx-token", "sentry-dsn")

DEFAULT_ACCOUNTS = (
    TrackedAccount(tag="ira", account="Assets:Investments:IRA"),
    TrackedAccount(tag="tax", account="Assets:Investments:Fidelity"),
)


@dataclass(frozen=True)
class ReportConfig:
    """Settings for one report cycle, resolved once at startup."""

    repo_url: str = ""
    git_username: str = ""
    git_token: str = ""
    influx_token: str = ""
    repo_dir: str = "repo"
    repo_branch: str = "master"
    repo_remote: str = "origin"
    ledger_binary: str = "ledger"
    ledger_file: str = "repo/records.ldg"
    price_db: str = "prices.db"
    price_updater: str = "tdaLedgerUpdate"
    price_token_file: str = "token"
    influx_url: str = "http://localhost:8086"
    influx_org: str = "primary"
    influx_bucket: str = "primary"
    measurement: str = "balance"
    sentry_dsn: Optional[str] = None
    accounts: tuple[TrackedAccount, ...] = DEFAULT_ACCOUNTS
    portfolio_account: str = "Assets:Investments"
    security_prefix: str = "Allocation:Equities"
    currency_symbol: str = "$"
    command_timeout: float = 60.0
    market_timezone: str = "America/Los_Angeles"
    market_open_hour: int = 2
    market_close_hour: int = 17
    include_totals: bool = True


def parse_account_option(value: str) -> TrackedAccount:
    """Parse a ``tag=Ledger:Account`` option value.

    Args:
        value: Option value, e.g. "ira=Assets:Investments:IRA"

    Returns:
        TrackedAccount for the option
    """
    tag, sep, account = value.partition("=")
    if not sep or not tag.strip() or not account.strip():
        raise ValueError(f"Invalid account '{value}', expected TAG=Ledger:Account")
    return TrackedAccount(tag=tag.strip(), account=account.strip())


def get_secret(name: str, value: Optional[str] = None) -> Optional[str]:
    """Return value if given, otherwise the secret stored in the keyring.

    A missing or broken keyring backend counts as no stored secret.
    """
    if value:
        return value
    try:
        return keyring.get_password(KEYRING_SERVICE, name)
    except keyring.errors.KeyringError:
        return None


def store_secret(name: str, value: str) -> None:
    """Save a secret to the keyring"""
    keyring.set_password(KEYRING_SERVICE, name, value)


def clear_secrets(names=SECRET_NAMES) -> list[str]:
    """
    Remove stored secrets from the keyring.
    Returns the names that were actually removed.
    """
    removed = []
    for name in names:
        try:
            keyring.delete_password(KEYRING_SERVICE, name)
            removed.append(name)
        except keyring.errors.PasswordDeleteError:
            pass
    return removed
