import getpass
from dataclasses import replace
from enum import Enum
from typing import List, Optional

import keyring.errors
import typer

from .alerts import AlertSink
from .config import (
    DEFAULT_ACCOUNTS,
    ReportConfig,
    clear_secrets,
    get_secret,
    parse_account_option,
    store_secret,
)
from .formatters import get_formatter
from .report import build_report, make_engine, run_cycle

app = typer.Typer(help="Ledger investment balance reporter", no_args_is_help=True)


class OutputFormat(str, Enum):
    """Output format options."""

    table = "table"
    json = "json"
    csv = "csv"


def _fail(message: str, alerts: Optional[AlertSink] = None) -> None:
    print(message)
    if alerts:
        alerts.notify(message)
    raise typer.Exit(code=1)


def _refresh_choice(always_refresh: bool, no_refresh: bool) -> Optional[bool]:
    if always_refresh and no_refresh:
        _fail("Error: --always-refresh and --no-refresh cannot be used together.")
    if always_refresh:
        return True
    if no_refresh:
        return False
    return None


def _base_config(
    accounts: Optional[List[str]],
    ledger_binary: str,
    ledger_file: str,
    price_db: str,
    timeout: float,
) -> ReportConfig:
    try:
        tracked = (
            tuple(parse_account_option(value) for value in accounts)
            if accounts
            else DEFAULT_ACCOUNTS
        )
    except ValueError as e:
        _fail(f"Error: {e}")
    return ReportConfig(
        accounts=tracked,
        ledger_binary=ledger_binary,
        ledger_file=ledger_file,
        price_db=price_db,
        command_timeout=timeout,
    )


def _print_report(report, output_format: OutputFormat) -> None:
    formatter = get_formatter(output_format.value)
    print(formatter.format_report(report))


@app.command()
def run(
    ctx: typer.Context,
    repo_url: str = typer.Option(
        "", "--repo-url", envvar="LEDGERFLUX_REPO_URL", help="URL of the ledger git repository."
    ),
    username: Optional[str] = typer.Option(
        None,
        "--username",
        "-u",
        envvar="LEDGERFLUX_GIT_USERNAME",
        help="Git username. If not provided, uses the stored one.",
    ),
    auth_token: Optional[str] = typer.Option(
        None,
        "--auth-token",
        "-a",
        envvar="LEDGERFLUX_GIT_TOKEN",
        help="Git auth token. If not provided, uses the stored one.",
    ),
    influx_token: Optional[str] = typer.Option(
        None,
        "--influx-token",
        "-i",
        envvar="LEDGERFLUX_INFLUX_TOKEN",
        help="InfluxDB auth token. If not provided, uses the stored one.",
    ),
    sentry_dsn: Optional[str] = typer.Option(
        None,
        "--sentry-dsn",
        "-s",
        envvar="LEDGERFLUX_SENTRY_DSN",
        help="Sentry DSN for error alerts. Alerts are off when unset.",
    ),
    ledger_binary: str = typer.Option(
        "ledger", "--ledger-binary", "-b", envvar="LEDGERFLUX_LEDGER_BINARY", help="Ledger binary."
    ),
    ledger_file: str = typer.Option(
        "repo/records.ldg", "--ledger-file", help="Ledger file inside the repository."
    ),
    repo_dir: str = typer.Option("repo", "--repo-dir", help="Local working copy directory."),
    branch: str = typer.Option("master", "--branch", help="Branch to pull."),
    price_db: str = typer.Option("prices.db", "--price-db", help="Price database path."),
    price_updater: str = typer.Option(
        "tdaLedgerUpdate", "--price-updater", help="Command that regenerates the price database."
    ),
    price_token_file: str = typer.Option(
        "token", "--price-token-file", help="Auth file passed to the price updater."
    ),
    influx_url: str = typer.Option(
        "http://localhost:8086", "--influx-url", envvar="LEDGERFLUX_INFLUX_URL", help="InfluxDB URL."
    ),
    influx_org: str = typer.Option("primary", "--influx-org", help="InfluxDB organization."),
    influx_bucket: str = typer.Option("primary", "--influx-bucket", help="InfluxDB bucket."),
    accounts: Optional[List[str]] = typer.Option(
        None,
        "--account",
        "-A",
        help="Mandatory account as TAG=Ledger:Account. Repeatable.",
    ),
    timeout: float = typer.Option(
        60.0, "--timeout", "-t", help="Seconds to wait for each external command."
    ),
    always_refresh: bool = typer.Option(
        False, "--always-refresh", help="Refresh prices even outside market hours."
    ),
    no_refresh: bool = typer.Option(False, "--no-refresh", help="Never refresh prices."),
    no_sync: bool = typer.Option(False, "--no-sync", help="Skip the git clone/pull."),
    no_securities: bool = typer.Option(
        False, "--no-securities", help="Skip the per-security breakdown."
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.table, "--format", "-f", help="Output format."
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the report."),
):
    """
    Sync the ledger, compute balances and write them to InfluxDB.
    """
    verbose = ctx.obj.get("verbose") if ctx.obj else False
    refresh = _refresh_choice(always_refresh, no_refresh)

    username = get_secret("git-username", username)
    auth_token = get_secret("git-token", auth_token)
    influx_token = get_secret("influx-token", influx_token)
    sentry_dsn = get_secret("sentry-dsn", sentry_dsn)

    if not no_sync and not (username and auth_token):
        _fail("Error: must provide a git username and auth token.")
    if not influx_token:
        _fail("Error: must provide an InfluxDB token.")

    try:
        alerts = AlertSink(sentry_dsn)
    except Exception as e:
        _fail(f"Error initializing alerts: {e}")

    config = replace(
        _base_config(accounts, ledger_binary, ledger_file, price_db, timeout),
        repo_url=repo_url,
        git_username=username or "",
        git_token=auth_token or "",
        influx_token=influx_token,
        sentry_dsn=sentry_dsn,
        repo_dir=repo_dir,
        repo_branch=branch,
        price_updater=price_updater,
        price_token_file=price_token_file,
        influx_url=influx_url,
        influx_org=influx_org,
        influx_bucket=influx_bucket,
    )

    try:
        report = run_cycle(
            config,
            refresh=refresh,
            sync=not no_sync,
            include_securities=not no_securities,
            verbose=verbose,
        )
    except Exception as e:
        _fail(f"Error running report: {e}", alerts)

    if not quiet:
        _print_report(report, output_format)


@app.command()
def balances(
    ctx: typer.Context,
    ledger_binary: str = typer.Option(
        "ledger", "--ledger-binary", "-b", envvar="LEDGERFLUX_LEDGER_BINARY", help="Ledger binary."
    ),
    ledger_file: str = typer.Option(
        "repo/records.ldg", "--ledger-file", help="Ledger file to read."
    ),
    price_db: str = typer.Option("prices.db", "--price-db", help="Price database path."),
    accounts: Optional[List[str]] = typer.Option(
        None,
        "--account",
        "-A",
        help="Mandatory account as TAG=Ledger:Account. Repeatable.",
    ),
    timeout: float = typer.Option(
        60.0, "--timeout", "-t", help="Seconds to wait for each external command."
    ),
    no_securities: bool = typer.Option(
        False, "--no-securities", help="Skip the per-security breakdown."
    ),
    output_format: OutputFormat = typer.Option(
        OutputFormat.table, "--format", "-f", help="Output format."
    ),
):
    """
    Compute balances from the local ledger file without syncing or writing.
    """
    verbose = ctx.obj.get("verbose") if ctx.obj else False
    config = _base_config(accounts, ledger_binary, ledger_file, price_db, timeout)

    try:
        report = build_report(
            config,
            make_engine(config, verbose=verbose),
            refresh=False,
            include_securities=not no_securities,
            verbose=verbose,
        )
    except Exception as e:
        _fail(f"Error computing balances: {e}")

    _print_report(report, output_format)


@app.command()
def login(
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Git username. Prompted for if not provided."
    ),
    with_sentry: bool = typer.Option(
        False, "--sentry", help="Also prompt for a Sentry DSN."
    ),
):
    """
    Store git and InfluxDB credentials in the system keyring.
    """
    if not username:
        username = input("Git username: ")
    auth_token = getpass.getpass("Git auth token: ")
    influx_token = getpass.getpass("InfluxDB token: ")

    if not (username and auth_token and influx_token):
        print("✗ Username and both tokens are required.")
        raise typer.Exit(code=1)

    secrets = {
        "git-username": username,
        "git-token": auth_token,
        "influx-token": influx_token,
    }
    if with_sentry:
        dsn = getpass.getpass("Sentry DSN: ")
        if dsn:
            secrets["sentry-dsn"] = dsn

    try:
        for name, value in secrets.items():
            store_secret(name, value)
    except keyring.errors.KeyringError as e:
        _fail(f"✗ Could not save credentials to the keyring: {e}")

    print("✓ Credentials saved")


@app.command()
def logout():
    """
    Clear every stored credential.
    """
    try:
        removed = clear_secrets()
    except keyring.errors.KeyringError as e:
        _fail(f"✗ Could not access the keyring: {e}")
    if not removed:
        print("No stored credentials found.")
        return
    for name in removed:
        print(f"✓ Cleared {name}")


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Show detailed status messages during execution."
    ),
):
    """
    Ledger investment balance reporter
    """
    ctx.obj = {"verbose": verbose}
