from unittest.mock import MagicMock, patch

import keyring
import keyring.backends.fail
import keyring.errors
import pytest
from typer.testing import CliRunner

from ledgerflux.cli import app
from ledgerflux.errors import ExternalProcessError
from ledgerflux.models import AccountRecord, CycleReport, TrackedAccount

runner = CliRunner()

STORED = {"git-username": "me", "git-token": "gittoken", "influx-token": "influx"}


def _stored_secret(name, value=None):
    return value or STORED.get(name)


def _report():
    return CycleReport(accounts=[AccountRecord.from_values("ira", 100.0, 110.0)])


@pytest.fixture
def no_keyring():
    """Install the keyring backend used when no real backend is available."""
    previous = keyring.get_keyring()
    keyring.set_keyring(keyring.backends.fail.Keyring())
    yield
    keyring.set_keyring(previous)


@patch("ledgerflux.cli.AlertSink")
@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_success(mock_run_cycle, mock_secret, mock_alerts):
    """Test run command success path."""
    mock_run_cycle.return_value = _report()

    result = runner.invoke(app, ["run", "--repo-url", "https://example.com/ledger"])

    assert result.exit_code == 0
    config = mock_run_cycle.call_args.args[0]
    assert config.repo_url == "https://example.com/ledger"
    assert config.git_username == "me"
    assert config.git_token == "gittoken"
    assert config.influx_token == "influx"
    assert mock_run_cycle.call_args.kwargs == {
        "refresh": None,
        "sync": True,
        "include_securities": True,
        "verbose": False,
    }
    assert "ira" in result.stdout


@patch("ledgerflux.cli.AlertSink")
@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_flags(mock_run_cycle, mock_secret, mock_alerts):
    """Test refresh, sync and account options reach the cycle."""
    mock_run_cycle.return_value = _report()

    result = runner.invoke(
        app,
        [
            "-v",
            "run",
            "--always-refresh",
            "--no-sync",
            "--no-securities",
            "-A",
            "roth=Assets:Investments:Roth",
            "--quiet",
        ],
    )

    assert result.exit_code == 0
    config = mock_run_cycle.call_args.args[0]
    assert config.accounts == (
        TrackedAccount(tag="roth", account="Assets:Investments:Roth"),
    )
    assert mock_run_cycle.call_args.kwargs == {
        "refresh": True,
        "sync": False,
        "include_securities": False,
        "verbose": True,
    }
    assert "roth" not in result.stdout


@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_conflicting_refresh_flags(mock_run_cycle, mock_secret):
    """Test --always-refresh and --no-refresh together is an error."""
    result = runner.invoke(app, ["run", "--always-refresh", "--no-refresh"])

    assert result.exit_code == 1
    assert "cannot be used together" in result.stdout
    mock_run_cycle.assert_not_called()


@patch("ledgerflux.cli.get_secret", return_value=None)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_missing_credentials(mock_run_cycle, mock_secret):
    """Test a missing token exits with status 1."""
    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "must provide a git username and auth token" in result.stdout
    mock_run_cycle.assert_not_called()


@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_invalid_account(mock_run_cycle, mock_secret):
    """Test a malformed --account value exits with status 1."""
    result = runner.invoke(app, ["run", "-A", "Assets:Investments"])

    assert result.exit_code == 1
    assert "expected TAG=Ledger:Account" in result.stdout
    mock_run_cycle.assert_not_called()


@patch("ledgerflux.cli.AlertSink")
@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
@patch("ledgerflux.cli.run_cycle")
def test_run_command_failure_alerts(mock_run_cycle, mock_secret, mock_alerts):
    """Test a fatal error is printed, alerted and exits with status 1."""
    mock_run_cycle.side_effect = ExternalProcessError("ledger exited with status 1")

    result = runner.invoke(app, ["run"])

    assert result.exit_code == 1
    assert "Error running report: ledger exited with status 1" in result.stdout
    mock_alerts.return_value.notify.assert_called_once_with(
        "Error running report: ledger exited with status 1"
    )


@patch("ledgerflux.report.InfluxSink")
@patch("ledgerflux.report.sync_repository")
@patch("ledgerflux.ledger.subprocess.run")
@patch("ledgerflux.cli.AlertSink")
@patch("ledgerflux.cli.get_secret", side_effect=_stored_secret)
def test_run_command_mandatory_query_failure_writes_nothing(
    mock_secret, mock_alerts, mock_subprocess, mock_sync, mock_influx
):
    """Test a failing ledger query aborts the cycle before any point is written."""
    mock_subprocess.return_value = MagicMock(
        returncode=1, stdout="Error: Unknown account\n"
    )

    result = runner.invoke(app, ["run", "--no-refresh"])

    assert result.exit_code == 1
    assert "Unknown account" in result.stdout
    mock_influx.assert_not_called()


@patch("ledgerflux.cli.build_report")
@patch("ledgerflux.cli.make_engine")
def test_balances_command(mock_make_engine, mock_build):
    """Test balances prints the report without syncing or writing."""
    mock_build.return_value = _report()

    result = runner.invoke(app, ["balances", "--format", "json"])

    assert result.exit_code == 0
    assert mock_build.call_args.kwargs["refresh"] is False
    assert '"name": "ira"' in result.stdout


@patch("ledgerflux.cli.build_report")
@patch("ledgerflux.cli.make_engine")
def test_balances_command_failure(mock_make_engine, mock_build):
    """Test balances exits with status 1 on a ledger error."""
    mock_build.side_effect = ExternalProcessError("ledger: command not found")

    result = runner.invoke(app, ["balances"])

    assert result.exit_code == 1
    assert "Error computing balances" in result.stdout


@patch("ledgerflux.cli.store_secret")
@patch("ledgerflux.cli.getpass.getpass", side_effect=["gittoken", "influx"])
def test_login_command(mock_getpass, mock_store):
    """Test login stores credentials in the keyring."""
    result = runner.invoke(app, ["login", "--username", "me"])

    assert result.exit_code == 0
    assert "Credentials saved" in result.stdout
    mock_store.assert_any_call("git-username", "me")
    mock_store.assert_any_call("git-token", "gittoken")
    mock_store.assert_any_call("influx-token", "influx")


@patch("ledgerflux.cli.store_secret")
@patch("ledgerflux.cli.getpass.getpass", side_effect=["", "influx"])
def test_login_command_missing_token(mock_getpass, mock_store):
    """Test login refuses empty tokens."""
    result = runner.invoke(app, ["login", "-u", "me"])

    assert result.exit_code == 1
    mock_store.assert_not_called()


@patch("ledgerflux.config.keyring.delete_password")
def test_logout_command(mock_delete):
    """Test logout clears stored credentials."""
    mock_delete.side_effect = [None, None, None, keyring.errors.PasswordDeleteError()]

    result = runner.invoke(app, ["logout"])

    assert result.exit_code == 0
    assert "Cleared git-token" in result.stdout
    assert "sentry-dsn" not in result.stdout


@patch("ledgerflux.config.keyring.delete_password")
def test_logout_command_nothing_stored(mock_delete):
    """Test logout with no stored credentials."""
    mock_delete.side_effect = keyring.errors.PasswordDeleteError()

    result = runner.invoke(app, ["logout"])

    assert result.exit_code == 0
    assert "No stored credentials found" in result.stdout


@patch("ledgerflux.cli.run_cycle")
def test_run_command_without_keyring_backend(mock_run_cycle, no_keyring):
    """Test a headless run with every credential given as an option."""
    mock_run_cycle.return_value = _report()

    result = runner.invoke(
        app,
        ["run", "--no-sync", "--no-refresh", "--no-securities", "-i", "tok", "-q"],
    )

    assert result.exit_code == 0
    config = mock_run_cycle.call_args.args[0]
    assert config.influx_token == "tok"
    assert config.sentry_dsn is None


@patch("ledgerflux.cli.run_cycle")
def test_run_command_without_keyring_backend_missing_token(mock_run_cycle, no_keyring):
    """Test a missing token is reported normally when no keyring is available."""
    result = runner.invoke(app, ["run", "--no-sync"])

    assert result.exit_code == 1
    assert "must provide an InfluxDB token" in result.stdout
    mock_run_cycle.assert_not_called()


@patch("ledgerflux.cli.getpass.getpass", side_effect=["gittoken", "influx"])
def test_login_command_without_keyring_backend(mock_getpass, no_keyring):
    """Test login fails cleanly when credentials cannot be stored."""
    result = runner.invoke(app, ["login", "-u", "me"])

    assert result.exit_code == 1
    assert "Could not save credentials to the keyring" in result.stdout


def test_logout_command_without_keyring_backend(no_keyring):
    """Test logout fails cleanly when the keyring cannot be reached."""
    result = runner.invoke(app, ["logout"])

    assert result.exit_code == 1
    assert "Could not access the keyring" in result.stdout
