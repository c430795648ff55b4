import subprocess
from typing import Sequence

from .errors import ExternalProcessError
from .models import BalanceQuery


def run_command(args: Sequence[str], timeout: float = 60.0) -> str:
    """Run an external command and return its combined stdout/stderr.

    Args:
        args: Command and arguments
        timeout: Seconds to wait before giving up

    Returns:
        Combined output as text

    Raises:
        ExternalProcessError: If the command cannot start, times out or exits non-zero
    """
    command = list(args)
    try:
        result = subprocess.run(
            command,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
        )
    except FileNotFoundError as e:
        raise ExternalProcessError(f"{command[0]}: command not found", command) from e
    except subprocess.TimeoutExpired as e:
        raise ExternalProcessError(
            f"{command[0]}: timed out after {timeout}s", command
        ) from e
    except OSError as e:
        raise ExternalProcessError(f"{command[0]}: could not start: {e}", command) from e

    output = result.stdout or ""
    if result.returncode != 0:
        message = f"{command[0]} exited with status {result.returncode}"
        if output.strip():
            message = f"{output.strip()}: {message}"
        raise ExternalProcessError(
            message,
            command,
            output,
        )
    return output


class LedgerCommand:
    """Runs `ledger bal` queries against one ledger file."""

    def __init__(self, binary: str, ledger_file: str, timeout: float = 60.0):
        self.binary = binary
        self.ledger_file = ledger_file
        self.timeout = timeout

    def args(self, query: BalanceQuery) -> list[str]:
        return [self.binary, "-f", self.ledger_file, "bal"] + query.to_args()

    def run(self, query: BalanceQuery) -> str:
        """Run a query and return the raw ledger output."""
        return run_command(self.args(query), timeout=self.timeout)
