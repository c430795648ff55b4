"""Error kinds raised while producing a balance report."""

from typing import Optional, Sequence


class LedgerReportError(Exception):
    """Base class for every failure in a report cycle."""


class MalformedOutput(LedgerReportError):
    """Command output does not have the expected shape."""


class NumberFormatError(LedgerReportError, ValueError):
    """A numeric token could not be parsed."""


class ExternalProcessError(LedgerReportError):
    """An external tool exited non-zero, timed out or could not be started."""

    def __init__(
        self,
        message: str,
        command: Optional[Sequence[str]] = None,
        output: str = "",
    ):
        super().__init__(message)
        self.command = list(command) if command else []
        self.output = output


class SyncError(LedgerReportError):
    """The ledger repository could not be cloned or pulled."""
