"""Output formatters for different data formats."""

import csv
import json
from dataclasses import asdict
from io import StringIO
from typing import Optional, Protocol, Sequence

from .models import AccountRecord, CycleReport


def _format_gain_percent(gain_percent: Optional[float]) -> str:
    """Format a gain ratio as a signed percentage, or N/A when undefined."""
    if gain_percent is None:
        return "N/A"
    pct = gain_percent * 100
    return f"{'+' if pct >= 0 else ''}{pct:.1f}%"


class FormatterProtocol(Protocol):
    """Protocol for report formatters."""

    def format_report(self, report: CycleReport) -> str:
        """Format a cycle report."""
        ...


class TableFormatter:
    """Format reports as aligned ASCII tables."""

    @staticmethod
    def _format_row(label: str, basis: float, market: float, gain: float, pct: str) -> str:
        """Format one table row.

        Args:
            label: Account tag or ticker
            basis: Cost basis
            market: Market value
            gain: Market minus basis
            pct: Preformatted gain percentage

        Returns:
            Formatted row string
        """
        gain_str = f"{'+' if gain >= 0 else ''}{gain:,.2f}"
        return f"{label:<16} {basis:>16,.2f} {market:>16,.2f} {gain_str:>16} {pct:>10}"

    def _format_section(self, title: str, records: Sequence[AccountRecord]) -> list[str]:
        lines = ["\n" + "=" * 78, title, "=" * 78]
        lines.append(
            f"{'Account':<16} {'Basis':>16} {'Market':>16} {'Gain':>16} {'Gain %':>10}"
        )
        lines.append("-" * 78)
        for rec in records:
            lines.append(
                self._format_row(
                    rec.name,
                    rec.basis,
                    rec.market,
                    rec.gain,
                    _format_gain_percent(rec.gain_percent),
                )
            )
        return lines

    def format_report(self, report: CycleReport) -> str:
        """Format accounts, securities and totals as tables."""
        if not report.accounts and not report.securities:
            return "No balances found."

        lines = self._format_section("Accounts", report.accounts)
        if report.totals is not None:
            totals = report.totals
            lines.append("=" * 78)
            pct = totals.gain / totals.basis if totals.basis != 0 else None
            lines.append(
                self._format_row(
                    "Total",
                    totals.basis,
                    totals.market,
                    totals.gain,
                    _format_gain_percent(pct),
                )
            )
        lines.append("=" * 78)

        if report.securities:
            lines.extend(self._format_section("Securities", report.securities))
            lines.append("=" * 78)

        return "\n".join(lines)


class JsonFormatter:
    """Format reports as JSON."""

    def format_report(self, report: CycleReport) -> str:
        """Format the report as a JSON object."""
        result = {
            "accounts": [asdict(rec) for rec in report.accounts],
            "securities": [asdict(rec) for rec in report.securities],
        }
        if report.totals is not None:
            result["totals"] = {
                "basis": report.totals.basis,
                "market": report.totals.market,
                "gain": report.totals.gain,
            }
        return json.dumps(result, indent=2)


class CsvFormatter:
    """Format reports as CSV."""

    def format_report(self, report: CycleReport) -> str:
        """Format the report as CSV with one row per record."""
        if not report.accounts and not report.securities:
            return ""

        output = StringIO()
        writer = csv.writer(output)

        # Write header
        writer.writerow(["kind", "name", "basis", "market", "gain", "gain_percent"])

        # Write data
        for kind, records in (("account", report.accounts), ("security", report.securities)):
            for rec in records:
                writer.writerow(
                    [
                        kind,
                        rec.name,
                        rec.basis,
                        rec.market,
                        rec.gain,
                        "" if rec.gain_percent is None else rec.gain_percent,
                    ]
                )

        if report.totals is not None:
            totals = report.totals
            writer.writerow(["total", "TOTAL", totals.basis, totals.market, totals.gain, ""])

        return output.getvalue()


def get_formatter(format_type: str) -> FormatterProtocol:
    """Get formatter instance by type.

    Args:
        format_type: One of 'table', 'json', or 'csv'

    Returns:
        Formatter instance. Defaults to TableFormatter for unknown types.
    """
    formatters = {
        "table": TableFormatter(),
        "json": JsonFormatter(),
        "csv": CsvFormatter(),
    }
    return formatters.get(format_type.lower(), TableFormatter())
