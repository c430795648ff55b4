"""Parsing of `ledger bal` output into numbers."""

import re

from .errors import MalformedOutput, NumberFormatError
from .models import CostBasisEntry

TABLE_MARKER = "------"
LOT_PRICE_SEPARATOR = "@"

_DECIMAL_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)")
_LOT_BRACKETS = "{}[]()"


def _parse_decimal(text: str) -> float:
    if not _DECIMAL_RE.fullmatch(text):
        raise NumberFormatError(f"could not parse number {text!r}")
    return float(text)


def normalize_amount(token: str, symbol: str = "$") -> float:
    """Convert an amount token such as ``$1,234.56`` into a float.

    Assumes exactly one leading currency symbol (optionally preceded by a
    minus sign), ``,`` as the thousands separator and ``.`` as the decimal
    separator. Anything else is a NumberFormatError.

    Args:
        token: Amount token as printed by ledger
        symbol: Expected currency symbol

    Returns:
        Parsed amount
    """
    sign = ""
    if token.startswith("-" + symbol):
        sign, token = "-", token[1:]
    if not token.startswith(symbol):
        raise NumberFormatError(f"expected amount starting with {symbol!r}, got {token!r}")

    return _parse_decimal(sign + token[len(symbol):].replace(",", ""))


def parse_summary_line(output: str, symbol: str = "$") -> float:
    """Parse the running total from a multi-line balance block.

    The total sits on the second-to-last line. Fewer than four lines, or an
    empty total line, is MalformedOutput rather than zero.
    """
    lines = output.splitlines()
    if len(lines) < 4:
        raise MalformedOutput(f"expected at least 4 lines of output, got {len(lines)}")

    total = lines[-2].strip()
    if not total:
        raise MalformedOutput("summary line is empty")
    return normalize_amount(total, symbol)


def parse_single_line(output: str, symbol: str = "$") -> float:
    """Parse the amount at the start of a single-line balance."""
    line = output.strip()
    if not line:
        raise MalformedOutput("balance output is empty")
    return normalize_amount(line.split()[0], symbol)


def _cost_token(tokens: list[str]) -> str:
    """Pick the unit cost token out of a lot table row."""
    if tokens[2] == LOT_PRICE_SEPARATOR:
        if len(tokens) < 4:
            raise MalformedOutput(f"missing cost after {LOT_PRICE_SEPARATOR!r}")
        return tokens[3]

    token = tokens[2]
    if token and token[0] in _LOT_BRACKETS:
        token = token[1:]
    if token and token[-1] in _LOT_BRACKETS:
        token = token[:-1]
    return token


def parse_cost_basis_entries(output: str, symbol: str = "$") -> list[CostBasisEntry]:
    """Parse every row below the dash rule of an average lot price table.

    Rows look like ``10 AAPL {$150.00}`` or ``10 AAPL @ $150.00``. A single
    bad row fails the whole table.
    """
    _, marker, body = output.partition(TABLE_MARKER)
    if not marker:
        raise MalformedOutput("could not find the cost basis table")

    # The first line is whatever is left of the dash rule
    rows = [line for line in body.splitlines()[1:] if line.strip()]

    entries = []
    for row in rows:
        tokens = row.split()
        if len(tokens) < 3:
            raise MalformedOutput(f"could not parse cost basis row {row!r}")
        try:
            quantity = _parse_decimal(tokens[0].replace(",", ""))
            unit_cost = normalize_amount(_cost_token(tokens), symbol)
        except ValueError as e:
            raise MalformedOutput(f"could not parse cost basis row {row!r}: {e}") from e
        entries.append(
            CostBasisEntry(ticker=tokens[1], quantity=quantity, unit_cost=unit_cost)
        )
    return entries


def parse_cost_basis_table(output: str, symbol: str = "$") -> dict[str, float]:
    """Map each ticker in the lot table to its total cost basis.

    A ticker listed twice keeps its last row.
    """
    return {
        entry.ticker: entry.total_basis
        for entry in parse_cost_basis_entries(output, symbol)
    }
