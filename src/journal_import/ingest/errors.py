"""Import error taxonomy.

Structural problems (unreadable file, missing sheet, missing columns) raise and
abort the file. Row-level problems never raise: processors turn them into
issue strings returned next to the trades they did manage to build.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable


ISSUE_SEVERITIES = ("ERROR", "WARNING", "INFO")
_ISSUE_TAG_RE = re.compile(r"^\[(ERROR|WARNING|INFO)\]\s*(.*)$", re.DOTALL)


class TradeImportError(ValueError):
    """Base class for failures that abort a whole file."""


class ParseError(TradeImportError):
    pass


class SheetNotFoundError(TradeImportError):
    def __init__(self, sheet_name: str, available: Iterable[str] = ()) -> None:
        self.sheet_name = sheet_name
        self.available = [str(name) for name in available]
        listing = ", ".join(self.available) or "none"
        super().__init__(f"Sheet '{sheet_name}' not found (available: {listing}).")


class MissingColumnsError(TradeImportError):
    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = [str(name) for name in missing]
        super().__init__(f"Missing required columns: {', '.join(self.missing)}.")


class DuplicateTradeError(TradeImportError):
    def __init__(self, trade_ids: Iterable[str]) -> None:
        self.trade_ids = list(trade_ids)
        super().__init__(f"{len(self.trade_ids)} trade(s) already imported.")


def format_import_issue(severity: str, message: str) -> str:
    level = severity.strip().upper()
    if level not in ISSUE_SEVERITIES:
        raise ValueError(f"Unsupported issue severity: {severity}")
    return f"[{level}] {message}"


def parse_import_issue(issue: str) -> tuple[str, str]:
    text = str(issue)
    match = _ISSUE_TAG_RE.match(text)
    if match is None:
        return "WARNING", text
    return match.group(1), match.group(2)


@dataclass(frozen=True)
class RowSkipped:
    row: int
    reason: str
    severity: str = "WARNING"

    def __str__(self) -> str:
        return format_import_issue(self.severity, f"Row {self.row}: {self.reason}")


@dataclass(frozen=True)
class IncompleteTradeWarning:
    account_number: str
    instrument: str
    side: str
    quantity: float

    def __str__(self) -> str:
        return format_import_issue(
            "WARNING",
            f"Open {self.side} position of {self.quantity:g} {self.instrument} "
            f"on account {self.account_number or '-'} was never closed",
        )
