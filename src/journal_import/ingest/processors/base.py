"""Helpers shared by the per-platform processors."""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from journal_import.config.settings import get_settings
from journal_import.ingest.dedupe import identity_key
from journal_import.ingest.errors import RowSkipped, format_import_issue
from journal_import.ingest.models import ProcessResult, RawTable, Trade
from journal_import.ingest.validators import parse_number
from journal_import.utils.dates import seconds_between
from journal_import.utils.logging import get_logger
from journal_import.utils.money import format_price, round_money

logger = get_logger(__name__)


_APOSTROPHES_RE = re.compile(r"[\u2018\u2019\u2032`]")


def normalize_header(header: str) -> str:
    return _APOSTROPHES_RE.sub("'", str(header)).strip()


def project_by_headers(
    table: RawTable,
    header_map: Mapping[str, str],
    *,
    substring: bool = False,
) -> list[dict[str, str]]:
    """Rows keyed by field name through a static ``header -> field`` map.

    With ``substring`` a header matches the first map key it contains. The
    first column claiming a field wins.
    """
    columns: list[tuple[int, str]] = []
    claimed: set[str] = set()
    for index, header in enumerate(table.headers):
        text = normalize_header(header)
        field: str | None = None
        if substring:
            key = next((key for key in header_map if key in text), None)
            field = header_map[key] if key is not None else None
        else:
            field = header_map.get(text)
        if field is None or field in claimed:
            continue
        claimed.add(field)
        columns.append((index, field))
    return [{field: row[index].strip() for index, field in columns} for row in table.rows]


def source_timezone_or_default(source_timezone: str | None) -> str:
    return source_timezone or get_settings().source_timezone


class KnownTrades:
    """Identity keys of trades already stored.

    Only earlier imports are consulted. Trades of the current batch never
    shadow each other here; exact repeats are dropped later by content hash.
    """

    def __init__(self, existing_trades: Iterable[Trade] = ()) -> None:
        self._keys = {identity_key(trade) for trade in existing_trades}

    def __contains__(self, trade: object) -> bool:
        return isinstance(trade, Trade) and identity_key(trade) in self._keys


def skip_row(result: ProcessResult, row_number: int, reason: str, *, severity: str = "WARNING") -> None:
    issue = RowSkipped(row=row_number, reason=reason, severity=severity)
    if severity == "INFO":
        logger.info("%s", issue)
    else:
        logger.warning("%s", issue)
    result.issues.append(str(issue))


def accept(result: ProcessResult, known: KnownTrades, row_number: int, trade: Trade) -> None:
    if trade in known:
        skip_row(result, row_number, "already imported", severity="INFO")
        return
    result.trades.append(trade)


def price_text(value: object, *, decimal_comma: bool = False) -> str | None:
    parsed = parse_number(value, decimal_comma=decimal_comma)
    if parsed is None:
        return None
    return format_price(parsed)


def time_in_position(entry_date: str | None, close_date: str | None) -> int:
    if not entry_date or not close_date:
        return 0
    return seconds_between(entry_date, close_date)


def commission_from_rates(
    instrument: str, quantity: float, rates: Mapping[str, float] | None
) -> float | None:
    rate = (rates or {}).get(instrument)
    if rate is None:
        return None
    return round_money(rate * quantity)


def collect_matched(result: ProcessResult, matched: ProcessResult, existing_trades: Iterable[Trade]) -> None:
    """Fold an order-matching run into ``result``, dropping already imported trades."""
    known = KnownTrades(existing_trades)
    duplicates = 0
    for trade in matched.trades:
        if trade in known:
            duplicates += 1
        else:
            result.trades.append(trade)
    if duplicates:
        logger.info("Skipped %d already imported trade(s)", duplicates)
        result.issues.append(format_import_issue("INFO", f"{duplicates} trade(s) already imported"))
    result.incomplete.extend(matched.incomplete)
    result.unknown_symbols.update(matched.unknown_symbols)
    result.issues.extend(matched.issues)
