"""Rithmic R|Trader performance report (closed round trips)."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.models import ProcessResult, RawTable, Side, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    price_text,
    project_by_headers,
    skip_row,
    source_timezone_or_default,
    time_in_position,
)
from journal_import.ingest.validators import (
    DAY_FIRST_FORMATS,
    US_FORMATS,
    normalize_side,
    parse_duration,
    parse_number,
    parse_timestamp,
    strip_suffix,
)
from journal_import.utils.money import round_money

HEADER_MAP = {
    "AccountNumber": "accountNumber",
    "Instrument": "instrument",
    "Fill Size": "quantity",
    "Trade P&L": "pnl",
    "Trade Life Span": "timeInPosition",
    "Commission & Fees": "commission",
    "Entry Buy/Sell": "side",
    "Entry Order Number": "entryId",
    "Entry Price": "entryPrice",
    "Entry Time": "entryDate",
    "Exit Order Number": "closeId",
    "Exit Price": "closePrice",
    "Exit Time": "closeDate",
}

DEFAULT_ACCOUNT = "default-account"
DATE_FORMATS = US_FORMATS + DAY_FIRST_FORMATS


def process(
    table: RawTable,
    *,
    existing_trades: Iterable[Trade] = (),
    commission_rates: Mapping[str, float] | None = None,
    source_timezone: str | None = None,
) -> ProcessResult:
    result = ProcessResult()
    known = KnownTrades(existing_trades)
    zone = source_timezone_or_default(source_timezone)

    for row_number, row in enumerate(project_by_headers(table, HEADER_MAP, substring=True), start=1):
        raw_instrument = row.get("instrument", "")
        if not raw_instrument:
            skip_row(result, row_number, "missing instrument")
            continue
        entry_date = parse_timestamp(row.get("entryDate"), DATE_FORMATS, source_timezone=zone)
        close_date = parse_timestamp(row.get("closeDate"), DATE_FORMATS, source_timezone=zone)
        if entry_date is None:
            skip_row(result, row_number, "missing or unreadable entry time")
            continue
        quantity = abs(parse_number(row.get("quantity"), 0.0) or 0.0)
        if quantity <= 0:
            skip_row(result, row_number, "fill size is zero")
            continue
        entry_price = price_text(row.get("entryPrice"))
        if entry_price is None:
            skip_row(result, row_number, "unreadable entry price")
            continue

        duration = parse_duration(row.get("timeInPosition"))
        trade = Trade(
            account_number=row.get("accountNumber") or DEFAULT_ACCOUNT,
            instrument=strip_suffix(raw_instrument, 2),
            side=normalize_side(row.get("side")) or Side.LONG,
            quantity=quantity,
            entry_price=entry_price,
            close_price=price_text(row.get("closePrice")),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(parse_number(row.get("pnl"), 0.0)),
            commission=round_money(abs(parse_number(row.get("commission"), 0.0) or 0.0)),
            time_in_position=duration if duration is not None else time_in_position(entry_date, close_date),
            entry_id=row.get("entryId") or None,
            close_id=row.get("closeId") or None,
        )
        accept(result, known, row_number, trade)
    return result
