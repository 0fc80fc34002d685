"""Tradezella trade export."""

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
    ISO_FORMATS,
    US_FORMATS,
    normalize_side,
    parse_duration,
    parse_number,
    parse_timestamp,
)
from journal_import.utils.money import round_money

DATE_FORMATS = ISO_FORMATS + US_FORMATS

HEADER_MAP = {
    "Account Name": "accountNumber",
    "Open Date": "entryDate",
    "Open Time": "entryTime",
    "Close Date": "closeDate",
    "Close Time": "closeTime",
    "Commission": "commission",
    "Fee": "fee",
    "Duration": "timeInPosition",
    "Entry Price": "entryPrice",
    "Exit Price": "closePrice",
    "Gross P&L": "pnl",
    "Symbol": "instrument",
    "Instrument": "instrument",
    "Quantity": "quantity",
    "Side": "side",
    "Adjusted Cost": "entryId",
    "Adjusted Proceeds": "closeId",
}

REQUIRED_FIELDS = ("instrument", "entryDate", "closeDate", "entryPrice", "closePrice", "quantity", "pnl")


def _combine(date_text: str, time_text: str) -> str:
    if not time_text:
        return date_text
    return f"{date_text} {time_text[:8]}"


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

    for row_number, row in enumerate(project_by_headers(table, HEADER_MAP), start=1):
        missing = [field for field in REQUIRED_FIELDS if not row.get(field)]
        if missing:
            skip_row(result, row_number, f"missing {', '.join(missing)}")
            continue

        entry_text = _combine(row["entryDate"], row.get("entryTime", ""))
        close_text = _combine(row["closeDate"], row.get("closeTime", ""))
        entry_date = parse_timestamp(entry_text, DATE_FORMATS, source_timezone=zone)
        close_date = parse_timestamp(close_text, DATE_FORMATS, source_timezone=zone)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "unreadable open/close date")
            continue
        quantity = abs(parse_number(row.get("quantity"), 0.0) or 0.0)
        entry_price = price_text(row.get("entryPrice"))
        pnl = parse_number(row.get("pnl"))
        if quantity <= 0 or entry_price is None or pnl is None:
            skip_row(result, row_number, "unreadable quantity, price or P&L")
            continue

        commission = abs(parse_number(row.get("commission"), 0.0) or 0.0) + abs(parse_number(row.get("fee"), 0.0) or 0.0)
        duration = parse_duration(row.get("timeInPosition"))
        trade = Trade(
            account_number=row.get("accountNumber", ""),
            instrument=row["instrument"],
            side=normalize_side(row.get("side")) or Side.LONG,
            quantity=quantity,
            entry_price=entry_price,
            close_price=price_text(row.get("closePrice")),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(pnl),
            commission=round_money(commission),
            time_in_position=duration if duration is not None else time_in_position(entry_date, close_date),
            entry_id=row.get("entryId") or None,
            close_id=row.get("closeId") or None,
        )
        accept(result, known, row_number, trade)
    return result
