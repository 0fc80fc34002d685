"""Tradovate performance report (one row per round trip)."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.models import ProcessResult, RawTable, Side, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    commission_from_rates,
    price_text,
    project_by_headers,
    skip_row,
    source_timezone_or_default,
)
from journal_import.ingest.validators import US_FORMATS, parse_duration, parse_number, parse_timestamp, strip_suffix
from journal_import.utils.dates import parse_iso
from journal_import.utils.money import round_money

DATE_FORMATS = US_FORMATS

HEADER_MAP = {
    "symbol": "instrument",
    "qty": "quantity",
    "pnl": "pnl",
    "duration": "timeInPosition",
    "buyFillId": "entryId",
    "buyPrice": "entryPrice",
    "boughtTimestamp": "entryDate",
    "sellFillId": "closeId",
    "sellPrice": "closePrice",
    "soldTimestamp": "closeDate",
}


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
        raw_symbol = row.get("instrument", "")
        if not raw_symbol:
            skip_row(result, row_number, "missing symbol")
            continue
        bought = parse_timestamp(row.get("entryDate"), DATE_FORMATS, source_timezone=zone)
        sold = parse_timestamp(row.get("closeDate"), DATE_FORMATS, source_timezone=zone)
        if bought is None:
            skip_row(result, row_number, "missing or unreadable bought timestamp")
            continue
        pnl = parse_number(row.get("pnl"))
        if pnl is None:
            skip_row(result, row_number, f"unreadable pnl '{row.get('pnl', '')}'")
            continue
        quantity = abs(parse_number(row.get("quantity"), 0.0) or 0.0)
        if quantity <= 0:
            skip_row(result, row_number, "quantity is zero")
            continue

        buy_price = price_text(row.get("entryPrice"))
        sell_price = price_text(row.get("closePrice"))
        buy_id = row.get("entryId") or None
        sell_id = row.get("closeId") or None

        # Sold before bought: the round trip was a short.
        if sold is not None and parse_iso(bought) > parse_iso(sold):
            side = Side.SHORT
            entry_date, close_date = sold, bought
            entry_price, close_price = sell_price, buy_price
            entry_id, close_id = sell_id, buy_id
        else:
            side = Side.LONG
            entry_date, close_date = bought, sold
            entry_price, close_price = buy_price, sell_price
            entry_id, close_id = buy_id, sell_id
        if entry_price is None:
            skip_row(result, row_number, "unreadable entry price")
            continue

        instrument = strip_suffix(raw_symbol, 2)
        trade = Trade(
            account_number="",
            instrument=instrument,
            side=side,
            quantity=quantity,
            entry_price=entry_price,
            close_price=close_price,
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(pnl),
            commission=commission_from_rates(instrument, quantity, commission_rates),
            time_in_position=parse_duration(row.get("timeInPosition")) or 0,
            entry_id=entry_id,
            close_id=close_id,
        )
        accept(result, known, row_number, trade)
    return result
