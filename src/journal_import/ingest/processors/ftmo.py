"""FTMO account statement export, read by column position."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.models import ProcessResult, RawTable, Side, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    price_text,
    skip_row,
    source_timezone_or_default,
    time_in_position,
)
from journal_import.ingest.validators import (
    DOTTED_FORMATS,
    ISO_FORMATS,
    parse_duration,
    parse_number,
    parse_timestamp,
)
from journal_import.utils.money import round_money

TICKET = 0
OPEN_TIME = 1
TYPE = 2
VOLUME = 3
SYMBOL = 4
ENTRY_PRICE = 5
CLOSE_TIME = 8
EXIT_PRICE = 9
SWAP = 10
COMMISSION = 11
PROFIT = 12
DURATION = 14
MIN_COLUMNS = 15

MT_FORMATS = ("%Y.%m.%d %H:%M:%S", "%Y.%m.%d %H:%M")
DATE_FORMATS = MT_FORMATS + ISO_FORMATS + DOTTED_FORMATS


def _number(row: list[str], index: int) -> float:
    return parse_number(row[index], 0.0, decimal_comma=True) or 0.0


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

    for row_number, row in enumerate(table.rows, start=1):
        cells = [cell.strip() for cell in row]
        if not cells or not cells[TICKET]:
            continue
        if len(cells) < MIN_COLUMNS:
            skip_row(result, row_number, f"expected {MIN_COLUMNS} columns, got {len(cells)}")
            continue

        ticket = cells[TICKET]
        symbol = cells[SYMBOL]
        if not symbol:
            skip_row(result, row_number, "missing symbol")
            continue
        entry_date = parse_timestamp(cells[OPEN_TIME], DATE_FORMATS, source_timezone=zone)
        close_date = parse_timestamp(cells[CLOSE_TIME], DATE_FORMATS, source_timezone=zone)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "missing or unreadable open/close time")
            continue

        quantity = abs(_number(cells, VOLUME))
        if quantity <= 0:
            skip_row(result, row_number, "volume is zero")
            continue
        entry_price = price_text(cells[ENTRY_PRICE], decimal_comma=True) or "0"
        close_price = price_text(cells[EXIT_PRICE], decimal_comma=True) or "0"

        swap = _number(cells, SWAP)
        commission = abs(_number(cells, COMMISSION)) - swap
        duration = parse_duration(cells[DURATION])
        if duration is None:
            duration = time_in_position(entry_date, close_date)

        trade = Trade(
            account_number="",
            instrument=symbol,
            side=Side.LONG if cells[TYPE].lower() == "buy" else Side.SHORT,
            quantity=quantity,
            entry_price=entry_price,
            close_price=close_price,
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(_number(cells, PROFIT)),
            commission=round_money(commission),
            time_in_position=duration,
            entry_id=ticket,
            close_id=ticket,
            comment=f"FTMO Trade {ticket}",
        )
        accept(result, known, row_number, trade)
    return result
