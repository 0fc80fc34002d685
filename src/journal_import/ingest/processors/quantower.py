"""Quantower fill history; fills are paired into trades by ``PositionArena``."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.matching import Fill, match_fills
from journal_import.ingest.models import ContractSpec, Order, ProcessResult, RawTable, Trade
from journal_import.ingest.processors.base import collect_matched, skip_row, source_timezone_or_default
from journal_import.ingest.symbols import contract_spec_for, normalize_futures_symbol
from journal_import.ingest.validators import normalize_side, parse_datetime, parse_number

ACCOUNT = 0
DATE_TIME = 1
SYMBOL = 2
SIDE = 7
QUANTITY = 9
PRICE = 10
FEE = 12
TRADE_ID = 15
ORDER_ID = 16
MIN_COLUMNS = 17

DATE_FORMATS = (
    "%Y-%m-%d %I:%M:%S %p %z",
    "%m/%d/%y %I:%M:%S %p %z",
)

PRICE_PLACES = 2


def read_fills(
    table: RawTable,
    result: ProcessResult,
    *,
    spec_overrides: Mapping[str, ContractSpec] | None = None,
    source_timezone: str | None = None,
) -> list[Fill]:
    zone = source_timezone_or_default(source_timezone)
    fills: list[Fill] = []
    for row_number, row in enumerate(table.rows, start=1):
        cells = [cell.strip() for cell in row]
        if len(cells) < MIN_COLUMNS:
            skip_row(result, row_number, f"expected {MIN_COLUMNS} columns, got {len(cells)}")
            continue
        if not cells[SYMBOL]:
            continue
        timestamp = parse_datetime(cells[DATE_TIME], DATE_FORMATS, source_timezone=zone)
        if timestamp is None:
            skip_row(result, row_number, f"unreadable date/time '{cells[DATE_TIME]}'")
            continue
        side = normalize_side(cells[SIDE])
        quantity = abs(parse_number(cells[QUANTITY], 0.0) or 0.0)
        price = parse_number(cells[PRICE])
        if side is None or quantity <= 0 or price is None:
            skip_row(result, row_number, "missing side, quantity or price")
            continue

        instrument = normalize_futures_symbol(cells[SYMBOL])
        spec, known = contract_spec_for(instrument, dict(spec_overrides or {}))
        if not known:
            result.unknown_symbols.add(instrument)
        fills.append(
            Fill(
                account_number=cells[ACCOUNT],
                instrument=instrument,
                side=side,
                order=Order(
                    quantity=quantity,
                    price=price,
                    commission=abs(parse_number(cells[FEE], 0.0) or 0.0),
                    timestamp=timestamp,
                    order_id=cells[ORDER_ID] or cells[TRADE_ID],
                ),
                spec=spec,
            )
        )
    return fills


def process(
    table: RawTable,
    *,
    existing_trades: Iterable[Trade] = (),
    commission_rates: Mapping[str, float] | None = None,
    spec_overrides: Mapping[str, ContractSpec] | None = None,
    source_timezone: str | None = None,
) -> ProcessResult:
    result = ProcessResult()
    fills = read_fills(table, result, spec_overrides=spec_overrides, source_timezone=source_timezone)
    collect_matched(result, match_fills(fills, price_places=PRICE_PLACES), existing_trades)
    return result
