"""User-mapped CSV: any table plus a ``ColumnMapping``."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.column_mapping import ColumnMapping, infer_default_mapping, project_rows
from journal_import.ingest.models import DestinationField, ProcessResult, RawTable, Side, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    commission_from_rates,
    price_text,
    skip_row,
    source_timezone_or_default,
    time_in_position,
)
from journal_import.ingest.validators import (
    DAY_FIRST_FORMATS,
    DOTTED_FORMATS,
    ISO_FORMATS,
    US_FORMATS,
    normalize_side,
    parse_duration,
    parse_number,
    parse_timestamp,
)
from journal_import.utils.money import round_money

DATE_FORMATS = ISO_FORMATS + US_FORMATS + DOTTED_FORMATS + DAY_FIRST_FORMATS


def process(
    table: RawTable,
    *,
    mapping: ColumnMapping | None = None,
    existing_trades: Iterable[Trade] = (),
    commission_rates: Mapping[str, float] | None = None,
    source_timezone: str | None = None,
) -> ProcessResult:
    mapping = mapping if mapping is not None else infer_default_mapping(table.headers)
    missing = mapping.missing_required()
    if missing:
        raise ValueError(
            "; ".join(f"Missing required field mapping '{destination.value}'." for destination in missing)
        )

    result = ProcessResult()
    known = KnownTrades(existing_trades)
    zone = source_timezone_or_default(source_timezone)
    has_commission = mapping.column_for(DestinationField.COMMISSION) is not None

    for row_number, row in enumerate(project_rows(table, mapping), start=1):
        instrument = row.get(DestinationField.INSTRUMENT.value, "").strip()
        if not instrument:
            skip_row(result, row_number, "missing instrument")
            continue
        entry_date = parse_timestamp(row.get(DestinationField.ENTRY_DATE.value), DATE_FORMATS, source_timezone=zone)
        close_date = parse_timestamp(row.get(DestinationField.CLOSE_DATE.value), DATE_FORMATS, source_timezone=zone)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "missing or unreadable entry/close date")
            continue
        quantity = abs(parse_number(row.get(DestinationField.QUANTITY.value), 0.0) or 0.0)
        if quantity <= 0:
            skip_row(result, row_number, "quantity is zero")
            continue
        entry_price = price_text(row.get(DestinationField.ENTRY_PRICE.value))
        close_price = price_text(row.get(DestinationField.CLOSE_PRICE.value))
        pnl = parse_number(row.get(DestinationField.PNL.value))
        if entry_price is None or close_price is None or pnl is None:
            skip_row(result, row_number, "unreadable price or P&L")
            continue

        if has_commission:
            commission = round_money(abs(parse_number(row.get(DestinationField.COMMISSION.value), 0.0) or 0.0))
        else:
            commission = commission_from_rates(instrument, quantity, commission_rates)
        duration = parse_duration(row.get(DestinationField.TIME_IN_POSITION.value))
        trade = Trade(
            account_number=row.get(DestinationField.ACCOUNT_NUMBER.value, ""),
            instrument=instrument,
            side=normalize_side(row.get(DestinationField.SIDE.value)) or Side.LONG,
            quantity=quantity,
            entry_price=entry_price,
            close_price=close_price,
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(pnl),
            commission=commission,
            time_in_position=duration if duration is not None else time_in_position(entry_date, close_date),
            entry_id=row.get(DestinationField.ENTRY_ID.value) or None,
            close_id=row.get(DestinationField.CLOSE_ID.value) or None,
        )
        accept(result, known, row_number, trade)
    return result
