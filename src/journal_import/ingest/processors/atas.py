"""ATAS journal export (``Journal`` sheet of the xlsx, or the same columns as CSV)."""

from __future__ import annotations

from hashlib import sha256
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
    time_in_position,
)
from journal_import.ingest.validators import DOTTED_FORMATS, ISO_FORMATS, parse_number, parse_timestamp, strip_suffix
from journal_import.utils.logging import get_logger
from journal_import.utils.money import round_money

logger = get_logger(__name__)

HEADER_MAP = {
    "Account": "accountNumber",
    "Instrument": "instrument",
    "Open time": "entryDate",
    "Open price": "entryPrice",
    "Open volume": "quantity",
    "Close time": "closeDate",
    "Close price": "closePrice",
    "Close volume": "closeVolume",
    "PnL": "pnl",
    "Comment": "comment",
}

REQUIRED_COLUMNS = ("Instrument", "Open time", "Open price", "Open volume", "Close time", "Close price", "PnL")

# "ESZ4@CME": contract month plus exchange suffix.
INSTRUMENT_SUFFIX_LENGTH = 6

DATE_FORMATS = DOTTED_FORMATS + ISO_FORMATS


def _side_from_volumes(open_volume: float, close_volume: float) -> Side:
    if open_volume < 0 < close_volume:
        return Side.SHORT
    return Side.LONG


def _fill_id(kind: str, *parts: str) -> str:
    digest = sha256("|".join([kind, *parts]).encode("utf-8")).hexdigest()
    return f"atas_{digest[:12]}"


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
        raw_instrument = row.get("instrument", "")
        if not raw_instrument:
            skip_row(result, row_number, "missing instrument")
            continue

        entry_date = parse_timestamp(row.get("entryDate"), DATE_FORMATS, source_timezone=zone, allow_excel_serial=True)
        close_date = parse_timestamp(row.get("closeDate"), DATE_FORMATS, source_timezone=zone, allow_excel_serial=True)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "missing or unreadable open/close time")
            continue

        pnl = parse_number(row.get("pnl"))
        if pnl is None:
            skip_row(result, row_number, f"unreadable PnL '{row.get('pnl', '')}'")
            continue

        open_volume = parse_number(row.get("quantity"), 0.0) or 0.0
        close_volume = parse_number(row.get("closeVolume"), 0.0) or 0.0
        quantity = abs(open_volume)
        if quantity <= 0:
            skip_row(result, row_number, "open volume is zero")
            continue
        if "closeVolume" in row and abs(close_volume) != quantity:
            logger.warning(
                "Quantity mismatch for %s: open=%g, close=%g",
                raw_instrument,
                quantity,
                abs(close_volume),
            )

        entry_price = price_text(row.get("entryPrice"))
        close_price = price_text(row.get("closePrice"))
        if entry_price is None or close_price is None:
            skip_row(result, row_number, "unreadable open/close price")
            continue

        instrument = strip_suffix(raw_instrument, INSTRUMENT_SUFFIX_LENGTH)
        account_number = row.get("accountNumber", "")
        trade = Trade(
            account_number=account_number,
            instrument=instrument,
            side=_side_from_volumes(open_volume, close_volume),
            quantity=quantity,
            entry_price=entry_price,
            close_price=close_price,
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(pnl),
            commission=commission_from_rates(instrument, quantity, commission_rates),
            time_in_position=time_in_position(entry_date, close_date),
            entry_id=_fill_id("open", account_number, raw_instrument, entry_date),
            close_id=_fill_id("close", account_number, raw_instrument, close_date),
            comment=row.get("comment") or None,
        )
        accept(result, known, row_number, trade)
    return result
