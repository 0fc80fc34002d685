"""Topstep (ProjectX) trade export."""

from __future__ import annotations

from typing import Iterable, Mapping

from journal_import.ingest.models import ProcessResult, RawTable, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    project_by_headers,
    skip_row,
    source_timezone_or_default,
    time_in_position,
)
from journal_import.ingest.validators import US_FORMATS, normalize_side, parse_number, parse_timestamp, strip_suffix
from journal_import.utils.money import format_price, round_money

DATE_FORMATS = US_FORMATS

# Headers are matched by substring, in this order.
HEADER_MAP = {
    "ContractName": "instrument",
    "Size": "quantity",
    "PnL": "pnl",
    "Fees": "commission",
    "Type": "side",
    "Id": "entryId",
    "EntryPrice": "entryPrice",
    "EnteredAt": "entryDate",
    "ExitPrice": "closePrice",
    "ExitedAt": "closeDate",
}

REQUIRED_FIELDS = ("instrument", "quantity", "entryPrice", "closePrice", "entryDate", "closeDate")


def _validation_error(row: dict[str, str]) -> str | None:
    missing = [field for field in REQUIRED_FIELDS if not row.get(field)]
    if missing:
        return f"missing {', '.join(missing)}"
    quantity = parse_number(row.get("quantity"))
    if quantity is None or quantity <= 0:
        return "size must be > 0"
    for field in ("entryPrice", "closePrice"):
        price = parse_number(row.get(field))
        if price is None or price <= 0:
            return f"{field} must be > 0"
    if parse_number(row.get("pnl")) is None:
        return "unreadable PnL"
    commission = parse_number(row.get("commission"), 0.0) or 0.0
    if commission < 0:
        return "fees must be >= 0"
    if normalize_side(row.get("side")) is None:
        return f"unknown type '{row.get('side', '')}'"
    return None


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
        error = _validation_error(row)
        if error is not None:
            skip_row(result, row_number, error)
            continue
        entry_date = parse_timestamp(row["entryDate"], DATE_FORMATS, source_timezone=zone)
        close_date = parse_timestamp(row["closeDate"], DATE_FORMATS, source_timezone=zone)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "unreadable entry/exit time")
            continue

        trade = Trade(
            account_number="",
            instrument=strip_suffix(row["instrument"], 2),
            side=normalize_side(row["side"]),
            quantity=parse_number(row["quantity"]),
            entry_price=format_price(parse_number(row["entryPrice"])),
            close_price=format_price(parse_number(row["closePrice"])),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(parse_number(row["pnl"])),
            commission=round_money(parse_number(row.get("commission"), 0.0)),
            time_in_position=time_in_position(entry_date, close_date),
            entry_id=row.get("entryId") or None,
        )
        accept(result, known, row_number, trade)
    return result
