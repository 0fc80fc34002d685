"""NinjaTrader performance export, English or French UI."""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from journal_import.ingest.models import ProcessResult, RawTable, Trade
from journal_import.ingest.processors.base import (
    KnownTrades,
    accept,
    normalize_header,
    price_text,
    project_by_headers,
    skip_row,
    source_timezone_or_default,
    time_in_position,
)
from journal_import.ingest.validators import DAY_FIRST_FORMATS, normalize_side, parse_number, parse_timestamp
from journal_import.utils.money import round_money

ENGLISH_HEADERS = {
    "Account": "accountNumber",
    "Entry name": "entryId",
    "Entry price": "entryPrice",
    "Entry time": "entryDate",
    "Exit name": "closeId",
    "Exit price": "closePrice",
    "Exit time": "closeDate",
    "Instrument": "instrument",
    "Market pos.": "side",
    "Profit": "pnl",
    "Qty": "quantity",
    "Commission": "commission",
}

FRENCH_HEADERS = {
    "Compte": "accountNumber",
    "Nom d'entrée": "entryId",
    "Prix d'entrée": "entryPrice",
    "Heure d'entrée": "entryDate",
    "Nom de la sortie": "closeId",
    "Prix de sortie": "closePrice",
    "Heure de sortie": "closeDate",
    "Instrument": "instrument",
    "Pos. marché.": "side",
    "Qté": "quantity",
    "Commission": "commission",
    "Profit": "pnl",
}

FRENCH_ONLY_HEADERS = {"Numéro d'ordre", "Compte", "Stratégie", "Pos. marché.", "Qté"}

# AM/PM means US month-first; 24h clock means day-first.
DATE_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
) + DAY_FIRST_FORMATS

_CONTRACT_MONTH_RE = re.compile(r"\s+\d{2}-\d{2}$")


def is_french_export(headers: list[str]) -> bool:
    return any(normalize_header(header) in FRENCH_ONLY_HEADERS for header in headers)


def normalize_instrument(value: str) -> str:
    text = _CONTRACT_MONTH_RE.sub("", value.strip())
    return text.split()[0] if text else ""


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
    french = is_french_export(table.headers)
    header_map = FRENCH_HEADERS if french else ENGLISH_HEADERS

    for row_number, row in enumerate(project_by_headers(table, header_map), start=1):
        if not any(row.values()):
            continue
        instrument = normalize_instrument(row.get("instrument", ""))
        if not instrument:
            skip_row(result, row_number, "missing instrument")
            continue

        entry_date = parse_timestamp(row.get("entryDate"), DATE_FORMATS, source_timezone=zone, fallback=False)
        close_date = parse_timestamp(row.get("closeDate"), DATE_FORMATS, source_timezone=zone, fallback=False)
        if entry_date is None or close_date is None:
            skip_row(result, row_number, "missing or unreadable entry/exit time")
            continue

        entry_price = price_text(row.get("entryPrice"), decimal_comma=french)
        if entry_price is None:
            skip_row(result, row_number, "unreadable entry price")
            continue
        quantity = abs(parse_number(row.get("quantity"), 0.0) or 0.0)
        if quantity <= 0:
            skip_row(result, row_number, "quantity is zero")
            continue
        side = normalize_side(row.get("side"))
        if side is None:
            skip_row(result, row_number, f"unknown market position '{row.get('side', '')}'")
            continue

        # Profit is reported net of commission.
        profit = parse_number(row.get("pnl"), 0.0, decimal_comma=french) or 0.0
        commission = parse_number(row.get("commission"), 0.0, decimal_comma=french) or 0.0
        trade = Trade(
            account_number=row.get("accountNumber", ""),
            instrument=instrument,
            side=side,
            quantity=quantity,
            entry_price=entry_price,
            close_price=price_text(row.get("closePrice"), decimal_comma=french),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(profit + commission),
            commission=round_money(commission),
            time_in_position=time_in_position(entry_date, close_date),
            entry_id=row.get("entryId") or None,
            close_id=row.get("closeId") or None,
        )
        accept(result, known, row_number, trade)
    return result
