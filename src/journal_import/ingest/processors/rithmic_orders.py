"""Rithmic R|Trader order history; filled orders are paired per account."""

from __future__ import annotations

import re
from typing import Iterable, Mapping

from journal_import.ingest.matching import Fill, match_fills
from journal_import.ingest.models import ContractSpec, Order, ProcessResult, RawTable, Trade
from journal_import.ingest.processors.base import collect_matched, skip_row, source_timezone_or_default
from journal_import.ingest.symbols import contract_spec_for
from journal_import.ingest.validators import DAY_FIRST_FORMATS, normalize_side, parse_datetime, parse_number, strip_suffix

REQUIRED_FIELDS = ("Symbol", "Qty Filled", "Avg Fill Price", "Buy/Sell")

DEFAULT_SPEC = ContractSpec(tick_size=1 / 64, tick_value=15.625)
PRICE_PLACES = 5
DATE_FORMATS = DAY_FIRST_FORMATS

_FRACTIONAL_PRICE_RE = re.compile(r"^(?P<whole>-?\d+)'(?P<fraction>\d+)$")


def drop_empty_columns(table: RawTable) -> RawTable:
    keep = [index for index in range(len(table.headers)) if any(row[index].strip() for row in table.rows)]
    return RawTable(
        headers=[table.headers[index] for index in keep],
        rows=[[row[index] for index in keep] for row in table.rows],
    )


def parse_price(value: str) -> float | None:
    """Decimal prices, or bond-style ``whole'fraction`` in 32nds (``110'16`` -> 110.5)."""
    text = value.strip()
    match = _FRACTIONAL_PRICE_RE.match(text)
    if match is not None:
        return int(match.group("whole")) + int(match.group("fraction")) / 32
    return parse_number(text)


def _header_index(headers: list[str], pattern: str) -> int | None:
    needle = pattern.lower()
    for index, header in enumerate(headers):
        if needle in header.lower():
            return index
    return None


def read_fills(
    table: RawTable,
    result: ProcessResult,
    *,
    spec_overrides: Mapping[str, ContractSpec] | None = None,
    source_timezone: str | None = None,
) -> list[Fill]:
    zone = source_timezone_or_default(source_timezone)
    cleaned = drop_empty_columns(table)
    headers = cleaned.headers
    account_index = _header_index(headers, "Account")
    time_index = _header_index(headers, "Update Time")

    fills: list[Fill] = []
    for row_number, row in enumerate(cleaned.rows, start=1):
        order = {header: cell.strip() for header, cell in zip(headers, row)}
        missing = [field for field in REQUIRED_FIELDS if not order.get(field)]
        if missing:
            skip_row(result, row_number, f"missing {', '.join(missing)}", severity="INFO")
            continue
        quantity = parse_number(order["Qty Filled"], 0.0) or 0.0
        if quantity <= 0:
            continue
        price = parse_price(order["Avg Fill Price"])
        side = normalize_side(order["Buy/Sell"])
        raw_time = row[time_index].strip() if time_index is not None else ""
        timestamp = parse_datetime(raw_time, DATE_FORMATS, source_timezone=zone, dayfirst=True)
        if price is None or side is None or timestamp is None:
            skip_row(result, row_number, "unreadable price, side or update time")
            continue

        instrument = strip_suffix(order["Symbol"], 2)
        spec, known = contract_spec_for(instrument, dict(spec_overrides or {}), default=DEFAULT_SPEC)
        if not known:
            result.unknown_symbols.add(instrument)
        commission_rate = parse_number(order.get("Commission Fill Rate"), 0.0) or 0.0
        fills.append(
            Fill(
                account_number=row[account_index].strip() if account_index is not None else "",
                instrument=instrument,
                side=side,
                order=Order(
                    quantity=quantity,
                    price=price,
                    commission=commission_rate * quantity,
                    timestamp=timestamp,
                    order_id=order.get("Order Number", ""),
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

    by_account: dict[str, list[Fill]] = {}
    for fill in fills:
        by_account.setdefault(fill.account_number, []).append(fill)
    for account_fills in by_account.values():
        collect_matched(result, match_fills(account_fills, price_places=PRICE_PLACES), existing_trades)
    return result
