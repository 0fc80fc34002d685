"""Interactive Brokers activity statement (PDF text).

The statement text is split into its ``Trades`` and ``Financial Instrument
Information`` sections. Executions come from the first, contract
multipliers from the second, and lots are matched FIFO per raw symbol.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping

from journal_import.ingest.errors import ParseError
from journal_import.ingest.lots import FIFOLotMatcher, LotOrder
from journal_import.ingest.models import ProcessResult, Side, Trade
from journal_import.ingest.processors.base import collect_matched, source_timezone_or_default
from journal_import.ingest.validators import parse_datetime, parse_number
from journal_import.utils.logging import get_logger

logger = get_logger(__name__)

_TRADES_SECTION_RE = re.compile(r"Trades.*?(?=Financial Instrument Information|\Z)", re.DOTALL)
_INSTRUMENTS_SECTION_RE = re.compile(
    r"Financial Instrument Information.*?(?=Order Types|Generated:|\Z)", re.DOTALL
)
_INSTRUMENT_TYPE_RE = re.compile(r"\b(Futures|Options|Stocks|Bonds|ETFs?)\b")

_ORDER_RE = re.compile(
    r"U\*\*\*(?P<account>\d+)\s+(?P<symbol>[A-Z0-9]+)\s+"
    r"(?P<date>\d{4}-\d{2}-\d{2}),\s*(?P<time>\d{2}:\d{2}:\d{2})\s+"
    r"(?P<settle>\d{4}-\d{2}-\d{2})\s+-\s+(?P<side>BUY|SELL)\s+"
    r"(?P<quantity>-?\d+)\s+(?P<price>[\d,]+\.\d+)\s+(?P<value>-?[\d,]+\.\d+)\s+"
    r"(?P<commission>-?[\d,]+\.\d+)\s+(?P<fee>[\d,]+\.\d+)\s+"
    r"(?P<order_type>[A-Z]+)\s+(?P<code>[OC])"
)
_INSTRUMENT_RE = re.compile(
    r"(?P<symbol>[A-Z0-9]+)\s+(?P<description>[A-Z0-9]+\s+[A-Z0-9]+)\s+(?P<conid>\d+)\s+"
    r"(?P<underlying>[A-Z0-9]+)\s+(?P<exchange>[A-Z]+)\s+(?P<multiplier>\d+)\s+"
    r"(?P<expiry>\d{4}-\d{2}-\d{2})\s+(?P<delivery_month>\d{4}-\d{2})"
)

DATE_FORMATS = ("%Y-%m-%d %H:%M:%S",)
INSTRUMENT_SUFFIX_LENGTH = 2


@dataclass(frozen=True)
class FinancialInstrument:
    symbol: str
    description: str
    conid: str
    underlying: str
    exchange: str
    multiplier: float
    expiry: str
    delivery_month: str
    instrument_type: str | None = None


def trades_section(text: str) -> str | None:
    match = _TRADES_SECTION_RE.search(text)
    return match.group(0) if match else None


def parse_instruments(text: str) -> list[FinancialInstrument]:
    section = _INSTRUMENTS_SECTION_RE.search(text)
    if section is None:
        return []
    body = section.group(0)
    type_match = _INSTRUMENT_TYPE_RE.search(body)
    instrument_type = type_match.group(1) if type_match else None
    return [
        FinancialInstrument(
            symbol=match.group("symbol"),
            description=match.group("description"),
            conid=match.group("conid"),
            underlying=match.group("underlying"),
            exchange=match.group("exchange"),
            multiplier=float(match.group("multiplier")),
            expiry=match.group("expiry"),
            delivery_month=match.group("delivery_month"),
            instrument_type=instrument_type,
        )
        for match in _INSTRUMENT_RE.finditer(body)
    ]


def parse_orders(section: str, *, source_timezone: str | None = None) -> list[LotOrder]:
    zone = source_timezone_or_default(source_timezone)
    orders: list[LotOrder] = []
    for index, match in enumerate(_ORDER_RE.finditer(section), start=1):
        timestamp = parse_datetime(
            f"{match.group('date')} {match.group('time')}",
            DATE_FORMATS,
            source_timezone=zone,
        )
        quantity = abs(parse_number(match.group("quantity"), 0.0) or 0.0)
        price = parse_number(match.group("price"))
        if timestamp is None or price is None or quantity <= 0:
            logger.warning("Skipping unreadable IBKR execution: %s", match.group(0))
            continue
        side = Side.LONG if match.group("side") == "BUY" else Side.SHORT
        commission = abs(parse_number(match.group("commission"), 0.0) or 0.0)
        fee = abs(parse_number(match.group("fee"), 0.0) or 0.0)
        orders.append(
            LotOrder(
                account_number=f"U***{match.group('account')}",
                raw_symbol=match.group("symbol"),
                side=side,
                quantity=quantity,
                price=price,
                timestamp=timestamp,
                commission=commission + fee,
                order_id=f"{match.group('side')[0]}{index}-{int(timestamp.timestamp())}",
            )
        )
    return orders


def process(
    text: str,
    *,
    existing_trades: Iterable[Trade] = (),
    commission_rates: Mapping[str, float] | None = None,
    source_timezone: str | None = None,
) -> ProcessResult:
    section = trades_section(text)
    if section is None:
        raise ParseError("Statement has no Trades section.")
    orders = parse_orders(section, source_timezone=source_timezone)
    if not orders:
        raise ParseError("No executions found in the Trades section.")

    instruments = parse_instruments(text)
    multipliers = {instrument.symbol: instrument.multiplier for instrument in instruments}
    matcher = FIFOLotMatcher(multipliers, suffix_length=INSTRUMENT_SUFFIX_LENGTH)
    matched = ProcessResult(trades=matcher.process_orders(orders))
    for position in matcher.open_positions():
        matched.incomplete.append(position)
        matched.issues.append(str(position.as_warning()))
    for order in orders:
        if order.raw_symbol.upper() not in matcher.multipliers:
            matched.unknown_symbols.add(order.raw_symbol)

    result = ProcessResult()
    collect_matched(result, matched, existing_trades)
    logger.info("IBKR statement: %d executions, %d trades", len(orders), len(result.trades))
    return result
