"""Weighted-average position matching for fill-level exports.

One ``PositionArena`` belongs to one import run. It keys open positions by
``(account, instrument)`` and turns offsetting fills into closed trades.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from journal_import.ingest.models import ContractSpec, OpenPosition, Order, ProcessResult, Side, Trade
from journal_import.utils.dates import seconds_between, to_iso_utc
from journal_import.utils.logging import get_logger
from journal_import.utils.money import format_price, prorate, round_money

logger = get_logger(__name__)


@dataclass(slots=True)
class Fill:
    account_number: str
    instrument: str
    side: Side
    order: Order
    spec: ContractSpec


def _split_order(order: Order, quantity: float) -> tuple[Order, Order]:
    """Split ``order`` into a part of ``quantity`` and the remainder, commission prorated."""
    part_commission = prorate(order.commission, quantity, order.quantity)
    matched = Order(
        quantity=quantity,
        price=order.price,
        commission=part_commission,
        timestamp=order.timestamp,
        order_id=order.order_id,
    )
    remainder = Order(
        quantity=order.quantity - quantity,
        price=order.price,
        commission=order.commission - part_commission,
        timestamp=order.timestamp,
        order_id=order.order_id,
    )
    return matched, remainder


def _weighted_price(orders: list[Order]) -> float:
    total_quantity = sum(order.quantity for order in orders)
    if not total_quantity:
        return 0.0
    return sum(order.price * order.quantity for order in orders) / total_quantity


class PositionArena:
    def __init__(self, *, price_places: int = 2) -> None:
        self._positions: dict[tuple[str, str], OpenPosition] = {}
        self.price_places = price_places
        self.trades: list[Trade] = []

    def __len__(self) -> int:
        return len(self._positions)

    def get(self, account_number: str, instrument: str) -> OpenPosition | None:
        return self._positions.get((account_number, instrument))

    def open_positions(self) -> list[OpenPosition]:
        return list(self._positions.values())

    def apply(self, fill: Fill) -> Trade | None:
        order = fill.order
        if order.quantity <= 0:
            raise ValueError(f"Fill quantity must be > 0, got {order.quantity:g}")

        key = (fill.account_number, fill.instrument)
        position = self._positions.get(key)
        if position is None:
            self._positions[key] = self._open(fill.account_number, fill.instrument, fill.side, order)
            return None

        if fill.side == position.side:
            self._add(position, order)
            return None

        remaining = round(position.quantity - order.quantity, 8)
        if remaining > 0:
            position.exit_orders.append(order)
            position.quantity = remaining
            position.total_commission += order.commission
            return None

        if remaining == 0:
            closing, overflow = order, None
        else:
            closing, overflow = _split_order(order, position.quantity)
        position.exit_orders.append(closing)
        position.total_commission += closing.commission
        position.quantity = 0
        trade = self._close(position, fill.spec)
        self.trades.append(trade)
        del self._positions[key]

        if overflow is not None:
            logger.debug(
                "Reversing %s %s: %g %s opened at %s",
                fill.account_number,
                fill.instrument,
                overflow.quantity,
                fill.side.value,
                overflow.price,
            )
            self._positions[key] = self._open(fill.account_number, fill.instrument, fill.side, overflow)
        return trade

    @staticmethod
    def _open(account_number: str, instrument: str, side: Side, order: Order) -> OpenPosition:
        return OpenPosition(
            account_number=account_number,
            instrument=instrument,
            side=side,
            quantity=order.quantity,
            entry_orders=[order],
            exit_orders=[],
            average_entry_price=order.price,
            entry_date=order.timestamp,
            total_commission=order.commission,
            original_quantity=order.quantity,
        )

    @staticmethod
    def _add(position: OpenPosition, order: Order) -> None:
        entered = position.original_quantity
        position.average_entry_price = (
            position.average_entry_price * entered + order.price * order.quantity
        ) / (entered + order.quantity)
        position.entry_orders.append(order)
        position.quantity += order.quantity
        position.original_quantity = entered + order.quantity
        position.total_commission += order.commission

    def _close(self, position: OpenPosition, spec: ContractSpec) -> Trade:
        quantity = position.original_quantity
        average_exit = _weighted_price(position.exit_orders)
        ticks = (average_exit - position.average_entry_price) / spec.tick_size
        pnl = ticks * spec.tick_value * quantity
        if position.side is Side.SHORT:
            pnl = -pnl

        entry_date = to_iso_utc(position.entry_date)
        close_date = to_iso_utc(position.exit_orders[-1].timestamp)
        return Trade(
            account_number=position.account_number,
            instrument=position.instrument,
            side=position.side,
            quantity=quantity,
            entry_price=format_price(position.average_entry_price, self.price_places),
            close_price=format_price(average_exit, self.price_places),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(pnl),
            commission=round_money(position.total_commission),
            time_in_position=seconds_between(entry_date, close_date),
            entry_id="-".join(order.order_id for order in position.entry_orders if order.order_id),
            close_id="-".join(order.order_id for order in position.exit_orders if order.order_id),
        )

    def drain(self) -> list[OpenPosition]:
        remaining = sorted(self._positions.values(), key=lambda item: item.entry_date)
        self._positions = {}
        return remaining


def match_fills(fills: Iterable[Fill], *, price_places: int = 2) -> ProcessResult:
    """Run ``fills`` through a fresh arena in timestamp order."""
    arena = PositionArena(price_places=price_places)
    for fill in sorted(fills, key=lambda item: item.order.timestamp):
        arena.apply(fill)

    result = ProcessResult(trades=list(arena.trades))
    result.incomplete = arena.drain()
    for position in result.incomplete:
        warning = position.as_warning()
        logger.warning("%s", warning)
        result.issues.append(str(warning))
    return result
