"""FIFO lot matching for statement-style exports (one row per execution)."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from journal_import.ingest.models import OpenPosition, Order, Side, Trade
from journal_import.ingest.validators import strip_suffix
from journal_import.utils.dates import seconds_between, to_iso_utc
from journal_import.utils.money import format_price, round_money


@dataclass(slots=True)
class LotOrder:
    account_number: str
    raw_symbol: str
    side: Side
    quantity: float
    price: float
    timestamp: datetime
    commission: float
    order_id: str


@dataclass(slots=True)
class OpenLot:
    account_number: str
    raw_symbol: str
    side: Side
    opened_at: datetime
    quantity_remaining: float
    unit_price: float
    multiplier: float
    fee_per_unit: float
    order_id: str


def _same_entry(left: Trade, right: Trade) -> bool:
    return left.entry_date == right.entry_date and left.entry_price == right.entry_price


def _merge_into(target: Trade, extra: Trade) -> None:
    target.quantity = round(target.quantity + extra.quantity, 8)
    target.pnl = round_money(target.pnl + extra.pnl)
    target.commission = round_money((target.commission or 0.0) + (extra.commission or 0.0))


class FIFOLotMatcher:
    def __init__(self, multipliers: dict[str, float] | None = None, *, suffix_length: int = 2) -> None:
        self._open_lots: dict[tuple[str, str], list[OpenLot]] = {}
        self.multipliers = {key.upper(): float(value) for key, value in (multipliers or {}).items()}
        self.suffix_length = suffix_length
        self.trades: list[Trade] = []

    def _multiplier(self, raw_symbol: str) -> float:
        return self.multipliers.get(raw_symbol.upper(), 1.0)

    def process_orders(self, orders: Iterable[LotOrder]) -> list[Trade]:
        for order in sorted(orders, key=lambda item: item.timestamp):
            self.process_order(order)
        return self.trades

    def process_order(self, order: LotOrder) -> None:
        if order.quantity <= 0:
            raise ValueError(f"Order quantity must be > 0, got {order.quantity:g}")

        key = (order.account_number, order.raw_symbol)
        queue = self._open_lots.setdefault(key, [])
        remaining = order.quantity
        close_fee_per_unit = order.commission / order.quantity

        previous: Trade | None = None
        while remaining > 0 and queue and queue[0].side != order.side:
            lot = queue[0]
            matched_qty = min(remaining, lot.quantity_remaining)
            trade = self._realize(lot, order, matched_qty, close_fee_per_unit)
            # Lots opened in the same second at the same price would hash alike.
            if previous is not None and _same_entry(previous, trade):
                _merge_into(previous, trade)
            else:
                self.trades.append(trade)
                previous = trade

            lot.quantity_remaining = round(lot.quantity_remaining - matched_qty, 8)
            remaining = round(remaining - matched_qty, 8)
            if lot.quantity_remaining <= 0:
                queue.pop(0)

        if remaining > 0:
            queue.append(
                OpenLot(
                    account_number=order.account_number,
                    raw_symbol=order.raw_symbol,
                    side=order.side,
                    opened_at=order.timestamp,
                    quantity_remaining=remaining,
                    unit_price=order.price,
                    multiplier=self._multiplier(order.raw_symbol),
                    fee_per_unit=close_fee_per_unit,
                    order_id=order.order_id,
                )
            )

    def _realize(self, lot: OpenLot, order: LotOrder, matched_qty: float, close_fee_per_unit: float) -> Trade:
        gross = (order.price - lot.unit_price) * matched_qty * lot.multiplier
        if lot.side is Side.SHORT:
            gross = -gross
        entry_date = to_iso_utc(lot.opened_at)
        close_date = to_iso_utc(order.timestamp)
        return Trade(
            account_number=lot.account_number,
            instrument=strip_suffix(lot.raw_symbol, self.suffix_length),
            side=lot.side,
            quantity=matched_qty,
            entry_price=format_price(lot.unit_price),
            close_price=format_price(order.price),
            entry_date=entry_date,
            close_date=close_date,
            pnl=round_money(gross),
            commission=round_money((lot.fee_per_unit + close_fee_per_unit) * matched_qty),
            time_in_position=max(seconds_between(entry_date, close_date), 0),
            entry_id=lot.order_id,
            close_id=order.order_id,
        )

    def open_positions(self) -> list[OpenPosition]:
        """Unmatched lots folded into one position per account and symbol."""
        positions: list[OpenPosition] = []
        for (account_number, raw_symbol), queue in self._open_lots.items():
            lots = [lot for lot in queue if lot.quantity_remaining > 0]
            if not lots:
                continue
            quantity = sum(lot.quantity_remaining for lot in lots)
            entry_orders = [
                Order(
                    quantity=lot.quantity_remaining,
                    price=lot.unit_price,
                    commission=lot.fee_per_unit * lot.quantity_remaining,
                    timestamp=lot.opened_at,
                    order_id=lot.order_id,
                )
                for lot in lots
            ]
            positions.append(
                OpenPosition(
                    account_number=account_number,
                    instrument=strip_suffix(raw_symbol, self.suffix_length),
                    side=lots[0].side,
                    quantity=quantity,
                    entry_orders=entry_orders,
                    exit_orders=[],
                    average_entry_price=sum(o.price * o.quantity for o in entry_orders) / quantity,
                    entry_date=lots[0].opened_at,
                    total_commission=sum(o.commission for o in entry_orders),
                    original_quantity=quantity,
                )
            )
        return positions
