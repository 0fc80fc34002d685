from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from journal_import.ingest.dedupe import trade_hash
from journal_import.ingest.lots import FIFOLotMatcher, LotOrder
from journal_import.ingest.models import Side

START = datetime(2025, 5, 2, 13, 30, tzinfo=timezone.utc)


def _order(side: Side, quantity: float, price: float, minute: int, *, symbol="MESM5", commission=None):
    return LotOrder(
        account_number="U***1234",
        raw_symbol=symbol,
        side=side,
        quantity=quantity,
        price=price,
        timestamp=START + timedelta(minutes=minute),
        commission=0.62 * quantity if commission is None else commission,
        order_id=f"{side.value[0]}{minute}",
    )


def test_fifo_closes_oldest_lot_first():
    matcher = FIFOLotMatcher({"MESM5": 5})
    trades = matcher.process_orders(
        [
            _order(Side.SHORT, 3, 5020, 10),
            _order(Side.LONG, 2, 5000, 0),
            _order(Side.LONG, 1, 5010, 5),
        ]
    )

    assert [(trade.quantity, trade.pnl, trade.commission) for trade in trades] == [
        (2, 200.0, 2.48),
        (1, 50.0, 1.24),
    ]
    first = trades[0]
    assert first.instrument == "MES"
    assert first.entry_price == "5000"
    assert first.close_price == "5020"
    assert first.time_in_position == 600
    assert (first.entry_id, first.close_id) == ("l0", "s10")
    assert matcher.open_positions() == []


def test_short_lots_and_leftover_open_position():
    matcher = FIFOLotMatcher({"MESM5": 5})
    trades = matcher.process_orders(
        [
            _order(Side.SHORT, 2, 5020, 0),
            _order(Side.LONG, 3, 5010, 1),
        ]
    )

    assert len(trades) == 1
    assert trades[0].side is Side.SHORT
    assert trades[0].pnl == 100.0

    (position,) = matcher.open_positions()
    assert position.side is Side.LONG
    assert position.quantity == 1
    assert position.instrument == "MES"
    assert position.average_entry_price == 5010
    assert position.total_commission == pytest.approx(0.62)


def test_unknown_symbol_multiplier_defaults_to_one():
    matcher = FIFOLotMatcher()
    trades = matcher.process_orders(
        [
            _order(Side.LONG, 1, 100, 0, symbol="XYZ", commission=0.0),
            _order(Side.SHORT, 1, 101.5, 1, symbol="XYZ", commission=0.0),
        ]
    )

    assert trades[0].pnl == 1.5
    assert trades[0].commission == 0.0


def test_lots_from_one_second_and_price_close_as_one_trade():
    matcher = FIFOLotMatcher({"MESM5": 5})
    trades = matcher.process_orders(
        [
            _order(Side.LONG, 1, 5000, 0),
            _order(Side.LONG, 1, 5000, 0),
            _order(Side.SHORT, 2, 5010, 5),
        ]
    )

    assert len(trades) == 1
    assert trades[0].quantity == 2
    assert trades[0].pnl == 100.0
    assert trades[0].commission == 2.48
    assert matcher.open_positions() == []


def test_fifo_conserves_quantity_with_same_second_lots():
    orders = [
        _order(Side.LONG, 1, 5000, 0),
        _order(Side.LONG, 1, 5000.25, 0),
        _order(Side.LONG, 2, 5000, 1),
        _order(Side.SHORT, 3, 5010, 5),
        _order(Side.SHORT, 2, 5005, 6),
    ]
    matcher = FIFOLotMatcher({"MESM5": 5})
    trades = matcher.process_orders(orders)
    still_open = sum(position.quantity for position in matcher.open_positions())

    filled = sum(order.quantity for order in orders)
    assert 2 * sum(trade.quantity for trade in trades) + still_open == filled
    assert len({trade_hash(trade) for trade in trades}) == len(trades)
