from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from journal_import.ingest.matching import Fill, PositionArena, match_fills
from journal_import.ingest.models import ContractSpec, Order, Side

ES = ContractSpec(tick_size=0.25, tick_value=12.5)
POINT = ContractSpec(tick_size=1.0, tick_value=1.0)
START = datetime(2024, 11, 1, 14, 0, tzinfo=timezone.utc)


def _fill(side: Side, quantity: float, price: float, minute: int, *, spec=ES, order_id: str = "", account="A1", instrument="ES"):
    return Fill(
        account_number=account,
        instrument=instrument,
        side=side,
        order=Order(
            quantity=quantity,
            price=price,
            commission=0.5 * quantity,
            timestamp=START + timedelta(minutes=minute),
            order_id=order_id or f"o{minute}",
        ),
        spec=spec,
    )


def test_reversal_closes_trade_and_opens_opposite_remainder():
    arena = PositionArena()

    assert arena.apply(_fill(Side.LONG, 10, 5000, 0)) is None
    trade = arena.apply(_fill(Side.SHORT, 15, 5010, 5))

    assert trade is not None
    assert trade.side is Side.LONG
    assert trade.quantity == 10
    assert trade.pnl == 5000.0
    assert trade.commission == 10.0
    assert trade.entry_price == "5000.00"
    assert trade.close_price == "5010.00"
    assert trade.time_in_position == 300
    assert (trade.entry_id, trade.close_id) == ("o0", "o5")

    remainder = arena.get("A1", "ES")
    assert remainder is not None
    assert remainder.side is Side.SHORT
    assert remainder.quantity == 5
    assert remainder.total_commission == pytest.approx(2.5)
    # every contract commission lands somewhere exactly once
    assert trade.commission + remainder.total_commission == pytest.approx(0.5 * 25)


def test_short_trade_profit_is_negated_price_move():
    arena = PositionArena()
    arena.apply(_fill(Side.SHORT, 2, 5010, 0))
    trade = arena.apply(_fill(Side.LONG, 2, 5000, 1))

    assert trade.side is Side.SHORT
    assert trade.pnl == 1000.0
    assert len(arena) == 0


def test_scale_in_uses_weighted_entry_and_partial_exits_average():
    arena = PositionArena()
    arena.apply(_fill(Side.LONG, 1, 100, 0, spec=POINT))
    arena.apply(_fill(Side.LONG, 1, 102, 1, spec=POINT))
    assert arena.apply(_fill(Side.SHORT, 1, 102, 2, spec=POINT)) is None
    trade = arena.apply(_fill(Side.SHORT, 1, 104, 3, spec=POINT))

    assert trade.quantity == 2
    assert trade.entry_price == "101.00"
    assert trade.close_price == "103.00"
    assert trade.pnl == 4.0
    assert trade.entry_id == "o0-o1"
    assert trade.close_id == "o2-o3"


def test_positions_are_keyed_by_account_and_instrument():
    arena = PositionArena()
    arena.apply(_fill(Side.LONG, 1, 5000, 0, account="A1"))
    arena.apply(_fill(Side.SHORT, 1, 5001, 1, account="A2"))

    assert len(arena) == 2
    assert arena.get("A1", "ES").side is Side.LONG
    assert arena.get("A2", "ES").side is Side.SHORT


def test_zero_quantity_fill_is_rejected():
    fill = _fill(Side.LONG, 1, 5000, 0)
    fill.order.quantity = 0

    with pytest.raises(ValueError):
        PositionArena().apply(fill)


def test_match_fills_sorts_by_time_and_reports_open_positions():
    fills = [
        _fill(Side.SHORT, 1, 5002, 5),
        _fill(Side.LONG, 1, 5000, 0),
        _fill(Side.LONG, 3, 20000, 7, instrument="NQ"),
    ]

    result = match_fills(fills)

    assert len(result.trades) == 1
    assert result.trades[0].pnl == 100.0
    assert [position.instrument for position in result.incomplete] == ["NQ"]
    assert result.issues == ["[WARNING] Open long position of 3 NQ on account A1 was never closed"]
