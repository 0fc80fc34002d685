"""Backfill per-contract commissions from a user's trade history."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping

from journal_import.ingest.models import Trade
from journal_import.utils.logging import get_logger
from journal_import.utils.money import round_money

logger = get_logger(__name__)


@dataclass
class CommissionResolution:
    trades: list[Trade]
    missing: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.missing


def historical_commission_rates(
    existing_trades: Iterable[Trade],
    account_numbers: Iterable[str] | None = None,
) -> dict[str, float]:
    """Per-instrument commission per contract; later trades overwrite earlier ones."""
    scope = {str(number) for number in account_numbers} if account_numbers is not None else None
    rates: dict[str, float] = {}
    for trade in existing_trades:
        if scope is not None and trade.account_number not in scope:
            continue
        if not trade.commission or not trade.quantity:
            continue
        rates[trade.instrument] = trade.commission / trade.quantity
    return rates


def resolve_commissions(
    trades: Iterable[Trade],
    rates: Mapping[str, float],
    overrides: Mapping[str, float] | None = None,
) -> CommissionResolution:
    combined = dict(rates)
    combined.update(overrides or {})

    resolved: list[Trade] = []
    missing: set[str] = set()
    for trade in trades:
        if not trade.has_commission:
            rate = combined.get(trade.instrument)
            if rate is None:
                missing.add(trade.instrument)
            else:
                trade.commission = round_money(rate * trade.quantity)
        resolved.append(trade)

    if missing:
        logger.info("No commission rate for instruments: %s", ", ".join(sorted(missing)))
    return CommissionResolution(trades=resolved, missing=sorted(missing))


def apply_commission_overrides(
    resolution: CommissionResolution, overrides: Mapping[str, float]
) -> CommissionResolution:
    """Apply caller-supplied ``{instrument: rate}`` to the trades still missing one."""
    for instrument, rate in overrides.items():
        if rate is None or float(rate) < 0:
            raise ValueError(f"Commission rate for {instrument} must be >= 0.")
    return resolve_commissions(resolution.trades, {}, overrides)
