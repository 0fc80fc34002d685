from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from hashlib import sha256
from typing import Any, Iterable

from journal_import.ingest.models import Trade


def _normalize_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, Enum):
        value = value.value
    return str(value).strip().upper()


def _normalize_float(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        text = value.strip().replace(",", "").replace("$", "")
        if not text:
            return ""
        if text.startswith("(") and text.endswith(")"):
            text = f"-{text[1:-1]}"
        value = text
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return ""
    if parsed == 0:
        return "0"
    return f"{parsed:.10f}".rstrip("0").rstrip(".")


def _normalize_datetime(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value.isoformat()
    else:
        text = str(value).strip()
        if not text:
            return ""
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return text
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.replace(tzinfo=None, microsecond=0).isoformat(sep=" ")


def trade_hash(trade: Trade) -> str:
    parts = [
        _normalize_text(trade.account_number),
        _normalize_text(trade.instrument),
        _normalize_datetime(trade.entry_date),
        _normalize_datetime(trade.close_date),
        _normalize_float(trade.quantity),
        _normalize_float(trade.entry_price),
        _normalize_float(trade.close_price),
    ]
    return sha256("|".join(parts).encode("utf-8")).hexdigest()


def assign_trade_ids(trades: Iterable[Trade]) -> list[Trade]:
    out: list[Trade] = []
    for trade in trades:
        trade.id = trade_hash(trade)
        out.append(trade)
    return out


def identity_key(trade: Trade) -> tuple[str, str, str, str, str]:
    return (
        _normalize_text(trade.account_number),
        _normalize_text(trade.instrument),
        _normalize_datetime(trade.entry_date),
        _normalize_datetime(trade.close_date),
        _normalize_float(trade.quantity),
    )


def dedupe_trades(trades: Iterable[Trade]) -> list[Trade]:
    """Drop repeated content hashes inside one batch, keeping the first."""
    seen: set[str] = set()
    out: list[Trade] = []
    for trade in trades:
        key = trade.id or trade_hash(trade)
        if key in seen:
            continue
        seen.add(key)
        out.append(trade)
    return out
