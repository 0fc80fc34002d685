"""Money helpers for deterministic rounding and price formatting."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


CENT = Decimal("0.01")


def to_decimal(value: float | int | str | Decimal | None) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value: float | int | str | Decimal | None) -> float:
    return float(to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def round_to(value: float | int | str | Decimal | None, places: int) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_price(value: float | int | str | Decimal | None, places: int | None = None) -> str:
    """Render a price as plain decimal text.

    With ``places`` the value is fixed to that many decimals (``"5000.50"``);
    without it trailing zeros are dropped (``"5000.5"``).
    """
    try:
        amount = to_decimal(value)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid price: {value!r}") from exc
    if places is not None:
        quantum = Decimal(1).scaleb(-places)
        return str(amount.quantize(quantum, rounding=ROUND_HALF_UP))
    text = format(amount.normalize(), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text or "0"


def prorate(amount: float, part: float, whole: float) -> float:
    if not whole:
        return 0.0
    return amount * (part / whole)
