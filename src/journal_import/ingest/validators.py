from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Iterable

from dateutil import parser as date_parser

from journal_import.ingest.models import Side
from journal_import.utils.dates import ensure_utc, excel_serial_to_datetime, to_iso_utc

DOTTED_FORMATS = (
    "%d.%m.%Y %H:%M:%S",
    "%d.%m.%Y %H:%M",
    "%d.%m.%Y",
)

US_FORMATS = (
    "%m/%d/%Y %I:%M:%S %p",
    "%m/%d/%Y %I:%M %p",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y",
)

DAY_FIRST_FORMATS = (
    "%d/%m/%Y %H:%M:%S",
    "%d/%m/%Y %H:%M",
    "%d/%m/%Y",
)

ISO_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%d",
)

TZ_ABBR_OFFSETS = {
    "EST": "-0500",
    "EDT": "-0400",
    "CST": "-0600",
    "CDT": "-0500",
    "MST": "-0700",
    "MDT": "-0600",
    "PST": "-0800",
    "PDT": "-0700",
    "CET": "+0100",
    "CEST": "+0200",
    "UTC": "+0000",
    "GMT": "+0000",
}

TZ_SUFFIX_RE = re.compile(r"^(.*\d)\s+([A-Za-z]{2,4})$")
EXCEL_SERIAL_RE = re.compile(r"^\d{1,6}(?:\.\d+)?$")
_CURRENCY_RE = re.compile(r"(US\$|USD|EUR|GBP|[$€£])", re.IGNORECASE)
_SPACES_RE = re.compile(r"[\s\u00a0\u202f']")
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d+)?)\s*(h|hr|hrs|hour|hours|min|mins|m|sec|secs|s)\b", re.IGNORECASE)

LONG_TOKENS = {"LONG", "BUY", "B", "BOT", "BOUGHT", "ACHAT", "L"}
SHORT_TOKENS = {"SHORT", "SELL", "S", "SLD", "SOLD", "VENTE"}


def _replace_tz_abbreviation(text: str) -> str:
    match = TZ_SUFFIX_RE.match(text.strip())
    if not match:
        return text
    base, abbr = match.groups()
    offset = TZ_ABBR_OFFSETS.get(abbr.upper())
    if offset is None:
        return text
    return f"{base} {offset}"


def parse_number(value: Any, default: float | None = None, *, decimal_comma: bool = False) -> float | None:
    """Parse a broker-formatted number.

    Handles currency symbols, ``(123.45)`` negatives, thousands separators in
    both US (``1,234.50``) and European (``1.234,50``) styles. A lone comma is
    a thousands separator only when exactly three digits follow it, unless
    ``decimal_comma`` says the source always uses comma decimals.
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    text = _CURRENCY_RE.sub("", str(value))
    text = _SPACES_RE.sub("", text).strip()
    if not text:
        return default

    negative = False
    if text.startswith("(") and text.endswith(")"):
        negative = True
        text = text[1:-1]
    if text.endswith("-") and not text.startswith("-"):
        negative = True
        text = text[:-1]
    if text.startswith("-"):
        negative = not negative
        text = text[1:]
    elif text.startswith("+"):
        text = text[1:]

    has_comma = "," in text
    has_dot = "." in text
    if has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma:
        parts = text.split(",")
        if decimal_comma and len(parts) == 2:
            text = ".".join(parts)
        elif len(parts) > 2 or (len(parts[1]) == 3 and parts[0] not in {"", "0"}):
            text = "".join(parts)
        else:
            text = ".".join(parts)
    elif has_dot and text.count(".") > 1:
        text = text.replace(".", "")

    try:
        parsed = float(text)
    except ValueError:
        return default
    return -parsed if negative else parsed


def parse_datetime(
    value: Any,
    formats: Iterable[str] = (),
    *,
    source_timezone: str | None = None,
    dayfirst: bool = False,
    allow_excel_serial: bool = False,
    fallback: bool = True,
) -> datetime | None:
    """Parse a broker timestamp into an aware UTC datetime.

    Explicit ``formats`` are tried first; then ISO-8601; then, when
    ``fallback`` is set, dateutil's parser.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value, source_timezone)
    if allow_excel_serial and isinstance(value, (int, float)) and not isinstance(value, bool):
        return ensure_utc(excel_serial_to_datetime(float(value)), source_timezone)

    text = " ".join(str(value).strip().split())
    if not text:
        return None
    if allow_excel_serial and EXCEL_SERIAL_RE.match(text):
        try:
            return ensure_utc(excel_serial_to_datetime(float(text)), source_timezone)
        except ValueError:
            return None

    text_with_offset = _replace_tz_abbreviation(text)
    for fmt in formats:
        for candidate in (text, text_with_offset):
            try:
                return ensure_utc(datetime.strptime(candidate, fmt), source_timezone)
            except ValueError:
                continue

    try:
        return ensure_utc(datetime.fromisoformat(text.replace("Z", "+00:00")), source_timezone)
    except ValueError:
        pass

    if not fallback:
        return None
    try:
        parsed = date_parser.parse(text_with_offset, dayfirst=dayfirst)
    except (TypeError, ValueError, OverflowError):
        return None
    return ensure_utc(parsed, source_timezone)


def parse_timestamp(value: Any, formats: Iterable[str] = (), **kwargs: Any) -> str | None:
    parsed = parse_datetime(value, formats, **kwargs)
    if parsed is None:
        return None
    return to_iso_utc(parsed)


def parse_duration(value: Any) -> int | None:
    """Seconds from ``"125.4"``, ``"01:02:05"``, ``"2min 5sec"`` or ``"1h 3m"``."""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return int(round(value))
    text = str(value).strip()
    if not text:
        return None
    numeric = parse_number(text)
    if numeric is not None and re.fullmatch(r"[\d.,]+", text):
        return int(round(numeric))
    if re.fullmatch(r"\d+:\d{1,2}(?::\d{1,2})?", text):
        parts = [int(part) for part in text.split(":")]
        while len(parts) < 3:
            parts.insert(0, 0)
        hours, minutes, seconds = parts
        return hours * 3600 + minutes * 60 + seconds
    matches = _DURATION_PART_RE.findall(text)
    if not matches:
        return None
    total = 0.0
    for amount, unit in matches:
        unit_key = unit.lower()
        if unit_key.startswith("h"):
            total += float(amount) * 3600
        elif unit_key.startswith("m"):
            total += float(amount) * 60
        else:
            total += float(amount)
    return int(round(total))


def normalize_side(value: Any) -> Side | None:
    if isinstance(value, Side):
        return value
    text = str(value or "").strip().upper()
    if not text:
        return None
    token = text.split()[0]
    if text in LONG_TOKENS or token in LONG_TOKENS:
        return Side.LONG
    if text in SHORT_TOKENS or token in SHORT_TOKENS:
        return Side.SHORT
    return None


def strip_suffix(symbol: str, length: int) -> str:
    text = str(symbol or "").strip()
    if length <= 0 or len(text) <= length:
        return text
    return text[:-length]
