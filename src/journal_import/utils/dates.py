"""Timestamp normalization helpers.

Every timestamp leaving the pipeline is an ISO-8601 string in UTC with an
explicit ``+00:00`` offset. Naive wall-clock times coming out of broker
exports are interpreted in a configurable source timezone first.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone, tzinfo

from dateutil import tz


# Excel counts 1900-01-01 as day 1 and also counts the non-existent
# 1900-02-29 as day 60, so serials from 61 on are offset by two days.
EXCEL_EPOCH = datetime(1900, 1, 1)
EXCEL_LEAP_BUG_SERIAL = 60


def resolve_timezone(name: str | None) -> tzinfo:
    if not name or name.strip().upper() in {"UTC", "Z", "GMT"}:
        return timezone.utc
    zone = tz.gettz(name.strip())
    if zone is None:
        raise ValueError(f"Unknown timezone: {name}")
    return zone


def ensure_utc(value: datetime, source_timezone: str | None = None) -> datetime:
    if value.tzinfo is None:
        value = value.replace(tzinfo=resolve_timezone(source_timezone))
    return value.astimezone(timezone.utc)


def to_iso_utc(value: datetime, source_timezone: str | None = None) -> str:
    aware = ensure_utc(value, source_timezone)
    timespec = "milliseconds" if aware.microsecond else "seconds"
    return aware.isoformat(timespec=timespec)


def parse_iso(text: str) -> datetime:
    parsed = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def seconds_between(start: str | datetime, end: str | datetime) -> int:
    start_dt = parse_iso(start) if isinstance(start, str) else ensure_utc(start)
    end_dt = parse_iso(end) if isinstance(end, str) else ensure_utc(end)
    return int(round((end_dt - start_dt).total_seconds()))


def excel_serial_to_datetime(serial: float) -> datetime:
    if serial < 1:
        raise ValueError(f"Excel serial out of range: {serial}")
    whole_days = int(serial)
    fraction = serial - whole_days
    if whole_days < EXCEL_LEAP_BUG_SERIAL:
        day = EXCEL_EPOCH + timedelta(days=whole_days - 1)
    else:
        # Serial 60 is the phantom 1900-02-29 and resolves to 1900-02-28.
        day = EXCEL_EPOCH + timedelta(days=whole_days - 2)
    seconds = round(fraction * 86400)
    return day + timedelta(seconds=seconds)


def datetime_to_excel_serial(value: datetime) -> float:
    naive = value.replace(tzinfo=None) if value.tzinfo is None else ensure_utc(value).replace(tzinfo=None)
    midnight = naive.replace(hour=0, minute=0, second=0, microsecond=0)
    days = (midnight - EXCEL_EPOCH).days
    whole_days = days + 1 if days + 1 < EXCEL_LEAP_BUG_SERIAL else days + 2
    fraction = (naive - midnight).total_seconds() / 86400
    return whole_days + fraction
