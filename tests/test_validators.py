from __future__ import annotations

from datetime import datetime, timezone

import pytest

from journal_import.ingest.models import Side
from journal_import.ingest.processors import (
    atas,
    ftmo,
    generic,
    ibkr_pdf,
    ninjatrader,
    quantower,
    rithmic_orders,
    rithmic_performance,
    topstep,
    tradezella,
    tradovate,
)
from journal_import.ingest.validators import (
    DOTTED_FORMATS,
    US_FORMATS,
    normalize_side,
    parse_datetime,
    parse_duration,
    parse_number,
    parse_timestamp,
    strip_suffix,
)


def test_parse_number_handles_broker_formats():
    assert parse_number("1,234.50") == 1234.5
    assert parse_number("1.234,50") == 1234.5
    assert parse_number("$1,250.00") == 1250.0
    assert parse_number("(123.45)") == -123.45
    assert parse_number("12,5") == 12.5
    assert parse_number("1,234") == 1234.0
    assert parse_number("0,125") == 0.125
    assert parse_number("12,500", decimal_comma=True) == 12.5
    assert parse_number("n/a") is None
    assert parse_number("", default=0.0) == 0.0


def test_parse_datetime_explicit_formats():
    parsed = parse_datetime("15.03.2024 14:30:00", DOTTED_FORMATS)

    assert parsed == datetime(2024, 3, 15, 14, 30, tzinfo=timezone.utc)


def test_parse_timestamp_applies_source_timezone():
    assert (
        parse_timestamp("03/15/2024 2:30:00 PM", US_FORMATS, source_timezone="America/New_York")
        == "2024-03-15T18:30:00+00:00"
    )


def test_parse_timestamp_reads_timezone_abbreviations():
    assert parse_timestamp("2024-03-15 14:30:00 EST") == "2024-03-15T19:30:00+00:00"


def test_parse_datetime_excel_serial_only_when_allowed():
    assert parse_datetime("45000.5", allow_excel_serial=True) == datetime(2023, 3, 15, 12, tzinfo=timezone.utc)
    assert parse_datetime(45000, allow_excel_serial=True) == datetime(2023, 3, 15, tzinfo=timezone.utc)


def test_parse_datetime_without_fallback_rejects_free_text():
    assert parse_datetime("next tuesday-ish", fallback=False) is None
    assert parse_datetime("") is None
    assert parse_datetime(None) is None


def test_parse_duration_variants():
    assert parse_duration("01:02:05") == 3725
    assert parse_duration("2min 5sec") == 125
    assert parse_duration("1h 3m") == 3780
    assert parse_duration("125.4") == 125
    assert parse_duration("") is None


def test_normalize_side_tokens():
    assert normalize_side("Buy") is Side.LONG
    assert normalize_side("SELL SHORT") is Side.SHORT
    assert normalize_side("Vente") is Side.SHORT
    assert normalize_side("Long") is Side.LONG
    assert normalize_side("") is None
    assert normalize_side("flat") is None


def test_strip_suffix_keeps_short_symbols():
    assert strip_suffix("ESZ4", 2) == "ES"
    assert strip_suffix("ES", 2) == "ES"
    assert strip_suffix(" MNQH5 ", 2) == "MNQ"


PROCESSORS_WITH_DATES = (
    atas,
    ftmo,
    generic,
    ibkr_pdf,
    ninjatrader,
    quantower,
    rithmic_orders,
    rithmic_performance,
    topstep,
    tradezella,
    tradovate,
)
MOMENT = datetime(2024, 3, 15, 14, 30, 45, tzinfo=timezone.utc)


def _at_format_resolution(fmt: str) -> datetime:
    if "%S" in fmt:
        return MOMENT
    if "%M" in fmt:
        return MOMENT.replace(second=0)
    return MOMENT.replace(hour=0, minute=0, second=0)


@pytest.mark.parametrize(
    "fmt",
    [
        pytest.param(fmt, id=f"{module.__name__.rsplit('.', 1)[-1]}:{fmt}")
        for module in PROCESSORS_WITH_DATES
        for fmt in module.DATE_FORMATS
    ],
)
def test_every_processor_date_format_reads_back(fmt):
    expected = _at_format_resolution(fmt)

    assert parse_datetime(expected.strftime(fmt), (fmt,), source_timezone="UTC") == expected


@pytest.mark.parametrize("module", PROCESSORS_WITH_DATES, ids=lambda module: module.__name__.rsplit(".", 1)[-1])
def test_processor_format_tables_read_their_own_output(module):
    for fmt in module.DATE_FORMATS:
        expected = _at_format_resolution(fmt)

        assert parse_datetime(expected.strftime(fmt), module.DATE_FORMATS, source_timezone="UTC") == expected
