from __future__ import annotations

import pytest

from journal_import.ingest.models import ContractSpec, RawTable, Side, Trade
from journal_import.ingest.symbols import (
    DEFAULT_CONTRACT_SPEC,
    contract_spec_for,
    from_cqg_symbol,
    normalize_futures_symbol,
    strip_contract_month,
    to_cqg_symbol,
)


def test_raw_table_pads_and_truncates_rows():
    table = RawTable(headers=["A", None, "C"], rows=[["1"], ["1", "2", "3", "4"], [None, 2.5, "x"]])

    assert table.headers == ["A", "", "C"]
    assert table.rows == [["1", "", ""], ["1", "2", "3"], ["", "2.5", "x"]]
    assert len(table) == 3
    assert table.sample(1) == [{"A": "1", "": "", "C": ""}]


def test_trade_record_uses_camel_case_keys():
    trade = Trade(
        account_number=" A1 ",
        instrument="ES",
        side="SHORT",
        quantity="2",
        entry_price="5000",
        entry_date="2024-11-01T10:00:00+00:00",
        time_in_position=60,
    )

    record = trade.to_record()

    assert trade.side is Side.SHORT
    assert record["accountNumber"] == "A1"
    assert record["side"] == "short"
    assert record["quantity"] == 2.0
    assert record["commission"] == 0.0
    assert record["timeInPosition"] == 60
    assert Trade.from_record(record).to_record() == record


def test_trade_rejects_empty_instrument_and_zero_quantity():
    with pytest.raises(ValueError, match="instrument"):
        Trade(account_number="", instrument=" ", side=Side.LONG, quantity=1, entry_price="1", entry_date="x")
    with pytest.raises(ValueError, match="quantity"):
        Trade(account_number="", instrument="ES", side=Side.LONG, quantity=0, entry_price="1", entry_date="x")


def test_contract_spec_requires_positive_tick():
    with pytest.raises(ValueError):
        ContractSpec(tick_size=0, tick_value=1)


@pytest.mark.parametrize(
    ("raw", "root"),
    [("ESZ4", "ES"), ("6EH25", "6E"), ("EP", "ES"), ("ENQ", "NQ"), ("MES", "MES"), ("CLEZ4", "CL")],
)
def test_normalize_futures_symbol(raw, root):
    assert normalize_futures_symbol(raw) == root


def test_cqg_translation_round_trips_roots():
    assert to_cqg_symbol("es") == "EP"
    assert from_cqg_symbol(to_cqg_symbol("FDAX")) == "FDAX"
    assert from_cqg_symbol("YM") == "YM"
    assert strip_contract_month("SPY") == "SPY"


def test_contract_spec_lookup_reports_unknown_roots():
    assert contract_spec_for("es") == (ContractSpec(0.25, 12.50), True)
    assert contract_spec_for("XYZ") == (DEFAULT_CONTRACT_SPEC, False)
    override = ContractSpec(0.5, 25.0)
    assert contract_spec_for("xyz", {"XYZ": override}) == (override, True)
