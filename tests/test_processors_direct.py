from __future__ import annotations

import pytest

from journal_import.ingest.extractors import extract_delimited_text
from journal_import.ingest.models import RawTable, Side
from journal_import.ingest.processors import (
    atas,
    ftmo,
    generic,
    ninjatrader,
    rithmic_performance,
    topstep,
    tradezella,
    tradovate,
)

ATAS_HEADERS = [
    "Account",
    "Instrument",
    "Open time",
    "Open price",
    "Open volume",
    "Close time",
    "Close price",
    "Close volume",
    "PnL",
    "Comment",
]


def _atas_table() -> RawTable:
    return RawTable(
        headers=ATAS_HEADERS,
        rows=[
            ["Sim101", "ESZ4@CME", "01.11.2024 10:00:00", "5000.25", "2", "01.11.2024 10:05:00", "5004.25", "-2", "400", "scalp"],
            ["Sim101", "NQZ4@CME", "01.11.2024 11:00:00", "20000", "-1", "01.11.2024 11:30:00", "19990", "1", "200", ""],
            ["Sim101", "", "01.11.2024 12:00:00", "5000", "1", "01.11.2024 12:01:00", "5001", "-1", "50", ""],
        ],
    )


def test_atas_reads_sides_from_volume_signs_and_rates():
    result = atas.process(_atas_table(), commission_rates={"NQ": 2.5})

    assert [trade.instrument for trade in result.trades] == ["ES", "NQ"]
    es, nq = result.trades
    assert es.side is Side.LONG
    assert es.quantity == 2
    assert es.entry_price == "5000.25"
    assert es.entry_date == "2024-11-01T10:00:00+00:00"
    assert es.time_in_position == 300
    assert es.commission is None
    assert es.comment == "scalp"
    assert es.entry_id.startswith("atas_")
    assert nq.side is Side.SHORT
    assert nq.commission == 2.5
    assert result.issues == ["[WARNING] Row 3: missing instrument"]


def test_atas_skips_trades_already_imported():
    first = atas.process(_atas_table())

    second = atas.process(_atas_table(), existing_trades=first.trades)

    assert second.trades == []
    assert "[INFO] Row 1: already imported" in second.issues
    assert "[INFO] Row 2: already imported" in second.issues


def test_ftmo_nets_swap_into_commission():
    text = (
        "Ticket;Open;Type;Volume;Symbol;Price;SL;TP;Close;Price;Swap;Commission;Profit;Pips;Trade duration in seconds\n"
        "12345;2024.11.01 10:00:00;buy;1,5;US30.cash;42000,5;;;2024.11.01 10:30:00;42010,5;-0,70;-3,00;15,00;100;1800\n"
    )

    result = ftmo.process(extract_delimited_text(text))

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.commission == 3.70
    assert trade.quantity == 1.5
    assert trade.entry_price == "42000.5"
    assert trade.close_price == "42010.5"
    assert trade.pnl == 15.0
    assert trade.time_in_position == 1800
    assert trade.side is Side.LONG
    assert trade.comment == "FTMO Trade 12345"
    assert trade.entry_date == "2024-11-01T10:00:00+00:00"


def test_ninjatrader_english_adds_commission_back_to_profit():
    table = RawTable(
        headers=[
            "Trade number", "Instrument", "Account", "Strategy", "Market pos.", "Qty", "Entry price",
            "Exit price", "Entry time", "Exit time", "Entry name", "Exit name", "Profit", "Commission",
        ],
        rows=[
            ["1", "ES 12-24", "Sim101", "", "Long", "1", "5000.25", "5002.25",
             "11/1/2024 10:00:00 AM", "11/1/2024 10:05:00 AM", "Entry", "Exit", "$95.76", "$4.24"],
        ],
    )

    result = ninjatrader.process(table)

    trade = result.trades[0]
    assert trade.instrument == "ES"
    assert trade.pnl == 100.0
    assert trade.commission == 4.24
    assert trade.entry_date == "2024-11-01T10:00:00+00:00"
    assert trade.time_in_position == 300
    assert trade.entry_id == "Entry"


def test_ninjatrader_french_export_uses_day_first_dates():
    table = RawTable(
        headers=[
            "Numéro d'ordre", "Instrument", "Compte", "Stratégie", "Pos. marché.", "Qté",
            "Prix d'entrée", "Prix de sortie", "Heure d'entrée", "Heure de sortie", "Profit", "Commission",
        ],
        rows=[
            ["1", "NQ 12-24", "Sim101", "", "Court", "1", "20000,25", "19990,25",
             "01/11/2024 10:00:00", "01/11/2024 10:10:00", "195,76 $", "4,24 $"],
        ],
    )

    assert ninjatrader.is_french_export(table.headers)
    result = ninjatrader.process(table)

    assert result.trades == []
    assert result.issues == ["[WARNING] Row 1: unknown market position 'Court'"]

    table.rows[0][4] = "Short"
    trade = ninjatrader.process(table).trades[0]
    assert trade.side is Side.SHORT
    assert trade.entry_price == "20000.25"
    assert trade.entry_date == "2024-11-01T10:00:00+00:00"
    assert trade.pnl == 200.0


def test_tradovate_sold_before_bought_is_short():
    table = RawTable(
        headers=["symbol", "qty", "buyPrice", "sellPrice", "pnl", "boughtTimestamp", "soldTimestamp",
                 "duration", "buyFillId", "sellFillId"],
        rows=[["MNQZ4", "2", "20000.00", "20010.00", "$40.00", "11/01/2024 10:10:00",
               "11/01/2024 10:00:00", "10min 0sec", "b1", "s1"]],
    )

    result = tradovate.process(table, commission_rates={"MNQ": 0.5})

    trade = result.trades[0]
    assert trade.instrument == "MNQ"
    assert trade.side is Side.SHORT
    assert trade.entry_date == "2024-11-01T10:00:00+00:00"
    assert trade.entry_price == "20010"
    assert trade.close_price == "20000"
    assert (trade.entry_id, trade.close_id) == ("s1", "b1")
    assert trade.time_in_position == 600
    assert trade.commission == 1.0


def test_tradezella_sums_commission_and_fee():
    table = RawTable(
        headers=["Account Name", "Symbol", "Side", "Quantity", "Open Date", "Open Time", "Close Date",
                 "Close Time", "Entry Price", "Exit Price", "Gross P&L", "Commission", "Fee"],
        rows=[
            ["Acct1", "ES", "short", "1", "2024-11-01", "10:00:00.123", "2024-11-01", "10:03:00",
             "5000", "4998", "100", "-2.5", "-0.54"],
            ["Acct1", "ES", "long", "1", "", "", "2024-11-01", "10:03:00", "5000", "4998", "-100", "", ""],
        ],
    )

    result = tradezella.process(table)

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.side is Side.SHORT
    assert trade.commission == 3.04
    assert trade.time_in_position == 180
    assert result.issues == ["[WARNING] Row 2: missing entryDate"]


def test_topstep_validates_rows():
    table = RawTable(
        headers=["Id", "ContractName", "EnteredAt", "ExitedAt", "EntryPrice", "ExitPrice", "Fees", "PnL", "Size", "Type"],
        rows=[
            ["101", "ESZ4", "11/01/2024 10:00:00", "11/01/2024 10:01:00", "5000.00", "5001.00", "2.80", "50.00", "1", "Long"],
            ["102", "ESZ4", "11/01/2024 11:00:00", "11/01/2024 11:01:00", "5000.00", "5001.00", "2.80", "50.00", "0", "Long"],
        ],
    )

    result = topstep.process(table)

    assert len(result.trades) == 1
    trade = result.trades[0]
    assert trade.instrument == "ES"
    assert trade.entry_price == "5000"
    assert trade.commission == 2.8
    assert trade.entry_id == "101"
    assert result.issues == ["[WARNING] Row 2: size must be > 0"]


def test_rithmic_performance_defaults_account_and_reads_life_span():
    table = RawTable(
        headers=["AccountNumber", "Instrument", "Fill Size", "Entry Buy/Sell", "Entry Price", "Entry Time",
                 "Exit Price", "Exit Time", "Trade P&L", "Commission & Fees", "Trade Life Span",
                 "Entry Order Number", "Exit Order Number"],
        rows=[["", "MESZ4", "3", "S", "5000.25", "11/01/2024 10:00:00", "4999.25", "11/01/2024 10:02:00",
               "15.00", "-1.86", "00:02:00", "e1", "x1"]],
    )

    trade = rithmic_performance.process(table).trades[0]

    assert trade.account_number == rithmic_performance.DEFAULT_ACCOUNT
    assert trade.instrument == "MES"
    assert trade.side is Side.SHORT
    assert trade.commission == 1.86
    assert trade.time_in_position == 120
    assert (trade.entry_id, trade.close_id) == ("e1", "x1")


def test_generic_uses_inferred_mapping():
    table = RawTable(
        headers=["Account", "Symbol", "Qty", "Entry Price", "Exit Price", "Entry Date", "Exit Date", "PnL", "Side", "Commission"],
        rows=[["A1", "NQ", "2", "20000", "20010", "2024-11-01 10:00:00", "2024-11-01 10:30:00", "400", "Short", "4.20"]],
    )

    trade = generic.process(table).trades[0]

    assert trade.account_number == "A1"
    assert trade.side is Side.SHORT
    assert trade.commission == 4.2
    assert trade.time_in_position == 1800


def test_generic_requires_mapped_required_fields():
    table = RawTable(headers=["Foo", "Bar"], rows=[["1", "2"]])

    with pytest.raises(ValueError, match="Missing required field mapping 'instrument'"):
        generic.process(table)


def test_ninjatrader_english_reads_comma_as_thousands_separator():
    table = RawTable(
        headers=[
            "Trade number", "Instrument", "Account", "Market pos.", "Qty", "Entry price", "Exit price",
            "Entry time", "Exit time", "Profit", "Commission",
        ],
        rows=[
            ["1", "NQ 12-24", "Sim101", "Long", "1", "20,000", "20,010.25",
             "11/1/2024 10:00:00 AM", "11/1/2024 10:05:00 AM", "$200.76", "$4.24"],
        ],
    )

    trade = ninjatrader.process(table).trades[0]

    assert trade.entry_price == "20000"
    assert trade.close_price == "20010.25"
    assert trade.pnl == 205.0
