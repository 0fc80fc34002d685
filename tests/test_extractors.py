from __future__ import annotations

import io

import pandas as pd
import pytest

from journal_import.ingest.errors import MissingColumnsError, ParseError, SheetNotFoundError
from journal_import.ingest.extractors import (
    extract_delimited_text,
    extract_pdf_text,
    extract_spreadsheet,
    read_text,
    sniff_delimiter,
)


def _workbook(frames: dict[str, pd.DataFrame]) -> bytes:
    buffer = io.BytesIO()
    with pd.ExcelWriter(buffer, engine="openpyxl") as writer:
        for name, frame in frames.items():
            frame.to_excel(writer, sheet_name=name, index=False)
    return buffer.getvalue()


def test_semicolon_files_are_sniffed_and_kept_as_text():
    table = extract_delimited_text("Ticket;Volume;Profit\n00123;1,5;-3,00\n\n")

    assert sniff_delimiter("a;b\n1,2;3") == ";"
    assert table.headers == ["Ticket", "Volume", "Profit"]
    assert table.rows == [["00123", "1,5", "-3,00"]]


def test_file_sources_decode_bom_and_cp1252(tmp_path):
    path = tmp_path / "export.csv"
    path.write_bytes("\ufeffCompte,Qté\nSim101,1\n".encode("utf-8"))
    legacy = "Compte,Qté\nSim101,1\n".encode("cp1252")

    assert extract_delimited_text(path).headers == ["Compte", "Qté"]
    assert read_text(legacy).startswith("Compte,Qté")


def test_empty_or_header_only_files_raise_parse_error():
    with pytest.raises(ParseError, match="empty"):
        extract_delimited_text(b"   ")
    with pytest.raises(ParseError, match="no data rows"):
        extract_delimited_text("a,b,c\n")


def test_spreadsheet_reads_named_sheet():
    payload = _workbook(
        {
            "Statistics": pd.DataFrame({"Total": [1]}),
            "Journal": pd.DataFrame(
                {"Instrument": ["ESZ4@CME"], "Open volume": [2], "Open price": [5000.25]}
            ),
        }
    )

    table = extract_spreadsheet(payload, sheet_name="Journal", required_columns=("Instrument",))

    assert table.headers == ["Instrument", "Open volume", "Open price"]
    assert table.rows == [["ESZ4@CME", "2", "5000.25"]]


def test_spreadsheet_missing_sheet_or_columns():
    payload = _workbook({"Statistics": pd.DataFrame({"Total": [1]})})

    with pytest.raises(SheetNotFoundError) as excinfo:
        extract_spreadsheet(payload, sheet_name="Journal")
    assert excinfo.value.available == ["Statistics"]

    with pytest.raises(MissingColumnsError) as excinfo:
        extract_spreadsheet(payload, required_columns=("Instrument", "PnL"))
    assert excinfo.value.missing == ["Instrument", "PnL"]


def test_pdf_text_is_joined_across_pages(monkeypatch):
    monkeypatch.setattr(
        "journal_import.ingest.extractors._extract_with_pdfplumber",
        lambda payload: "Trades\npage one\nPage two",
    )

    assert extract_pdf_text(b"%PDF-1.4") == "Trades\npage one\nPage two"


def test_pdf_without_text_is_rejected(monkeypatch):
    monkeypatch.setattr("journal_import.ingest.extractors._extract_with_pdfplumber", lambda payload: "  \n")

    with pytest.raises(ParseError, match="no extractable text"):
        extract_pdf_text(b"%PDF-1.4")
    with pytest.raises(ParseError, match="empty"):
        extract_pdf_text(b"")
