from __future__ import annotations

import io
import math
from datetime import date, datetime
from pathlib import Path
from typing import Any, BinaryIO, Iterable

import pandas as pd
import pdfplumber

from journal_import.ingest.errors import MissingColumnsError, ParseError, SheetNotFoundError
from journal_import.ingest.models import RawTable
from journal_import.utils.logging import get_logger

logger = get_logger(__name__)

Source = str | Path | BinaryIO | bytes


def read_binary_payload(file_obj: Source) -> bytes:
    if isinstance(file_obj, bytes):
        return file_obj
    if isinstance(file_obj, (str, Path)):
        return Path(file_obj).read_bytes()
    if hasattr(file_obj, "read"):
        payload = file_obj.read()
        if isinstance(payload, str):
            return payload.encode("utf-8")
        return payload
    raise TypeError("Unsupported input type.")


def _decode_text(payload: bytes) -> str:
    for encoding in ("utf-8-sig", "cp1252"):
        try:
            return payload.decode(encoding)
        except UnicodeDecodeError:
            continue
    raise ParseError("File is not readable as text.")


def read_text(source: Source) -> str:
    if isinstance(source, str) and "\n" in source:
        return source.lstrip("\ufeff")
    return _decode_text(read_binary_payload(source))


def sniff_delimiter(text: str) -> str:
    first_line = text.split("\n", 1)[0]
    return ";" if ";" in first_line else ","


def extract_delimited_text(source: Source) -> RawTable:
    """CSV-like text to a ``RawTable``; the first row is the header."""
    text = read_text(source)
    if not text.strip():
        raise ParseError("File is empty.")
    try:
        df = pd.read_csv(
            io.StringIO(text),
            sep=sniff_delimiter(text),
            dtype=str,
            header=None,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as exc:
        raise ParseError(f"Could not parse delimited text: {exc}") from exc

    values = df.fillna("").values.tolist()
    headers = [str(cell).strip() for cell in values[0]]
    rows = [row for row in values[1:] if any(str(cell).strip() for cell in row)]
    if not rows:
        raise ParseError("File has a header row but no data rows.")
    return RawTable(headers=headers, rows=rows)


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value).strip()


def _is_header_row(row: list[Any]) -> bool:
    return any(isinstance(cell, str) and cell.strip() for cell in row)


def extract_spreadsheet(
    source: Source,
    *,
    sheet_name: str | None = None,
    required_columns: Iterable[str] = (),
) -> RawTable:
    payload = read_binary_payload(source)
    try:
        sheets = pd.read_excel(
            io.BytesIO(payload),
            sheet_name=None,
            header=None,
            dtype=object,
            engine="openpyxl",
        )
    except (ValueError, OSError, KeyError) as exc:
        raise ParseError(f"Could not read spreadsheet: {exc}") from exc
    if not sheets:
        raise ParseError("Workbook has no sheets.")

    if sheet_name is None:
        sheet_name = next(iter(sheets))
    elif sheet_name not in sheets:
        raise SheetNotFoundError(sheet_name, sheets.keys())
    df = sheets[sheet_name]

    raw_rows = df.astype(object).where(pd.notna(df), None).values.tolist()
    header_index = next((i for i, row in enumerate(raw_rows) if _is_header_row(row)), None)
    if header_index is None:
        raise ParseError(f"Sheet '{sheet_name}' has no header row.")

    headers = [_cell_text(cell) for cell in raw_rows[header_index]]
    rows: list[list[str]] = []
    for row in raw_rows[header_index + 1 :]:
        cells = [_cell_text(cell) for cell in row]
        if any(cells):
            rows.append(cells)

    missing = [column for column in required_columns if column not in headers]
    if missing:
        raise MissingColumnsError(missing)

    logger.debug("Read %d rows from sheet '%s'", len(rows), sheet_name)
    return RawTable(headers=headers, rows=rows)


def _extract_with_pdfplumber(payload: bytes) -> str:
    with pdfplumber.open(io.BytesIO(payload)) as pdf:
        pages = [page.extract_text() or "" for page in pdf.pages]
    return "\n".join(pages)


def extract_pdf_text(source: Source) -> str:
    payload = read_binary_payload(source)
    if not payload:
        raise ParseError("PDF is empty.")
    try:
        text = _extract_with_pdfplumber(payload)
    except Exception as exc:
        raise ParseError(f"Could not read PDF: {exc}") from exc
    if not text.strip():
        raise ParseError("PDF has no extractable text.")
    return text
