from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from journal_import.config.settings import get_settings
from journal_import.ingest.extractors import (
    Source,
    extract_delimited_text,
    extract_pdf_text,
    extract_spreadsheet,
    read_binary_payload,
)
from journal_import.ingest.models import RawTable
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

_ZIP_MAGIC = b"PK\x03\x04"


class PlatformKind(str, Enum):
    GENERIC = "generic"
    ATAS = "atas"
    FTMO = "ftmo"
    NINJATRADER = "ninjatrader"
    TRADOVATE = "tradovate"
    TRADEZELLA = "tradezella"
    TOPSTEP = "topstep"
    RITHMIC_PERFORMANCE = "rithmic-performance"
    RITHMIC_ORDERS = "rithmic-orders"
    QUANTOWER = "quantower"
    IBKR_PDF = "ibkr-pdf"


# "direct": one row per closed trade; "matching": fills paired into trades.
FAMILY_DIRECT = "direct"
FAMILY_MATCHING = "matching"


@dataclass(frozen=True)
class PlatformStrategy:
    kind: PlatformKind
    label: str
    extract: Callable[[Source], Any]
    process: Callable[..., Any]
    family: str = FAMILY_DIRECT
    required_columns: tuple[str, ...] = ()
    sheet_name: str | None = None

    @property
    def accepts_mapping(self) -> bool:
        return self.kind is PlatformKind.GENERIC

    @property
    def accepts_spec_overrides(self) -> bool:
        return self.kind in {PlatformKind.QUANTOWER, PlatformKind.RITHMIC_ORDERS}


def _extract_atas(source: Source) -> RawTable:
    """ATAS exports are xlsx workbooks; a CSV of the journal sheet is accepted too."""
    if isinstance(source, str) and "\n" in source:
        return extract_delimited_text(source)
    payload = read_binary_payload(source)
    if payload.startswith(_ZIP_MAGIC):
        return extract_spreadsheet(
            payload,
            sheet_name=get_settings().atas_sheet_name,
            required_columns=atas.REQUIRED_COLUMNS,
        )
    return extract_delimited_text(payload)


_STRATEGIES: dict[PlatformKind, PlatformStrategy] = {
    PlatformKind.GENERIC: PlatformStrategy(
        kind=PlatformKind.GENERIC,
        label="Generic CSV (column mapping)",
        extract=extract_delimited_text,
        process=generic.process,
    ),
    PlatformKind.ATAS: PlatformStrategy(
        kind=PlatformKind.ATAS,
        label="ATAS journal",
        extract=_extract_atas,
        process=atas.process,
        required_columns=atas.REQUIRED_COLUMNS,
        sheet_name="Journal",
    ),
    PlatformKind.FTMO: PlatformStrategy(
        kind=PlatformKind.FTMO,
        label="FTMO / MetaTrader history",
        extract=extract_delimited_text,
        process=ftmo.process,
    ),
    PlatformKind.NINJATRADER: PlatformStrategy(
        kind=PlatformKind.NINJATRADER,
        label="NinjaTrader trade performance",
        extract=extract_delimited_text,
        process=ninjatrader.process,
    ),
    PlatformKind.TRADOVATE: PlatformStrategy(
        kind=PlatformKind.TRADOVATE,
        label="Tradovate performance",
        extract=extract_delimited_text,
        process=tradovate.process,
    ),
    PlatformKind.TRADEZELLA: PlatformStrategy(
        kind=PlatformKind.TRADEZELLA,
        label="TradeZella export",
        extract=extract_delimited_text,
        process=tradezella.process,
    ),
    PlatformKind.TOPSTEP: PlatformStrategy(
        kind=PlatformKind.TOPSTEP,
        label="Topstep trades",
        extract=extract_delimited_text,
        process=topstep.process,
    ),
    PlatformKind.RITHMIC_PERFORMANCE: PlatformStrategy(
        kind=PlatformKind.RITHMIC_PERFORMANCE,
        label="Rithmic performance report",
        extract=extract_delimited_text,
        process=rithmic_performance.process,
    ),
    PlatformKind.RITHMIC_ORDERS: PlatformStrategy(
        kind=PlatformKind.RITHMIC_ORDERS,
        label="Rithmic order history",
        extract=extract_delimited_text,
        process=rithmic_orders.process,
        family=FAMILY_MATCHING,
        required_columns=rithmic_orders.REQUIRED_FIELDS,
    ),
    PlatformKind.QUANTOWER: PlatformStrategy(
        kind=PlatformKind.QUANTOWER,
        label="Quantower fills",
        extract=extract_delimited_text,
        process=quantower.process,
        family=FAMILY_MATCHING,
    ),
    PlatformKind.IBKR_PDF: PlatformStrategy(
        kind=PlatformKind.IBKR_PDF,
        label="Interactive Brokers statement (PDF)",
        extract=extract_pdf_text,
        process=ibkr_pdf.process,
        family=FAMILY_MATCHING,
    ),
}


def get_platform(kind: PlatformKind | str) -> PlatformStrategy:
    try:
        key = PlatformKind(str(getattr(kind, "value", kind)).strip().lower())
    except ValueError as exc:
        choices = ", ".join(item.value for item in PlatformKind)
        raise ValueError(f"Unknown platform '{kind}'. Expected one of: {choices}") from exc
    return _STRATEGIES[key]


def list_platforms() -> list[PlatformStrategy]:
    return list(_STRATEGIES.values())
