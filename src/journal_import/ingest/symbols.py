"""Futures contract specs and CQG symbol translation."""

from __future__ import annotations

import re

from journal_import.ingest.models import ContractSpec

DEFAULT_CONTRACT_SPEC = ContractSpec(tick_size=0.25, tick_value=5.0)

CONTRACT_SPECS: dict[str, ContractSpec] = {
    # Micro equity index
    "MES": ContractSpec(0.25, 1.25),
    "MNQ": ContractSpec(0.25, 0.50),
    "MYM": ContractSpec(1.00, 0.50),
    "M2K": ContractSpec(0.10, 0.50),
    "FDXS": ContractSpec(1.00, 0.50),
    "FSXE": ContractSpec(1.00, 0.50),
    # Equity index
    "ES": ContractSpec(0.25, 12.50),
    "NQ": ContractSpec(0.25, 5.00),
    "YM": ContractSpec(1.00, 5.00),
    "RTY": ContractSpec(0.10, 10.00),
    "EMD": ContractSpec(0.10, 10.00),
    "FDAX": ContractSpec(0.50, 12.50),
    "FESX": ContractSpec(1.00, 10.00),
    # Currencies
    "6A": ContractSpec(0.0001, 10.00),
    "6B": ContractSpec(0.0001, 6.25),
    "6C": ContractSpec(0.0001, 10.00),
    "6E": ContractSpec(0.0001, 12.50),
    "6J": ContractSpec(0.000001, 12.50),
    "6N": ContractSpec(0.0001, 10.00),
    "6S": ContractSpec(0.0001, 12.50),
    "M6A": ContractSpec(0.00001, 1.00),
    "M6B": ContractSpec(0.00001, 0.62),
    "M6E": ContractSpec(0.00001, 1.25),
    "MJY": ContractSpec(0.000001, 1.25),
    # Metals
    "GC": ContractSpec(0.10, 10.00),
    "SI": ContractSpec(0.005, 25.00),
    "HG": ContractSpec(0.0005, 12.50),
    "MGC": ContractSpec(0.10, 1.00),
    "SIL": ContractSpec(0.005, 2.50),
    "MHG": ContractSpec(0.0005, 1.25),
    "PL": ContractSpec(0.10, 5.00),
    # Energies
    "CL": ContractSpec(0.01, 10.00),
    "NG": ContractSpec(0.001, 10.00),
    "MCL": ContractSpec(0.01, 1.00),
    "MNG": ContractSpec(0.001, 1.00),
    "RB": ContractSpec(0.0001, 4.20),
    "HO": ContractSpec(0.0001, 4.20),
    # Grains
    "ZC": ContractSpec(0.25, 12.50),
    "ZW": ContractSpec(0.25, 12.50),
    "ZS": ContractSpec(0.25, 12.50),
    "ZM": ContractSpec(0.10, 10.00),
    "ZL": ContractSpec(0.0001, 6.00),
    "ZO": ContractSpec(0.25, 12.50),
    "ZR": ContractSpec(0.005, 10.00),
    # US rates
    "ZN": ContractSpec(1 / 128, 15.625),
    "ZB": ContractSpec(1 / 32, 31.25),
    "ZF": ContractSpec(1 / 128, 7.8125),
    "ZT": ContractSpec(1 / 128, 15.625),
    "UB": ContractSpec(1 / 32, 31.25),
    "SR3": ContractSpec(0.0025, 6.25),
    # Softs
    "CC": ContractSpec(1.00, 10.00),
    "KC": ContractSpec(0.05, 18.75),
    "CT": ContractSpec(0.01, 5.00),
    "SB": ContractSpec(0.01, 11.20),
    "OJ": ContractSpec(0.05, 7.50),
    # Meats
    "LE": ContractSpec(0.025, 10.00),
    "GF": ContractSpec(0.025, 12.50),
    "HE": ContractSpec(0.025, 10.00),
    # European and Asia-Pacific rates
    "FGBL": ContractSpec(0.01, 10.00),
    "FGBM": ContractSpec(0.01, 10.00),
    "FGBS": ContractSpec(0.005, 5.00),
    "FGBX": ContractSpec(0.02, 20.00),
    "FBTP": ContractSpec(0.01, 10.00),
    "FBTS": ContractSpec(0.01, 10.00),
    "FOAT": ContractSpec(0.01, 10.00),
    "L": ContractSpec(0.005, 6.25),
    "R": ContractSpec(0.01, 10.00),
    "JGB": ContractSpec(0.01, 10000.00),
    "JB": ContractSpec(0.01, 100.00),
    "IR": ContractSpec(0.01, 24.00),
    "XT": ContractSpec(0.005, 47.00),
    "YT": ContractSpec(0.01, 30.00),
}

# Root symbol -> CQG symbol.
CQG_SYMBOLS: dict[str, str] = {
    "MES": "MES", "MNQ": "MNQ", "MYM": "MYM", "M2K": "M2K", "FDXS": "FDXS", "FSXE": "FSXE",
    "ES": "EP", "NQ": "ENQ", "YM": "YM", "RTY": "RTY", "EMD": "EMD", "NKD": "NKD",
    "FDAX": "DD", "FDXM": "FDXM", "FESX": "DSX", "FXXP": "FXXP", "FESB": "ESB",
    "FSTX": "DTX", "FVS": "FVS", "VX": "VX", "VXM": "MVI", "Y": "Y2", "Z": "QFA",
    "MC225": "MC225", "MJNK": "MJNK", "JNK": "JNK", "JTPX": "JTPX", "JMT": "JMT",
    "J400": "J400", "NK": "ZNA", "NS": "NS", "NU": "ZU", "TW": "TWN", "AP": "AP",
    "HSI": "HSI", "MHI": "MHI", "HHI": "HHI", "MCH": "MCH",
    "6A": "DA6", "6B": "BP6", "6C": "CA6", "6E": "EU6", "6J": "JY6", "6N": "NE6",
    "6S": "SF6", "E7": "EEU", "J7": "EJY", "M6A": "M6A", "M6B": "M6B", "MCD": "GMCD",
    "M6E": "M6E", "MJY": "MJY", "MSF": "MSF", "DX": "DXE",
    "CL": "CLE", "QM": "NQM", "MCL": "MCLE", "NG": "NGE", "QG": "NQG", "MNG": "MNG",
    "RB": "RBE", "HO": "HOE", "BRN": "QO", "T": "ET", "N": "EN", "G": "QP", "O": "QHO",
    "GC": "GCE", "QO": "MQO", "MGC": "MGC", "HG": "CPE", "QC": "MQC", "MHG": "MHG",
    "SI": "SIE", "QI": "MQI", "SIL": "SIL", "ZG": "ZO", "YG": "YG", "ZI": "ZI",
    "YI": "YI", "PL": "PLE",
    "UB": "ULA", "MWN": "MWNA", "TN": "TNA", "MTN": "MTNA", "Z3N": "Z3N", "ZB": "USA",
    "30YY": "Z30Y", "ZF": "FVA", "5YY": "Z5YY", "ZN": "TYA", "10YY": "Z10Y",
    "ZQ": "ZQE", "ZT": "TUA", "2YY": "Z2YY", "SR1": "SR1", "SR3": "SR3",
    "FGBL": "DB", "FGBM": "DL", "FGBS": "DG", "FGBX": "FGBX", "FBTP": "FBTP",
    "FBTS": "FBTS", "FOAT": "FOAT", "L": "QSA", "R": "QGA", "JGB": "JGB", "JB": "ZT",
    "IR": "HBS", "XT": "HXS", "YT": "HTS",
    "ZC": "ZCE", "ZW": "ZWA", "ZS": "ZSE", "ZL": "ZLE", "ZM": "ZME", "ZO": "ZOE",
    "ZR": "ZRE", "XC": "XC", "XW": "XW", "XK": "XB",
    "DC": "GDC", "LB": "LBR", "CC": "CCE", "CT": "CTE", "KC": "KCE", "OJ": "OJE",
    "SB": "SBE",
    "GF": "GF", "HE": "HE", "LE": "GLE",
}

ROOT_SYMBOLS_BY_CQG: dict[str, str] = {cqg: root for root, cqg in CQG_SYMBOLS.items()}

_CONTRACT_MONTH_RE = re.compile(r"^(?P<base>[A-Z0-9]+?)[FGHJKMNQUVXZ]\d{1,2}$")


def strip_contract_month(symbol: str) -> str:
    """``ESZ4`` -> ``ES``, ``6EH25`` -> ``6E``; symbols without a month code pass through."""
    text = str(symbol or "").strip().upper()
    match = _CONTRACT_MONTH_RE.match(text)
    if match is None:
        return text
    return match.group("base")


def to_cqg_symbol(root: str) -> str:
    return CQG_SYMBOLS.get(root.upper(), root.upper())


def from_cqg_symbol(symbol: str) -> str:
    text = symbol.upper()
    if text in CQG_SYMBOLS:
        return text
    return ROOT_SYMBOLS_BY_CQG.get(text, text)


def normalize_futures_symbol(raw_symbol: str) -> str:
    text = str(raw_symbol or "").strip().upper()
    if text in CQG_SYMBOLS or text in ROOT_SYMBOLS_BY_CQG:
        return from_cqg_symbol(text)
    return from_cqg_symbol(strip_contract_month(text))


def contract_spec_for(
    root: str,
    overrides: dict[str, ContractSpec] | None = None,
    *,
    default: ContractSpec = DEFAULT_CONTRACT_SPEC,
) -> tuple[ContractSpec, bool]:
    """Return ``(spec, known)``; unknown roots get ``default`` and ``known=False``."""
    key = root.upper()
    if overrides and key in overrides:
        return overrides[key], True
    spec = CONTRACT_SPECS.get(key)
    if spec is None:
        return default, False
    return spec, True
