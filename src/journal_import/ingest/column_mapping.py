from __future__ import annotations

import json
import re
from datetime import datetime, timezone
from hashlib import sha256
from pathlib import Path
from typing import Any, Iterable
from uuid import uuid4

from journal_import.config.paths import mapping_store_path
from journal_import.ingest.models import DestinationField, RawTable

DEFAULT_ALIASES: dict[DestinationField, list[str]] = {
    DestinationField.ACCOUNT_NUMBER: ["account", "accountnumber"],
    DestinationField.INSTRUMENT: ["symbol", "ticker"],
    DestinationField.ENTRY_ID: ["buyid", "buyorderid"],
    DestinationField.CLOSE_ID: ["sellid", "sellorderid"],
    DestinationField.QUANTITY: ["qty", "amount"],
    DestinationField.ENTRY_PRICE: ["buyprice", "entryprice"],
    DestinationField.CLOSE_PRICE: ["sellprice", "exitprice"],
    DestinationField.ENTRY_DATE: ["buydate", "entrydate"],
    DestinationField.CLOSE_DATE: ["selldate", "exitdate"],
    DestinationField.PNL: ["pnl", "profit"],
    DestinationField.TIME_IN_POSITION: ["timeinposition", "duration"],
    DestinationField.SIDE: ["side", "direction"],
    DestinationField.COMMISSION: ["commission", "fee"],
}

REQUIRED_DESTINATIONS: tuple[DestinationField, ...] = (
    DestinationField.INSTRUMENT,
    DestinationField.QUANTITY,
    DestinationField.ENTRY_PRICE,
    DestinationField.CLOSE_PRICE,
    DestinationField.ENTRY_DATE,
    DestinationField.CLOSE_DATE,
    DestinationField.PNL,
)

_COLUMN_ID_RE = re.compile(r"^(?P<header>.*)_(?P<index>\d+)$")


def _normalize(text: str) -> str:
    return " ".join(str(text).strip().lower().replace("_", " ").split())


def _match_key(text: str) -> str:
    return "".join(ch for ch in str(text).strip().lower() if ch.isalnum())


def column_id(header: str, index: int) -> str:
    return f"{header}_{index}"


def split_column_id(value: str) -> tuple[str, int | None]:
    match = _COLUMN_ID_RE.match(value)
    if match is None:
        return value, None
    return match.group("header"), int(match.group("index"))


def destination_from(value: Any) -> DestinationField | None:
    if isinstance(value, DestinationField):
        return value
    try:
        return DestinationField(str(value).strip())
    except ValueError:
        return None


def file_signature(columns: list[str]) -> str:
    canonical = "|".join(_normalize(c) for c in columns)
    return sha256(canonical.encode("utf-8")).hexdigest()


class ColumnMapping:
    """Column id -> destination; each destination is held by at most one column."""

    def __init__(self, entries: dict[str, DestinationField] | None = None) -> None:
        self._entries: dict[str, DestinationField] = {}
        for cid, destination in (entries or {}).items():
            self.assign(cid, destination)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, cid: object) -> bool:
        return cid in self._entries

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ColumnMapping):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ColumnMapping({self.as_dict()!r})"

    def assign(self, cid: str, destination: DestinationField | str) -> None:
        resolved = destination_from(destination)
        if resolved is None:
            raise ValueError(f"Unsupported destination '{destination}'.")
        for other, held in list(self._entries.items()):
            if held is resolved and other != cid:
                del self._entries[other]
        self._entries[cid] = resolved

    def clear(self, cid: str) -> None:
        self._entries.pop(cid, None)

    def destination_for(self, cid: str) -> DestinationField | None:
        return self._entries.get(cid)

    def column_for(self, destination: DestinationField | str) -> str | None:
        resolved = destination_from(destination)
        for cid, held in self._entries.items():
            if held is resolved:
                return cid
        return None

    def missing_required(self) -> list[DestinationField]:
        held = set(self._entries.values())
        return [destination for destination in REQUIRED_DESTINATIONS if destination not in held]

    def as_dict(self) -> dict[str, str]:
        return {cid: destination.value for cid, destination in self._entries.items()}

    def merge_suggestions(self, headers: list[str], suggestions: dict[str, Any]) -> list[str]:
        """Fold ``destination -> header`` suggestions in; returns the column ids applied.

        A header value may carry a ``_<position>`` suffix (1-based) to pick
        among duplicate header names.
        """
        applied: list[str] = []
        claimed: dict[str, DestinationField] = {}
        for raw_destination, raw_header in suggestions.items():
            destination = destination_from(raw_destination)
            if destination is None or not isinstance(raw_header, str) or not raw_header.strip():
                continue
            index = _resolve_header_index(headers, raw_header.strip())
            if index is None:
                continue
            cid = column_id(headers[index], index)
            if cid in claimed and claimed[cid] is not destination:
                continue
            self.clear(cid)
            self.assign(cid, destination)
            claimed[cid] = destination
            applied.append(cid)
        return applied


def _resolve_header_index(headers: list[str], value: str) -> int | None:
    match = re.match(r"^(?P<base>.*)_(?P<position>\d+)$", value)
    if match is not None:
        base = match.group("base")
        index = int(match.group("position")) - 1
        if 0 <= index < len(headers) and headers[index] == base:
            return index
        if base in headers:
            return headers.index(base)
    if value in headers:
        return headers.index(value)
    return None


def infer_default_mapping(headers: list[str]) -> ColumnMapping:
    mapping = ColumnMapping()
    taken: set[int] = set()
    compact = [_match_key(header) for header in headers]
    for destination, aliases in DEFAULT_ALIASES.items():
        chosen: int | None = None
        for index, key in enumerate(compact):
            if index not in taken and key and key in aliases:
                chosen = index
                break
        if chosen is None:
            for index, key in enumerate(compact):
                if index not in taken and key and any(alias in key for alias in aliases):
                    chosen = index
                    break
        if chosen is not None:
            taken.add(chosen)
            mapping.assign(column_id(headers[chosen], chosen), destination)
    return mapping


def project_rows(table: RawTable, mapping: ColumnMapping) -> list[dict[str, str]]:
    """Destination-keyed rows; unmapped destinations are absent."""
    columns: list[tuple[int, str]] = []
    for index, header in enumerate(table.headers):
        destination = mapping.destination_for(column_id(header, index))
        if destination is not None:
            columns.append((index, destination.value))
    return [{key: row[index] for index, key in columns} for row in table.rows]


def validate_mapping(
    mapping: dict[str, Any] | None,
    *,
    headers: list[str] | None = None,
    require_all: bool = True,
) -> tuple[ColumnMapping, list[str]]:
    errors: list[str] = []
    if mapping is None:
        mapping = {}
    if not isinstance(mapping, dict):
        return ColumnMapping(), ["Mapping must be a dictionary."]

    cleaned = ColumnMapping()
    seen: dict[DestinationField, str] = {}
    known_ids = {column_id(header, index) for index, header in enumerate(headers or [])}
    for cid, raw_destination in mapping.items():
        cid_text = str(cid)
        destination = destination_from(raw_destination)
        if destination is None:
            errors.append(f"Unsupported destination '{raw_destination}' for column '{cid_text}'.")
            continue
        if headers is not None and cid_text not in known_ids:
            errors.append(f"Column '{cid_text}' for field '{destination.value}' is not present in the file.")
            continue
        previous = seen.get(destination)
        if previous is not None:
            errors.append(
                f"Field '{destination.value}' is mapped to multiple columns ('{previous}' and '{cid_text}')."
            )
            continue
        seen[destination] = cid_text
        cleaned.assign(cid_text, destination)

    if require_all:
        errors.extend(
            f"Missing required field mapping '{destination.value}'." for destination in cleaned.missing_required()
        )
    return cleaned, errors


def load_mapping_store(path: Path | None = None) -> dict[str, Any]:
    path = path or mapping_store_path()
    if not path.exists():
        return {}
    try:
        loaded = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        return {}
    if not isinstance(loaded, dict):
        return {}
    return {key: value for key, value in loaded.items() if isinstance(key, str) and isinstance(value, dict)}


def _write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.parent / f".{path.name}.{uuid4().hex}.tmp"
    temp_path.write_text(
        json.dumps(payload, indent=2, sort_keys=True),
        encoding="utf-8",
    )
    temp_path.replace(path)


def _store_key(platform: str, signature: str) -> str:
    return f"{platform.strip().lower()}::{signature.strip()}"


def save_mapping(
    platform: str,
    headers: list[str],
    mapping: ColumnMapping,
    *,
    path: Path | None = None,
) -> str:
    if not platform.strip():
        raise ValueError("Platform is required.")
    cleaned, errors = validate_mapping(mapping.as_dict(), headers=headers)
    if errors:
        raise ValueError("; ".join(errors))

    signature = file_signature(headers)
    store_path = path or mapping_store_path()
    store = load_mapping_store(store_path)
    store[_store_key(platform, signature)] = {
        "platform": platform.strip(),
        "signature": signature,
        "columns": [str(header) for header in headers],
        "mapping": cleaned.as_dict(),
        "updated_at": datetime.now(timezone.utc).replace(tzinfo=None).isoformat(timespec="seconds"),
    }
    _write_json_atomic(store_path, store)
    return signature


def get_saved_mapping(
    platform: str,
    headers: list[str],
    *,
    path: Path | None = None,
) -> ColumnMapping | None:
    if not platform.strip():
        return None
    record = load_mapping_store(path).get(_store_key(platform, file_signature(headers)))
    if not record:
        return None
    columns = record.get("columns")
    if columns is not None and not isinstance(columns, list):
        return None
    cleaned, errors = validate_mapping(record.get("mapping"), headers=headers)
    if errors:
        return None
    return cleaned


def mapped_headers(mapping: ColumnMapping, headers: Iterable[str]) -> dict[str, str]:
    """Destination -> header name, for display."""
    out: dict[str, str] = {}
    for index, header in enumerate(headers):
        destination = mapping.destination_for(column_id(header, index))
        if destination is not None:
            out[destination.value] = header
    return out
