from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from journal_import.ingest.errors import IncompleteTradeWarning


class Side(str, Enum):
    LONG = "long"
    SHORT = "short"

    @property
    def opposite(self) -> "Side":
        return Side.SHORT if self is Side.LONG else Side.LONG


class DestinationField(str, Enum):
    ACCOUNT_NUMBER = "accountNumber"
    INSTRUMENT = "instrument"
    ENTRY_ID = "entryId"
    CLOSE_ID = "closeId"
    QUANTITY = "quantity"
    ENTRY_PRICE = "entryPrice"
    CLOSE_PRICE = "closePrice"
    ENTRY_DATE = "entryDate"
    CLOSE_DATE = "closeDate"
    PNL = "pnl"
    TIME_IN_POSITION = "timeInPosition"
    SIDE = "side"
    COMMISSION = "commission"


@dataclass
class RawTable:
    """Header row plus string rows, all rows exactly ``len(headers)`` wide."""

    headers: list[str]
    rows: list[list[str]]

    def __post_init__(self) -> None:
        self.headers = ["" if header is None else str(header).strip() for header in self.headers]
        width = len(self.headers)
        normalized: list[list[str]] = []
        for row in self.rows:
            cells = ["" if cell is None else str(cell) for cell in list(row)[:width]]
            if len(cells) < width:
                cells.extend([""] * (width - len(cells)))
            normalized.append(cells)
        self.rows = normalized

    def __len__(self) -> int:
        return len(self.rows)

    def sample(self, limit: int = 5) -> list[dict[str, str]]:
        out: list[dict[str, str]] = []
        for row in self.rows[:limit]:
            record: dict[str, str] = {}
            for header, cell in zip(self.headers, row):
                record.setdefault(header, cell)
            out.append(record)
        return out


@dataclass(frozen=True)
class ContractSpec:
    tick_size: float
    tick_value: float

    def __post_init__(self) -> None:
        if self.tick_size <= 0:
            raise ValueError(f"tick_size must be > 0, got {self.tick_size}")


@dataclass(slots=True)
class Order:
    quantity: float
    price: float
    commission: float
    timestamp: datetime
    order_id: str


@dataclass(slots=True)
class OpenPosition:
    account_number: str
    instrument: str
    side: Side
    quantity: float
    entry_orders: list[Order]
    exit_orders: list[Order]
    average_entry_price: float
    entry_date: datetime
    total_commission: float
    original_quantity: float

    def as_warning(self) -> IncompleteTradeWarning:
        return IncompleteTradeWarning(
            account_number=self.account_number,
            instrument=self.instrument,
            side=self.side.value,
            quantity=self.quantity,
        )


RECORD_FIELDS: dict[str, str] = {
    "id": "id",
    "account_number": "accountNumber",
    "instrument": "instrument",
    "side": "side",
    "quantity": "quantity",
    "entry_price": "entryPrice",
    "close_price": "closePrice",
    "entry_date": "entryDate",
    "close_date": "closeDate",
    "pnl": "pnl",
    "commission": "commission",
    "time_in_position": "timeInPosition",
    "entry_id": "entryId",
    "close_id": "closeId",
    "comment": "comment",
    "tags": "tags",
}


@dataclass
class Trade:
    account_number: str
    instrument: str
    side: Side
    quantity: float
    entry_price: str
    entry_date: str
    close_price: str | None = None
    close_date: str | None = None
    pnl: float = 0.0
    commission: float | None = None
    time_in_position: int = 0
    entry_id: str | None = None
    close_id: str | None = None
    comment: str | None = None
    tags: list[str] = field(default_factory=list)
    id: str | None = None

    def __post_init__(self) -> None:
        self.side = Side(str(getattr(self.side, "value", self.side)).strip().lower())
        self.quantity = float(self.quantity)
        if self.quantity <= 0:
            raise ValueError(f"quantity must be > 0, got {self.quantity:g}")
        self.account_number = str(self.account_number or "").strip()
        self.instrument = str(self.instrument or "").strip()
        if not self.instrument:
            raise ValueError("instrument is required")

    @property
    def has_commission(self) -> bool:
        return self.commission is not None

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {}
        for attr, key in RECORD_FIELDS.items():
            value = getattr(self, attr)
            if attr == "side":
                value = self.side.value
            elif attr == "commission":
                value = float(value or 0.0)
            elif attr == "tags":
                value = list(value)
            record[key] = value
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Trade":
        kwargs = {attr: record.get(key) for attr, key in RECORD_FIELDS.items() if key in record}
        kwargs["tags"] = list(kwargs.get("tags") or [])
        if kwargs.get("pnl") is None:
            kwargs["pnl"] = 0.0
        if kwargs.get("time_in_position") is None:
            kwargs["time_in_position"] = 0
        return cls(**kwargs)


@dataclass
class ProcessResult:
    trades: list[Trade] = field(default_factory=list)
    incomplete: list[OpenPosition] = field(default_factory=list)
    unknown_symbols: set[str] = field(default_factory=set)
    issues: list[str] = field(default_factory=list)

    def extend(self, other: "ProcessResult") -> None:
        self.trades.extend(other.trades)
        self.incomplete.extend(other.incomplete)
        self.unknown_symbols.update(other.unknown_symbols)
        self.issues.extend(other.issues)
