from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Enum as SqlEnum, Float, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from journal_import.ingest.models import Side, Trade


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class ImportRun(Base):
    __tablename__ = "import_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    platform: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    source_file: Mapped[str] = mapped_column(String(256), nullable=False)
    file_signature: Mapped[str | None] = mapped_column(String(128), nullable=True)
    trades_found: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    trades_added: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incomplete_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    issues: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)


class TradeRecord(Base):
    __tablename__ = "trades"
    __table_args__ = (
        Index("ix_trades_account_entry", "account_number", "entry_date"),
        Index("ix_trades_instrument_entry", "instrument", "entry_date"),
    )

    # sha256 content hash, see ingest.dedupe.trade_hash
    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    account_number: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    instrument: Mapped[str] = mapped_column(String(32), nullable=False)
    side: Mapped[Side] = mapped_column(
        SqlEnum(Side, native_enum=False, values_callable=lambda members: [m.value for m in members]),
        nullable=False,
    )
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    entry_price: Mapped[str] = mapped_column(String(32), nullable=False)
    close_price: Mapped[str | None] = mapped_column(String(32), nullable=True)
    entry_date: Mapped[str] = mapped_column(String(32), nullable=False)
    close_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    pnl: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    commission: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    time_in_position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    entry_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    close_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    platform: Mapped[str | None] = mapped_column(String(32), nullable=True)
    import_run_id: Mapped[int | None] = mapped_column(ForeignKey("import_runs.id"), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, nullable=False)

    def to_trade(self) -> Trade:
        return Trade(
            id=self.id,
            account_number=self.account_number,
            instrument=self.instrument,
            side=self.side,
            quantity=self.quantity,
            entry_price=self.entry_price,
            close_price=self.close_price,
            entry_date=self.entry_date,
            close_date=self.close_date,
            pnl=self.pnl,
            commission=self.commission,
            time_in_position=self.time_in_position,
            entry_id=self.entry_id,
            close_id=self.close_id,
            comment=self.comment,
            tags=list(self.tags or []),
        )
