"""Persistence helpers for imported trades and import runs."""

from __future__ import annotations

from collections.abc import Iterable
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from sqlalchemy import insert, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from journal_import.db.models import ImportRun, TradeRecord
from journal_import.ingest.dedupe import assign_trade_ids
from journal_import.ingest.errors import DuplicateTradeError
from journal_import.ingest.models import Trade
from journal_import.utils.logging import get_logger

logger = get_logger(__name__)

NO_TRADES_ADDED = "NO_TRADES_ADDED"
DUPLICATE_TRADES = "DUPLICATE_TRADES"


@dataclass(frozen=True)
class SaveTradesResult:
    error: str | None
    number_of_trades_added: int


@contextmanager
def session_scope(engine: Engine):
    session = Session(engine)
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def _chunked(rows: list[dict], batch_size: int) -> Iterable[list[dict]]:
    for start in range(0, len(rows), batch_size):
        yield rows[start : start + batch_size]


def _dedupe_batch_rows_by_id(rows: list[dict]) -> list[dict]:
    seen: set[str] = set()
    out: list[dict] = []
    for row in rows:
        if row["id"] in seen:
            continue
        seen.add(row["id"])
        out.append(row)
    return out


def _filter_new_rows(session: Session, rows: list[dict], query_chunk_size: int = 1000) -> list[dict]:
    ids = [row["id"] for row in rows]
    existing: set[str] = set()
    for start in range(0, len(ids), query_chunk_size):
        chunk = ids[start : start + query_chunk_size]
        existing.update(session.scalars(select(TradeRecord.id).where(TradeRecord.id.in_(chunk))).all())
    return [row for row in rows if row["id"] not in existing]


def _bulk_insert_ignore_conflicts(session: Session, rows: list[dict], *, batch_size: int = 5000) -> int:
    if not rows:
        return 0

    bind = session.get_bind()
    dialect_name = bind.dialect.name if bind is not None else ""
    inserted = 0
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert

        stmt = sqlite_insert(TradeRecord).on_conflict_do_nothing(index_elements=["id"])
        for chunk in _chunked(rows, batch_size=batch_size):
            before = int(session.scalar(text("SELECT total_changes()")) or 0)
            session.execute(stmt, chunk)
            after = int(session.scalar(text("SELECT total_changes()")) or 0)
            inserted += max(after - before, 0)
        return inserted

    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as postgresql_insert

        for chunk in _chunked(rows, batch_size=batch_size):
            stmt = postgresql_insert(TradeRecord).values(chunk).on_conflict_do_nothing(index_elements=["id"])
            result = session.execute(stmt)
            inserted += max(int(result.rowcount or 0), 0)
        return inserted

    filtered = _filter_new_rows(session, rows)
    for chunk in _chunked(filtered, batch_size=batch_size):
        session.execute(insert(TradeRecord), chunk)
        inserted += len(chunk)
    return inserted


def _trade_row(trade: Trade, *, platform: str | None, import_run_id: int | None) -> dict[str, Any]:
    return {
        "id": trade.id,
        "account_number": trade.account_number,
        "instrument": trade.instrument,
        "side": trade.side,
        "quantity": trade.quantity,
        "entry_price": trade.entry_price,
        "close_price": trade.close_price,
        "entry_date": trade.entry_date,
        "close_date": trade.close_date,
        "pnl": trade.pnl,
        "commission": float(trade.commission or 0.0),
        "time_in_position": trade.time_in_position,
        "entry_id": trade.entry_id,
        "close_id": trade.close_id,
        "comment": trade.comment,
        "tags": list(trade.tags),
        "platform": platform,
        "import_run_id": import_run_id,
    }


def save_trades(
    session: Session,
    trades: Iterable[Trade],
    *,
    platform: str | None = None,
    import_run_id: int | None = None,
    raise_on_duplicates: bool = False,
) -> SaveTradesResult:
    """Insert trades keyed by content hash; rows whose id already exists are left alone."""
    batch = list(trades)
    if not batch:
        return SaveTradesResult(error=NO_TRADES_ADDED, number_of_trades_added=0)

    assign_trade_ids([trade for trade in batch if not trade.id])
    rows = _dedupe_batch_rows_by_id(
        [_trade_row(trade, platform=platform, import_run_id=import_run_id) for trade in batch]
    )
    added = _bulk_insert_ignore_conflicts(session, rows)
    logger.info("Saved %d of %d trade(s)", added, len(rows))
    if added == 0:
        if raise_on_duplicates:
            raise DuplicateTradeError([row["id"] for row in rows])
        return SaveTradesResult(error=DUPLICATE_TRADES, number_of_trades_added=0)
    return SaveTradesResult(error=None, number_of_trades_added=added)


def load_trades(session: Session, account_numbers: Iterable[str] | None = None) -> list[Trade]:
    stmt = select(TradeRecord)
    if account_numbers is not None:
        stmt = stmt.where(TradeRecord.account_number.in_([str(number) for number in account_numbers]))
    stmt = stmt.order_by(TradeRecord.entry_date, TradeRecord.id)
    return [record.to_trade() for record in session.scalars(stmt).all()]


def record_import_run(
    session: Session,
    *,
    platform: str,
    source_file: str,
    file_signature: str | None = None,
    trades_found: int = 0,
    trades_added: int = 0,
    incomplete_count: int = 0,
    issues: Iterable[str] = (),
) -> ImportRun:
    run = ImportRun(
        platform=platform,
        source_file=source_file,
        file_signature=file_signature,
        trades_found=trades_found,
        trades_added=trades_added,
        incomplete_count=incomplete_count,
        issues=list(issues),
    )
    session.add(run)
    session.flush()
    return run


def list_import_runs(session: Session) -> list[ImportRun]:
    return list(session.scalars(select(ImportRun).order_by(ImportRun.created_at, ImportRun.id)).all())
