from __future__ import annotations

from pathlib import Path

from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.engine import Engine

from journal_import.config.settings import get_settings
from journal_import.db.models import Base
from journal_import.utils.logging import get_logger

logger = get_logger(__name__)

SQLITE_PRAGMAS = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA busy_timeout=5000",
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
)

# Columns added after the first schema; journals created earlier lack them.
SQLITE_EXTRA_COLUMNS: dict[str, dict[str, str]] = {
    "trades": {
        "tags": "JSON DEFAULT '[]'",
        "platform": "VARCHAR(32)",
        "import_run_id": "INTEGER REFERENCES import_runs (id)",
    },
}

SQLITE_EXTRA_INDEXES = [
    "CREATE INDEX IF NOT EXISTS ix_trades_account_close ON trades (account_number, close_date)",
    "CREATE INDEX IF NOT EXISTS ix_trades_import_run ON trades (import_run_id)",
    "CREATE INDEX IF NOT EXISTS ix_import_runs_platform_created ON import_runs (platform, created_at)",
]


def _enable_sqlite_pragmas(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _set_pragmas(dbapi_connection, _connection_record):  # pragma: no cover - driver callback
        cursor = dbapi_connection.cursor()
        for statement in SQLITE_PRAGMAS:
            try:
                cursor.execute(statement)
            except Exception:
                # In-memory databases reject WAL.
                continue
        cursor.close()


def _ensure_sqlite_columns(engine: Engine) -> list[str]:
    if engine.dialect.name != "sqlite":
        return []

    added: list[str] = []
    with engine.begin() as conn:
        for table_name, columns in SQLITE_EXTRA_COLUMNS.items():
            existing = {column["name"] for column in inspect(conn).get_columns(table_name)}
            for column_name, sql_type in columns.items():
                if column_name in existing:
                    continue
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {sql_type}"))  # noqa: S608
                added.append(f"{table_name}.{column_name}")
    return added


def _ensure_sqlite_indexes(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return
    with engine.begin() as conn:
        for statement in SQLITE_EXTRA_INDEXES:
            conn.execute(text(statement))


def build_engine(database_url: str | None = None) -> Engine:
    url = database_url or get_settings().database_url

    if url.startswith("sqlite:///") and ":memory:" not in url:
        Path(url.removeprefix("sqlite:///")).expanduser().parent.mkdir(parents=True, exist_ok=True)

    engine = create_engine(url, future=True)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_pragmas(engine)
    return engine


def migrate(database_url: str | None = None) -> Engine:
    """Create missing tables, then bring older SQLite journals up to date."""
    engine = build_engine(database_url=database_url)
    Base.metadata.create_all(bind=engine)
    added = _ensure_sqlite_columns(engine)
    if added:
        logger.info("Added columns: %s", ", ".join(added))
    _ensure_sqlite_indexes(engine)
    logger.info("Database ready at %s", engine.url.render_as_string(hide_password=True))
    return engine


if __name__ == "__main__":
    migrate()
