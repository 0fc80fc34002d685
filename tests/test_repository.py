from __future__ import annotations

import pytest
from sqlalchemy import create_engine, inspect, text

from journal_import.db.migrate import migrate
from journal_import.db.repository import (
    DUPLICATE_TRADES,
    NO_TRADES_ADDED,
    list_import_runs,
    load_trades,
    record_import_run,
    save_trades,
    session_scope,
)
from journal_import.ingest.errors import DuplicateTradeError
from journal_import.ingest.models import Side, Trade


def _trades() -> list[Trade]:
    return [
        Trade(
            account_number="A1",
            instrument="ES",
            side=Side.SHORT,
            quantity=1,
            entry_price="5000.25",
            close_price="4999.25",
            entry_date="2024-11-01T10:00:00+00:00",
            close_date="2024-11-01T10:05:00+00:00",
            pnl=50.0,
            commission=None,
            time_in_position=300,
            tags=["scalp"],
        ),
        Trade(
            account_number="B2",
            instrument="NQ",
            side=Side.LONG,
            quantity=2,
            entry_price="20000",
            close_price="20010",
            entry_date="2024-11-01T09:00:00+00:00",
            close_date="2024-11-01T09:30:00+00:00",
            pnl=400.0,
            commission=4.2,
        ),
    ]


def test_save_then_resave_reports_duplicates(db_session):
    first = save_trades(db_session, _trades(), platform="generic")
    second = save_trades(db_session, _trades(), platform="generic")

    assert first.error is None
    assert first.number_of_trades_added == 2
    assert second.error == DUPLICATE_TRADES
    assert second.number_of_trades_added == 0


def test_partial_overlap_adds_only_new_rows(db_session):
    es, nq = _trades()
    save_trades(db_session, [es])

    result = save_trades(db_session, [es, nq, nq])

    assert result.number_of_trades_added == 1
    assert len(load_trades(db_session)) == 2


def test_empty_batch_adds_nothing(db_session):
    result = save_trades(db_session, [])

    assert result.error == NO_TRADES_ADDED
    assert result.number_of_trades_added == 0


def test_duplicates_can_raise(db_session):
    save_trades(db_session, _trades())

    with pytest.raises(DuplicateTradeError) as excinfo:
        save_trades(db_session, _trades(), raise_on_duplicates=True)
    assert len(excinfo.value.trade_ids) == 2


def test_load_trades_round_trips_and_filters_accounts(db_session):
    save_trades(db_session, _trades())

    loaded = load_trades(db_session)
    assert [trade.instrument for trade in loaded] == ["NQ", "ES"]
    es = loaded[1]
    assert es.side is Side.SHORT
    assert es.commission == 0.0
    assert es.tags == ["scalp"]
    assert es.entry_price == "5000.25"
    assert len(es.id) == 64

    assert [trade.account_number for trade in load_trades(db_session, ["A1"])] == ["A1"]


def test_import_runs_are_recorded(db_session):
    run = record_import_run(
        db_session,
        platform="atas",
        source_file="journal.xlsx",
        trades_found=2,
        issues=["[WARNING] Row 3: missing instrument"],
    )
    save_trades(db_session, _trades(), platform="atas", import_run_id=run.id)

    (stored,) = list_import_runs(db_session)
    assert stored.id == run.id
    assert stored.issues == ["[WARNING] Row 3: missing instrument"]
    assert stored.trades_added == 0


def test_migrate_adds_columns_missing_from_older_journals(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'old.sqlite'}"
    old_engine = create_engine(database_url, future=True)
    with old_engine.begin() as conn:
        conn.execute(
            text(
                "CREATE TABLE trades ("
                "id VARCHAR(64) PRIMARY KEY, account_number VARCHAR(64) NOT NULL DEFAULT '', "
                "instrument VARCHAR(32) NOT NULL, side VARCHAR(5) NOT NULL, quantity FLOAT NOT NULL, "
                "entry_price VARCHAR(32) NOT NULL, close_price VARCHAR(32), entry_date VARCHAR(32) NOT NULL, "
                "close_date VARCHAR(32), pnl FLOAT NOT NULL, commission FLOAT NOT NULL, "
                "time_in_position INTEGER NOT NULL, entry_id VARCHAR(128), close_id VARCHAR(128), "
                "comment TEXT, imported_at DATETIME NOT NULL)"
            )
        )
    old_engine.dispose()

    engine = migrate(database_url)

    columns = {column["name"] for column in inspect(engine).get_columns("trades")}
    assert {"tags", "platform", "import_run_id"} <= columns
    with session_scope(engine) as session:
        assert save_trades(session, _trades()).number_of_trades_added == 2
    with session_scope(engine) as session:
        assert [trade.tags for trade in load_trades(session)] == [[], ["scalp"]]
    assert migrate(database_url) is not None
