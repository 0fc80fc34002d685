from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from journal_import.db.models import Base


@pytest.fixture(autouse=True)
def isolated_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("JOURNAL_IMPORT_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("SOURCE_TIMEZONE", "UTC")
    monkeypatch.delenv("ENABLE_AI_MAPPING", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)
    return tmp_path / "data"


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    with Session(engine) as session:
        yield session


IBKR_STATEMENT = """Activity Statement
May 2, 2025
Trades
Futures
Account Symbol Date/Time Settle Date Exchange Buy/Sell Quantity Price Proceeds Comm Fee Order Type Code
U***1234 MESM5 2025-05-02, 09:30:00 2025-05-02 - BUY 2 5,600.00 -56,000.00 -1.24 0.00 LMT O
U***1234 MESM5 2025-05-02, 10:00:00 2025-05-02 - SELL -2 5,610.00 56,100.00 -1.24 0.00 LMT C
U***1234 MNQM5 2025-05-02, 10:15:00 2025-05-02 - BUY 1 20,000.00 -20,000.00 -0.62 0.00 MKT O
Financial Instrument Information
Futures
Symbol Description Conid Underlying Listing Exch Multiplier Expiry Delivery Month
MESM5 MES JUN25 620730920 MES CME 5 2025-06-20 2025-06
Generated: 2025-05-03
"""


@pytest.fixture
def ibkr_statement() -> str:
    return IBKR_STATEMENT


IBKR_SAME_SECOND_STATEMENT = """Activity Statement
Trades
Futures
Account Symbol Date/Time Settle Date Exchange Buy/Sell Quantity Price Proceeds Comm Fee Order Type Code
U***1234 MESM5 2025-05-02, 09:30:00 2025-05-02 - BUY 1 5,600.00 -28,000.00 -0.62 0.00 LMT O
U***1234 MESM5 2025-05-02, 09:30:00 2025-05-02 - BUY 1 5,600.25 -28,001.25 -0.62 0.00 LMT O
U***1234 MESM5 2025-05-02, 09:30:00 2025-05-02 - BUY 1 5,600.00 -28,000.00 -0.62 0.00 LMT O
U***1234 MESM5 2025-05-02, 10:00:00 2025-05-02 - SELL -2 5,610.00 56,100.00 -1.24 0.00 LMT C
U***1234 MESM5 2025-05-02, 10:05:00 2025-05-02 - SELL -2 5,605.00 56,050.00 -1.24 0.00 LMT O
Financial Instrument Information
Futures
Symbol Description Conid Underlying Listing Exch Multiplier Expiry Delivery Month
MESM5 MES JUN25 620730920 MES CME 5 2025-06-20 2025-06
"""


@pytest.fixture
def ibkr_same_second_statement() -> str:
    return IBKR_SAME_SECOND_STATEMENT
