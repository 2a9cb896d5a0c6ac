"""Shared fixtures: fixed clock, ledger, temp DuckDB."""

import tempfile
from pathlib import Path

import pytest

from predledger.ledger import MarketLedger
from predledger.storage.db import get_connection, init_schema

T0 = 1_700_000_000
DAY = 86_400
CREATOR = "0xC0FFEE0000000000000000000000000000000001"
ALICE = "0xa11ce00000000000000000000000000000000002"
BOB = "0xb0b0000000000000000000000000000000000003"
CAROL = "0xca201000000000000000000000000000000000004"


class FixedClock:
    """Manually advanced clock (unix seconds)."""

    def __init__(self, now: int = T0) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def ledger(clock):
    return MarketLedger(clock=clock)


@pytest.fixture
def market_id(ledger):
    return ledger.create_market(CREATOR, "Will it rain tomorrow?", "Resolves YES on any rain.", T0 + DAY)


@pytest.fixture
def temp_db():
    tmp = tempfile.mkdtemp()
    path = Path(tmp) / "test.duckdb"
    conn = get_connection(path)
    init_schema(conn)
    yield conn
    conn.close()
    path.unlink(missing_ok=True)
    for leftover in Path(tmp).iterdir():
        leftover.unlink()
    Path(tmp).rmdir()
