"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

SCHEMA_SQL = """
-- Sequence for auto-increment IDs
CREATE SEQUENCE IF NOT EXISTS ledger_event_seq START 1;

-- Ledger event log (append-only, event sourcing). Replay in id order rebuilds the ledger.
CREATE TABLE IF NOT EXISTS ledger_events (
    id              BIGINT PRIMARY KEY DEFAULT nextval('ledger_event_seq'),
    event_type      VARCHAR NOT NULL,
    market_id       VARCHAR NOT NULL,
    account         VARCHAR,
    ts              BIGINT NOT NULL,
    payload         JSON NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    ":memory:" opens an in-memory database."""
    if str(db_path) == ":memory:":
        return duckdb.connect(":memory:")
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables and sequences if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
