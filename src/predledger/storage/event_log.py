"""Ledger event append and query - event sourcing log."""

from __future__ import annotations

import json
from threading import Lock
from typing import TYPE_CHECKING, Any, Iterator

import structlog

from predledger.models.events import LedgerEvent

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)


def append_event(conn: DuckDBPyConnection, event: LedgerEvent) -> None:
    """Append a single committed transition."""
    conn.execute(
        """
        INSERT INTO ledger_events (event_type, market_id, account, ts, payload)
        VALUES (?, ?, ?, ?, ?)
        """,
        [event.event_type, event.market_id, event.account, event.ts, json.dumps(event.payload)],
    )


def stream_events(
    conn: DuckDBPyConnection,
    market_id: str | None = None,
) -> Iterator[LedgerEvent]:
    """Yield events in append order, optionally for one market."""
    if market_id:
        rows = conn.execute(
            "SELECT event_type, market_id, account, ts, payload FROM ledger_events WHERE market_id = ? ORDER BY id ASC",
            [market_id],
        ).fetchall()
    else:
        rows = conn.execute(
            "SELECT event_type, market_id, account, ts, payload FROM ledger_events ORDER BY id ASC"
        ).fetchall()
    for event_type, mid, account, ts, payload_json in rows:
        payload = json.loads(payload_json) if isinstance(payload_json, str) else payload_json
        yield LedgerEvent(event_type=event_type, market_id=mid, account=account, ts=ts, payload=payload or {})


def log_stats(conn: DuckDBPyConnection) -> dict[str, Any]:
    """Return event log statistics: total count, min/max ts, count by event type and market."""
    total = conn.execute("SELECT COUNT(*) FROM ledger_events").fetchone()[0]
    min_ts, max_ts = conn.execute("SELECT MIN(ts), MAX(ts) FROM ledger_events").fetchone()
    by_type = conn.execute(
        "SELECT event_type, COUNT(*) AS cnt FROM ledger_events GROUP BY event_type ORDER BY cnt DESC"
    ).fetchall()
    by_market = conn.execute(
        "SELECT market_id, COUNT(*) AS cnt FROM ledger_events GROUP BY market_id ORDER BY cnt DESC LIMIT 20"
    ).fetchall()
    return {
        "total_events": total,
        "min_ts": min_ts,
        "max_ts": max_ts,
        "by_type": {r[0]: r[1] for r in by_type},
        "by_market": [{"market_id": r[0], "count": r[1]} for r in by_market],
    }


class DuckDBEventSink:
    """Ledger sink that appends each transition before the ledger publishes it."""

    def __init__(self, conn: DuckDBPyConnection) -> None:
        self.conn = conn
        self.written = 0
        self._lock = Lock()

    def __call__(self, event: LedgerEvent) -> None:
        # One connection is shared by every market slot.
        with self._lock:
            append_event(self.conn, event)
            self.written += 1
        log.debug("ledger_event_appended", event_type=event.event_type, market_id=event.market_id)
