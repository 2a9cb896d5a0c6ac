"""Shared CLI helpers: open the ledger from the event log, parse times, report errors."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

import typer

from predledger.config.settings import Settings
from predledger.ledger import LedgerError, MarketLedger
from predledger.replay.engine import load_ledger
from predledger.storage.db import get_connection, init_schema
from predledger.storage.event_log import DuckDBEventSink


@contextmanager
def open_ledger(settings: Settings) -> Iterator[MarketLedger]:
    """Replay the configured log into a ledger whose new transitions are appended to it."""
    conn = get_connection(settings.db_path)
    init_schema(conn)
    try:
        yield load_ledger(conn, strict_claims=settings.strict_claims, sink=DuckDBEventSink(conn))
    except LedgerError as e:
        typer.echo(f"Error ({e.code}): {e.message}")
        raise typer.Exit(1) from None
    finally:
        conn.close()


def parse_timestamp(value: str) -> int:
    """Unix seconds, or an ISO 8601 date/datetime (naive values are UTC)."""
    value = value.strip()
    if value.isdigit():
        return int(value)
    try:
        dt = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"expected unix seconds or ISO date, got {value!r}") from None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp())
