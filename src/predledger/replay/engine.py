"""Deterministic replay from the ledger event log - rebuild a MarketLedger."""

from __future__ import annotations

from typing import Any, Iterable

import structlog

from predledger.ledger.ledger import Clock, EventSink, MarketLedger
from predledger.models.events import LedgerEvent
from predledger.storage.event_log import stream_events

log = structlog.get_logger(__name__)


class ReplayError(Exception):
    """The log does not describe a sequence of transitions the ledger accepts."""


def apply_event(ledger: MarketLedger, event: LedgerEvent) -> None:
    """Re-run one committed transition, evaluated at the event's own timestamp."""
    p = event.payload
    if event.event_type == "market_created":
        market_id = ledger.create_market(
            event.account or "",
            p["question"],
            p.get("description", ""),
            int(p["resolution_time"]),
            now=event.ts,
        )
        if market_id != event.market_id:
            raise ReplayError(f"market id mismatch: log has {event.market_id}, replay derived {market_id}")
    elif event.event_type == "shares_bought":
        ledger.buy_shares(event.market_id, event.account or "", bool(p["is_yes"]), int(p["amount"]), now=event.ts)
    elif event.event_type == "market_resolved":
        ledger.resolve(event.market_id, event.account or "", int(p["outcome"]), now=event.ts)
    elif event.event_type == "market_cancelled":
        ledger.cancel(event.market_id, reason=p.get("reason", ""), now=event.ts)
    elif event.event_type == "claimed":
        payout = ledger.claim(event.market_id, event.account or "", now=event.ts)
        if payout != int(p["payout"]):
            raise ReplayError(
                f"payout mismatch for {event.account} on {event.market_id}: log {p['payout']}, replay {payout}"
            )
    else:
        raise ReplayError(f"unknown event type: {event.event_type}")


def replay_ledger(
    events: Iterable[LedgerEvent],
    clock: Clock | None = None,
    strict_claims: bool = False,
) -> MarketLedger:
    """Apply events in order to a fresh ledger. Same events -> same ledger state."""
    ledger = MarketLedger(clock=clock, strict_claims=strict_claims)
    count = 0
    for event in events:
        apply_event(ledger, event)
        count += 1
    log.debug("ledger_replayed", events=count, markets=ledger.get_market_count())
    return ledger


def load_ledger(
    conn: Any,
    clock: Clock | None = None,
    strict_claims: bool = False,
    sink: EventSink | None = None,
) -> MarketLedger:
    """Rebuild the ledger from the DuckDB log, then attach `sink` for new transitions."""
    ledger = replay_ledger(stream_events(conn), clock=clock, strict_claims=strict_claims)
    ledger.sink = sink
    return ledger
