"""LedgerEvent - one record per committed ledger transition."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

EventType = Literal[
    "market_created",
    "shares_bought",
    "market_resolved",
    "market_cancelled",
    "claimed",
]


class LedgerEvent(BaseModel):
    """Committed transition. `ts` is the clock value the transition was evaluated at."""

    event_type: EventType
    market_id: str
    account: str | None = None
    ts: int  # unix seconds
    payload: dict[str, Any] = Field(default_factory=dict)
