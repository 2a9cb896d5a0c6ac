"""Canonical schema (Pydantic) - Market, Position, LedgerEvent."""

from predledger.models.events import LedgerEvent
from predledger.models.market import Market, MarketInfo, MarketState, Outcome, Position, Side

__all__ = [
    "Market",
    "MarketInfo",
    "MarketState",
    "Outcome",
    "Position",
    "Side",
    "LedgerEvent",
]
