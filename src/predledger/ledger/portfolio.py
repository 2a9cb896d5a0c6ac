"""Per-account views across markets (positions page)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from predledger.ledger.ledger import MarketLedger, normalize_account
from predledger.ledger.math import potential_winnings
from predledger.models.market import Market, MarketState, Outcome, Position

MarketFilter = Literal["all", "active", "resolved"]


@dataclass
class PositionSummary:
    """One nonzero position with its derived figures."""

    market: Market
    position: Position
    invested: int
    potential_winnings: int
    is_winner: bool


def is_winner(market: Market, position: Position) -> bool:
    """Resolved and on the paying side (INVALID pays everyone)."""
    if market.state != MarketState.RESOLVED:
        return False
    if market.outcome == Outcome.YES:
        return position.yes_shares > 0
    if market.outcome == Outcome.NO:
        return position.no_shares > 0
    return market.outcome == Outcome.INVALID


def can_resolve(market: Market, account: str, now: int) -> bool:
    return (
        market.state == MarketState.ACTIVE
        and normalize_account(account) == market.creator
        and market.resolution_time <= now
    )


def filter_markets(markets: list[Market], which: MarketFilter = "all") -> list[Market]:
    if which == "active":
        return [m for m in markets if m.state == MarketState.ACTIVE]
    if which == "resolved":
        return [m for m in markets if m.state == MarketState.RESOLVED]
    return list(markets)


def positions_for(ledger: MarketLedger, account: str) -> list[PositionSummary]:
    """Every market (newest first) where `account` holds shares."""
    out: list[PositionSummary] = []
    for market in ledger.markets():
        position = ledger.get_user_position(market.market_id, account)
        if position.is_empty:
            continue
        out.append(
            PositionSummary(
                market=market,
                position=position,
                invested=position.total,
                potential_winnings=potential_winnings(market, position),
                is_winner=is_winner(market, position),
            )
        )
    return out
