"""Probability and payout math. Integers only; division truncates toward zero.

Truncation leaves a few smallest units unclaimed in the pool once every
winner has claimed ("dust"). That loss is expected and is reported by
MarketLedger.unclaimed_balance.
"""

from __future__ import annotations

from predledger.models.market import Market, MarketState, Outcome, Position

EVEN_ODDS = 50


def yes_probability(total_yes: int, total_no: int) -> int:
    """YES share of the pool as an integer percentage, rounded half up. 50 for an empty pool."""
    total = total_yes + total_no
    if total == 0:
        return EVEN_ODDS
    return (200 * total_yes + total) // (2 * total)


def no_probability(total_yes: int, total_no: int) -> int:
    return 100 - yes_probability(total_yes, total_no)


def proportional_share(total_pool: int, shares: int, side_total: int) -> int:
    """total_pool * shares / side_total, truncated. 0 when either side is empty."""
    if shares <= 0 or side_total <= 0:
        return 0
    return total_pool * shares // side_total


def settlement_payout(market: Market, position: Position) -> int:
    """Amount a claim would transfer right now. 0 for active markets and losing positions."""
    if market.state == MarketState.ACTIVE:
        return 0
    if market.state == MarketState.CANCELLED:
        return position.total
    if market.state == MarketState.RESOLVED:
        if market.outcome == Outcome.YES:
            return proportional_share(market.total_pool, position.yes_shares, market.total_yes_shares)
        if market.outcome == Outcome.NO:
            return proportional_share(market.total_pool, position.no_shares, market.total_no_shares)
        if market.outcome == Outcome.INVALID:
            return position.total
        raise ValueError(f"resolved market {market.market_id} has no outcome")
    raise ValueError(f"unknown market state: {market.state!r}")


def settled_position(market: Market, position: Position) -> Position:
    """Position after a successful claim: the paid side(s) zeroed."""
    if market.state == MarketState.CANCELLED or market.outcome == Outcome.INVALID:
        return Position()
    if market.outcome == Outcome.YES:
        return position.model_copy(update={"yes_shares": 0})
    if market.outcome == Outcome.NO:
        return position.model_copy(update={"no_shares": 0})
    raise ValueError(f"market {market.market_id} is not settled")


def potential_winnings(market: Market, position: Position) -> int:
    """Estimate shown next to a position.

    Settled markets report what a claim would pay. Active markets report the
    payout if the held side wins at current totals (YES checked first).
    """
    if market.state != MarketState.ACTIVE:
        return settlement_payout(market, position)
    if position.yes_shares > 0:
        return proportional_share(market.total_pool, position.yes_shares, market.total_yes_shares)
    if position.no_shares > 0:
        return proportional_share(market.total_pool, position.no_shares, market.total_no_shares)
    return 0
