"""Display helpers for market cards and position rows."""

from __future__ import annotations

from predledger.models.market import Market, MarketState, Outcome

_OUTCOME_LABELS = {
    Outcome.YES: "Resolved: YES",
    Outcome.NO: "Resolved: NO",
    Outcome.INVALID: "Invalid",
}


def format_units(value: int, decimals: int = 18, places: int = 4) -> str:
    """Smallest-unit integer -> decimal string, truncated to `places` (no floats)."""
    sign = "-" if value < 0 else ""
    whole, frac = divmod(abs(value), 10**decimals)
    if places <= 0 or decimals == 0:
        return f"{sign}{whole}"
    frac_str = str(frac).rjust(decimals, "0")[:places].rstrip("0")
    return f"{sign}{whole}.{frac_str}" if frac_str else f"{sign}{whole}"


def time_remaining(resolution_time: int, now: int) -> str:
    diff = resolution_time - now
    if diff < 0:
        return "Expired"
    days, rem = divmod(diff, 86400)
    hours = rem // 3600
    if days > 0:
        return f"{days}d {hours}h"
    return f"{hours}h {(diff % 3600) // 60}m"


def state_label(market: Market) -> str:
    if market.state == MarketState.ACTIVE:
        return "Active"
    if market.state == MarketState.CANCELLED:
        return "Cancelled"
    return _OUTCOME_LABELS.get(market.outcome, "Unknown")
