"""Market ledger: accounting core, errors and views."""

from predledger.ledger.errors import (
    InvalidAccount,
    InvalidAmount,
    InvalidMarketParams,
    InvalidOutcome,
    InvalidState,
    LedgerError,
    MarketNotFound,
    NothingToClaim,
    NotYetDue,
    Unauthorized,
)
from predledger.ledger.ledger import MarketLedger, derive_market_id, normalize_account, normalize_market_id

__all__ = [
    "MarketLedger",
    "derive_market_id",
    "normalize_account",
    "normalize_market_id",
    "LedgerError",
    "MarketNotFound",
    "InvalidMarketParams",
    "InvalidAccount",
    "InvalidState",
    "Unauthorized",
    "NotYetDue",
    "InvalidAmount",
    "InvalidOutcome",
    "NothingToClaim",
]
