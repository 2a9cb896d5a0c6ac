"""Ledger error taxonomy. None of these are transient; callers fix the request and resubmit."""

from __future__ import annotations


class LedgerError(Exception):
    """Base class. `code` is the machine-readable name used by the API and CLI."""

    code = "ledger_error"

    def __init__(self, message: str, market_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.market_id = market_id


class MarketNotFound(LedgerError):
    code = "not_found"


class InvalidMarketParams(LedgerError):
    code = "invalid_market_params"


class InvalidState(LedgerError):
    code = "invalid_state"


class Unauthorized(LedgerError):
    code = "unauthorized"


class NotYetDue(LedgerError):
    code = "not_yet_due"


class InvalidAmount(LedgerError):
    code = "invalid_amount"


class InvalidOutcome(LedgerError):
    code = "invalid_outcome"


class NothingToClaim(LedgerError):
    code = "nothing_to_claim"


class InvalidAccount(LedgerError):
    code = "invalid_account"
