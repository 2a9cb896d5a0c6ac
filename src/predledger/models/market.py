"""Market, Position, MarketInfo - canonical ledger entities."""

from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, ConfigDict, Field


class MarketState(IntEnum):
    """Lifecycle state. Values match the contract's uint8 encoding."""

    ACTIVE = 0
    RESOLVED = 1
    CANCELLED = 2


class Outcome(IntEnum):
    """Resolved outcome. Values match the contract's uint8 encoding."""

    UNRESOLVED = 0
    YES = 1
    NO = 2
    INVALID = 3


class Side(IntEnum):
    NO = 0
    YES = 1

    @classmethod
    def from_is_yes(cls, is_yes: bool) -> Side:
        return cls.YES if is_yes else cls.NO


class Position(BaseModel):
    """Shares held by one account in one market. Absent position == Position()."""

    model_config = ConfigDict(frozen=True)

    yes_shares: int = Field(0, ge=0)
    no_shares: int = Field(0, ge=0)

    @property
    def total(self) -> int:
        return self.yes_shares + self.no_shares

    @property
    def is_empty(self) -> bool:
        return self.yes_shares == 0 and self.no_shares == 0


class Market(BaseModel):
    """Committed market record. Immutable; every transition publishes a new copy."""

    model_config = ConfigDict(frozen=True)

    market_id: str
    question: str
    description: str = ""
    creator: str
    resolution_time: int  # unix seconds
    created_at: int  # unix seconds
    state: MarketState = MarketState.ACTIVE
    outcome: Outcome = Outcome.UNRESOLVED
    total_yes_shares: int = Field(0, ge=0)
    total_no_shares: int = Field(0, ge=0)
    total_paid_out: int = Field(0, ge=0)

    @property
    def total_pool(self) -> int:
        return self.total_yes_shares + self.total_no_shares


class MarketInfo(BaseModel):
    """Read view returned by get_market_info (contract getters + derived values)."""

    market_id: str
    question: str
    description: str
    creator: str
    resolution_time: int
    created_at: int
    state: MarketState
    outcome: Outcome
    total_yes_shares: int
    total_no_shares: int
    yes_probability: int = Field(..., ge=0, le=100)
    total_pool: int

    @property
    def no_probability(self) -> int:
        return 100 - self.yes_probability
