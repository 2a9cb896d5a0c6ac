"""Pydantic schemas for API request/response consistency and OpenAPI docs."""

from __future__ import annotations

from pydantic import BaseModel, Field

from predledger.models.market import MarketState, Outcome


# --- Health ---
class HealthResponse(BaseModel):
    status: str = "ok"
    markets: int = 0


# --- Error (consistent shape for 4xx/5xx) ---
class ErrorResponse(BaseModel):
    detail: str = Field(..., description="Human-readable message")
    code: str | None = Field(None, description="Machine-readable code, e.g. invalid_state, not_found")


# --- Markets ---
class CreateMarketRequest(BaseModel):
    creator: str = Field(..., min_length=1, description="Account creating (and later resolving) the market")
    question: str = Field(..., min_length=1)
    description: str = ""
    resolution_time: int = Field(..., description="Unix seconds after which the creator may resolve")


class CreateMarketResponse(BaseModel):
    market_id: str


class MarketCountResponse(BaseModel):
    count: int


class MarketInfoResponse(BaseModel):
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
    total_pool: int
    yes_probability: int
    no_probability: int
    state_label: str
    time_remaining: str


class MarketsListResponse(BaseModel):
    markets: list[MarketInfoResponse]
    total: int


class ProbabilityResponse(BaseModel):
    market_id: str
    yes_probability: int
    no_probability: int


class PoolResponse(BaseModel):
    market_id: str
    total_pool: int
    unclaimed: int


# --- Positions ---
class PositionResponse(BaseModel):
    market_id: str
    account: str
    yes_shares: int
    no_shares: int
    claimable: int


class AccountPositionItem(BaseModel):
    market_id: str
    question: str
    state_label: str
    yes_shares: int
    no_shares: int
    invested: int
    potential_winnings: int
    is_winner: bool


class AccountPositionsResponse(BaseModel):
    account: str
    positions: list[AccountPositionItem]


# --- Transactions ---
class BuySharesRequest(BaseModel):
    account: str = Field(..., min_length=1)
    is_yes: bool
    amount: int = Field(..., description="Smallest native units; 1 unit buys 1 share")


class ResolveRequest(BaseModel):
    account: str = Field(..., min_length=1)
    outcome: Outcome


class ClaimRequest(BaseModel):
    account: str = Field(..., min_length=1)


class ClaimResponse(BaseModel):
    market_id: str
    account: str
    payout: int


class CancelRequest(BaseModel):
    reason: str = ""
