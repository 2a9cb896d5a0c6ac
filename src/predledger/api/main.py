"""FastAPI backend mirroring the market factory + market contract ABI."""

from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import Literal

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from predledger.api.schemas import (
    AccountPositionItem,
    AccountPositionsResponse,
    BuySharesRequest,
    CancelRequest,
    ClaimRequest,
    ClaimResponse,
    CreateMarketRequest,
    CreateMarketResponse,
    ErrorResponse,
    HealthResponse,
    MarketCountResponse,
    MarketInfoResponse,
    MarketsListResponse,
    PoolResponse,
    PositionResponse,
    ProbabilityResponse,
    ResolveRequest,
)
from predledger.config import get_settings
from predledger.ledger import (
    InvalidAccount,
    InvalidAmount,
    InvalidMarketParams,
    InvalidOutcome,
    InvalidState,
    LedgerError,
    MarketLedger,
    MarketNotFound,
    NothingToClaim,
    NotYetDue,
    Unauthorized,
    normalize_account,
    normalize_market_id,
)
from predledger.ledger.format import state_label, time_remaining
from predledger.ledger.portfolio import filter_markets, positions_for
from predledger.replay.engine import load_ledger
from predledger.storage.db import get_connection, init_schema
from predledger.storage.event_log import DuckDBEventSink

log = structlog.get_logger(__name__)

# Set by run_api() so lifespan loads the same config and log the CLI was pointed at.
_config_profile: str | None = None
_config_dir: Path | None = None
_db_path: str | None = None

_STATUS_BY_ERROR: dict[type[LedgerError], int] = {
    MarketNotFound: 404,
    Unauthorized: 403,
    InvalidState: 409,
    NotYetDue: 409,
    NothingToClaim: 409,
    InvalidAccount: 422,
    InvalidAmount: 422,
    InvalidOutcome: 422,
    InvalidMarketParams: 422,
}

_NOT_FOUND = {404: {"description": "Market not found", "model": ErrorResponse}}
_INVALID = {422: {"description": "Invalid request", "model": ErrorResponse}}
_REJECTED = {409: {"description": "Market state does not allow this", "model": ErrorResponse}}
_FORBIDDEN = {403: {"description": "Caller is not the market creator", "model": ErrorResponse}}


def _error_json(code: str, message: str, status_code: int = 404) -> JSONResponse:
    """Return consistent error JSON: { detail, code }."""
    return JSONResponse(
        status_code=status_code,
        content={"detail": message, "code": code},
    )


def _ledger(request: Request) -> MarketLedger:
    return request.app.state.ledger


def _market_info(ledger: MarketLedger, market_id: str) -> MarketInfoResponse:
    info = ledger.get_market_info(market_id)
    market = ledger.get_market(market_id)
    return MarketInfoResponse(
        **info.model_dump(),
        no_probability=info.no_probability,
        state_label=state_label(market),
        time_remaining=time_remaining(market.resolution_time, ledger.now()),
    )


def create_app(ledger: MarketLedger | None = None) -> FastAPI:
    """Build the API. Without a ledger, lifespan rebuilds one from the configured DuckDB log."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        conn = None
        if app.state.ledger is None:
            settings = get_settings(_config_profile, _config_dir)
            if _db_path:
                settings.storage["db_path"] = _db_path
            conn = get_connection(settings.db_path)
            init_schema(conn)
            app.state.ledger = load_ledger(
                conn, strict_claims=settings.strict_claims, sink=DuckDBEventSink(conn)
            )
            log.info("ledger_loaded", db_path=settings.db_path, markets=app.state.ledger.get_market_count())
        yield
        if conn is not None:
            conn.close()

    app = FastAPI(title="PredLedger API", version="0.1.0", lifespan=lifespan)
    app.state.ledger = ledger
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        status_code = _STATUS_BY_ERROR.get(type(exc), 400)
        log.info("ledger_request_rejected", code=exc.code, market_id=exc.market_id, detail=exc.message)
        return _error_json(exc.code, exc.message, status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        message = "; ".join(
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        return _error_json("validation_error", message, 422)

    @app.get("/health", response_model=HealthResponse)
    def health(request: Request) -> HealthResponse:
        return HealthResponse(status="ok", markets=_ledger(request).get_market_count())

    @app.get("/markets/count", response_model=MarketCountResponse)
    def market_count(request: Request) -> MarketCountResponse:
        return MarketCountResponse(count=_ledger(request).get_market_count())

    @app.get("/markets", response_model=MarketsListResponse)
    def markets_list(
        request: Request,
        filter: Literal["all", "active", "resolved"] = "all",
        limit: int = Query(100, ge=1, le=500),
    ) -> MarketsListResponse:
        """Latest markets matching `filter`, newest first, at most `limit`."""
        ledger = _ledger(request)
        selected = filter_markets(list(ledger.markets()), filter)[:limit]
        return MarketsListResponse(
            markets=[_market_info(ledger, m.market_id) for m in selected],
            total=ledger.get_market_count(),
        )

    @app.post("/markets", response_model=CreateMarketResponse, status_code=201, responses=_INVALID)
    def create_market(request: Request, body: CreateMarketRequest) -> CreateMarketResponse:
        market_id = _ledger(request).create_market(
            body.creator, body.question, body.description, body.resolution_time
        )
        return CreateMarketResponse(market_id=market_id)

    @app.get("/markets/{market_id}", response_model=MarketInfoResponse, responses=_NOT_FOUND)
    def market_info(request: Request, market_id: str) -> MarketInfoResponse:
        return _market_info(_ledger(request), market_id)

    @app.get("/markets/{market_id}/probability", response_model=ProbabilityResponse, responses=_NOT_FOUND)
    def market_probability(request: Request, market_id: str) -> ProbabilityResponse:
        yes = _ledger(request).get_yes_probability(market_id)
        return ProbabilityResponse(
            market_id=normalize_market_id(market_id), yes_probability=yes, no_probability=100 - yes
        )

    @app.get("/markets/{market_id}/pool", response_model=PoolResponse, responses=_NOT_FOUND)
    def market_pool(request: Request, market_id: str) -> PoolResponse:
        ledger = _ledger(request)
        return PoolResponse(
            market_id=normalize_market_id(market_id),
            total_pool=ledger.get_total_pool(market_id),
            unclaimed=ledger.unclaimed_balance(market_id),
        )

    @app.get(
        "/markets/{market_id}/positions/{account}",
        response_model=PositionResponse,
        responses={**_NOT_FOUND, **_INVALID},
    )
    def market_position(request: Request, market_id: str, account: str) -> PositionResponse:
        ledger = _ledger(request)
        position = ledger.get_user_position(market_id, account)
        return PositionResponse(
            market_id=normalize_market_id(market_id),
            account=normalize_account(account),
            yes_shares=position.yes_shares,
            no_shares=position.no_shares,
            claimable=ledger.claimable(market_id, account),
        )

    @app.post(
        "/markets/{market_id}/buy",
        response_model=PositionResponse,
        responses={**_NOT_FOUND, **_REJECTED, **_INVALID},
    )
    def buy_shares(request: Request, market_id: str, body: BuySharesRequest) -> PositionResponse:
        ledger = _ledger(request)
        position = ledger.buy_shares(market_id, body.account, body.is_yes, body.amount)
        return PositionResponse(
            market_id=normalize_market_id(market_id),
            account=normalize_account(body.account),
            yes_shares=position.yes_shares,
            no_shares=position.no_shares,
            claimable=0,
        )

    @app.post(
        "/markets/{market_id}/resolve",
        response_model=MarketInfoResponse,
        responses={**_NOT_FOUND, **_FORBIDDEN, **_REJECTED, **_INVALID},
    )
    def resolve(request: Request, market_id: str, body: ResolveRequest) -> MarketInfoResponse:
        ledger = _ledger(request)
        ledger.resolve(market_id, body.account, body.outcome)
        return _market_info(ledger, market_id)

    @app.post(
        "/markets/{market_id}/cancel",
        response_model=MarketInfoResponse,
        responses={**_NOT_FOUND, **_REJECTED},
    )
    def cancel(request: Request, market_id: str, body: CancelRequest) -> MarketInfoResponse:
        ledger = _ledger(request)
        ledger.cancel(market_id, reason=body.reason)
        return _market_info(ledger, market_id)

    @app.post(
        "/markets/{market_id}/claim",
        response_model=ClaimResponse,
        responses={**_NOT_FOUND, **_REJECTED, **_INVALID},
    )
    def claim(request: Request, market_id: str, body: ClaimRequest) -> ClaimResponse:
        payout = _ledger(request).claim(market_id, body.account)
        return ClaimResponse(
            market_id=normalize_market_id(market_id), account=normalize_account(body.account), payout=payout
        )

    @app.get("/accounts/{account}/positions", response_model=AccountPositionsResponse, responses=_INVALID)
    def account_positions(request: Request, account: str) -> AccountPositionsResponse:
        items = [
            AccountPositionItem(
                market_id=s.market.market_id,
                question=s.market.question,
                state_label=state_label(s.market),
                yes_shares=s.position.yes_shares,
                no_shares=s.position.no_shares,
                invested=s.invested,
                potential_winnings=s.potential_winnings,
                is_winner=s.is_winner,
            )
            for s in positions_for(_ledger(request), account)
        ]
        return AccountPositionsResponse(account=normalize_account(account), positions=items)

    return app


app = create_app()


def run_api(
    host: str = "127.0.0.1",
    port: int = 8000,
    profile: str | None = None,
    db_path: str | None = None,
    config_dir: Path | None = None,
) -> None:
    global _config_profile, _config_dir, _db_path
    _config_profile = profile
    _config_dir = config_dir
    _db_path = db_path
    import uvicorn
    uvicorn.run("predledger.api.main:app", host=host, port=port, reload=False)
