"""Market ledger - share issuance, positions, lifecycle state machine and claims.

Each market lives in its own slot holding one lock and one committed
(Market, positions) pair. Writers for a market are serialized on the slot
lock, build the next pair, hand the transition to the event sink, then
publish the pair with a single reference swap. Readers never lock; they see
the last committed pair as a whole.
"""

from __future__ import annotations

import hashlib
import time
from collections.abc import Callable, Iterator, Mapping
from threading import Lock
from types import MappingProxyType

import structlog

from predledger.ledger.errors import (
    InvalidAccount,
    InvalidAmount,
    InvalidMarketParams,
    InvalidOutcome,
    InvalidState,
    MarketNotFound,
    NothingToClaim,
    NotYetDue,
    Unauthorized,
)
from predledger.ledger.math import settled_position, settlement_payout, yes_probability
from predledger.models.events import LedgerEvent
from predledger.models.market import Market, MarketInfo, MarketState, Outcome, Position, Side

log = structlog.get_logger(__name__)

Clock = Callable[[], int]
EventSink = Callable[[LedgerEvent], None]

_EMPTY_POSITIONS: Mapping[str, Position] = MappingProxyType({})
_ZERO = Position()


def system_clock() -> int:
    return int(time.time())


def normalize_account(account: str) -> str:
    """Canonicalize an account id; 0x-prefixed addresses compare case-insensitively."""
    account = (account or "").strip()
    if not account:
        raise InvalidAccount("account must be a non-empty string")
    return _lower_hex(account)


def normalize_market_id(market_id: str) -> str:
    """Market ids are addresses too; 0X/0x and hex case are not significant."""
    return _lower_hex((market_id or "").strip())


def _lower_hex(value: str) -> str:
    if value[:2].lower() == "0x":
        return "0x" + value[2:].lower()
    return value


def derive_market_id(creator: str, nonce: int) -> str:
    """Address-like id from (creator, factory nonce). Same inputs -> same id."""
    digest = hashlib.sha256(f"{creator}:{nonce}".encode()).hexdigest()
    return "0x" + digest[:40]


class _MarketSlot:
    __slots__ = ("lock", "committed")

    def __init__(self, market: Market) -> None:
        self.lock = Lock()
        self.committed: tuple[Market, Mapping[str, Position]] = (market, _EMPTY_POSITIONS)


class MarketLedger:
    """In-memory arena of markets addressed by id, mirroring the market factory + market contract ABI."""

    def __init__(
        self,
        clock: Clock | None = None,
        sink: EventSink | None = None,
        strict_claims: bool = False,
    ) -> None:
        self._clock = clock or system_clock
        self.sink = sink
        self.strict_claims = strict_claims
        self._slots: dict[str, _MarketSlot] = {}
        self._order: list[str] = []
        self._factory_lock = Lock()

    # --- factory ---

    def create_market(
        self,
        creator: str,
        question: str,
        description: str,
        resolution_time: int,
        now: int | None = None,
    ) -> str:
        """Open a new ACTIVE market with empty pools and return its id."""
        creator = normalize_account(creator)
        now = self._now(now)
        question = (question or "").strip()
        if not question:
            raise InvalidMarketParams("question must not be empty")
        if isinstance(resolution_time, bool) or not isinstance(resolution_time, int):
            raise InvalidMarketParams("resolution_time must be unix seconds (int)")
        if resolution_time <= now:
            raise InvalidMarketParams(
                f"resolution_time {resolution_time} must be in the future (now={now})"
            )
        with self._factory_lock:
            market_id = derive_market_id(creator, len(self._order))
            market = Market(
                market_id=market_id,
                question=question,
                description=description or "",
                creator=creator,
                resolution_time=resolution_time,
                created_at=now,
            )
            self._emit(
                LedgerEvent(
                    event_type="market_created",
                    market_id=market_id,
                    account=creator,
                    ts=now,
                    payload={
                        "question": market.question,
                        "description": market.description,
                        "resolution_time": resolution_time,
                    },
                )
            )
            self._slots[market_id] = _MarketSlot(market)
            self._order.append(market_id)
        log.info("market_created", market_id=market_id, creator=creator, resolution_time=resolution_time)
        return market_id

    def get_market_count(self) -> int:
        return len(self._order)

    def get_latest_markets(self, count: int) -> list[str]:
        """Up to `count` market ids, newest first."""
        if count <= 0:
            return []
        order = list(self._order)
        return order[::-1][:count]

    def markets(self) -> Iterator[Market]:
        """Committed markets, newest first."""
        for market_id in self.get_latest_markets(len(self._order)):
            yield self.get_market(market_id)

    # --- reads ---

    def get_market(self, market_id: str) -> Market:
        return self._slot(market_id).committed[0]

    def get_market_info(self, market_id: str) -> MarketInfo:
        m = self.get_market(market_id)
        return MarketInfo(
            market_id=m.market_id,
            question=m.question,
            description=m.description,
            creator=m.creator,
            resolution_time=m.resolution_time,
            created_at=m.created_at,
            state=m.state,
            outcome=m.outcome,
            total_yes_shares=m.total_yes_shares,
            total_no_shares=m.total_no_shares,
            yes_probability=yes_probability(m.total_yes_shares, m.total_no_shares),
            total_pool=m.total_pool,
        )

    def get_yes_probability(self, market_id: str) -> int:
        m = self.get_market(market_id)
        return yes_probability(m.total_yes_shares, m.total_no_shares)

    def get_total_pool(self, market_id: str) -> int:
        return self.get_market(market_id).total_pool

    def get_user_position(self, market_id: str, account: str) -> Position:
        _, positions = self._slot(market_id).committed
        return positions.get(normalize_account(account), _ZERO)

    def get_positions(self, market_id: str) -> Mapping[str, Position]:
        """All recorded positions for a market (read-only view)."""
        return self._slot(market_id).committed[1]

    def claimable(self, market_id: str, account: str) -> int:
        """Payout a claim would transfer now, without claiming."""
        market, positions = self._slot(market_id).committed
        return settlement_payout(market, positions.get(normalize_account(account), _ZERO))

    def unclaimed_balance(self, market_id: str) -> int:
        """Pool not yet paid out; after every claim this is the truncation dust."""
        m = self.get_market(market_id)
        return m.total_pool - m.total_paid_out

    # --- writes ---

    def buy_shares(
        self,
        market_id: str,
        account: str,
        is_yes: bool,
        amount: int,
        now: int | None = None,
    ) -> Position:
        """Buy `amount` shares of one side at 1:1. Returns the account's new position."""
        market_id = normalize_market_id(market_id)
        account = normalize_account(account)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise InvalidAmount(f"amount must be a positive integer, got {amount!r}", market_id)
        side = Side.from_is_yes(bool(is_yes))
        slot = self._slot(market_id)
        with slot.lock:
            market, positions = slot.committed
            now = self._now(now)
            self._require_active(market, "buy shares")
            current = positions.get(account, _ZERO)
            if side == Side.YES:
                position = current.model_copy(update={"yes_shares": current.yes_shares + amount})
                market = market.model_copy(update={"total_yes_shares": market.total_yes_shares + amount})
            else:
                position = current.model_copy(update={"no_shares": current.no_shares + amount})
                market = market.model_copy(update={"total_no_shares": market.total_no_shares + amount})
            event = LedgerEvent(
                event_type="shares_bought",
                market_id=market_id,
                account=account,
                ts=now,
                payload={"is_yes": side == Side.YES, "amount": amount},
            )
            self._commit(slot, market, _with_position(positions, account, position), event)
        log.info("shares_bought", market_id=market_id, account=account, side=side.name, amount=amount)
        return position

    def resolve(
        self,
        market_id: str,
        caller: str,
        outcome: Outcome | int,
        now: int | None = None,
    ) -> Market:
        """Creator declares the outcome once `resolution_time` has passed."""
        market_id = normalize_market_id(market_id)
        caller = normalize_account(caller)
        try:
            outcome = Outcome(outcome)
        except ValueError:
            raise InvalidOutcome(f"unknown outcome: {outcome!r}", market_id) from None
        if outcome == Outcome.UNRESOLVED:
            raise InvalidOutcome("cannot resolve to UNRESOLVED", market_id)
        slot = self._slot(market_id)
        with slot.lock:
            market, positions = slot.committed
            now = self._now(now)
            self._require_active(market, "resolve")
            if caller != market.creator:
                raise Unauthorized(f"only the creator {market.creator} may resolve", market_id)
            if now < market.resolution_time:
                raise NotYetDue(
                    f"resolution allowed from {market.resolution_time}, now is {now}", market_id
                )
            market = market.model_copy(update={"state": MarketState.RESOLVED, "outcome": outcome})
            event = LedgerEvent(
                event_type="market_resolved",
                market_id=market_id,
                account=caller,
                ts=now,
                payload={"outcome": int(outcome)},
            )
            self._commit(slot, market, positions, event)
        log.info("market_resolved", market_id=market_id, outcome=outcome.name)
        return market

    def cancel(self, market_id: str, reason: str = "", now: int | None = None) -> Market:
        """Administrative ACTIVE -> CANCELLED. Stakes become refundable through claim."""
        market_id = normalize_market_id(market_id)
        slot = self._slot(market_id)
        with slot.lock:
            market, positions = slot.committed
            now = self._now(now)
            self._require_active(market, "cancel")
            market = market.model_copy(update={"state": MarketState.CANCELLED})
            event = LedgerEvent(
                event_type="market_cancelled",
                market_id=market_id,
                ts=now,
                payload={"reason": reason},
            )
            self._commit(slot, market, positions, event)
        log.info("market_cancelled", market_id=market_id, reason=reason)
        return market

    def claim(self, market_id: str, account: str, now: int | None = None) -> int:
        """Pay out a settled position exactly once and return the amount.

        A position with nothing to pay returns 0 and changes nothing, or
        raises NothingToClaim when the ledger runs with strict_claims.
        """
        market_id = normalize_market_id(market_id)
        account = normalize_account(account)
        slot = self._slot(market_id)
        with slot.lock:
            market, positions = slot.committed
            now = self._now(now)
            if market.state == MarketState.ACTIVE:
                raise InvalidState("market is not resolved", market_id)
            current = positions.get(account, _ZERO)
            payout = settlement_payout(market, current)
            if payout == 0:
                if self.strict_claims:
                    raise NothingToClaim(f"{account} has nothing to claim", market_id)
                log.debug("claim_noop", market_id=market_id, account=account)
                return 0
            market = market.model_copy(update={"total_paid_out": market.total_paid_out + payout})
            event = LedgerEvent(
                event_type="claimed",
                market_id=market_id,
                account=account,
                ts=now,
                payload={"payout": payout},
            )
            self._commit(
                slot, market, _with_position(positions, account, settled_position(market, current)), event
            )
        log.info("claim_paid", market_id=market_id, account=account, payout=payout)
        return payout

    # --- internals ---

    def now(self) -> int:
        return self._clock()

    def _now(self, now: int | None) -> int:
        return self._clock() if now is None else now

    def _slot(self, market_id: str) -> _MarketSlot:
        slot = self._slots.get(normalize_market_id(market_id))
        if slot is None:
            raise MarketNotFound(f"market {market_id} does not exist", market_id)
        return slot

    @staticmethod
    def _require_active(market: Market, action: str) -> None:
        if market.state != MarketState.ACTIVE:
            raise InvalidState(
                f"cannot {action}: market is {market.state.name}", market.market_id
            )

    def _emit(self, event: LedgerEvent) -> None:
        if self.sink is not None:
            self.sink(event)

    def _commit(
        self,
        slot: _MarketSlot,
        market: Market,
        positions: Mapping[str, Position],
        event: LedgerEvent,
    ) -> None:
        # Sink first: if it raises, nothing is published.
        self._emit(event)
        slot.committed = (market, positions)


def _with_position(positions: Mapping[str, Position], account: str, position: Position) -> Mapping[str, Position]:
    updated = dict(positions)
    updated[account] = position
    return MappingProxyType(updated)
