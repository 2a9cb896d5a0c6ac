"""Market ledger unit tests: purchases, resolution, claims, lifecycle."""

import threading

import pytest

from conftest import ALICE, BOB, CAROL, CREATOR, DAY, T0, FixedClock
from predledger.ledger import (
    InvalidAccount,
    InvalidAmount,
    InvalidMarketParams,
    InvalidOutcome,
    InvalidState,
    MarketLedger,
    MarketNotFound,
    NothingToClaim,
    NotYetDue,
    Unauthorized,
)
from predledger.models import MarketState, Outcome, Position


def _fund_300_700(ledger, market_id):
    ledger.buy_shares(market_id, ALICE, True, 100)
    ledger.buy_shares(market_id, BOB, True, 200)
    ledger.buy_shares(market_id, CAROL, False, 700)


def test_new_market_is_active_and_empty(ledger, market_id):
    info = ledger.get_market_info(market_id)
    assert info.state == MarketState.ACTIVE
    assert info.outcome == Outcome.UNRESOLVED
    assert info.total_yes_shares == 0 and info.total_no_shares == 0
    assert info.yes_probability == 50
    assert info.no_probability == 50
    assert info.creator == CREATOR.lower()
    assert info.created_at == T0
    assert ledger.get_total_pool(market_id) == 0
    assert ledger.get_user_position(market_id, ALICE) == Position()


def test_create_market_rejects_blank_question_and_past_time(ledger):
    with pytest.raises(InvalidMarketParams):
        ledger.create_market(CREATOR, "   ", "", T0 + DAY)
    with pytest.raises(InvalidMarketParams):
        ledger.create_market(CREATOR, "Q?", "", T0)
    assert ledger.get_market_count() == 0


def test_latest_markets_newest_first(ledger):
    ids = [ledger.create_market(CREATOR, f"Q{i}?", "", T0 + DAY) for i in range(3)]
    assert len(set(ids)) == 3
    assert ledger.get_market_count() == 3
    assert ledger.get_latest_markets(2) == [ids[2], ids[1]]
    assert ledger.get_latest_markets(10) == ids[::-1]
    assert ledger.get_latest_markets(0) == []


def test_purchases_sum_into_pool(ledger, market_id):
    amounts = [(ALICE, True, 5), (BOB, False, 7), (ALICE, True, 11), (CAROL, False, 1)]
    for account, is_yes, amount in amounts:
        ledger.buy_shares(market_id, account, is_yes, amount)
    info = ledger.get_market_info(market_id)
    assert info.total_yes_shares == 16
    assert info.total_no_shares == 8
    assert ledger.get_total_pool(market_id) == sum(a for _, _, a in amounts)
    assert ledger.get_user_position(market_id, ALICE) == Position(yes_shares=16, no_shares=0)
    positions = ledger.get_positions(market_id)
    assert sum(p.yes_shares for p in positions.values()) == info.total_yes_shares
    assert sum(p.no_shares for p in positions.values()) == info.total_no_shares


@pytest.mark.parametrize("amount", [0, -5, True, 1.5, "10"])
def test_invalid_amount_rejected_without_mutation(ledger, market_id, amount):
    ledger.buy_shares(market_id, ALICE, True, 3)
    with pytest.raises(InvalidAmount):
        ledger.buy_shares(market_id, ALICE, True, amount)
    assert ledger.get_total_pool(market_id) == 3
    assert ledger.get_user_position(market_id, ALICE).yes_shares == 3


def test_account_ids_are_case_insensitive(ledger, market_id):
    ledger.buy_shares(market_id, ALICE.upper().replace("0X", "0x"), True, 4)
    assert ledger.get_user_position(market_id, ALICE).yes_shares == 4


@pytest.mark.parametrize("account", ["", "   ", None])
def test_blank_account_rejected_without_mutation(ledger, market_id, account):
    with pytest.raises(InvalidAccount):
        ledger.buy_shares(market_id, account, True, 5)
    with pytest.raises(InvalidAccount):
        ledger.create_market(account, "Q?", "", T0 + DAY)
    assert ledger.get_total_pool(market_id) == 0
    assert ledger.get_market_count() == 1


def test_market_ids_are_case_insensitive(clock):
    events = []
    ledger = MarketLedger(clock=clock, sink=events.append)
    mid = ledger.create_market(CREATOR, "Q?", "", T0 + DAY)
    shouted = "0X" + mid[2:].upper()
    ledger.buy_shares(shouted, ALICE, True, 7)
    assert ledger.get_market_info(f" {shouted} ").total_yes_shares == 7
    assert ledger.get_user_position(shouted, ALICE).yes_shares == 7
    assert [e.market_id for e in events] == [mid, mid]


def test_probability_example(ledger, market_id):
    _fund_300_700(ledger, market_id)
    assert ledger.get_yes_probability(market_id) == 30
    assert ledger.get_market_info(market_id).no_probability == 70


def test_unknown_market(ledger):
    with pytest.raises(MarketNotFound):
        ledger.get_market_info("0xdeadbeef")
    with pytest.raises(MarketNotFound):
        ledger.buy_shares("0xdeadbeef", ALICE, True, 1)


def test_resolve_by_non_creator_is_unauthorized(ledger, clock, market_id):
    clock.advance(DAY)
    with pytest.raises(Unauthorized):
        ledger.resolve(market_id, ALICE, Outcome.YES)
    assert ledger.get_market(market_id).state == MarketState.ACTIVE


def test_resolve_before_due_fails(ledger, clock, market_id):
    clock.advance(DAY - 1)
    with pytest.raises(NotYetDue):
        ledger.resolve(market_id, CREATOR, Outcome.YES)
    assert ledger.get_market(market_id).state == MarketState.ACTIVE
    clock.advance(1)
    ledger.resolve(market_id, CREATOR, Outcome.YES)
    assert ledger.get_market(market_id).state == MarketState.RESOLVED


def test_resolve_rejects_unresolved_outcome(ledger, clock, market_id):
    clock.advance(DAY)
    with pytest.raises(InvalidOutcome):
        ledger.resolve(market_id, CREATOR, Outcome.UNRESOLVED)
    with pytest.raises(InvalidOutcome):
        ledger.resolve(market_id, CREATOR, 9)
    assert ledger.get_market(market_id).outcome == Outcome.UNRESOLVED


def test_resolution_is_irreversible(ledger, clock, market_id):
    clock.advance(DAY)
    ledger.resolve(market_id, CREATOR, Outcome.NO)
    with pytest.raises(InvalidState):
        ledger.resolve(market_id, CREATOR, Outcome.YES)
    with pytest.raises(InvalidState):
        ledger.cancel(market_id)
    with pytest.raises(InvalidState):
        ledger.buy_shares(market_id, ALICE, True, 1)
    assert ledger.get_market(market_id).outcome == Outcome.NO


def test_yes_payout_truncates_and_pays_once(ledger, clock, market_id):
    _fund_300_700(ledger, market_id)
    clock.advance(DAY)
    ledger.resolve(market_id, CREATOR, Outcome.YES)

    assert ledger.claimable(market_id, ALICE) == 333
    assert ledger.claim(market_id, ALICE) == 333
    assert ledger.claim(market_id, ALICE) == 0
    assert ledger.get_user_position(market_id, ALICE) == Position()

    assert ledger.claim(market_id, BOB) == 666
    assert ledger.claim(market_id, CAROL) == 0
    assert ledger.get_user_position(market_id, CAROL).no_shares == 700
    # Totals are the settlement basis and stay frozen; 1 unit of dust remains.
    assert ledger.get_total_pool(market_id) == 1000
    assert ledger.unclaimed_balance(market_id) == 1


def test_no_payout_only_zeroes_winning_side(ledger, clock, market_id):
    ledger.buy_shares(market_id, ALICE, True, 50)
    ledger.buy_shares(market_id, ALICE, False, 25)
    ledger.buy_shares(market_id, BOB, False, 75)
    clock.advance(DAY)
    ledger.resolve(market_id, CREATOR, Outcome.NO)
    assert ledger.claim(market_id, ALICE) == 150 * 25 // 100
    assert ledger.get_user_position(market_id, ALICE) == Position(yes_shares=50, no_shares=0)
    assert ledger.claim(market_id, ALICE) == 0


def test_invalid_outcome_refunds_stake(ledger, clock, market_id):
    _fund_300_700(ledger, market_id)
    ledger.buy_shares(market_id, ALICE, False, 9)
    clock.advance(DAY)
    ledger.resolve(market_id, CREATOR, Outcome.INVALID)
    assert ledger.claim(market_id, ALICE) == 109
    assert ledger.claim(market_id, CAROL) == 700
    assert ledger.claim(market_id, ALICE) == 0
    assert ledger.get_user_position(market_id, ALICE) == Position()


def test_cancelled_market_refunds_stake(ledger, market_id):
    ledger.buy_shares(market_id, ALICE, True, 10)
    ledger.buy_shares(market_id, ALICE, False, 5)
    ledger.cancel(market_id, reason="duplicate")
    market = ledger.get_market(market_id)
    assert market.state == MarketState.CANCELLED
    assert market.outcome == Outcome.UNRESOLVED
    with pytest.raises(InvalidState):
        ledger.buy_shares(market_id, ALICE, True, 1)
    assert ledger.claim(market_id, ALICE) == 15
    assert ledger.claim(market_id, ALICE) == 0


def test_cancelled_market_cannot_be_resolved(ledger, clock, market_id):
    ledger.buy_shares(market_id, ALICE, True, 10)
    ledger.cancel(market_id)
    clock.advance(DAY)
    with pytest.raises(InvalidState):
        ledger.resolve(market_id, CREATOR, Outcome.YES)
    with pytest.raises(InvalidState):
        ledger.cancel(market_id)
    market = ledger.get_market(market_id)
    assert market.state == MarketState.CANCELLED
    assert market.outcome == Outcome.UNRESOLVED


def test_claim_on_active_market_fails(ledger, market_id):
    ledger.buy_shares(market_id, ALICE, True, 10)
    with pytest.raises(InvalidState):
        ledger.claim(market_id, ALICE)
    assert ledger.get_user_position(market_id, ALICE).yes_shares == 10


def test_strict_claims_raise_nothing_to_claim(clock):
    ledger = MarketLedger(clock=clock, strict_claims=True)
    mid = ledger.create_market(CREATOR, "Q?", "", T0 + DAY)
    ledger.buy_shares(mid, ALICE, True, 10)
    ledger.buy_shares(mid, BOB, False, 10)
    clock.advance(DAY)
    ledger.resolve(mid, CREATOR, Outcome.YES)
    with pytest.raises(NothingToClaim):
        ledger.claim(mid, BOB)
    assert ledger.claim(mid, ALICE) == 20
    with pytest.raises(NothingToClaim):
        ledger.claim(mid, ALICE)


def test_failing_sink_leaves_ledger_unchanged(clock):
    events = []
    fail = {"on": False}

    def sink(event):
        if fail["on"]:
            raise RuntimeError("disk full")
        events.append(event)

    ledger = MarketLedger(clock=clock, sink=sink)
    mid = ledger.create_market(CREATOR, "Q?", "", T0 + DAY)
    ledger.buy_shares(mid, ALICE, True, 10)
    fail["on"] = True
    with pytest.raises(RuntimeError):
        ledger.buy_shares(mid, ALICE, True, 5)
    with pytest.raises(RuntimeError):
        ledger.create_market(CREATOR, "Q2?", "", T0 + DAY)
    assert ledger.get_total_pool(mid) == 10
    assert ledger.get_user_position(mid, ALICE).yes_shares == 10
    assert ledger.get_market_count() == 1
    assert [e.event_type for e in events] == ["market_created", "shares_bought"]


def test_failing_sink_on_claim_keeps_position(clock):
    events = []
    fail = {"on": False}

    def sink(event):
        if fail["on"]:
            raise RuntimeError("disk full")
        events.append(event)

    ledger = MarketLedger(clock=clock, sink=sink)
    mid = ledger.create_market(CREATOR, "Q?", "", T0 + DAY)
    ledger.buy_shares(mid, ALICE, True, 30)
    ledger.buy_shares(mid, BOB, False, 70)
    clock.advance(DAY)
    ledger.resolve(mid, CREATOR, Outcome.YES)
    fail["on"] = True
    with pytest.raises(RuntimeError):
        ledger.claim(mid, ALICE)
    assert ledger.get_user_position(mid, ALICE).yes_shares == 30
    assert ledger.get_market(mid).total_paid_out == 0
    assert ledger.claimable(mid, ALICE) == 100
    assert ledger.unclaimed_balance(mid) == 100

    fail["on"] = False
    assert ledger.claim(mid, ALICE) == 100
    assert events[-1].event_type == "claimed"


def test_concurrent_purchases_keep_running_totals():
    ledger = MarketLedger(clock=FixedClock())
    mid = ledger.create_market(CREATOR, "Q?", "", T0 + DAY)
    accounts = [f"0x{i:040x}" for i in range(8)]

    def worker(account, is_yes):
        for _ in range(250):
            ledger.buy_shares(mid, account, is_yes, 2)

    threads = [threading.Thread(target=worker, args=(a, i % 2 == 0)) for i, a in enumerate(accounts)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    info = ledger.get_market_info(mid)
    assert info.total_yes_shares == 4 * 250 * 2
    assert info.total_no_shares == 4 * 250 * 2
    assert all(ledger.get_user_position(mid, a).total == 500 for a in accounts)
