import pytest

from charmcircle.rosca.errors import (
    AlreadyPaid,
    AlreadyStarted,
    AmountMismatch,
    CircleComplete,
    DuplicateContribution,
    DuplicateMember,
    InvalidIndex,
    InvalidPayoutRound,
    MemberNotFound,
    PoolOverflow,
    RoundNotFunded,
)
from charmcircle.rosca.state import CircleState
from charmcircle.rosca.types import U64_MAX, ZERO_HASH
from tests.utils import (
    ALICE,
    BOB,
    CAROL,
    CIRCLE_ID,
    CONTRIBUTION,
    CREATED_AT,
    ROUND_DURATION,
    fund_round,
    two_member_state,
    txid,
)

def test_create_empty_circle():
    state = CircleState.create(CIRCLE_ID, CONTRIBUTION, ROUND_DURATION, CREATED_AT)

    assert state.members == []
    assert state.current_round == 0
    assert state.total_rounds == 0
    assert state.current_pool == 0
    assert state.current_payout_index == 0
    assert state.round_started_at == CREATED_AT
    assert state.prev_state_hash == ZERO_HASH
    assert state.is_complete is False

def test_add_member_sets_defaults():
    state = CircleState.create(CIRCLE_ID, CONTRIBUTION, ROUND_DURATION, CREATED_AT)
    member = state.add_member(ALICE, 0, CREATED_AT + 5)

    assert state.total_rounds == 1
    assert member.contribution_amount == CONTRIBUTION
    assert member.contribution_history == []
    assert member.has_received_payout is False
    assert member.joined_at == CREATED_AT + 5

def test_add_member_allows_payout_round_equal_to_member_count():
    state = two_member_state()
    state.add_member(CAROL, 2, CREATED_AT + 20)
    assert state.total_rounds == 3

def test_add_member_rejects_payout_round_beyond_member_count():
    state = two_member_state()
    before = state.to_bytes()

    with pytest.raises(InvalidPayoutRound) as exc:
        state.add_member(CAROL, 3, CREATED_AT + 20)

    assert exc.value.payout_round == 3
    assert exc.value.member_count == 2
    assert state.to_bytes() == before

def test_duplicate_member_rejected():
    state = two_member_state()
    before = state.to_bytes()

    with pytest.raises(DuplicateMember):
        state.add_member(BOB, 0, CREATED_AT + 20)

    assert len(state.members) == 2
    assert state.to_bytes() == before

def test_add_member_after_start_rejected():
    state = two_member_state()
    fund_round(state, CREATED_AT + 100)
    state.execute_payout(CREATED_AT + ROUND_DURATION)
    before = state.to_bytes()

    with pytest.raises(AlreadyStarted) as exc:
        state.add_member(CAROL, 0, CREATED_AT + ROUND_DURATION + 1)

    assert exc.value.current_round == 1
    assert state.to_bytes() == before

def test_record_contribution():
    state = two_member_state()
    record = state.record_contribution(ALICE, CONTRIBUTION, CREATED_AT + 100, txid("a0"))

    assert record.round == 0
    assert record.txid == txid("a0")
    assert state.current_pool == CONTRIBUTION
    assert state.members[0].contribution_history == [record]
    assert not state.is_round_fully_funded()

def test_duplicate_contribution_counts_once():
    state = two_member_state()
    state.record_contribution(ALICE, CONTRIBUTION, CREATED_AT + 100, txid("a0"))
    before = state.to_bytes()

    with pytest.raises(DuplicateContribution) as exc:
        state.record_contribution(ALICE, CONTRIBUTION, CREATED_AT + 101, txid("a0-again"))

    assert exc.value.round == 0
    assert state.current_pool == CONTRIBUTION
    assert state.to_bytes() == before

def test_contribution_amount_must_match():
    state = two_member_state()
    before = state.to_bytes()

    with pytest.raises(AmountMismatch) as exc:
        state.record_contribution(ALICE, CONTRIBUTION - 1, CREATED_AT + 100, txid("a0"))

    assert exc.value.expected == CONTRIBUTION
    assert exc.value.actual == CONTRIBUTION - 1
    assert state.current_pool == 0
    assert state.to_bytes() == before

def test_contribution_from_unknown_member():
    state = two_member_state()
    before = state.to_bytes()

    with pytest.raises(MemberNotFound):
        state.record_contribution(CAROL, CONTRIBUTION, CREATED_AT + 100, txid("c0"))

    assert state.to_bytes() == before

def test_contribution_cannot_overflow_pool():
    state = CircleState.create(CIRCLE_ID, U64_MAX, ROUND_DURATION, CREATED_AT)
    state.add_member(ALICE, 0, CREATED_AT)
    state.add_member(BOB, 1, CREATED_AT)
    state.record_contribution(ALICE, U64_MAX, CREATED_AT + 1, txid("a0"))
    before = state.to_bytes()

    with pytest.raises(PoolOverflow):
        state.record_contribution(BOB, U64_MAX, CREATED_AT + 2, txid("b0"))

    assert state.to_bytes() == before

def test_two_member_first_round_scenario():
    state = two_member_state()
    state.record_contribution(ALICE, CONTRIBUTION, CREATED_AT + 100, txid("a0"))
    state.record_contribution(BOB, CONTRIBUTION, CREATED_AT + 101, txid("b0"))

    assert state.current_pool == 200_000
    assert state.is_round_fully_funded()

    result = state.execute_payout(CREATED_AT + ROUND_DURATION)

    assert result.recipient == ALICE
    assert result.amount == 200_000
    assert state.current_round == 1
    assert state.current_pool == 0
    assert state.current_payout_index == 1
    assert state.round_started_at == CREATED_AT + ROUND_DURATION
    assert state.is_complete is False
    assert state.members[0].has_received_payout is True

    before = state.to_bytes()
    with pytest.raises(RoundNotFunded) as exc:
        state.execute_payout(CREATED_AT + ROUND_DURATION + 1)
    assert exc.value.funded == 0
    assert exc.value.required == 2
    assert state.to_bytes() == before

def test_payout_links_previous_state_hash():
    state = two_member_state()
    fund_round(state, CREATED_AT + 100)

    # The linked hash covers the state with the recipient already marked paid
    expected = state.model_copy(deep=True)
    expected.members[0].has_received_payout = True
    expected_hash = expected.state_hash()

    state.execute_payout(CREATED_AT + ROUND_DURATION)
    assert state.prev_state_hash == expected_hash

def test_full_rotation_completes_circle():
    state = two_member_state()
    fund_round(state, CREATED_AT + 100)
    first = state.execute_payout(CREATED_AT + ROUND_DURATION)
    fund_round(state, CREATED_AT + ROUND_DURATION + 100)
    second = state.execute_payout(CREATED_AT + 2 * ROUND_DURATION)

    assert (first.recipient, second.recipient) == (ALICE, BOB)
    assert state.current_round == 2 == state.total_rounds
    assert state.is_complete is True
    assert state.current_payout_index == 0
    state.validate()
    before = state.to_bytes()

    with pytest.raises(CircleComplete):
        state.record_contribution(ALICE, CONTRIBUTION, CREATED_AT + 3 * ROUND_DURATION, txid("a2"))
    with pytest.raises(CircleComplete):
        state.execute_payout(CREATED_AT + 3 * ROUND_DURATION)

    assert state.to_bytes() == before

def test_payout_follows_rotation_not_payout_round():
    state = CircleState.create(CIRCLE_ID, CONTRIBUTION, ROUND_DURATION, CREATED_AT)
    state.add_member(ALICE, 0, CREATED_AT)
    # Bob asks for round 0 as well; rotation still pays by join order
    state.add_member(BOB, 0, CREATED_AT)
    fund_round(state, CREATED_AT + 100)

    assert state.execute_payout(CREATED_AT + ROUND_DURATION).recipient == ALICE

def test_payout_on_empty_circle_is_invalid_index():
    state = CircleState.create(CIRCLE_ID, CONTRIBUTION, ROUND_DURATION, CREATED_AT)
    before = state.to_bytes()

    with pytest.raises(InvalidIndex) as exc:
        state.execute_payout(CREATED_AT + 1)
    assert exc.value.member_count == 0
    assert state.to_bytes() == before

def test_payout_to_already_paid_member():
    state = two_member_state()
    fund_round(state, CREATED_AT + 100)
    state.members[0].has_received_payout = True
    before = state.to_bytes()

    with pytest.raises(AlreadyPaid) as exc:
        state.execute_payout(CREATED_AT + ROUND_DURATION)

    assert exc.value.pubkey == ALICE
    assert state.to_bytes() == before

def test_payout_index_past_members_is_invalid_index():
    state = two_member_state()
    fund_round(state, CREATED_AT + 100)
    state.current_payout_index = 2
    before = state.to_bytes()

    with pytest.raises(InvalidIndex) as exc:
        state.execute_payout(CREATED_AT + ROUND_DURATION)

    assert exc.value.index == 2
    assert exc.value.member_count == 2
    assert state.to_bytes() == before
