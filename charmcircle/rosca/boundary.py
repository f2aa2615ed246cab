"""
Operations over encoded states.

Each function decodes the incoming bytes into a fresh value, applies exactly
one operation and returns the re-encoded result. The caller's bytes are never
modified, so an error leaves the stored state untouched.
"""
import logging

from charmcircle.rosca.state import CircleState
from charmcircle.rosca.types import PayoutResult

logger = logging.getLogger(__name__)

CREATOR_PAYOUT_ROUND = 0


def create(
    circle_id: bytes,
    contribution_per_round: int,
    round_duration: int,
    created_at: int,
    creator_pubkey: bytes,
) -> CircleState:
    """
    Create a circle whose creator is the first member, paid out in round 0.
    """
    state = CircleState.create(circle_id, contribution_per_round, round_duration, created_at)
    state.add_member(creator_pubkey, CREATOR_PAYOUT_ROUND, created_at)
    logger.debug(f"Created circle {circle_id.hex()} with creator {creator_pubkey.hex()}")
    return state


def apply_add_member(state_bytes: bytes, pubkey: bytes, payout_round: int, timestamp: int) -> bytes:
    state = CircleState.from_bytes(state_bytes)
    state.add_member(pubkey, payout_round, timestamp)
    return state.to_bytes()


def apply_record_contribution(state_bytes: bytes, pubkey: bytes, amount: int, timestamp: int, txid: bytes) -> bytes:
    state = CircleState.from_bytes(state_bytes)
    state.record_contribution(pubkey, amount, timestamp, txid)
    return state.to_bytes()


def apply_execute_payout(state_bytes: bytes, timestamp: int) -> tuple[bytes, PayoutResult]:
    state = CircleState.from_bytes(state_bytes)
    result = state.execute_payout(timestamp)
    return state.to_bytes(), result


def check_transition(prev_bytes: bytes, next_bytes: bytes) -> None:
    """
    Decode both states and check that the second may follow the first.
    """
    CircleState.from_bytes(prev_bytes).validate_transition(CircleState.from_bytes(next_bytes))
