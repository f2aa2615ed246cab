"""
Canonical CBOR encoding of circle states.

Structs are definite-length maps keyed by field name in declaration order. Byte
strings are written as arrays of unsigned integers, one per byte, which is the
layout a serde-derived struct produces for ``[u8; N]`` and ``Vec<u8>``. Two
logically identical states therefore always encode to the same bytes, and the
state hash is taken over exactly these bytes.
"""
import logging
from typing import TYPE_CHECKING, Any

import cbor2
from pydantic import ValidationError

from charmcircle.rosca.errors import DecodeError
from charmcircle.rosca.types import (
    HASH_LENGTH,
    PUBKEY_LENGTH,
    U32_MAX,
    U64_MAX,
    ContributionRecord,
    Member,
)

if TYPE_CHECKING:
    from charmcircle.rosca.state import CircleState

logger = logging.getLogger(__name__)

RECORD_FIELDS = ("round", "amount", "timestamp", "txid")
MEMBER_FIELDS = (
    "pubkey",
    "contribution_amount",
    "contribution_history",
    "has_received_payout",
    "payout_round",
    "joined_at",
)
STATE_FIELDS = (
    "circle_id",
    "members",
    "current_round",
    "total_rounds",
    "contribution_per_round",
    "current_payout_index",
    "current_pool",
    "created_at",
    "round_started_at",
    "round_duration",
    "is_complete",
    "prev_state_hash",
)


def _byte_array(value: bytes) -> list[int]:
    return list(value)


def _record_to_map(record: ContributionRecord) -> dict[str, Any]:
    return {
        "round": record.round,
        "amount": record.amount,
        "timestamp": record.timestamp,
        "txid": _byte_array(record.txid),
    }


def _member_to_map(member: Member) -> dict[str, Any]:
    return {
        "pubkey": _byte_array(member.pubkey),
        "contribution_amount": member.contribution_amount,
        "contribution_history": [_record_to_map(c) for c in member.contribution_history],
        "has_received_payout": member.has_received_payout,
        "payout_round": member.payout_round,
        "joined_at": member.joined_at,
    }


def state_to_map(state: "CircleState") -> dict[str, Any]:
    """
    Build the ordered map that is fed to the CBOR encoder.
    """
    return {
        "circle_id": _byte_array(state.circle_id),
        "members": [_member_to_map(m) for m in state.members],
        "current_round": state.current_round,
        "total_rounds": state.total_rounds,
        "contribution_per_round": state.contribution_per_round,
        "current_payout_index": state.current_payout_index,
        "current_pool": state.current_pool,
        "created_at": state.created_at,
        "round_started_at": state.round_started_at,
        "round_duration": state.round_duration,
        "is_complete": state.is_complete,
        "prev_state_hash": _byte_array(state.prev_state_hash),
    }


def encode_state(state: "CircleState") -> bytes:
    try:
        return cbor2.dumps(state_to_map(state))
    except (cbor2.CBOREncodeError, OverflowError) as e:
        # Only reachable if a field was assigned an out-of-range value after construction
        raise ValueError(f"State cannot be encoded: {e}") from e


# Decoding

def _expect_map(value: Any, fields: tuple[str, ...], path: str) -> dict:
    if not isinstance(value, dict):
        raise DecodeError(f"{path}: expected a map, got {type(value).__name__}")
    keys = set(value.keys())
    expected = set(fields)
    if keys != expected:
        missing = sorted(expected - keys, key=str)
        unknown = sorted(keys - expected, key=str)
        raise DecodeError(f"{path}: unexpected fields (missing={missing}, unknown={unknown})")
    if tuple(value.keys()) != fields:
        raise DecodeError(f"{path}: fields are not in canonical order")
    return value


def _expect_uint(value: Any, limit: int, path: str) -> int:
    if type(value) is not int:
        raise DecodeError(f"{path}: expected an unsigned integer, got {type(value).__name__}")
    if value < 0 or value > limit:
        raise DecodeError(f"{path}: integer {value} out of range")
    return value


def _expect_bool(value: Any, path: str) -> bool:
    if type(value) is not bool:
        raise DecodeError(f"{path}: expected a boolean, got {type(value).__name__}")
    return value


def _expect_bytes(value: Any, length: int, path: str) -> bytes:
    if not isinstance(value, list):
        raise DecodeError(f"{path}: expected an array of bytes, got {type(value).__name__}")
    if len(value) != length:
        raise DecodeError(f"{path}: expected {length} bytes, got {len(value)}")
    for i, item in enumerate(value):
        _expect_uint(item, 0xFF, f"{path}[{i}]")
    return bytes(value)


def _expect_list(value: Any, path: str) -> list:
    if not isinstance(value, list):
        raise DecodeError(f"{path}: expected an array, got {type(value).__name__}")
    return value


def _record_from_map(raw: Any, path: str) -> ContributionRecord:
    raw = _expect_map(raw, RECORD_FIELDS, path)
    return ContributionRecord(
        round=_expect_uint(raw["round"], U32_MAX, f"{path}.round"),
        amount=_expect_uint(raw["amount"], U64_MAX, f"{path}.amount"),
        timestamp=_expect_uint(raw["timestamp"], U64_MAX, f"{path}.timestamp"),
        txid=_expect_bytes(raw["txid"], HASH_LENGTH, f"{path}.txid"),
    )


def _member_from_map(raw: Any, path: str) -> Member:
    raw = _expect_map(raw, MEMBER_FIELDS, path)
    history = _expect_list(raw["contribution_history"], f"{path}.contribution_history")
    return Member(
        pubkey=_expect_bytes(raw["pubkey"], PUBKEY_LENGTH, f"{path}.pubkey"),
        contribution_amount=_expect_uint(raw["contribution_amount"], U64_MAX, f"{path}.contribution_amount"),
        contribution_history=[
            _record_from_map(c, f"{path}.contribution_history[{i}]") for i, c in enumerate(history)
        ],
        has_received_payout=_expect_bool(raw["has_received_payout"], f"{path}.has_received_payout"),
        payout_round=_expect_uint(raw["payout_round"], U32_MAX, f"{path}.payout_round"),
        joined_at=_expect_uint(raw["joined_at"], U64_MAX, f"{path}.joined_at"),
    )


def decode_fields(data: bytes) -> dict[str, Any]:
    """
    Decode canonical bytes into keyword arguments for ``CircleState``.

    Only the canonical form is accepted. Raises ``DecodeError`` for bad CBOR,
    missing, unknown or reordered fields, wrong types, integers outside their
    declared width, byte strings of the wrong length, and any input that does
    not re-encode to exactly the same bytes (non-shortest integers,
    indefinite-length items, duplicate keys, trailing bytes).
    """
    if not isinstance(data, (bytes, bytearray)):
        raise DecodeError(f"Expected bytes, got {type(data).__name__}")
    if not data:
        raise DecodeError("Encoded state is empty")
    data = bytes(data)

    try:
        raw = cbor2.loads(data)
    except (cbor2.CBORDecodeError, ValueError, TypeError, EOFError) as e:
        raise DecodeError(f"Malformed CBOR: {e}") from e

    raw = _expect_map(raw, STATE_FIELDS, "state")
    members = _expect_list(raw["members"], "state.members")
    try:
        fields = {
            "circle_id": _expect_bytes(raw["circle_id"], HASH_LENGTH, "state.circle_id"),
            "members": [_member_from_map(m, f"state.members[{i}]") for i, m in enumerate(members)],
            "current_round": _expect_uint(raw["current_round"], U32_MAX, "state.current_round"),
            "total_rounds": _expect_uint(raw["total_rounds"], U32_MAX, "state.total_rounds"),
            "contribution_per_round": _expect_uint(raw["contribution_per_round"], U64_MAX, "state.contribution_per_round"),
            "current_payout_index": _expect_uint(raw["current_payout_index"], U64_MAX, "state.current_payout_index"),
            "current_pool": _expect_uint(raw["current_pool"], U64_MAX, "state.current_pool"),
            "created_at": _expect_uint(raw["created_at"], U64_MAX, "state.created_at"),
            "round_started_at": _expect_uint(raw["round_started_at"], U64_MAX, "state.round_started_at"),
            "round_duration": _expect_uint(raw["round_duration"], U64_MAX, "state.round_duration"),
            "is_complete": _expect_bool(raw["is_complete"], "state.is_complete"),
            "prev_state_hash": _expect_bytes(raw["prev_state_hash"], HASH_LENGTH, "state.prev_state_hash"),
        }
    except ValidationError as e:
        raise DecodeError(f"Invalid state field: {e}") from e

    if cbor2.dumps(raw) != data:
        raise DecodeError("Encoding is not canonical")

    logger.debug(f"Decoded state with {len(fields['members'])} members ({len(data)} bytes)")
    return fields
