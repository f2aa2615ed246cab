"""
Stateless transforms over hex-encoded circle states.

Nothing here touches the database: each request decodes the given state,
applies one operation and returns the re-encoded result.
"""
from fastapi import APIRouter, Request

from charmcircle.core.rate_limit import limiter
from charmcircle.rosca import boundary
from charmcircle.rosca.errors import StateValidationError, TransitionError
from charmcircle.rosca.state import CircleState
from charmcircle.schemas.circle import CircleStateRead, ValidationReport
from charmcircle.schemas.response import APIResponse
from charmcircle.schemas.state import (
    DecodedState,
    EncodedState,
    PayoutOutcome,
    StateAddMember,
    StateExecutePayout,
    StateInput,
    StateRecordContribution,
    StateSerialize,
    StateTransition,
    TransitionReport,
)

router = APIRouter()

def _encoded(state_bytes: bytes) -> EncodedState:
    state = CircleState.from_bytes(state_bytes)
    return EncodedState(state=state_bytes.hex(), state_hash=state.state_hash().hex())

@router.post("/serialize", response_model=APIResponse[EncodedState])
@limiter.limit("60/minute")
async def serialize_state(request: Request, params: StateSerialize):
    """
    Encode a new circle whose creator is the first member.
    """
    state = boundary.create(
        bytes.fromhex(params.circle_id),
        params.contribution_per_round,
        params.round_duration,
        params.created_at,
        bytes.fromhex(params.creator_pubkey),
    )
    return APIResponse(message="State serialized", data=_encoded(state.to_bytes()))

@router.post("/add-member", response_model=APIResponse[EncodedState])
@limiter.limit("60/minute")
async def add_member(request: Request, params: StateAddMember):
    new_state = boundary.apply_add_member(
        bytes.fromhex(params.state),
        bytes.fromhex(params.pubkey),
        params.payout_round,
        params.timestamp,
    )
    return APIResponse(message="Member added", data=_encoded(new_state))

@router.post("/record-contribution", response_model=APIResponse[EncodedState])
@limiter.limit("60/minute")
async def record_contribution(request: Request, params: StateRecordContribution):
    new_state = boundary.apply_record_contribution(
        bytes.fromhex(params.state),
        bytes.fromhex(params.pubkey),
        params.amount,
        params.timestamp,
        bytes.fromhex(params.txid),
    )
    return APIResponse(message="Contribution recorded", data=_encoded(new_state))

@router.post("/execute-payout", response_model=APIResponse[PayoutOutcome])
@limiter.limit("60/minute")
async def execute_payout(request: Request, params: StateExecutePayout):
    new_state, payout = boundary.apply_execute_payout(bytes.fromhex(params.state), params.timestamp)
    encoded = _encoded(new_state)
    return APIResponse(
        message="Payout executed",
        data=PayoutOutcome(
            state=encoded.state,
            state_hash=encoded.state_hash,
            recipient=payout.recipient.hex(),
            amount=payout.amount,
        )
    )

@router.post("/decode", response_model=APIResponse[DecodedState])
async def decode_state(params: StateInput):
    """
    Decode a state and show every field, byte fields in hex.
    """
    state = CircleState.from_bytes(bytes.fromhex(params.state))
    return APIResponse(
        message="State decoded",
        data=DecodedState(state=params.state, state_hash=state.state_hash().hex(), decoded=CircleStateRead.from_state(state)),
    )

@router.post("/validate", response_model=APIResponse[ValidationReport])
async def validate_state(params: StateInput):
    state = CircleState.from_bytes(bytes.fromhex(params.state))
    state_hash = state.state_hash().hex()
    try:
        state.validate()
    except StateValidationError as e:
        report = ValidationReport(
            valid=False,
            state_hash=state_hash,
            violation=str(e.violation),
            message=e.message,
            details=e.to_dict(),
        )
        return APIResponse(message="State is invalid", data=report)
    return APIResponse(message="State is valid", data=ValidationReport(valid=True, state_hash=state_hash))

@router.post("/validate-transition", response_model=APIResponse[TransitionReport])
async def validate_transition(params: StateTransition):
    """
    Check that one state may directly follow another.
    """
    try:
        boundary.check_transition(bytes.fromhex(params.prev_state), bytes.fromhex(params.next_state))
    except TransitionError as e:
        report = TransitionReport(valid=False, violation=str(e.violation), message=e.message, details=e.to_dict())
        return APIResponse(message="Transition is invalid", data=report)
    return APIResponse(message="Transition is valid", data=TransitionReport(valid=True))
