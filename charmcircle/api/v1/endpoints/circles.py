from typing import Annotated, List
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from charmcircle.api import deps
from charmcircle.api.deps import get_circle, get_db
from charmcircle.core.config import settings
from charmcircle.core.rate_limit import limiter
from charmcircle.models.circle import Circle
from charmcircle.models.enums import CircleOperation
from charmcircle.rosca.errors import StateValidationError
from charmcircle.rosca.state import CircleState
from charmcircle.schemas.circle import (
    CircleCreate,
    CircleDetail,
    CircleRead,
    CircleStateRead,
    CircleTransitionRead,
    ContributionCreate,
    ContributionReceipt,
    MemberJoin,
    PayoutReceipt,
    PayoutRequest,
    ValidationReport,
)
from charmcircle.schemas.response import APIResponse
from charmcircle.services.circle_service import CircleService, current_timestamp

router = APIRouter()

@router.post("/", response_model=APIResponse[CircleDetail])
@limiter.limit("10/minute")
async def create_circle(
    request: Request,
    circle_in: CircleCreate,
    session: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Create a new circle.

    The creator becomes the first member, paid out in round 0.
    """
    created_at = circle_in.created_at if circle_in.created_at is not None else current_timestamp()
    round_duration = circle_in.round_duration if circle_in.round_duration is not None else settings.DEFAULT_ROUND_DURATION

    circle = await CircleService.create(
        session,
        circle_id=bytes.fromhex(circle_in.circle_id),
        contribution_per_round=circle_in.contribution_per_round,
        round_duration=round_duration,
        created_at=created_at,
        creator_pubkey=bytes.fromhex(circle_in.creator_pubkey),
        purpose=circle_in.purpose,
        frequency=circle_in.frequency,
    )
    return APIResponse(message="Circle created successfully", data=CircleService.to_read(circle, with_state=True))

@router.get("/", response_model=APIResponse[List[CircleRead]])
async def get_circles(
    session: Annotated[AsyncSession, Depends(get_db)],
    pagination: Annotated[deps.PageParams, Depends()],
    is_complete: Annotated[bool | None, Query(description="Only completed (true) or running (false) circles")] = None,
):
    """
    List stored circles.
    """
    circles = await CircleService.list_circles(session, pagination.offset, pagination.limit, is_complete)
    return APIResponse(message="Circles retrieved", data=[CircleService.to_read(c) for c in circles])

@router.get("/{circle_id}", response_model=APIResponse[CircleDetail])
async def get_circle_details(circle: Annotated[Circle, Depends(get_circle)]):
    """
    Get details of a specific circle, including its hex-encoded state.
    """
    return APIResponse(message="Circle details retrieved", data=CircleService.to_read(circle, with_state=True))

@router.get("/{circle_id}/state", response_model=APIResponse[CircleStateRead])
async def get_circle_state(circle: Annotated[Circle, Depends(get_circle)]):
    """
    Get the fully decoded state of a circle.
    """
    state = CircleState.from_bytes(circle.state)
    return APIResponse(message="Circle state retrieved", data=CircleStateRead.from_state(state))

@router.post("/{circle_id}/members", response_model=APIResponse[CircleDetail])
@limiter.limit("20/minute")
async def join_circle(
    request: Request,
    member_in: MemberJoin,
    circle: Annotated[Circle, Depends(get_circle)],
    session: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Add a member to a circle that has not started yet.

    Without an explicit payout round the member takes the next slot.
    """
    if circle.member_count >= settings.MAX_CIRCLE_MEMBERS:
        raise HTTPException(status_code=400, detail=f"Circle has reached the maximum limit of {settings.MAX_CIRCLE_MEMBERS} members")

    pubkey = bytes.fromhex(member_in.pubkey)
    timestamp = member_in.timestamp if member_in.timestamp is not None else current_timestamp()

    def add(state: CircleState):
        payout_round = member_in.payout_round if member_in.payout_round is not None else len(state.members)
        return state.add_member(pubkey, payout_round, timestamp)

    state, _ = await CircleService.apply(
        session,
        circle,
        CircleOperation.ADD_MEMBER,
        add,
        timestamp=timestamp,
        expected_state_hash=member_in.expected_state_hash,
        actor_pubkey=pubkey,
    )
    return APIResponse(message="Joined circle successfully", data=CircleService.to_read(circle, state, with_state=True))

@router.post("/{circle_id}/contributions", response_model=APIResponse[ContributionReceipt])
@limiter.limit("30/minute")
async def contribute_to_circle(
    request: Request,
    contribution_in: ContributionCreate,
    circle: Annotated[Circle, Depends(get_circle)],
    session: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Record a member's contribution for the current round.
    """
    pubkey = bytes.fromhex(contribution_in.pubkey)
    txid = bytes.fromhex(contribution_in.txid)
    timestamp = contribution_in.timestamp if contribution_in.timestamp is not None else current_timestamp()

    state, record = await CircleService.apply(
        session,
        circle,
        CircleOperation.RECORD_CONTRIBUTION,
        lambda s: s.record_contribution(pubkey, contribution_in.amount, timestamp, txid),
        timestamp=timestamp,
        expected_state_hash=contribution_in.expected_state_hash,
        actor_pubkey=pubkey,
        amount=contribution_in.amount,
        txid=txid,
    )
    return APIResponse(
        message="Contribution successful",
        data=ContributionReceipt(
            round=record.round,
            current_pool=state.current_pool,
            round_fully_funded=state.is_round_fully_funded(),
            state_hash=circle.state_hash,
            version=circle.version,
        )
    )

@router.post("/{circle_id}/payout", response_model=APIResponse[PayoutReceipt])
@limiter.limit("10/minute")
async def execute_payout(
    request: Request,
    payout_in: PayoutRequest,
    circle: Annotated[Circle, Depends(get_circle)],
    session: Annotated[AsyncSession, Depends(get_db)]
):
    """
    Pay the pool of a fully funded round to the next member in rotation.
    """
    timestamp = payout_in.timestamp if payout_in.timestamp is not None else current_timestamp()
    paid_round = CircleState.from_bytes(circle.state).current_round

    state, payout = await CircleService.apply(
        session,
        circle,
        CircleOperation.EXECUTE_PAYOUT,
        lambda s: s.execute_payout(timestamp),
        timestamp=timestamp,
        expected_state_hash=payout_in.expected_state_hash,
    )

    return APIResponse(
        message="Payout executed",
        data=PayoutReceipt(
            recipient=payout.recipient.hex(),
            amount=payout.amount,
            paid_round=paid_round,
            current_round=state.current_round,
            is_complete=state.is_complete,
            state_hash=circle.state_hash,
            version=circle.version,
        )
    )

@router.get("/{circle_id}/validate", response_model=APIResponse[ValidationReport])
async def validate_circle(circle: Annotated[Circle, Depends(get_circle)]):
    """
    Check the stored state against every circle invariant.
    """
    state = CircleState.from_bytes(circle.state)
    try:
        state.validate()
    except StateValidationError as e:
        report = ValidationReport(
            valid=False,
            state_hash=circle.state_hash,
            violation=str(e.violation),
            message=e.message,
            details=e.to_dict(),
        )
        return APIResponse(message="Circle state is invalid", data=report)
    return APIResponse(message="Circle state is valid", data=ValidationReport(valid=True, state_hash=circle.state_hash))

@router.get("/{circle_id}/history", response_model=APIResponse[List[CircleTransitionRead]])
async def get_circle_history(
    circle: Annotated[Circle, Depends(get_circle)],
    session: Annotated[AsyncSession, Depends(get_db)]
):
    """
    List the operations applied to a circle, oldest first.
    """
    transitions = await CircleService.history(session, circle.id)
    return APIResponse(
        message="Circle history retrieved",
        data=[CircleTransitionRead.model_validate(t, from_attributes=True) for t in transitions],
    )
