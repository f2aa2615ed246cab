import logging
import time
from typing import Any, Callable, Sequence

from fastapi import HTTPException, status
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from charmcircle.models.circle import Circle, CircleTransition, get_utc_now
from charmcircle.models.enums import CircleFrequency, CircleOperation
from charmcircle.rosca import boundary
from charmcircle.rosca.state import CircleState
from charmcircle.rosca.types import PayoutResult
from charmcircle.schemas.circle import CircleDetail, CircleRead, MemberSummary, status_of

logger = logging.getLogger(__name__)

def current_timestamp() -> int:
    return int(time.time())

class CircleService:
    """
    Single-writer driver around the circle state machine.

    Each mutation decodes the stored bytes, applies exactly one operation,
    re-validates the result and writes it back only if nobody else has written
    in the meantime.
    """

    @staticmethod
    async def get(session: AsyncSession, circle_id: str) -> Circle:
        circle = await session.get(Circle, circle_id)
        if not circle:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Circle not found")
        return circle

    @staticmethod
    async def list_circles(session: AsyncSession, offset: int, limit: int, is_complete: bool | None = None) -> Sequence[Circle]:
        query = select(Circle)
        if is_complete is not None:
            query = query.where(Circle.is_complete == is_complete)
        query = query.order_by(Circle.created_at, Circle.id).offset(offset).limit(limit)
        result = await session.execute(query)
        return result.scalars().all()

    @staticmethod
    async def create(
        session: AsyncSession,
        circle_id: bytes,
        contribution_per_round: int,
        round_duration: int,
        created_at: int,
        creator_pubkey: bytes,
        purpose: str | None = None,
        frequency: CircleFrequency | None = None,
    ) -> Circle:
        if await session.get(Circle, circle_id.hex()):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Circle already exists")

        state = boundary.create(circle_id, contribution_per_round, round_duration, created_at, creator_pubkey)
        state.validate()
        state_hash = state.state_hash().hex()

        circle = Circle(
            id=circle_id.hex(),
            state=state.to_bytes(),
            state_hash=state_hash,
            member_count=len(state.members),
            current_round=state.current_round,
            is_complete=state.is_complete,
            purpose=purpose,
            frequency=frequency,
        )
        session.add(circle)
        await session.flush()
        session.add(CircleTransition(
            circle_id=circle.id,
            sequence=circle.version,
            operation=CircleOperation.CREATE,
            state_hash=state_hash,
            actor_pubkey=creator_pubkey.hex(),
            timestamp=created_at,
        ))
        await session.commit()
        await session.refresh(circle)

        logger.info(f"Circle {circle.id} created by {creator_pubkey.hex()} (state {state_hash})")
        return circle

    @staticmethod
    async def apply(
        session: AsyncSession,
        circle: Circle,
        operation: CircleOperation,
        mutate: Callable[[CircleState], Any],
        *,
        timestamp: int,
        expected_state_hash: str | None = None,
        actor_pubkey: bytes | None = None,
        amount: int | None = None,
        txid: bytes | None = None,
    ) -> tuple[CircleState, Any]:
        """
        Apply one operation to the stored state.

        ``mutate`` receives a freshly decoded state and performs the operation on
        it; whatever it returns is handed back alongside the new state. Nothing is
        written if the operation, the invariant check or the transition check
        fails, or if the stored version moved on in the meantime.
        """
        if expected_state_hash is not None and expected_state_hash != circle.state_hash:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"Circle state has changed (current hash {circle.state_hash})",
            )

        prev_state = CircleState.from_bytes(circle.state)
        next_state = CircleState.from_bytes(circle.state)
        outcome = mutate(next_state)
        if isinstance(outcome, PayoutResult):
            actor_pubkey, amount = outcome.recipient, outcome.amount
        next_state.validate()
        prev_state.validate_transition(next_state)

        circle_id = circle.id
        prev_hash = circle.state_hash
        new_bytes = next_state.to_bytes()
        new_hash = next_state.state_hash().hex()
        expected_version = circle.version

        result = await session.execute(
            update(Circle)
            .where(Circle.id == circle_id, Circle.version == expected_version)
            .values(
                state=new_bytes,
                state_hash=new_hash,
                version=expected_version + 1,
                member_count=len(next_state.members),
                current_round=next_state.current_round,
                is_complete=next_state.is_complete,
                updated_at=get_utc_now(),
            )
        )
        if result.rowcount != 1:
            await session.rollback()
            logger.warning(f"Circle {circle_id}: lost update race at version {expected_version}")
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Circle was updated concurrently, retry")

        session.add(CircleTransition(
            circle_id=circle_id,
            sequence=expected_version + 1,
            operation=operation,
            prev_state_hash=prev_hash,
            state_hash=new_hash,
            actor_pubkey=actor_pubkey.hex() if actor_pubkey is not None else None,
            amount=amount,
            txid=txid.hex() if txid is not None else None,
            timestamp=timestamp,
        ))
        await session.commit()
        await session.refresh(circle)

        logger.info(f"Circle {circle.id}: {operation} applied, version {circle.version} (state {new_hash})")
        return next_state, outcome

    @staticmethod
    async def history(session: AsyncSession, circle_id: str) -> Sequence[CircleTransition]:
        query = select(CircleTransition).where(CircleTransition.circle_id == circle_id).order_by(CircleTransition.sequence)
        result = await session.execute(query)
        return result.scalars().all()

    @staticmethod
    def to_read(circle: Circle, state: CircleState | None = None, with_state: bool = False) -> CircleRead:
        if state is None:
            state = CircleState.from_bytes(circle.state)
        next_recipient = None
        if not state.is_complete and state.current_payout_index < len(state.members):
            next_recipient = state.members[state.current_payout_index].pubkey.hex()

        fields = dict(
            id=circle.id,
            status=status_of(state),
            version=circle.version,
            state_hash=circle.state_hash,
            member_count=len(state.members),
            total_rounds=state.total_rounds,
            current_round=state.current_round,
            contribution_per_round=state.contribution_per_round,
            current_pool=state.current_pool,
            current_payout_index=state.current_payout_index,
            next_recipient=next_recipient,
            round_fully_funded=state.is_round_fully_funded(),
            round_started_at=state.round_started_at,
            round_duration=state.round_duration,
            is_complete=state.is_complete,
            purpose=circle.purpose,
            frequency=circle.frequency,
            members=[
                MemberSummary(
                    pubkey=m.pubkey.hex(),
                    payout_round=m.payout_round,
                    has_received_payout=m.has_received_payout,
                    contributed_this_round=m.contribution_for(state.current_round) is not None,
                )
                for m in state.members
            ],
            created_at=circle.created_at,
            updated_at=circle.updated_at,
        )
        if with_state:
            return CircleDetail(state=circle.state.hex(), **fields)
        return CircleRead(**fields)
