import hashlib
import logging

from pydantic import BaseModel, ConfigDict, Field

from charmcircle.rosca import codec
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
    StateValidationError,
    StateViolation,
    TransitionError,
    TransitionViolation,
)
from charmcircle.rosca.types import (
    U32,
    U64,
    U64_MAX,
    ZERO_HASH,
    Bytes32,
    ContributionRecord,
    Member,
    PayoutResult,
)

logger = logging.getLogger(__name__)


class CircleState(BaseModel):
    """
    State of a rotating savings circle.

    Every operation checks all of its preconditions before touching the state,
    so a failed call leaves the value (and its encoding) exactly as it was.
    """
    model_config = ConfigDict(strict=True)

    circle_id: Bytes32 = Field(description="Unique identifier of the circle")
    members: list[Member] = Field(default_factory=list, description="Members in join order")
    current_round: U32 = Field(default=0, description="Current round number (starts at 0)")
    total_rounds: U32 = Field(default=0, description="Total number of rounds (equals number of members)")
    contribution_per_round: U64 = Field(description="Required contribution per member per round in satoshis")
    current_payout_index: U64 = Field(default=0, description="Index of the member paid out this round")
    current_pool: U64 = Field(default=0, description="Total collected in the current round")
    created_at: U64 = Field(description="Unix timestamp when the circle was created")
    round_started_at: U64 = Field(description="Unix timestamp when the current round started")
    round_duration: U64 = Field(description="Duration of each round in seconds")
    is_complete: bool = Field(default=False, description="Whether all rounds have been paid out")
    prev_state_hash: Bytes32 = Field(default=ZERO_HASH, description="Hash anchoring the previous state")

    @classmethod
    def create(cls, circle_id: bytes, contribution_per_round: int, round_duration: int, created_at: int) -> "CircleState":
        """
        Create an empty circle: no members, round 0, empty pool.
        """
        return cls(
            circle_id=circle_id,
            contribution_per_round=contribution_per_round,
            round_duration=round_duration,
            created_at=created_at,
            round_started_at=created_at,
        )

    # Encoding and hashing

    @classmethod
    def from_bytes(cls, data: bytes) -> "CircleState":
        return cls(**codec.decode_fields(data))

    def to_bytes(self) -> bytes:
        return codec.encode_state(self)

    def state_hash(self) -> bytes:
        """
        SHA-256 of the canonical encoding.
        """
        return hashlib.sha256(self.to_bytes()).digest()

    # Queries

    def find_member(self, pubkey: bytes) -> Member | None:
        return next((m for m in self.members if m.pubkey == pubkey), None)

    def funded_count(self) -> int:
        return sum(1 for m in self.members if m.contribution_for(self.current_round) is not None)

    def is_round_fully_funded(self) -> bool:
        return self.funded_count() == len(self.members)

    # Lifecycle

    def add_member(self, pubkey: bytes, payout_round: int, timestamp: int) -> Member:
        """
        Add a member. Only allowed before the first round has been paid out.

        ``payout_round`` may be at most the current member count, so that once the
        new member is counted it is below ``total_rounds``.
        """
        if self.current_round > 0:
            raise AlreadyStarted(self.current_round)
        if self.find_member(pubkey) is not None:
            raise DuplicateMember(pubkey)
        if payout_round > len(self.members):
            raise InvalidPayoutRound(payout_round, len(self.members))

        member = Member(
            pubkey=pubkey,
            contribution_amount=self.contribution_per_round,
            payout_round=payout_round,
            joined_at=timestamp,
        )
        self.members.append(member)
        self.total_rounds = len(self.members)
        return member

    def record_contribution(self, pubkey: bytes, amount: int, timestamp: int, txid: bytes) -> ContributionRecord:
        """
        Record a member's contribution for the current round.
        """
        if self.is_complete:
            raise CircleComplete()
        member = self.find_member(pubkey)
        if member is None:
            raise MemberNotFound(pubkey)
        if member.contribution_for(self.current_round) is not None:
            raise DuplicateContribution(pubkey, self.current_round)
        if amount != self.contribution_per_round:
            raise AmountMismatch(self.contribution_per_round, amount)
        if self.current_pool + amount > U64_MAX:
            raise PoolOverflow(self.current_pool, amount)

        record = ContributionRecord(round=self.current_round, amount=amount, timestamp=timestamp, txid=txid)
        member.contribution_history.append(record)
        self.current_pool += amount
        return record

    def execute_payout(self, timestamp: int) -> PayoutResult:
        """
        Pay the pool to the member at ``current_payout_index`` and open the next round.

        The recipient is chosen purely by rotating ``current_payout_index``;
        ``payout_round`` is not consulted. ``prev_state_hash`` is set to the hash
        of the state after the recipient is marked paid but before the pool and
        round are reset.
        """
        if self.is_complete:
            raise CircleComplete()
        if not self.is_round_fully_funded():
            raise RoundNotFunded(self.funded_count(), len(self.members))
        if self.current_payout_index >= len(self.members):
            raise InvalidIndex(self.current_payout_index, len(self.members))
        member = self.members[self.current_payout_index]
        if member.has_received_payout:
            raise AlreadyPaid(member.pubkey)

        result = PayoutResult(recipient=member.pubkey, amount=self.current_pool)
        member.has_received_payout = True
        self.prev_state_hash = self.state_hash()

        self.current_pool = 0
        self.current_round += 1
        self.current_payout_index = (self.current_payout_index + 1) % len(self.members)
        self.round_started_at = timestamp
        if self.current_round >= self.total_rounds:
            self.is_complete = True

        logger.debug(f"Paid {result.amount} to {result.recipient.hex()}, now at round {self.current_round}")
        return result

    # Validation

    def validate(self) -> None:
        """
        Check every state invariant, raising on the first violation found.
        """
        member_count = len(self.members)
        if member_count == 0:
            raise StateValidationError(StateViolation.NO_MEMBERS, "Circle has no members")

        if self.total_rounds != member_count:
            raise StateValidationError(
                StateViolation.ROUND_COUNT_MISMATCH,
                f"Total rounds ({self.total_rounds}) must equal number of members ({member_count})",
                total_rounds=self.total_rounds,
                member_count=member_count,
            )

        if self.current_round > self.total_rounds:
            raise StateValidationError(
                StateViolation.ROUND_OUT_OF_RANGE,
                f"Current round ({self.current_round}) exceeds total rounds ({self.total_rounds})",
                current_round=self.current_round,
                total_rounds=self.total_rounds,
            )

        if self.current_payout_index >= member_count:
            raise StateValidationError(
                StateViolation.PAYOUT_INDEX_OUT_OF_RANGE,
                f"Invalid payout index ({self.current_payout_index}), must be < {member_count}",
                current_payout_index=self.current_payout_index,
                member_count=member_count,
            )

        for index, member in enumerate(self.members):
            if member.payout_round >= self.total_rounds:
                raise StateValidationError(
                    StateViolation.PAYOUT_ROUND_OUT_OF_RANGE,
                    "Member has invalid payout round",
                    member_index=index,
                    payout_round=member.payout_round,
                )

            if member.has_received_payout and member.payout_round >= self.current_round:
                raise StateValidationError(
                    StateViolation.PREMATURE_PAYOUT,
                    "Member marked as paid but round hasn't occurred",
                    member_index=index,
                    payout_round=member.payout_round,
                    current_round=self.current_round,
                )

            # Bitset over round numbers, bounded by total_rounds
            seen = 0
            for contribution in member.contribution_history:
                if contribution.round >= self.total_rounds:
                    raise StateValidationError(
                        StateViolation.CONTRIBUTION_ROUND_OUT_OF_RANGE,
                        "Invalid contribution round",
                        member_index=index,
                        round=contribution.round,
                    )
                if contribution.amount != self.contribution_per_round:
                    raise StateValidationError(
                        StateViolation.CONTRIBUTION_AMOUNT_MISMATCH,
                        "Invalid contribution amount",
                        member_index=index,
                        round=contribution.round,
                        expected=self.contribution_per_round,
                        actual=contribution.amount,
                    )
                bit = 1 << contribution.round
                if seen & bit:
                    raise StateValidationError(
                        StateViolation.DUPLICATE_CONTRIBUTION_ROUND,
                        "Duplicate contribution for round",
                        member_index=index,
                        round=contribution.round,
                    )
                seen |= bit

        expected_pool = 0
        for member in self.members:
            contribution = member.contribution_for(self.current_round)
            if contribution is not None:
                expected_pool += contribution.amount
        if self.current_pool != expected_pool:
            raise StateValidationError(
                StateViolation.POOL_MISMATCH,
                f"Current pool mismatch. Expected: {expected_pool}, Got: {self.current_pool}",
                expected=expected_pool,
                actual=self.current_pool,
            )

    def validate_transition(self, next_state: "CircleState") -> None:
        """
        Shallow check that ``next_state`` may follow this state.

        Per-member deltas, payout correctness and hash linkage are left to
        stronger verifiers.
        """
        if self.circle_id != next_state.circle_id:
            raise TransitionError(TransitionViolation.CIRCLE_ID_MISMATCH, "Circle ID mismatch")

        if self.current_round > 0 and len(self.members) != len(next_state.members):
            raise TransitionError(
                TransitionViolation.MEMBER_COUNT_CHANGED,
                "Cannot change member count after start",
                before=len(self.members),
                after=len(next_state.members),
            )

        if next_state.current_round not in (self.current_round, self.current_round + 1):
            raise TransitionError(
                TransitionViolation.INVALID_ROUND_PROGRESSION,
                "Invalid round progression",
                before=self.current_round,
                after=next_state.current_round,
            )

        if next_state.current_round == self.current_round:
            if next_state.current_pool < self.current_pool:
                raise TransitionError(
                    TransitionViolation.POOL_DECREASED,
                    "Pool cannot decrease within round",
                    before=self.current_pool,
                    after=next_state.current_pool,
                )
        elif next_state.current_pool != 0:
            raise TransitionError(
                TransitionViolation.POOL_NOT_RESET,
                "Pool must reset on new round",
                after=next_state.current_pool,
            )
