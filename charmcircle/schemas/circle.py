from datetime import datetime
from pydantic import field_validator
from sqlmodel import SQLModel, Field

from charmcircle.models.enums import CircleFrequency, CircleOperation, CircleStatus
from charmcircle.rosca.state import CircleState
from charmcircle.rosca.types import U32_MAX, U64_MAX, HASH_LENGTH, PUBKEY_LENGTH
from charmcircle.utils.hexcodec import parse_hex

EXAMPLE_CIRCLE_ID = "01" * 32
EXAMPLE_PUBKEY = "023b709e70b6b30177f2e5fd05e43697f0870a4e942530ef19502f8cee07a63281"
EXAMPLE_TXID = "ab" * 32

def _normalize(value: str, length: int, field: str) -> str:
    return parse_hex(value, length, field).hex()

def status_of(state: CircleState) -> CircleStatus:
    if state.is_complete:
        return CircleStatus.COMPLETED
    if state.current_round > 0:
        return CircleStatus.ACTIVE
    return CircleStatus.FORMING

# Request Schemas
class CircleCreate(SQLModel):
    """
    Schema for creating a new circle. The creator becomes the first member.
    """
    circle_id: str = Field(description="Hex-encoded 32-byte circle identifier")
    contribution_per_round: int = Field(gt=0, le=U64_MAX, description="Contribution per member per round in satoshis")
    round_duration: int | None = Field(default=None, ge=0, le=U64_MAX, description="Round length in seconds")
    created_at: int | None = Field(default=None, ge=0, le=U64_MAX, description="Unix timestamp; defaults to now")
    creator_pubkey: str = Field(description="Hex-encoded 33-byte compressed public key of the creator")
    purpose: str | None = Field(default=None, max_length=200)
    frequency: CircleFrequency | None = None

    @field_validator("circle_id")
    @classmethod
    def check_circle_id(cls, v: str) -> str:
        return _normalize(v, HASH_LENGTH, "circle_id")

    @field_validator("creator_pubkey")
    @classmethod
    def check_creator_pubkey(cls, v: str) -> str:
        return _normalize(v, PUBKEY_LENGTH, "creator_pubkey")

    model_config = {
        "json_schema_extra": {
            "example": {
                "circle_id": EXAMPLE_CIRCLE_ID,
                "contribution_per_round": 100000,
                "round_duration": 2592000,
                "created_at": 1700000000,
                "creator_pubkey": EXAMPLE_PUBKEY,
                "purpose": "Family savings",
                "frequency": "monthly"
            }
        }
    }

class StateGuard(SQLModel):
    """
    Optional compare-and-validate guard shared by mutating requests.
    """
    expected_state_hash: str | None = Field(default=None, description="Reject the request unless the stored state still has this hash")

    @field_validator("expected_state_hash")
    @classmethod
    def check_expected_state_hash(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return _normalize(v, HASH_LENGTH, "expected_state_hash")

class MemberJoin(StateGuard):
    """
    Schema for adding a member to a circle.
    """
    pubkey: str = Field(description="Hex-encoded 33-byte compressed public key")
    payout_round: int | None = Field(default=None, ge=0, le=U32_MAX, description="Requested payout round; defaults to the next free slot")
    timestamp: int | None = Field(default=None, ge=0, le=U64_MAX, description="Unix timestamp; defaults to now")

    @field_validator("pubkey")
    @classmethod
    def check_pubkey(cls, v: str) -> str:
        return _normalize(v, PUBKEY_LENGTH, "pubkey")

class ContributionCreate(StateGuard):
    """
    Schema for recording a contribution in the current round.
    """
    pubkey: str = Field(description="Hex-encoded public key of the contributing member")
    amount: int = Field(ge=0, le=U64_MAX, description="Contributed amount in satoshis")
    txid: str = Field(description="Hex-encoded 32-byte ID of the funding transaction")
    timestamp: int | None = Field(default=None, ge=0, le=U64_MAX, description="Unix timestamp; defaults to now")

    @field_validator("pubkey")
    @classmethod
    def check_pubkey(cls, v: str) -> str:
        return _normalize(v, PUBKEY_LENGTH, "pubkey")

    @field_validator("txid")
    @classmethod
    def check_txid(cls, v: str) -> str:
        return _normalize(v, HASH_LENGTH, "txid")

    model_config = {
        "json_schema_extra": {
            "example": {
                "pubkey": EXAMPLE_PUBKEY,
                "amount": 100000,
                "txid": EXAMPLE_TXID,
                "timestamp": 1700000100
            }
        }
    }

class PayoutRequest(StateGuard):
    """
    Schema for executing the payout of a fully funded round.
    """
    timestamp: int | None = Field(default=None, ge=0, le=U64_MAX, description="Unix timestamp; becomes the next round's start")

# Read Schemas
class ContributionRecordRead(SQLModel):
    round: int
    amount: int
    timestamp: int
    txid: str

class MemberRead(SQLModel):
    """
    Schema for reading a member of a circle.
    """
    pubkey: str
    contribution_amount: int
    contribution_history: list[ContributionRecordRead]
    has_received_payout: bool
    payout_round: int
    joined_at: int

    @classmethod
    def from_member(cls, member) -> "MemberRead":
        return cls(
            pubkey=member.pubkey.hex(),
            contribution_amount=member.contribution_amount,
            contribution_history=[
                ContributionRecordRead(round=c.round, amount=c.amount, timestamp=c.timestamp, txid=c.txid.hex())
                for c in member.contribution_history
            ],
            has_received_payout=member.has_received_payout,
            payout_round=member.payout_round,
            joined_at=member.joined_at,
        )

class CircleStateRead(SQLModel):
    """
    Decoded circle state with byte fields in hex.
    """
    circle_id: str
    members: list[MemberRead]
    current_round: int
    total_rounds: int
    contribution_per_round: int
    current_payout_index: int
    current_pool: int
    created_at: int
    round_started_at: int
    round_duration: int
    is_complete: bool
    prev_state_hash: str

    @classmethod
    def from_state(cls, state: CircleState) -> "CircleStateRead":
        return cls(
            circle_id=state.circle_id.hex(),
            members=[MemberRead.from_member(m) for m in state.members],
            current_round=state.current_round,
            total_rounds=state.total_rounds,
            contribution_per_round=state.contribution_per_round,
            current_payout_index=state.current_payout_index,
            current_pool=state.current_pool,
            created_at=state.created_at,
            round_started_at=state.round_started_at,
            round_duration=state.round_duration,
            is_complete=state.is_complete,
            prev_state_hash=state.prev_state_hash.hex(),
        )

class MemberSummary(SQLModel):
    pubkey: str
    payout_round: int
    has_received_payout: bool
    contributed_this_round: bool

class CircleRead(SQLModel):
    """
    Schema for reading circle details.
    """
    id: str
    status: CircleStatus
    version: int
    state_hash: str
    member_count: int
    total_rounds: int
    current_round: int
    contribution_per_round: int
    current_pool: int
    current_payout_index: int
    next_recipient: str | None
    round_fully_funded: bool
    round_started_at: int
    round_duration: int
    is_complete: bool
    purpose: str | None = None
    frequency: CircleFrequency | None = None
    members: list[MemberSummary]
    created_at: datetime
    updated_at: datetime

class CircleDetail(CircleRead):
    """
    Circle details including the hex-encoded canonical state.
    """
    state: str

class ContributionReceipt(SQLModel):
    round: int
    current_pool: int
    round_fully_funded: bool
    state_hash: str
    version: int

class PayoutReceipt(SQLModel):
    recipient: str
    amount: int
    paid_round: int
    current_round: int
    is_complete: bool
    state_hash: str
    version: int

class ValidationReport(SQLModel):
    valid: bool
    state_hash: str
    violation: str | None = None
    message: str | None = None
    details: dict = {}

class CircleTransitionRead(SQLModel):
    sequence: int
    operation: CircleOperation
    prev_state_hash: str | None
    state_hash: str
    actor_pubkey: str | None
    amount: int | None
    txid: str | None
    timestamp: int
    created_at: datetime
