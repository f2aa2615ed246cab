from pydantic import field_validator
from sqlmodel import SQLModel, Field

from charmcircle.rosca.types import U32_MAX, U64_MAX, HASH_LENGTH, PUBKEY_LENGTH
from charmcircle.schemas.circle import EXAMPLE_CIRCLE_ID, EXAMPLE_PUBKEY, EXAMPLE_TXID, CircleStateRead
from charmcircle.utils.hexcodec import parse_hex

def _normalize(value: str, length: int | None, field: str) -> str:
    return parse_hex(value, length, field).hex()

# Request Schemas
class StateSerialize(SQLModel):
    """
    Parameters of a new circle whose creator is the first member.
    """
    circle_id: str = Field(description="Hex-encoded 32-byte circle identifier")
    contribution_per_round: int = Field(ge=0, le=U64_MAX)
    round_duration: int = Field(ge=0, le=U64_MAX)
    created_at: int = Field(ge=0, le=U64_MAX)
    creator_pubkey: str = Field(description="Hex-encoded 33-byte compressed public key")

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
                "creator_pubkey": EXAMPLE_PUBKEY
            }
        }
    }

class StateInput(SQLModel):
    state: str = Field(description="Hex-encoded canonical circle state")

    @field_validator("state")
    @classmethod
    def check_state(cls, v: str) -> str:
        return _normalize(v, None, "state")

class StateAddMember(StateInput):
    pubkey: str = Field(description="Hex-encoded 33-byte compressed public key")
    payout_round: int = Field(ge=0, le=U32_MAX)
    timestamp: int = Field(ge=0, le=U64_MAX)

    @field_validator("pubkey")
    @classmethod
    def check_pubkey(cls, v: str) -> str:
        return _normalize(v, PUBKEY_LENGTH, "pubkey")

class StateRecordContribution(StateInput):
    pubkey: str = Field(description="Hex-encoded 33-byte compressed public key")
    amount: int = Field(ge=0, le=U64_MAX)
    timestamp: int = Field(ge=0, le=U64_MAX)
    txid: str = Field(description="Hex-encoded 32-byte transaction ID")

    @field_validator("pubkey")
    @classmethod
    def check_pubkey(cls, v: str) -> str:
        return _normalize(v, PUBKEY_LENGTH, "pubkey")

    @field_validator("txid")
    @classmethod
    def check_txid(cls, v: str) -> str:
        return _normalize(v, HASH_LENGTH, "txid")

class StateExecutePayout(StateInput):
    timestamp: int = Field(ge=0, le=U64_MAX)

class StateTransition(SQLModel):
    """
    Two consecutive states to check against the transition rule.
    """
    prev_state: str = Field(description="Hex-encoded predecessor state")
    next_state: str = Field(description="Hex-encoded successor state")

    @field_validator("prev_state", "next_state")
    @classmethod
    def check_state(cls, v: str) -> str:
        return _normalize(v, None, "state")

# Read Schemas
class EncodedState(SQLModel):
    state: str
    state_hash: str

class PayoutOutcome(EncodedState):
    recipient: str
    amount: int

class DecodedState(EncodedState):
    decoded: CircleStateRead

class TransitionReport(SQLModel):
    valid: bool
    violation: str | None = None
    message: str | None = None
    details: dict = {}
