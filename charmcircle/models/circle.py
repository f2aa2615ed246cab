import uuid
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field
from sqlalchemy import BigInteger, DateTime, LargeBinary, String, UniqueConstraint
from sqlalchemy.types import TypeDecorator
from charmcircle.models.enums import CircleFrequency, CircleOperation

def get_utc_now() -> datetime:
    """Returns a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class UInt64(TypeDecorator):
    """
    Unsigned 64-bit integer stored as decimal text.

    SQL integer columns are signed, so values from 2**63 up would not fit.
    """
    impl = String(20)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(int(value))

    def process_result_value(self, value, dialect):
        return None if value is None else int(value)

class Circle(SQLModel, table=True):
    """
    Stored circle: the canonical encoding of its latest state plus a few
    columns copied out of it for listing and filtering.
    """
    id: str = Field(primary_key=True, max_length=64, description="Hex-encoded 32-byte circle identifier")
    state: bytes = Field(sa_type=LargeBinary, description="Canonical CBOR encoding of the current state")
    state_hash: str = Field(index=True, max_length=64, description="Hex-encoded SHA-256 of the current state")
    version: int = Field(default=1, description="Incremented on every applied operation; guards concurrent writers")
    member_count: int = Field(default=0, description="Number of members in the current state")
    current_round: int = Field(default=0, sa_type=BigInteger, description="Current round in the current state")
    is_complete: bool = Field(default=False, index=True, description="Whether every round has been paid out")
    purpose: str | None = Field(default=None, description="Free-text goal of the circle")
    frequency: CircleFrequency | None = Field(default=None, description="Display label for the round cadence")
    # Naive UTC, see get_utc_now
    created_at: datetime = Field(default_factory=get_utc_now, sa_type=DateTime(timezone=False), description="Timestamp when the circle was stored")
    updated_at: datetime = Field(default_factory=get_utc_now, sa_type=DateTime(timezone=False), description="Timestamp of the last applied operation")

class CircleTransition(SQLModel, table=True):
    """
    Journal of operations applied to a circle, one row per stored state.
    """
    __table_args__ = (UniqueConstraint("circle_id", "sequence"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True, description="Unique identifier for the transition")
    circle_id: str = Field(foreign_key="circle.id", index=True, description="ID of the circle")
    sequence: int = Field(description="Circle version produced by this transition")
    operation: CircleOperation = Field(description="Operation that produced the state")
    prev_state_hash: str | None = Field(default=None, description="Hash of the state the operation was applied to")
    state_hash: str = Field(description="Hash of the resulting state")
    actor_pubkey: str | None = Field(default=None, description="Member the operation concerned (joiner, contributor or payout recipient)")
    amount: int | None = Field(default=None, sa_type=UInt64, description="Contribution or payout amount in satoshis")
    txid: str | None = Field(default=None, description="Contribution transaction ID")
    timestamp: int = Field(sa_type=UInt64, description="Unix timestamp passed to the operation")
    created_at: datetime = Field(default_factory=get_utc_now, sa_type=DateTime(timezone=False))
