from typing import Annotated, NamedTuple
from pydantic import BaseModel, ConfigDict, Field

U32_MAX = 2**32 - 1
U64_MAX = 2**64 - 1

PUBKEY_LENGTH = 33
HASH_LENGTH = 32

U32 = Annotated[int, Field(ge=0, le=U32_MAX)]
U64 = Annotated[int, Field(ge=0, le=U64_MAX)]
Bytes32 = Annotated[bytes, Field(min_length=HASH_LENGTH, max_length=HASH_LENGTH)]
PubKey = Annotated[bytes, Field(min_length=PUBKEY_LENGTH, max_length=PUBKEY_LENGTH)]

ZERO_HASH = bytes(HASH_LENGTH)


class ContributionRecord(BaseModel):
    """
    A single member's contribution for one round.
    """
    model_config = ConfigDict(strict=True)

    round: U32 = Field(description="Round the contribution counts towards")
    amount: U64 = Field(description="Contributed amount in satoshis")
    timestamp: U64 = Field(description="Unix timestamp of the contribution")
    txid: Bytes32 = Field(description="Transaction that carried the contribution")


class Member(BaseModel):
    """
    Member of a circle and their participation history.
    """
    model_config = ConfigDict(strict=True)

    pubkey: PubKey = Field(description="Compressed public key identifying the member")
    contribution_amount: U64 = Field(description="Contribution owed per round in satoshis")
    contribution_history: list[ContributionRecord] = Field(default_factory=list, description="Contributions in the order they were recorded")
    has_received_payout: bool = Field(default=False, description="Whether the member has been paid the pool")
    payout_round: U32 = Field(description="Round the member asked to be paid in (advisory)")
    joined_at: U64 = Field(description="Unix timestamp when the member joined")

    def contribution_for(self, round_number: int) -> ContributionRecord | None:
        return next((c for c in self.contribution_history if c.round == round_number), None)


class PayoutResult(NamedTuple):
    recipient: bytes
    amount: int
