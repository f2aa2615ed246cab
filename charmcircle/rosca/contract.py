"""
Ledger-level entry point for the circle covenant.

The check only confirms that a transaction attaches a non-empty encoded state
to this app in at least one output. It does not decode the state or check the
transition.
"""
import logging

from pydantic import BaseModel, ConfigDict, Field

from charmcircle.rosca.errors import ContractViolation
from charmcircle.rosca.types import Bytes32

logger = logging.getLogger(__name__)


class App(BaseModel):
    """
    Identity of a contract on the ledger.
    """
    model_config = ConfigDict(frozen=True)

    tag: str = Field(default="n", description="App kind tag")
    identity: Bytes32 = Field(description="Identity of the contract instance")
    vk: Bytes32 = Field(description="Verification key of the contract code")


class Transaction(BaseModel):
    """
    Transaction outputs as seen by the covenant: one payload map per output.
    """
    ins: list[str] = Field(default_factory=list, description="Spent outpoints (txid:index)")
    outs: list[dict[App, bytes]] = Field(default_factory=list, description="App payloads attached to each output")


def check_transaction(app: App, tx: Transaction) -> bytes:
    """
    Return the first payload attached to ``app``, raising if there is none.
    """
    payload = next((out[app] for out in tx.outs if app in out), None)
    if payload is None:
        raise ContractViolation("No charm data found for app in outputs")
    if not payload:
        raise ContractViolation("Charm data cannot be empty")
    return payload


def app_contract(app: App, tx: Transaction, x: bytes = b"", w: bytes = b"") -> bool:
    try:
        check_transaction(app, tx)
    except ContractViolation as e:
        logger.warning(f"Contract validation failed: {e}")
        return False
    return True
