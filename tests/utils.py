import hashlib
from httpx import AsyncClient
from charmcircle.core.config import settings
from charmcircle.rosca import boundary
from charmcircle.rosca.state import CircleState

CIRCLE_ID = bytes(range(32))
ALICE = bytes([0x02]) + bytes([0xAA]) * 32
BOB = bytes([0x03]) + bytes([0xBB]) * 32
CAROL = bytes([0x02]) + bytes([0xCC]) * 32
CONTRIBUTION = 100_000
ROUND_DURATION = 2_592_000
CREATED_AT = 1_700_000_000

def txid(label: str) -> bytes:
    return hashlib.sha256(label.encode()).digest()

def two_member_state() -> CircleState:
    """
    Circle created by Alice with Bob joined for round 1, nothing contributed yet.
    """
    state = boundary.create(CIRCLE_ID, CONTRIBUTION, ROUND_DURATION, CREATED_AT, ALICE)
    state.add_member(BOB, 1, CREATED_AT + 10)
    return state

def fund_round(state: CircleState, timestamp: int) -> None:
    for member in state.members:
        state.record_contribution(member.pubkey, state.contribution_per_round, timestamp, txid(f"{member.pubkey.hex()}:{state.current_round}"))

async def create_circle(client: AsyncClient, circle_id: bytes = CIRCLE_ID, creator: bytes = ALICE, **extra) -> dict:
    payload = {
        "circle_id": circle_id.hex(),
        "contribution_per_round": CONTRIBUTION,
        "round_duration": ROUND_DURATION,
        "created_at": CREATED_AT,
        "creator_pubkey": creator.hex(),
    }
    payload.update(extra)
    resp = await client.post(f"{settings.API_V1_STR}/circles/", json=payload)
    assert resp.status_code == 200
    return resp.json()["data"]

async def join_circle(client: AsyncClient, pubkey: bytes, circle_id: bytes = CIRCLE_ID, **extra) -> dict:
    payload = {"pubkey": pubkey.hex(), "timestamp": CREATED_AT + 10}
    payload.update(extra)
    resp = await client.post(f"{settings.API_V1_STR}/circles/{circle_id.hex()}/members", json=payload)
    assert resp.status_code == 200
    return resp.json()["data"]

async def contribute(client: AsyncClient, pubkey: bytes, round_number: int, circle_id: bytes = CIRCLE_ID, **extra):
    payload = {
        "pubkey": pubkey.hex(),
        "amount": CONTRIBUTION,
        "txid": txid(f"{pubkey.hex()}:{round_number}").hex(),
        "timestamp": CREATED_AT + 100 + round_number,
    }
    payload.update(extra)
    return await client.post(f"{settings.API_V1_STR}/circles/{circle_id.hex()}/contributions", json=payload)

async def payout(client: AsyncClient, timestamp: int, circle_id: bytes = CIRCLE_ID, **extra):
    payload = {"timestamp": timestamp}
    payload.update(extra)
    return await client.post(f"{settings.API_V1_STR}/circles/{circle_id.hex()}/payout", json=payload)
