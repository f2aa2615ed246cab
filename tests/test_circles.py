import pytest
from datetime import datetime
from httpx import AsyncClient
from sqlalchemy import DateTime
from charmcircle.core.config import settings
from charmcircle.models.circle import Circle, CircleTransition
from charmcircle.rosca.state import CircleState
from charmcircle.rosca.types import U64_MAX
from tests.utils import ALICE, BOB, CAROL, CIRCLE_ID, CONTRIBUTION, CREATED_AT, ROUND_DURATION, contribute, create_circle, join_circle, payout

@pytest.mark.asyncio
async def test_create_circle(client: AsyncClient, session):
    data = await create_circle(client, purpose="Family savings", frequency="monthly")

    assert data["id"] == CIRCLE_ID.hex()
    assert data["status"] == "forming"
    assert data["version"] == 1
    assert data["member_count"] == 1
    assert data["members"][0]["pubkey"] == ALICE.hex()
    assert data["next_recipient"] == ALICE.hex()
    assert data["purpose"] == "Family savings"

    state = CircleState.from_bytes(bytes.fromhex(data["state"]))
    assert state.state_hash().hex() == data["state_hash"]
    assert state.round_started_at == CREATED_AT

@pytest.mark.asyncio
async def test_create_circle_twice(client: AsyncClient, session):
    await create_circle(client)

    response = await client.post(f"{settings.API_V1_STR}/circles/", json={
        "circle_id": CIRCLE_ID.hex(),
        "contribution_per_round": CONTRIBUTION,
        "creator_pubkey": BOB.hex(),
    })
    assert response.status_code == 409

@pytest.mark.asyncio
async def test_create_circle_rejects_bad_pubkey(client: AsyncClient, session):
    response = await client.post(f"{settings.API_V1_STR}/circles/", json={
        "circle_id": CIRCLE_ID.hex(),
        "contribution_per_round": CONTRIBUTION,
        "creator_pubkey": "02abcd",
    })

    assert response.status_code == 400
    data = response.json()
    assert data["message"] == "Validation Error"
    assert data["data"][0]["field"] == "creator_pubkey"

@pytest.mark.asyncio
async def test_get_unknown_circle(client: AsyncClient, session):
    response = await client.get(f"{settings.API_V1_STR}/circles/{'00' * 32}")
    assert response.status_code == 404

    response = await client.get(f"{settings.API_V1_STR}/circles/not-hex")
    assert response.status_code == 400

@pytest.mark.asyncio
async def test_join_circle(client: AsyncClient, session):
    await create_circle(client)
    data = await join_circle(client, BOB)

    assert data["member_count"] == 2
    assert data["total_rounds"] == 2
    assert data["version"] == 2
    assert data["members"][1]["payout_round"] == 1

@pytest.mark.asyncio
async def test_join_circle_twice(client: AsyncClient, session):
    await create_circle(client)
    await join_circle(client, BOB)

    response = await client.post(
        f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/members",
        json={"pubkey": BOB.hex()}
    )

    assert response.status_code == 400
    data = response.json()
    assert data["data"]["code"] == "duplicate_member"
    assert data["data"]["pubkey"] == BOB.hex()

@pytest.mark.asyncio
async def test_join_circle_invalid_payout_round(client: AsyncClient, session):
    await create_circle(client)

    response = await client.post(
        f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/members",
        json={"pubkey": BOB.hex(), "payout_round": 2}
    )

    assert response.status_code == 400
    assert response.json()["data"]["code"] == "invalid_payout_round"

@pytest.mark.asyncio
async def test_join_circle_member_limit(client: AsyncClient, session, monkeypatch):
    monkeypatch.setattr(settings, "MAX_CIRCLE_MEMBERS", 2)
    await create_circle(client)
    await join_circle(client, BOB)

    response = await client.post(
        f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/members",
        json={"pubkey": CAROL.hex()}
    )
    assert response.status_code == 400
    assert "maximum" in response.json()["message"]

@pytest.mark.asyncio
async def test_stale_state_hash_is_conflict(client: AsyncClient, session):
    created = await create_circle(client)
    await join_circle(client, BOB, expected_state_hash=created["state_hash"])

    # The hash seen at creation is no longer current
    response = await contribute(client, ALICE, 0, expected_state_hash=created["state_hash"])
    assert response.status_code == 409

    detail = (await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}")).json()["data"]
    assert detail["current_pool"] == 0
    assert detail["version"] == 2

@pytest.mark.asyncio
async def test_two_member_rotation(client: AsyncClient, session):
    await create_circle(client)
    await join_circle(client, BOB)

    first = await contribute(client, ALICE, 0)
    assert first.status_code == 200
    assert first.json()["data"]["round_fully_funded"] is False

    second = await contribute(client, BOB, 0)
    receipt = second.json()["data"]
    assert receipt["current_pool"] == 200_000
    assert receipt["round_fully_funded"] is True

    response = await payout(client, CREATED_AT + ROUND_DURATION)
    assert response.status_code == 200
    paid = response.json()["data"]
    assert paid["recipient"] == ALICE.hex()
    assert paid["amount"] == 200_000
    assert paid["paid_round"] == 0
    assert paid["current_round"] == 1
    assert paid["is_complete"] is False

    response = await payout(client, CREATED_AT + ROUND_DURATION + 1)
    assert response.status_code == 400
    assert response.json()["data"] == {"code": "round_not_funded", "funded": 0, "required": 2}

    detail = (await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}")).json()["data"]
    assert detail["status"] == "active"
    assert detail["current_payout_index"] == 1
    assert detail["next_recipient"] == BOB.hex()

    await contribute(client, ALICE, 1)
    await contribute(client, BOB, 1)
    response = await payout(client, CREATED_AT + 2 * ROUND_DURATION)
    paid = response.json()["data"]
    assert paid["recipient"] == BOB.hex()
    assert paid["is_complete"] is True

    response = await contribute(client, ALICE, 2)
    assert response.status_code == 400
    assert response.json()["data"]["code"] == "circle_complete"

    report = (await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/validate")).json()["data"]
    assert report["valid"] is True

@pytest.mark.asyncio
async def test_contribution_errors(client: AsyncClient, session):
    await create_circle(client)

    response = await contribute(client, ALICE, 0, amount=CONTRIBUTION + 1)
    assert response.status_code == 400
    assert response.json()["data"] == {"code": "amount_mismatch", "expected": CONTRIBUTION, "actual": CONTRIBUTION + 1}

    response = await contribute(client, BOB, 0)
    assert response.status_code == 404
    assert response.json()["data"]["code"] == "member_not_found"

    assert (await contribute(client, ALICE, 0)).status_code == 200
    response = await contribute(client, ALICE, 0)
    assert response.status_code == 400
    assert response.json()["data"]["code"] == "duplicate_contribution"

@pytest.mark.asyncio
async def test_get_circle_state(client: AsyncClient, session):
    await create_circle(client)
    await join_circle(client, BOB)
    await contribute(client, ALICE, 0)

    response = await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/state")
    assert response.status_code == 200
    state = response.json()["data"]
    assert state["circle_id"] == CIRCLE_ID.hex()
    assert state["current_pool"] == CONTRIBUTION
    assert state["members"][0]["contribution_history"][0]["round"] == 0
    assert state["prev_state_hash"] == "00" * 32

@pytest.mark.asyncio
async def test_circle_history(client: AsyncClient, session):
    created = await create_circle(client)
    await join_circle(client, BOB)
    await contribute(client, ALICE, 0)
    await contribute(client, BOB, 0)
    await payout(client, CREATED_AT + ROUND_DURATION)

    response = await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/history")
    assert response.status_code == 200
    history = response.json()["data"]

    assert [h["operation"] for h in history] == [
        "create", "add_member", "record_contribution", "record_contribution", "execute_payout"
    ]
    assert [h["sequence"] for h in history] == [1, 2, 3, 4, 5]
    assert history[0]["prev_state_hash"] is None
    assert history[0]["state_hash"] == created["state_hash"]
    # Each row links to the one before it
    for before, after in zip(history, history[1:]):
        assert after["prev_state_hash"] == before["state_hash"]

    assert history[2]["amount"] == CONTRIBUTION
    assert history[4]["actor_pubkey"] == ALICE.hex()
    assert history[4]["amount"] == 2 * CONTRIBUTION

@pytest.mark.asyncio
async def test_list_circles(client: AsyncClient, session):
    await create_circle(client)
    other = bytes([0xEE]) * 32
    await create_circle(client, circle_id=other, creator=BOB)

    response = await client.get(f"{settings.API_V1_STR}/circles/")
    assert response.status_code == 200
    ids = {c["id"] for c in response.json()["data"]}
    assert ids == {CIRCLE_ID.hex(), other.hex()}

    # Single-member circle completes after one payout
    await contribute(client, BOB, 0, circle_id=other)
    await payout(client, CREATED_AT + ROUND_DURATION, circle_id=other)

    response = await client.get(f"{settings.API_V1_STR}/circles/?is_complete=true")
    assert [c["id"] for c in response.json()["data"]] == [other.hex()]

    response = await client.get(f"{settings.API_V1_STR}/circles/?page=1&limit=1")
    assert len(response.json()["data"]) == 1

@pytest.mark.asyncio
async def test_circle_timestamps_are_stored(client: AsyncClient, session):
    created = await create_circle(client)
    joined = await join_circle(client, BOB)

    assert joined["created_at"] == created["created_at"]
    assert datetime.fromisoformat(joined["updated_at"]) >= datetime.fromisoformat(created["updated_at"])
    # Naive UTC values go into plain timestamp columns
    for column in (Circle.__table__.c.created_at, Circle.__table__.c.updated_at, CircleTransition.__table__.c.created_at):
        assert isinstance(column.type, DateTime)
        assert column.type.timezone is False

@pytest.mark.asyncio
async def test_full_width_amounts_are_journalled(client: AsyncClient, session):
    amount = 2**63
    await create_circle(client, contribution_per_round=amount)

    response = await contribute(client, ALICE, 0, amount=amount, timestamp=U64_MAX)
    assert response.status_code == 200
    assert response.json()["data"]["current_pool"] == amount

    response = await payout(client, U64_MAX)
    assert response.status_code == 200
    assert response.json()["data"]["amount"] == amount
    assert response.json()["data"]["is_complete"] is True

    history = (await client.get(f"{settings.API_V1_STR}/circles/{CIRCLE_ID.hex()}/history")).json()["data"]
    assert [h["amount"] for h in history] == [None, amount, amount]
    assert history[1]["timestamp"] == U64_MAX
    assert history[2]["timestamp"] == U64_MAX
