"""
Seed the database with a few demo circles at different stages.

Circle ids and member keys are derived from fixed labels, so re-running the
script against an empty database gives the same states and hashes.
"""
import asyncio
import hashlib
import logging

from faker import Faker
from sqlalchemy import delete

from charmcircle.db.session import AsyncSessionLocal, init_db
from charmcircle.models.circle import Circle, CircleTransition
from charmcircle.models.enums import CircleFrequency, CircleOperation
from charmcircle.services.circle_service import CircleService

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CONTRIBUTION = 100_000
ROUND_DURATION = 2_592_000
START = 1_700_000_000

fake = Faker()
Faker.seed(2024)

def derive(label: str) -> bytes:
    return hashlib.sha256(label.encode()).digest()

def demo_pubkey(label: str) -> bytes:
    # Compressed-key shape only; these keys have no private counterpart
    return b"\x02" + derive(f"pubkey:{label}")

def demo_txid(label: str, round_number: int) -> bytes:
    return derive(f"txid:{label}:{round_number}")

async def seed_circle(session, name: str, member_count: int, rounds_paid: int, contributions: int):
    circle_id = derive(f"circle:{name}")
    labels = [f"{name}-member-{i}" for i in range(member_count)]
    timestamp = START

    circle = await CircleService.create(
        session,
        circle_id=circle_id,
        contribution_per_round=CONTRIBUTION,
        round_duration=ROUND_DURATION,
        created_at=timestamp,
        creator_pubkey=demo_pubkey(labels[0]),
        purpose=fake.sentence(nb_words=4).rstrip("."),
        frequency=CircleFrequency.MONTHLY,
    )

    for index, label in enumerate(labels[1:], start=1):
        pubkey = demo_pubkey(label)
        timestamp += 60
        await CircleService.apply(
            session, circle, CircleOperation.ADD_MEMBER,
            lambda s, p=pubkey, r=index, t=timestamp: s.add_member(p, r, t),
            timestamp=timestamp, actor_pubkey=pubkey,
        )

    for round_number in range(rounds_paid + 1):
        if round_number == member_count:
            break
        funded = labels if round_number < rounds_paid else labels[:contributions]
        for label in funded:
            pubkey, txid = demo_pubkey(label), demo_txid(label, round_number)
            timestamp += 3600
            await CircleService.apply(
                session, circle, CircleOperation.RECORD_CONTRIBUTION,
                lambda s, p=pubkey, x=txid, t=timestamp: s.record_contribution(p, CONTRIBUTION, t, x),
                timestamp=timestamp, actor_pubkey=pubkey, amount=CONTRIBUTION, txid=txid,
            )
        if round_number < rounds_paid:
            timestamp = START + (round_number + 1) * ROUND_DURATION
            await CircleService.apply(
                session, circle, CircleOperation.EXECUTE_PAYOUT,
                lambda s, t=timestamp: s.execute_payout(t),
                timestamp=timestamp,
            )

    logger.info(f"Seeded circle '{name}' ({circle.id}) at version {circle.version}")

async def seed_data():
    await init_db()
    async with AsyncSessionLocal() as session:
        logger.info("Clearing circles...")
        await session.execute(delete(CircleTransition))
        await session.execute(delete(Circle))
        await session.commit()

        # Forming: members still joining
        await seed_circle(session, "forming", member_count=3, rounds_paid=0, contributions=0)
        # Active: one payout done, second round half funded
        await seed_circle(session, "active", member_count=4, rounds_paid=1, contributions=2)
        # Completed: every member paid
        await seed_circle(session, "completed", member_count=2, rounds_paid=2, contributions=0)

    logger.info("Seeding complete.")

if __name__ == "__main__":
    asyncio.run(seed_data())
