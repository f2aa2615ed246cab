"""
Walk a two-member circle through both rounds against a running server.
"""
import asyncio
import hashlib
import time
import httpx

BASE_URL = "http://localhost:8000/api/v1"

ALICE = "02" + "aa" * 32
BOB = "03" + "bb" * 32
CONTRIBUTION = 100000

def check(response: httpx.Response, step: str) -> dict:
    if response.status_code != 200:
        print(f"{step} failed: Status {response.status_code} - {response.text}")
        raise SystemExit(1)
    return response.json()["data"]

async def main():
    circle_id = hashlib.sha256(f"verify-api-{time.time_ns()}".encode()).hexdigest()

    async with httpx.AsyncClient() as client:
        # 1. Create
        print(f"Creating circle: {circle_id}")
        circle = check(await client.post(f"{BASE_URL}/circles/", json={
            "circle_id": circle_id,
            "contribution_per_round": CONTRIBUTION,
            "creator_pubkey": ALICE,
            "purpose": "Verification run",
        }), "Create circle")
        print(f"Circle created: state {circle['state_hash']}")

        # 2. Join
        circle = check(await client.post(f"{BASE_URL}/circles/{circle_id}/members", json={
            "pubkey": BOB,
            "expected_state_hash": circle["state_hash"],
        }), "Join circle")
        print(f"Bob joined: {circle['member_count']} members")

        # 3. Two full rounds
        for round_number in range(2):
            print(f"\nRound {round_number}...")
            for pubkey in (ALICE, BOB):
                receipt = check(await client.post(f"{BASE_URL}/circles/{circle_id}/contributions", json={
                    "pubkey": pubkey,
                    "amount": CONTRIBUTION,
                    "txid": hashlib.sha256(f"{circle_id}:{pubkey}:{round_number}".encode()).hexdigest(),
                }), "Contribute")
                print(f"Contribution recorded: pool {receipt['current_pool']}, funded {receipt['round_fully_funded']}")

            payout = check(await client.post(f"{BASE_URL}/circles/{circle_id}/payout", json={}), "Payout")
            print(f"Paid {payout['amount']} to {payout['recipient']}")

        # 4. Final checks
        report = check(await client.get(f"{BASE_URL}/circles/{circle_id}/validate"), "Validate")
        print(f"\nValidation: {'OK' if report['valid'] else report['message']}")

        history = check(await client.get(f"{BASE_URL}/circles/{circle_id}/history"), "History")
        print(f"History: {len(history)} transitions")
        for entry in history:
            print(f"  {entry['sequence']:>2} {entry['operation']:<20} {entry['state_hash']}")

        response = await client.post(f"{BASE_URL}/circles/{circle_id}/contributions", json={
            "pubkey": ALICE,
            "amount": CONTRIBUTION,
            "txid": "00" * 32,
        })
        print(f"Contribution after completion: Status {response.status_code} - {response.json()['message']}")

if __name__ == "__main__":
    asyncio.run(main())
