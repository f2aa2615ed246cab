"""
Decode a hex-encoded circle state, check it and print a summary.

Exits with 1 if the state does not decode, does not re-encode to the same
bytes, or breaks a circle invariant.

Usage: inspect_state.py <state_hex>
"""
import sys
from typing import NoReturn

from charmcircle.rosca.errors import CircleError, StateValidationError
from charmcircle.rosca.state import CircleState
from charmcircle.utils.hexcodec import parse_hex

def fail(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    sys.exit(1)

def main(args: list[str]) -> None:
    if len(args) != 1:
        fail("Usage: inspect_state.py <state_hex>")

    try:
        data = parse_hex(args[0], field="state")
        state = CircleState.from_bytes(data)
    except (ValueError, CircleError) as e:
        fail(f"Failed to decode state: {e}")

    print(f"Decoded {len(data)} bytes")
    print(f"  circle_id:              {state.circle_id.hex()}")
    print(f"  members:                {len(state.members)}")
    for index, member in enumerate(state.members):
        paid = "paid" if member.has_received_payout else "unpaid"
        print(f"    [{index}] {member.pubkey.hex()} payout_round={member.payout_round} "
              f"contributions={len(member.contribution_history)} {paid}")
    print(f"  current_round:          {state.current_round}/{state.total_rounds}")
    print(f"  contribution_per_round: {state.contribution_per_round}")
    print(f"  current_payout_index:   {state.current_payout_index}")
    print(f"  current_pool:           {state.current_pool}")
    print(f"  round_started_at:       {state.round_started_at}")
    print(f"  is_complete:            {state.is_complete}")
    print(f"  prev_state_hash:        {state.prev_state_hash.hex()}")
    print(f"  state_hash:             {state.state_hash().hex()}")

    if state.to_bytes() != data:
        fail("Round-trip mismatch: re-encoded state differs from input")
    print("Round-trip: OK")

    try:
        state.validate()
    except StateValidationError as e:
        fail(f"Invalid state ({e.violation}): {e}")
    print("Validation: OK")

if __name__ == "__main__":
    main(sys.argv[1:])
