"""
Print the hex-encoded initial state of a new circle.

Usage: serialize_state.py <circle_id_hex> <contribution_per_round> <round_duration> <created_at> <creator_pubkey_hex>
"""
import sys
from typing import NoReturn

from charmcircle.rosca import boundary
from charmcircle.rosca.errors import CircleError
from charmcircle.utils.hexcodec import parse_circle_id, parse_pubkey

USAGE = "Usage: serialize_state.py <circle_id_hex> <contribution_per_round> <round_duration> <created_at> <creator_pubkey_hex>"
EXAMPLE = "Example: serialize_state.py $(openssl rand -hex 32) 100000 2592000 $(date +%s) 023b709e70b6b30177f2e5fd05e43697f0870a4e942530ef19502f8cee07a63281"

def fail(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    sys.exit(1)

def main(args: list[str]) -> None:
    if len(args) != 5:
        fail(f"{USAGE}\n{EXAMPLE}")

    try:
        circle_id = parse_circle_id(args[0])
        contribution_per_round = int(args[1])
        round_duration = int(args[2])
        created_at = int(args[3])
        creator_pubkey = parse_pubkey(args[4])
        state = boundary.create(circle_id, contribution_per_round, round_duration, created_at, creator_pubkey)
        encoded = state.to_bytes()
    except (ValueError, CircleError) as e:
        fail(f"Error: {e}")

    print(encoded.hex())

if __name__ == "__main__":
    main(sys.argv[1:])
