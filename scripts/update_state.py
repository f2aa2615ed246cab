"""
Apply one operation to a hex-encoded circle state and print the new state.

Usage: update_state.py <command> [args...]
"""
import sys
from typing import NoReturn

from charmcircle.rosca import boundary
from charmcircle.rosca.errors import CircleError
from charmcircle.utils.hexcodec import parse_hex, parse_pubkey, parse_txid

COMMANDS = {
    "add_member": "<prev_state_hex> <new_member_pubkey_hex> <payout_round> <joined_at>",
    "record_contribution": "<prev_state_hex> <contributor_pubkey_hex> <amount> <timestamp> <txid_hex>",
    "execute_payout": "<prev_state_hex> <timestamp>",
}

def fail(message: str) -> NoReturn:
    print(message, file=sys.stderr)
    sys.exit(1)

def usage() -> str:
    lines = ["Usage: update_state.py <command> [args...]", "Commands:"]
    lines += [f"  {name} {params}" for name, params in COMMANDS.items()]
    return "\n".join(lines)

def run(command: str, args: list[str]) -> None:
    expected = len(COMMANDS[command].split())
    if len(args) != expected:
        fail(f"Usage: update_state.py {command} {COMMANDS[command]}")

    state = parse_hex(args[0], field="prev_state")
    if command == "add_member":
        new_state = boundary.apply_add_member(state, parse_pubkey(args[1]), int(args[2]), int(args[3]))
    elif command == "record_contribution":
        new_state = boundary.apply_record_contribution(
            state, parse_pubkey(args[1]), int(args[2]), int(args[3]), parse_txid(args[4])
        )
    else:
        new_state, payout = boundary.apply_execute_payout(state, int(args[1]))
        print(f"Paid {payout.amount} to {payout.recipient.hex()}", file=sys.stderr)
    print(new_state.hex())

def main(args: list[str]) -> None:
    if not args:
        fail(usage())
    command = args[0]
    if command not in COMMANDS:
        fail(f"Unknown command: {command}\n{usage()}")

    try:
        run(command, args[1:])
    except CircleError as e:
        fail(f"Error ({e.code}): {e}")
    except ValueError as e:
        fail(f"Error: {e}")

if __name__ == "__main__":
    main(sys.argv[1:])
