from charmcircle.rosca.types import HASH_LENGTH, PUBKEY_LENGTH


def parse_hex(value: str, length: int | None = None, field: str = "value") -> bytes:
    """
    Decode a hex string, optionally checking the decoded length in bytes.

    Accepts an optional ``0x`` prefix and either letter case.
    """
    text = value.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    if length is not None and len(text) != length * 2:
        raise ValueError(f"{field} must be {length * 2} hex characters ({length} bytes)")
    try:
        return bytes.fromhex(text)
    except ValueError:
        raise ValueError(f"{field} is not valid hex")


def parse_circle_id(value: str) -> bytes:
    return parse_hex(value, HASH_LENGTH, "circle_id")


def parse_pubkey(value: str) -> bytes:
    return parse_hex(value, PUBKEY_LENGTH, "pubkey")


def parse_txid(value: str) -> bytes:
    return parse_hex(value, HASH_LENGTH, "txid")
