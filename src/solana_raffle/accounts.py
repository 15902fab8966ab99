from __future__ import annotations

import base58

from .errors import InvalidInput

PUBKEY_LENGTH = 32


def validate_address(value: str, field: str = "address") -> str:
    """
    A Solana account address is the base58 encoding of a 32-byte public key.
    Returns the address unchanged, raises InvalidInput otherwise.
    """
    if not isinstance(value, str) or not value:
        raise InvalidInput(f"{field} must be a non-empty base58 string")
    try:
        raw = base58.b58decode(value)
    except ValueError as e:
        raise InvalidInput(f"{field} is not valid base58: {e}") from e
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidInput(
            f"{field} must decode to {PUBKEY_LENGTH} bytes, got {len(raw)}"
        )
    return value


def address_from_bytes(raw: bytes) -> str:
    if len(raw) != PUBKEY_LENGTH:
        raise InvalidInput(f"public key must be {PUBKEY_LENGTH} bytes")
    return base58.b58encode(raw).decode("ascii")


def shorten_address(value: str) -> str:
    if not value:
        return ""
    if len(value) <= 11:
        return value
    return f"{value[:4]}...{value[-4:]}"
