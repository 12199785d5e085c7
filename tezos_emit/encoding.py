"""Base58check prefixes and content-addressed identifiers."""

from __future__ import annotations

import hashlib

import base58

from .errors import ValidationError

PREFIX = {
    "tz1": bytes([6, 161, 159]),
    "KT1": bytes([2, 90, 121]),
    "edpk": bytes([13, 15, 37, 217]),
    "edsk": bytes([43, 246, 78, 7]),
    "edsk_seed": bytes([13, 15, 58, 7]),
    "edsig": bytes([9, 245, 205, 134, 18]),
    "o": bytes([5, 116]),
    "B": bytes([1, 52]),
}

OPERATION_WATERMARK = b"\x03"


def blake2b(data: bytes, digest_size: int = 32) -> bytes:
    return hashlib.blake2b(data, digest_size=digest_size).digest()


def b58encode(payload: bytes, prefix: str) -> str:
    return base58.b58encode_check(PREFIX[prefix] + payload).decode("ascii")


def b58decode(value: str, prefix: str) -> bytes:
    """Decode a base58check string and strip ``prefix``."""

    try:
        raw = base58.b58decode_check(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid base58check value: {value!r}") from exc
    expected = PREFIX[prefix]
    if not raw.startswith(expected):
        raise ValidationError(f"Expected a {prefix} value, got {value!r}")
    return raw[len(expected):]


def operation_hash(signed_bytes_hex: str) -> str:
    """Return the ``o...`` identifier of a signed operation."""

    return b58encode(blake2b(bytes.fromhex(signed_bytes_hex)), "o")


def originated_contract_address(op_hash: str, index: int = 0) -> str:
    """Return the ``KT1`` address of the ``index``-th origination in ``op_hash``."""

    nonce = b58decode(op_hash, "o") + index.to_bytes(4, "big")
    return b58encode(blake2b(nonce, digest_size=20), "KT1")
