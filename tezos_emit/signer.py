"""Signer interface and an in-memory Ed25519 implementation.

The emitter only relies on :class:`Signer`; hardware wallets or remote
signers can be plugged in by implementing the same three methods.
:class:`InMemorySigner` keeps the secret key in process memory and is meant
for tests, scripts, and sandboxed networks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from .encoding import OPERATION_WATERMARK, b58decode, b58encode, blake2b
from .errors import SignerError

logger = logging.getLogger(__name__)


@dataclass
class SignResult:
    """Signature over forged bytes, in every form the pipeline needs."""

    bytes: str
    sig: str
    prefix_sig: str
    sbytes: str
    # key that verifies `sig`; signers that cannot tell leave it unset
    public_key: str | None = None


class Signer(Protocol):
    def public_key_hash(self) -> str:
        ...

    def public_key(self) -> str:
        ...

    def sign(self, op_bytes: str, watermark: bytes | None = OPERATION_WATERMARK) -> SignResult:
        ...


class InMemorySigner:
    """Ed25519 signer built from an ``edsk`` secret key."""

    def __init__(self, secret_key: str) -> None:
        if not secret_key.startswith("edsk"):
            raise SignerError("Only Ed25519 (edsk) secret keys are supported")
        try:
            if len(secret_key) == 54:
                seed = b58decode(secret_key, "edsk_seed")
            else:
                seed = b58decode(secret_key, "edsk")[:32]
        except ValueError as exc:
            raise SignerError(f"Invalid secret key: {exc}") from exc
        self._key = Ed25519PrivateKey.from_private_bytes(seed)
        self._public_bytes = self._key.public_key().public_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PublicFormat.Raw,
        )

    @classmethod
    def from_seed(cls, seed: bytes) -> "InMemorySigner":
        if len(seed) != 32:
            raise SignerError("Ed25519 seeds are 32 bytes long")
        return cls(b58encode(seed, "edsk_seed"))

    def public_key(self) -> str:
        return b58encode(self._public_bytes, "edpk")

    def public_key_hash(self) -> str:
        return b58encode(blake2b(self._public_bytes, digest_size=20), "tz1")

    def secret_key(self) -> str:
        seed = self._key.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )
        return b58encode(seed + self._public_bytes, "edsk")

    def sign(self, op_bytes: str, watermark: bytes | None = OPERATION_WATERMARK) -> SignResult:
        try:
            payload = bytes.fromhex(op_bytes)
        except ValueError as exc:
            raise SignerError("Forged bytes are not valid hex") from exc
        if watermark:
            payload = watermark + payload
        signature = self._key.sign(blake2b(payload))
        sig_hex = signature.hex()
        logger.debug("Signed %d bytes for %s", len(payload), self.public_key_hash())
        return SignResult(
            bytes=op_bytes,
            sig=sig_hex,
            prefix_sig=b58encode(signature, "edsig"),
            sbytes=op_bytes + sig_hex,
            public_key=self.public_key(),
        )


def call_signer(method: Callable[..., Any], *args: Any) -> Any:
    """Invoke a signer method, reporting any failure as :class:`SignerError`."""

    try:
        return method(*args)
    except SignerError:
        raise
    except Exception as exc:
        logger.error("Signer call %s failed: %s", getattr(method, "__name__", method), exc)
        raise SignerError(f"Signer failed: {exc}") from exc
