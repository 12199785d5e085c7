"""Error taxonomy for operation emission and confirmation tracking."""

from __future__ import annotations

from typing import Any, Sequence


class TezosEmitError(RuntimeError):
    """Base class for every failure surfaced by the emission pipeline."""


class ValidationError(TezosEmitError, ValueError):
    """Raised for malformed caller input, before any network call."""


class ForgeError(TezosEmitError):
    """Raised when an envelope cannot be forged into wire bytes."""


class SignerError(TezosEmitError):
    """Raised when the signer is unreachable, locked, or refuses to sign."""


class InjectionRejected(TezosEmitError):
    """Raised when the node refuses signed operation bytes.

    ``errors`` holds the node's error payload verbatim. The caller is expected
    to rebuild the operation (fresh counter and branch) before resubmitting.
    """

    def __init__(
        self,
        message: str,
        errors: Sequence[Any] | None = None,
        hint: str | None = None,
    ) -> None:
        text = message if not hint else f"{message}\nHint: {hint}"
        super().__init__(text)
        self.errors = list(errors or [])
        self.hint = hint

    @property
    def error_ids(self) -> list[str]:
        return [str(err.get("id")) for err in self.errors if isinstance(err, dict) and err.get("id")]


class ConfirmationTimeout(TezosEmitError):
    """Raised when an injected operation is not observed in time."""

    def __init__(self, op_hash: str, message: str) -> None:
        super().__init__(message)
        self.op_hash = op_hash


class OperationDropped(TezosEmitError):
    """Raised when an included operation vanished from the chain and never came back."""

    def __init__(self, op_hash: str, level: int | None) -> None:
        super().__init__(
            f"Operation {op_hash} disappeared from block level {level} and was not re-included"
        )
        self.op_hash = op_hash
        self.level = level


class ConfirmationCancelled(TezosEmitError):
    """Raised when the caller abandons waiting for a confirmation."""

    def __init__(self, op_hash: str) -> None:
        super().__init__(f"Stopped waiting for operation {op_hash}")
        self.op_hash = op_hash
