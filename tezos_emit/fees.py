"""Default fee, gas and storage limits per operation kind."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import ValidationError

logger = logging.getLogger(__name__)

REVEAL = "reveal"
TRANSACTION = "transaction"
ORIGINATION = "origination"
DELEGATION = "delegation"

DEFAULT_FEE = {
    TRANSACTION: 1420,
    ORIGINATION: 1300,
    DELEGATION: 1258,
    REVEAL: 1420,
}

DEFAULT_GAS_LIMIT = {
    TRANSACTION: 10600,
    ORIGINATION: 10600,
    DELEGATION: 10100,
    REVEAL: 10000,
}

DEFAULT_STORAGE_LIMIT = {
    TRANSACTION: 300,
    ORIGINATION: 257,
    DELEGATION: 0,
    REVEAL: 0,
}


@dataclass(frozen=True)
class OperationLimits:
    """Fee (mutez), gas limit and storage limit attached to a manager operation."""

    fee: int
    gas_limit: int
    storage_limit: int


def defaults(kind: str) -> OperationLimits:
    """Return the policy defaults for ``kind``."""

    try:
        return OperationLimits(
            fee=DEFAULT_FEE[kind],
            gas_limit=DEFAULT_GAS_LIMIT[kind],
            storage_limit=DEFAULT_STORAGE_LIMIT[kind],
        )
    except KeyError as exc:
        raise ValidationError(f"No fee policy for operation kind {kind!r}") from exc


def _coerce_limit(name: str, value: int | str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        coerced = value
    elif isinstance(value, str) and value.strip().isdigit():
        coerced = int(value)
    else:
        raise ValidationError(f"{name} must be an integer, got {value!r}")
    if coerced < 0:
        raise ValidationError(f"{name} must not be negative, got {value!r}")
    return coerced


def resolve_limits(
    kind: str,
    *,
    fee: int | str | None = None,
    gas_limit: int | str | None = None,
    storage_limit: int | str | None = None,
) -> OperationLimits:
    """Apply caller overrides on top of the defaults for ``kind``.

    Any subset may be overridden; values are only type-checked. Whether a fee
    is sufficient is the node's call.
    """

    base = defaults(kind)
    limits = OperationLimits(
        fee=base.fee if fee is None else _coerce_limit("fee", fee),
        gas_limit=base.gas_limit if gas_limit is None else _coerce_limit("gas_limit", gas_limit),
        storage_limit=(
            base.storage_limit
            if storage_limit is None
            else _coerce_limit("storage_limit", storage_limit)
        ),
    )
    if limits != base:
        logger.debug("Using caller limits for %s: %s", kind, limits)
    return limits
