"""Lossless conversion between human-readable tez amounts and mutez."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import ValidationError

MUTEZ_DECIMALS = 6

_UNIT_EXPONENTS = {
    "tz": 6,
    "mtz": 3,
    "mutez": 0,
}


def _as_decimal(amount: str | int | float | Decimal) -> Decimal:
    if isinstance(amount, bool):
        raise ValidationError(f"Invalid amount: {amount!r}")
    if isinstance(amount, Decimal):
        value = amount
    elif isinstance(amount, float):
        # repr keeps the shortest round-tripping form: 1.5 -> "1.5"
        value = Decimal(repr(amount))
    else:
        try:
            value = Decimal(str(amount).strip())
        except InvalidOperation as exc:
            raise ValidationError(f"Invalid amount: {amount!r}") from exc
    if not value.is_finite():
        raise ValidationError(f"Invalid amount: {amount!r}")
    return value


def format_amount(from_unit: str, to_unit: str, amount: str | int | float | Decimal) -> Decimal:
    """Convert ``amount`` between ``tz``, ``mtz`` and ``mutez``.

    Converting to ``mutez`` refuses results with a fractional part instead of
    rounding them.
    """

    try:
        shift = _UNIT_EXPONENTS[from_unit] - _UNIT_EXPONENTS[to_unit]
    except KeyError as exc:
        raise ValidationError(f"Unknown unit: {exc.args[0]}") from exc
    value = _as_decimal(amount).scaleb(shift)
    if value < 0:
        raise ValidationError(f"Amount must not be negative: {amount!r}")
    if to_unit == "mutez" and value != value.to_integral_value():
        raise ValidationError(f"Amount {amount!r} {from_unit} is not a whole number of mutez")
    return value


def to_mutez(amount: str | int | float | Decimal, unit: str = "tz") -> int:
    """Return ``amount`` expressed in mutez as an exact integer."""

    return int(format_amount(unit, "mutez", amount))


def from_mutez(value: int | str) -> Decimal:
    """Return a mutez quantity as a tez ``Decimal``."""

    try:
        mutez = int(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Invalid mutez quantity: {value!r}") from exc
    if mutez < 0:
        raise ValidationError(f"Amount must not be negative: {value!r}")
    return Decimal(mutez).scaleb(-MUTEZ_DECIMALS)
