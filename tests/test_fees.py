import pytest

from tezos_emit.errors import ValidationError
from tezos_emit.fees import (
    DELEGATION,
    ORIGINATION,
    REVEAL,
    TRANSACTION,
    OperationLimits,
    defaults,
    resolve_limits,
)


def test_policy_defaults_per_kind() -> None:
    assert defaults(TRANSACTION) == OperationLimits(fee=1420, gas_limit=10600, storage_limit=300)
    assert defaults(ORIGINATION) == OperationLimits(fee=1300, gas_limit=10600, storage_limit=257)
    assert defaults(DELEGATION) == OperationLimits(fee=1258, gas_limit=10100, storage_limit=0)
    assert defaults(REVEAL) == OperationLimits(fee=1420, gas_limit=10000, storage_limit=0)


def test_overrides_replace_only_the_given_fields() -> None:
    limits = resolve_limits(TRANSACTION, fee=5000)
    assert limits == OperationLimits(fee=5000, gas_limit=10600, storage_limit=300)

    limits = resolve_limits(DELEGATION, gas_limit="20000", storage_limit=0)
    assert limits == OperationLimits(fee=1258, gas_limit=20000, storage_limit=0)


def test_zero_fee_is_accepted() -> None:
    assert resolve_limits(TRANSACTION, fee=0).fee == 0


def test_unknown_kind_is_rejected() -> None:
    with pytest.raises(ValidationError):
        defaults("endorsement")


@pytest.mark.parametrize("value", [-1, "12.5", "abc", True, 1.5])
def test_invalid_override_is_rejected(value) -> None:
    with pytest.raises(ValidationError):
        resolve_limits(TRANSACTION, fee=value)
