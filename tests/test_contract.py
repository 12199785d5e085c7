from __future__ import annotations

import json

import pytest

from conftest import FakeChain
from tezos_emit.contract import (
    RpcContractProvider,
    build_delegation,
    build_origination,
    build_transaction,
)
from tezos_emit.errors import ValidationError
from tezos_emit.operation import OriginationHandle
from tezos_emit.signer import InMemorySigner

CONTRACT = "KT1counter"
DELEGATE = "tz1baker"

COUNTER_SCRIPT = {
    "code": [
        {
            "prim": "parameter",
            "args": [
                {
                    "prim": "or",
                    "args": [
                        {"prim": "int", "annots": ["%increment"]},
                        {"prim": "int", "annots": ["%decrement"]},
                    ],
                }
            ],
        },
        {
            "prim": "storage",
            "args": [
                {
                    "prim": "pair",
                    "args": [
                        {"prim": "int", "annots": ["%count"]},
                        {"prim": "address", "annots": ["%owner"]},
                    ],
                }
            ],
        },
        {"prim": "code", "args": [[{"prim": "CDR"}]]},
    ],
    "storage": {"prim": "Pair", "args": [{"int": "5"}, {"string": "tz1owner"}]},
}

LEDGER_SCRIPT = {
    "code": [
        {"prim": "parameter", "args": [{"prim": "unit"}]},
        {
            "prim": "storage",
            "args": [
                {
                    "prim": "pair",
                    "args": [
                        {
                            "prim": "big_map",
                            "args": [{"prim": "address"}, {"prim": "nat"}],
                            "annots": ["%ledger"],
                        },
                        {"prim": "nat", "annots": ["%total"]},
                    ],
                }
            ],
        },
        {"prim": "code", "args": [[{"prim": "CDR"}]]},
    ],
}

SIMPLE_CODE = "parameter unit; storage int; code { CDR ; NIL operation ; PAIR }"


@pytest.fixture
def provider(chain: FakeChain, signer) -> RpcContractProvider:
    chain.manager_keys[signer.public_key_hash()] = signer.public_key()
    return RpcContractProvider(chain, signer)  # type: ignore[arg-type]


def test_register_delegate_delegates_to_self(chain: FakeChain, signer, provider) -> None:
    provider.register_delegate()

    (delegation,) = chain.forged[0]["contents"]
    own = signer.public_key_hash()
    assert delegation["kind"] == "delegation"
    assert delegation["source"] == own
    assert delegation["delegate"] == own
    assert (delegation["fee"], delegation["gas_limit"], delegation["storage_limit"]) == (
        "1258",
        "10100",
        "0",
    )


def test_set_delegate_defaults_source_to_signer(chain: FakeChain, signer, provider) -> None:
    handle = provider.set_delegate(DELEGATE)

    (delegation,) = chain.forged[0]["contents"]
    assert delegation["source"] == signer.public_key_hash()
    assert delegation["delegate"] == DELEGATE
    assert handle.source == signer.public_key_hash()


def test_set_delegate_for_another_source_skips_reveal(chain: FakeChain, provider) -> None:
    chain.counters["KT1managed"] = 3

    provider.set_delegate(DELEGATE, source="KT1managed")

    contents = chain.forged[0]["contents"]
    assert [content["kind"] for content in contents] == ["delegation"]
    assert contents[0]["source"] == "KT1managed"
    assert contents[0]["counter"] == "4"


def test_withdrawing_a_delegate_omits_the_field(chain: FakeChain, provider) -> None:
    provider.set_delegate(None)

    (delegation,) = chain.forged[0]["contents"]
    assert "delegate" not in delegation


def test_originate_with_textual_code(chain: FakeChain, signer, provider) -> None:
    handle = provider.originate(SIMPLE_CODE, "0", balance="2")

    assert isinstance(handle, OriginationHandle)
    (origination,) = chain.forged[0]["contents"]
    assert origination["kind"] == "origination"
    assert origination["balance"] == "2000000"
    assert origination["manager_pubkey"] == signer.public_key_hash()
    assert origination["spendable"] is False
    assert origination["delegatable"] is False
    assert "delegate" not in origination
    assert origination["script"]["storage"] == {"int": "0"}
    code = origination["script"]["code"]
    assert [item["prim"] for item in code] == ["parameter", "storage", "code"]
    assert code[2]["args"][0][1] == {"prim": "NIL", "args": [{"prim": "operation"}]}
    assert (origination["fee"], origination["gas_limit"], origination["storage_limit"]) == (
        "1300",
        "10600",
        "257",
    )
    assert handle.contract_address.startswith("KT1")
    assert handle.contract_addresses == [handle.contract_address]


def test_originate_with_delegate(chain: FakeChain, provider) -> None:
    provider.originate(SIMPLE_CODE, "0", delegate=DELEGATE, delegatable=True)

    (origination,) = chain.forged[0]["contents"]
    assert origination["delegate"] == DELEGATE
    assert origination["delegatable"] is True


def test_originate_with_structured_code_keeps_it_verbatim() -> None:
    code = COUNTER_SCRIPT["code"]
    storage = COUNTER_SCRIPT["storage"]

    origination = build_origination(code, storage, "tz1manager")

    assert origination.script == {"code": code, "storage": storage}


def test_originate_with_malformed_code_fails_early(chain: FakeChain, provider) -> None:
    with pytest.raises(ValidationError):
        provider.originate("parameter unit; storage int; code { CDR ", "0")
    assert chain.forged == []


def test_get_storage_decodes_annotated_pair(chain: FakeChain, provider) -> None:
    chain.scripts[CONTRACT] = COUNTER_SCRIPT
    chain.storages[CONTRACT] = COUNTER_SCRIPT["storage"]

    assert provider.get_storage(CONTRACT) == {"count": 5, "owner": "tz1owner"}


def test_get_big_map_key_encodes_key_and_decodes_value(chain: FakeChain, provider) -> None:
    chain.scripts[CONTRACT] = LEDGER_SCRIPT
    chain.big_maps[CONTRACT] = {
        json.dumps({"string": "tz1holder"}, sort_keys=True): {"int": "10"},
    }

    assert provider.get_big_map_key(CONTRACT, "tz1holder") == 10
    assert chain.big_map_requests[0] == {"key": {"string": "tz1holder"}, "type": {"prim": "address"}}
    assert provider.get_big_map_key(CONTRACT, "tz1nobody") is None


def test_storage_without_big_map_rejects_lookups(chain: FakeChain, provider) -> None:
    chain.scripts[CONTRACT] = COUNTER_SCRIPT

    with pytest.raises(ValidationError):
        provider.get_big_map_key(CONTRACT, "tz1holder")


def test_at_binds_schemas_and_calls_entrypoints(chain: FakeChain, provider) -> None:
    chain.scripts[CONTRACT] = COUNTER_SCRIPT
    chain.storages[CONTRACT] = COUNTER_SCRIPT["storage"]

    contract = provider.at(CONTRACT)

    assert contract.entrypoints == ["increment", "decrement"]
    assert contract.storage() == {"count": 5, "owner": "tz1owner"}
    contract.call({"decrement": 2})
    (transaction,) = chain.forged[0]["contents"]
    assert transaction["destination"] == CONTRACT
    assert transaction["amount"] == "0"
    assert transaction["parameters"] == {"prim": "Right", "args": [{"int": "2"}]}


def test_batch_uses_consecutive_counters(chain: FakeChain, signer, provider) -> None:
    chain.counters[signer.public_key_hash()] = 9

    provider.batch([build_transaction("tz1x", 1), build_delegation(DELEGATE)])

    contents = chain.forged[0]["contents"]
    assert [(c["kind"], c["counter"]) for c in contents] == [("transaction", "10"), ("delegation", "11")]


def test_batch_from_unrevealed_account_gets_one_reveal() -> None:
    chain = FakeChain()
    signer = InMemorySigner.from_seed(bytes(32))
    chain.counters[signer.public_key_hash()] = 9
    provider = RpcContractProvider(chain, signer)  # type: ignore[arg-type]

    provider.batch([build_transaction("tz1x", 1), build_transaction("tz1y", 2)])

    contents = chain.forged[0]["contents"]
    assert [(c["kind"], c["counter"]) for c in contents] == [
        ("reveal", "10"),
        ("transaction", "11"),
        ("transaction", "12"),
    ]


def test_activation_carries_no_counter(chain: FakeChain, provider) -> None:
    provider.activate("tz1fundraiser", "ab" * 20)

    (activation,) = chain.forged[0]["contents"]
    assert activation == {"kind": "activate_account", "pkh": "tz1fundraiser", "secret": "ab" * 20}
