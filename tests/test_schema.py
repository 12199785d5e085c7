import pytest

from tezos_emit.errors import ValidationError
from tezos_emit.schema import ParameterSchema, Schema, decode_value, encode_value


def _t(prim, *args, annot=None):
    node = {"prim": prim}
    if args:
        node["args"] = list(args)
    if annot:
        node["annots"] = [f"%{annot}"]
    return node


def test_decode_scalars() -> None:
    assert decode_value(_t("nat"), {"int": "7"}) == 7
    assert decode_value(_t("mutez"), {"int": "1500000"}) == 1500000
    assert decode_value(_t("address"), {"string": "tz1abc"}) == "tz1abc"
    assert decode_value(_t("bool"), {"prim": "True"}) is True
    assert decode_value(_t("unit"), {"prim": "Unit"}) is None
    assert decode_value(_t("timestamp"), {"string": "2019-01-01T00:00:00Z"}) == "2019-01-01T00:00:00Z"
    assert decode_value(_t("timestamp"), {"int": "0"}) == 0
    assert decode_value(_t("bytes"), {"bytes": "cafe"}) == "cafe"


def test_decode_containers() -> None:
    assert decode_value(_t("option", _t("int")), {"prim": "None"}) is None
    assert decode_value(_t("option", _t("int")), {"prim": "Some", "args": [{"int": "3"}]}) == 3
    assert decode_value(_t("list", _t("int")), [{"int": "1"}, {"int": "2"}]) == [1, 2]
    assert decode_value(
        _t("map", _t("string"), _t("nat")),
        [{"prim": "Elt", "args": [{"string": "a"}, {"int": "1"}]}],
    ) == {"a": 1}
    assert decode_value(_t("big_map", _t("string"), _t("nat")), {"int": "42"}) == 42


def test_decode_pairs() -> None:
    named = _t("pair", _t("int", annot="a"), _t("pair", _t("nat", annot="b"), _t("string", annot="c")))
    value = {"prim": "Pair", "args": [{"int": "1"}, {"prim": "Pair", "args": [{"int": "2"}, {"string": "x"}]}]}
    assert decode_value(named, value) == {"a": 1, "b": 2, "c": "x"}

    anonymous = _t("pair", _t("int"), _t("string"))
    assert decode_value(anonymous, {"prim": "Pair", "args": [{"int": "1"}, {"string": "x"}]}) == (1, "x")


def test_decode_or_uses_field_names() -> None:
    or_type = _t("or", _t("int", annot="increment"), _t("int", annot="decrement"))

    assert decode_value(or_type, {"prim": "Right", "args": [{"int": "4"}]}) == {"decrement": 4}


def test_encode_values() -> None:
    assert encode_value(_t("nat"), 5) == {"int": "5"}
    assert encode_value(_t("bool"), False) == {"prim": "False"}
    assert encode_value(_t("option", _t("string")), None) == {"prim": "None"}
    assert encode_value(_t("bytes"), b"\xca\xfe") == {"bytes": "cafe"}
    assert encode_value(_t("map", _t("string"), _t("int")), {"b": 2, "a": 1}) == [
        {"prim": "Elt", "args": [{"string": "a"}, {"int": "1"}]},
        {"prim": "Elt", "args": [{"string": "b"}, {"int": "2"}]},
    ]


def test_encode_pair_from_dict_and_tuple() -> None:
    named = _t("pair", _t("int", annot="a"), _t("pair", _t("nat", annot="b"), _t("string", annot="c")))
    expected = {"prim": "Pair", "args": [{"int": "1"}, {"prim": "Pair", "args": [{"int": "2"}, {"string": "x"}]}]}

    assert encode_value(named, {"a": 1, "b": 2, "c": "x"}) == expected
    assert encode_value(named, (1, 2, "x")) == expected


def test_encode_rejects_mismatched_values() -> None:
    with pytest.raises(ValidationError):
        encode_value(_t("int"), "not a number")
    with pytest.raises(ValidationError):
        encode_value(_t("int"), True)
    with pytest.raises(ValidationError):
        encode_value(_t("pair", _t("int"), _t("int")), (1,))
    with pytest.raises(ValidationError):
        encode_value(_t("lambda", _t("int"), _t("int")), {})


def test_nested_or_entrypoints() -> None:
    param = ParameterSchema(
        _t(
            "or",
            _t("unit", annot="reset"),
            _t("or", _t("int", annot="increment"), _t("int", annot="decrement")),
        )
    )

    assert param.entrypoints == ["reset", "increment", "decrement"]
    assert param.encode({"decrement": 1}) == {
        "prim": "Right",
        "args": [{"prim": "Right", "args": [{"int": "1"}]}],
    }
    assert param.encode({"reset": None}) == {"prim": "Left", "args": [{"prim": "Unit"}]}
    with pytest.raises(ValidationError):
        param.encode({"transfer": 1})


def test_schema_requires_storage_section() -> None:
    with pytest.raises(ValidationError):
        Schema.from_rpc_response({"code": [{"prim": "parameter", "args": [_t("unit")]}]})
    with pytest.raises(ValidationError):
        Schema.from_rpc_response({})
