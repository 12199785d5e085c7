import pytest

from tezos_emit.errors import ValidationError
from tezos_emit.michelson import emit_michelson, parse_michelson, parse_sexp


def test_parse_sexp_with_and_without_parentheses() -> None:
    expected = {"prim": "Pair", "args": [{"int": "1"}, {"string": "a"}]}

    assert parse_sexp('(Pair 1 "a")') == expected
    assert parse_sexp('Pair 1 "a"') == expected


def test_parse_sexp_atoms() -> None:
    assert parse_sexp("-42") == {"int": "-42"}
    assert parse_sexp('"tz1 with \\"quotes\\""') == {"string": 'tz1 with "quotes"'}
    assert parse_sexp("0xCAFE") == {"bytes": "CAFE"}
    assert parse_sexp("Unit") == {"prim": "Unit"}
    assert parse_sexp("{ 1 ; 2 }") == [{"int": "1"}, {"int": "2"}]
    assert parse_sexp("{}") == []


def test_parse_sexp_nested_options_and_elts() -> None:
    node = parse_sexp('{ Elt "a" (Some 3) }')

    assert node == [
        {"prim": "Elt", "args": [{"string": "a"}, {"prim": "Some", "args": [{"int": "3"}]}]}
    ]


def test_parse_script_sections_and_annotations() -> None:
    script = parse_michelson(
        """
        # counter contract
        parameter (or (int %increment) (int %decrement));
        storage int;
        code { UNPAIR ; IF_LEFT { ADD } { SWAP ; SUB } ; NIL operation ; PAIR }
        """
    )

    parameter, storage, code = script
    assert parameter == {
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
    }
    assert storage == {"prim": "storage", "args": [{"prim": "int"}]}
    body = code["args"][0]
    assert body[1] == {"prim": "IF_LEFT", "args": [[{"prim": "ADD"}], [{"prim": "SWAP"}, {"prim": "SUB"}]]}
    assert body[-1] == {"prim": "PAIR"}


def test_parse_michelson_accepts_a_braced_script() -> None:
    script = parse_michelson("{ parameter unit ; storage unit ; code { CDR } }")

    assert [item["prim"] for item in script] == ["parameter", "storage", "code"]


@pytest.mark.parametrize(
    "text",
    ["", "(Pair 1", "Pair 1 )", "code { CDR", "Pair 1 $", '"unterminated'],
)
def test_malformed_input_is_rejected(text: str) -> None:
    with pytest.raises(ValidationError):
        parse_sexp(text)


def test_empty_script_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_michelson("  # nothing here\n")


def test_emit_michelson_renders_nested_nodes() -> None:
    node = {
        "prim": "Pair",
        "args": [{"int": "1"}, {"prim": "Some", "args": [{"string": "a"}]}],
    }

    assert emit_michelson(node) == 'Pair 1 (Some "a")'
    assert parse_sexp(emit_michelson(node)) == node
    assert emit_michelson([{"prim": "CDR"}, {"prim": "NIL", "args": [{"prim": "operation"}]}]) == (
        "{ CDR ; NIL operation }"
    )
