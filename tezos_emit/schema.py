"""Typed decoding of contract storage and encoding of Python values to Micheline."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from .errors import ValidationError

_INT_TYPES = {"int", "nat", "mutez"}
_STRING_TYPES = {
    "string",
    "address",
    "key_hash",
    "key",
    "signature",
    "contract",
    "chain_id",
}


def _section(script: Dict[str, Any], name: str) -> Any:
    code = script.get("code") if isinstance(script, dict) else None
    if not isinstance(code, list):
        raise ValidationError("Contract script has no code section")
    for item in code:
        if isinstance(item, dict) and item.get("prim") == name:
            return item["args"][0]
    raise ValidationError(f"Contract script has no {name} section")


def _field_name(type_node: Dict[str, Any]) -> str | None:
    for annot in type_node.get("annots", []):
        if annot.startswith("%"):
            return annot[1:]
    return None


def _pair_args(value: Any) -> List[Any]:
    if isinstance(value, list):
        return value
    if not isinstance(value, dict) or value.get("prim") != "Pair":
        raise ValidationError(f"Expected a Pair, got {value!r}")
    args = value["args"]
    if len(args) > 2:
        # Right comb: Pair a b c == Pair a (Pair b c)
        return [args[0], {"prim": "Pair", "args": args[1:]}]
    return args


def _pair_type_args(type_node: Dict[str, Any]) -> List[Any]:
    args = type_node["args"]
    if len(args) > 2:
        return [args[0], {"prim": "pair", "args": args[1:]}]
    return args


def _flatten_pair(type_node: Dict[str, Any], value: Any) -> List[Tuple[Dict[str, Any], Any]]:
    leaves: List[Tuple[Dict[str, Any], Any]] = []
    for sub_type, sub_value in zip(_pair_type_args(type_node), _pair_args(value)):
        if sub_type.get("prim") == "pair" and _field_name(sub_type) is None:
            leaves.extend(_flatten_pair(sub_type, sub_value))
        else:
            leaves.append((sub_type, sub_value))
    return leaves


def _pair_leaf_types(type_node: Dict[str, Any]) -> List[Dict[str, Any]]:
    leaves: List[Dict[str, Any]] = []
    for sub_type in _pair_type_args(type_node):
        if sub_type.get("prim") == "pair" and _field_name(sub_type) is None:
            leaves.extend(_pair_leaf_types(sub_type))
        else:
            leaves.append(sub_type)
    return leaves


def _hashable(value: Any) -> Any:
    if isinstance(value, dict):
        return tuple(value.values())
    if isinstance(value, list):
        return tuple(value)
    return value


def decode_value(type_node: Dict[str, Any], value: Any) -> Any:
    """Decode a Micheline ``value`` of Michelson type ``type_node`` into Python."""

    prim = type_node.get("prim")
    if prim in _INT_TYPES:
        return int(value["int"])
    if prim in _STRING_TYPES:
        return value["string"] if "string" in value else value.get("bytes")
    if prim == "timestamp":
        return value["string"] if "string" in value else int(value["int"])
    if prim == "bytes":
        return value["bytes"]
    if prim == "bool":
        return value.get("prim") == "True"
    if prim == "unit":
        return None
    if prim == "option":
        if value.get("prim") == "None":
            return None
        return decode_value(type_node["args"][0], value["args"][0])
    if prim in {"list", "set"}:
        return [decode_value(type_node["args"][0], item) for item in value]
    if prim in {"map", "big_map"}:
        if prim == "big_map" and isinstance(value, dict) and "int" in value:
            return int(value["int"])
        key_type, value_type = type_node["args"]
        return {
            _hashable(decode_value(key_type, elt["args"][0])): decode_value(value_type, elt["args"][1])
            for elt in value
        }
    if prim == "pair":
        leaves = _flatten_pair(type_node, value)
        names = [_field_name(leaf_type) for leaf_type, _ in leaves]
        decoded = [decode_value(leaf_type, leaf_value) for leaf_type, leaf_value in leaves]
        if all(names) and len(set(names)) == len(names):
            return dict(zip(names, decoded))
        return tuple(decoded)
    if prim == "or":
        side = 0 if value.get("prim") == "Left" else 1
        branch_type = type_node["args"][side]
        label = _field_name(branch_type) or value.get("prim")
        return {label: decode_value(branch_type, value["args"][0])}
    # lambda, operation and anything newer are returned untouched
    return value


def encode_value(type_node: Dict[str, Any], value: Any) -> Any:
    """Encode a Python ``value`` as Micheline for Michelson type ``type_node``."""

    prim = type_node.get("prim")
    try:
        if prim in _INT_TYPES:
            if isinstance(value, bool):
                raise ValidationError(f"Expected an integer for {prim}, got {value!r}")
            return {"int": str(int(value))}
        if prim in _STRING_TYPES:
            return {"string": str(value)}
        if prim == "timestamp":
            return {"int": str(value)} if isinstance(value, int) else {"string": str(value)}
        if prim == "bytes":
            return {"bytes": value.hex() if isinstance(value, (bytes, bytearray)) else str(value)}
        if prim == "bool":
            return {"prim": "True" if value else "False"}
        if prim == "unit":
            return {"prim": "Unit"}
        if prim == "option":
            if value is None:
                return {"prim": "None"}
            return {"prim": "Some", "args": [encode_value(type_node["args"][0], value)]}
        if prim in {"list", "set"}:
            return [encode_value(type_node["args"][0], item) for item in value]
        if prim in {"map", "big_map"}:
            key_type, value_type = type_node["args"]
            return [
                {
                    "prim": "Elt",
                    "args": [encode_value(key_type, key), encode_value(value_type, item)],
                }
                for key, item in sorted(value.items())
            ]
        if prim == "pair":
            return _encode_pair(type_node, value)
        if prim == "or":
            return _encode_or(type_node, value)
    except ValidationError:
        raise
    except (KeyError, TypeError, ValueError) as exc:
        raise ValidationError(f"Cannot encode {value!r} as {prim}: {exc}") from exc
    raise ValidationError(f"Encoding values of type {prim} is not supported")


def _encode_pair(type_node: Dict[str, Any], value: Any) -> Dict[str, Any]:
    leaf_types = _pair_leaf_types(type_node)
    if isinstance(value, dict):
        names = [_field_name(leaf) for leaf in leaf_types]
        leaves = [value[name] for name in names]
    else:
        leaves = list(value)
    if len(leaves) != len(leaf_types):
        raise ValidationError(f"Expected {len(leaf_types)} pair members, got {len(leaves)}")
    encoded = iter(encode_value(leaf, item) for leaf, item in zip(leaf_types, leaves))

    def build(node: Dict[str, Any]) -> Dict[str, Any]:
        args = []
        for sub_type in _pair_type_args(node):
            if sub_type.get("prim") == "pair" and _field_name(sub_type) is None:
                args.append(build(sub_type))
            else:
                args.append(next(encoded))
        return {"prim": "Pair", "args": args}

    return build(type_node)


def _encode_or(type_node: Dict[str, Any], value: Any) -> Dict[str, Any]:
    if not isinstance(value, dict) or len(value) != 1:
        raise ValidationError("Or values are given as a single-entry dict")
    (label, inner), = value.items()
    left, right = type_node["args"]
    for prim, branch in (("Left", left), ("Right", right)):
        if label in {prim, _field_name(branch)}:
            return {"prim": prim, "args": [encode_value(branch, inner)]}
    for prim, branch in (("Left", left), ("Right", right)):
        if branch.get("prim") == "or":
            try:
                return {"prim": prim, "args": [_encode_or(branch, value)]}
            except ValidationError:
                continue
    raise ValidationError(f"No branch named {label!r}")


def _find_big_map(type_node: Any) -> Dict[str, Any] | None:
    if not isinstance(type_node, dict):
        return None
    if type_node.get("prim") == "big_map":
        return type_node
    for arg in type_node.get("args", []):
        found = _find_big_map(arg)
        if found is not None:
            return found
    return None


class Schema:
    """Storage schema of a contract."""

    def __init__(self, storage_type: Dict[str, Any]) -> None:
        self.storage_type = storage_type
        self._big_map = _find_big_map(storage_type)

    @classmethod
    def from_rpc_response(cls, script: Dict[str, Any]) -> "Schema":
        return cls(_section(script, "storage"))

    def execute(self, storage: Any) -> Any:
        return decode_value(self.storage_type, storage)

    def encode_big_map_key(self, key: Any) -> Dict[str, Any]:
        if self._big_map is None:
            raise ValidationError("Contract storage has no big_map")
        key_type = self._big_map["args"][0]
        return {"key": encode_value(key_type, key), "type": key_type}

    def execute_on_big_map_value(self, value: Any) -> Any:
        if self._big_map is None:
            raise ValidationError("Contract storage has no big_map")
        if value is None:
            return None
        return decode_value(self._big_map["args"][1], value)


class ParameterSchema:
    """Parameter schema of a contract; knows its named entrypoints."""

    def __init__(self, parameter_type: Dict[str, Any]) -> None:
        self.parameter_type = parameter_type

    @classmethod
    def from_rpc_response(cls, script: Dict[str, Any]) -> "ParameterSchema":
        return cls(_section(script, "parameter"))

    @property
    def entrypoints(self) -> List[str]:
        names: List[str] = []

        def walk(node: Dict[str, Any]) -> None:
            if node.get("prim") == "or":
                for arg in node["args"]:
                    name = _field_name(arg)
                    if name:
                        names.append(name)
                    walk(arg)

        walk(self.parameter_type)
        return names

    def encode(self, value: Any) -> Any:
        return encode_value(self.parameter_type, value)
