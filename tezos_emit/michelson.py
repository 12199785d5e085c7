"""Conversion between Michelson source text and Micheline JSON."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, List

from .errors import ValidationError

_TOKEN_RE = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<line_comment>\#[^\n]*)
  | (?P<block_comment>/\*.*?\*/)
  | (?P<string>"(?:[^"\\]|\\.)*")
  | (?P<bytes>0x[0-9a-fA-F]*)
  | (?P<int>-?[0-9]+)
  | (?P<annot>[%@:][A-Za-z0-9_.%@]*)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<punct>[{}();])
    """,
    re.VERBOSE | re.DOTALL,
)

_CLOSERS = {";", "}", ")"}


@dataclass
class _Token:
    kind: str
    value: str
    offset: int


def _tokenize(text: str) -> List[_Token]:
    tokens: List[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN_RE.match(text, pos)
        if match is None:
            raise ValidationError(f"Unexpected character {text[pos]!r} at offset {pos}")
        kind = match.lastgroup or ""
        if kind not in {"ws", "line_comment", "block_comment"}:
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self.tokens = _tokenize(text)
        self.pos = 0

    def _peek(self) -> _Token | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise ValidationError("Unexpected end of Michelson input")
        self.pos += 1
        return token

    def _expect(self, value: str) -> None:
        token = self._next()
        if token.value != value:
            raise ValidationError(f"Expected {value!r} at offset {token.offset}, got {token.value!r}")

    def at_end(self) -> bool:
        return self._peek() is None

    def parse_sequence_items(self, closer: str | None) -> List[Any]:
        items: List[Any] = []
        while True:
            token = self._peek()
            if token is None:
                if closer is not None:
                    raise ValidationError(f"Missing {closer!r}")
                return items
            if closer is not None and token.value == closer:
                self._next()
                return items
            if token.value == ";":
                self._next()
                continue
            items.append(self.parse_application())
            token = self._peek()
            if token is not None and token.value not in {";", closer}:
                raise ValidationError(f"Expected ';' at offset {token.offset}, got {token.value!r}")

    def parse_application(self) -> Any:
        token = self._peek()
        if token is None:
            raise ValidationError("Unexpected end of Michelson input")
        if token.kind != "ident":
            return self.parse_atom()
        self._next()
        node: dict[str, Any] = {"prim": token.value}
        args: List[Any] = []
        annots: List[str] = []
        while True:
            nxt = self._peek()
            if nxt is None or nxt.value in _CLOSERS:
                break
            if nxt.kind == "annot":
                annots.append(self._next().value)
                continue
            args.append(self.parse_atom())
        if args:
            node["args"] = args
        if annots:
            node["annots"] = annots
        return node

    def parse_atom(self) -> Any:
        token = self._next()
        if token.kind == "int":
            return {"int": token.value}
        if token.kind == "string":
            return {"string": json.loads(token.value)}
        if token.kind == "bytes":
            return {"bytes": token.value[2:]}
        if token.kind == "ident":
            return {"prim": token.value}
        if token.value == "(":
            node = self.parse_application()
            self._expect(")")
            return node
        if token.value == "{":
            return self.parse_sequence_items("}")
        raise ValidationError(f"Unexpected token {token.value!r} at offset {token.offset}")


def parse_michelson(text: str) -> List[Any]:
    """Parse a Michelson script (``parameter ...; storage ...; code {...}``) into Micheline."""

    if not isinstance(text, str):
        raise ValidationError("Michelson source must be text")
    parser = _Parser(text)
    first = parser._peek()
    if first is not None and first.value == "{":
        node = parser.parse_atom()
        if not parser.at_end():
            raise ValidationError("Trailing input after Michelson sequence")
        return node
    items = parser.parse_sequence_items(None)
    if not items:
        raise ValidationError("Empty Michelson script")
    return items


def parse_sexp(text: str) -> Any:
    """Parse a single Michelson expression such as ``(Pair 1 "a")`` into Micheline."""

    if not isinstance(text, str):
        raise ValidationError("Michelson expression must be text")
    parser = _Parser(text)
    if parser.at_end():
        raise ValidationError("Empty Michelson expression")
    node = parser.parse_application()
    if not parser.at_end():
        raise ValidationError(f"Trailing input after Michelson expression: {text!r}")
    return node


def emit_michelson(node: Any, nested: bool = False) -> str:
    """Render Micheline JSON back to Michelson text."""

    if isinstance(node, list):
        return "{ " + " ; ".join(emit_michelson(item) for item in node) + " }" if node else "{}"
    if not isinstance(node, dict):
        raise ValidationError(f"Not a Micheline node: {node!r}")
    if "int" in node:
        return str(node["int"])
    if "string" in node:
        return json.dumps(node["string"])
    if "bytes" in node:
        return "0x" + str(node["bytes"])
    if "prim" not in node:
        raise ValidationError(f"Not a Micheline node: {node!r}")
    parts = [node["prim"], *node.get("annots", [])]
    parts.extend(emit_michelson(arg, nested=True) for arg in node.get("args", []))
    text = " ".join(parts)
    if nested and len(parts) > 1:
        return f"({text})"
    return text
