"""Reader and writer for Rusty Object Notation (RON).

RON values map onto plain Python data as follows:

- maps ``{"a": 1}`` and structs ``(a: 1)`` / ``Name(a: 1)`` -> dict
- lists ``[1, 2]`` and tuples ``(1, 2)`` / ``Name(1, 2)`` -> list
- ``Some(x)`` -> x, ``None`` and unit ``()`` -> None
- bare identifiers (enum variants) and chars -> str
- integers, floats (``inf``, ``-inf``, ``NaN``), booleans as usual

The writer emits dicts whose keys are all identifiers as anonymous structs and
any other dict as a map, so ``loads(dumps(v)) == v`` for every value built
from those types (NaN aside).
"""
from __future__ import annotations

import math
import re
from typing import Any, Dict, List

from .errors import FormatError

__all__ = ["dumps", "loads", "dumps_map"]

INDENT = "    "

_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_NUMBER_RE = re.compile(
    r"""
    [+-]?
    (?:
        0x[0-9A-Fa-f_]+
      | 0o[0-7_]+
      | 0b[01_]+
      | [0-9][0-9_]*\.(?![0-9_])
      | (?:[0-9][0-9_]*)?\.?[0-9][0-9_]*(?:[eE][+-]?[0-9_]+)?
    )
    """,
    re.VERBOSE,
)
_ESCAPES = {
    '"': '"',
    "'": "'",
    "\\": "\\",
    "/": "/",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "0": "\0",
    "b": "\b",
    "f": "\f",
}


# Writing


def dumps(value: Any, *, pretty: bool = True) -> str:
    """Serialize ``value`` to RON text."""
    return _write(value, 0, pretty)


def dumps_map(mapping: Dict[Any, Any], *, pretty: bool = True) -> str:
    """Serialize a dict always using map syntax, e.g. for container files."""
    return _write_map(mapping, 0, pretty)


def _write(value: Any, depth: int, pretty: bool) -> str:
    if value is None:
        return "None"
    if value is True:
        return "true"
    if value is False:
        return "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return _format_float(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, (list, tuple)):
        items = [_write(v, depth + 1, pretty) for v in value]
        return _join("[", "]", items, depth, pretty)
    if isinstance(value, dict):
        if value and all(isinstance(k, str) and _IDENT_RE.fullmatch(k) for k in value):
            sep = ": " if pretty else ":"
            items = [f"{k}{sep}{_write(v, depth + 1, pretty)}" for k, v in value.items()]
            return _join("(", ")", items, depth, pretty)
        return _write_map(value, depth, pretty)
    raise FormatError(f"Cannot encode value of type {type(value).__name__} as RON")


def _write_map(mapping: Dict[Any, Any], depth: int, pretty: bool) -> str:
    sep = ": " if pretty else ":"
    items = []
    for k, v in mapping.items():
        if isinstance(k, (list, tuple, dict)):
            raise FormatError(f"Unsupported RON map key type: {type(k).__name__}")
        items.append(f"{_write(k, depth + 1, pretty)}{sep}{_write(v, depth + 1, pretty)}")
    return _join("{", "}", items, depth, pretty)


def _join(open_: str, close: str, items: List[str], depth: int, pretty: bool) -> str:
    if not items:
        return open_ + close
    if not pretty:
        return open_ + ",".join(items) + close
    inner = INDENT * (depth + 1)
    body = "".join(f"{inner}{item},\n" for item in items)
    return f"{open_}\n{body}{INDENT * depth}{close}"


def _format_float(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    text = repr(value)
    if "." not in text and "e" not in text and "E" not in text:
        text += ".0"
    return text


def _quote(text: str) -> str:
    out = ['"']
    for ch in text:
        if ch == '"':
            out.append('\\"')
        elif ch == "\\":
            out.append("\\\\")
        elif ch == "\n":
            out.append("\\n")
        elif ch == "\r":
            out.append("\\r")
        elif ch == "\t":
            out.append("\\t")
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\u{{{ord(ch):x}}}")
        else:
            out.append(ch)
    out.append('"')
    return "".join(out)


# Reading


def loads(text: str) -> Any:
    """Parse RON text into plain Python data.

    Raises:
        FormatError with the line, column and offset of the first problem.
    """
    parser = _Parser(text)
    parser.skip_attributes()
    value = parser.parse_value()
    parser.skip_ws()
    if parser.pos != len(text):
        parser.fail("Trailing characters after value")
    return value


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    # Helpers

    def fail(self, message: str, pos: int | None = None) -> None:
        offset = self.pos if pos is None else pos
        line = self.text.count("\n", 0, offset) + 1
        column = offset - (self.text.rfind("\n", 0, offset) + 1) + 1
        raise FormatError(message, line=line, column=column, offset=offset)

    def peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def expect(self, ch: str) -> None:
        self.skip_ws()
        if self.peek() != ch:
            found = self.peek() or "end of input"
            self.fail(f"Expected {ch!r}, found {found!r}")
        self.pos += 1

    def skip_ws(self) -> None:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]
            if ch.isspace():
                self.pos += 1
            elif text.startswith("//", self.pos):
                end = text.find("\n", self.pos)
                self.pos = len(text) if end == -1 else end + 1
            elif text.startswith("/*", self.pos):
                self._skip_block_comment()
            else:
                break

    def _skip_block_comment(self) -> None:
        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            if self.text.startswith("/*", self.pos):
                depth += 1
                self.pos += 2
            elif self.text.startswith("*/", self.pos):
                depth -= 1
                self.pos += 2
                if depth == 0:
                    return
            else:
                self.pos += 1
        self.fail("Unterminated block comment", start)

    def skip_attributes(self) -> None:
        # e.g. #![enable(implicit_some)]
        self.skip_ws()
        while self.text.startswith("#!", self.pos):
            end = self.text.find("]", self.pos)
            if end == -1:
                self.fail("Unterminated attribute")
            self.pos = end + 1
            self.skip_ws()

    def ident(self) -> str:
        m = _IDENT_RE.match(self.text, self.pos)
        if not m:
            self.fail("Expected identifier")
        self.pos = m.end()
        return m.group(0)

    def lookahead_field(self) -> bool:
        """True if the next tokens are ``ident :`` (a struct field)."""
        save = self.pos
        try:
            self.skip_ws()
            m = _IDENT_RE.match(self.text, self.pos)
            if not m:
                return False
            self.pos = m.end()
            self.skip_ws()
            # Exclude '::' paths
            return self.peek() == ":" and not self.text.startswith("::", self.pos)
        finally:
            self.pos = save

    # Values

    def parse_value(self) -> Any:
        self.skip_ws()
        ch = self.peek()
        if not ch:
            self.fail("Unexpected end of input")
        if ch == '"':
            return self.parse_string()
        if ch == "'":
            return self.parse_char()
        if ch == "[":
            return self.parse_list()
        if ch == "{":
            return self.parse_map()
        if ch == "(":
            return self.parse_parens()
        if ch == "r" and self.text.startswith(('r"', "r#"), self.pos):
            return self.parse_raw_string()
        if ch in "+-" and self.text.startswith(("inf", "NaN"), self.pos + 1):
            sign = -1.0 if ch == "-" else 1.0
            self.pos += 1
            word = self.ident()
            return sign * (math.inf if word == "inf" else math.nan)
        if ch.isdigit() or ch in "+-.":
            return self.parse_number()
        if _IDENT_RE.match(ch):
            return self.parse_identifier_value()
        self.fail(f"Unexpected character {ch!r}")

    def parse_identifier_value(self) -> Any:
        start = self.pos
        word = self.ident()
        if word == "true":
            return True
        if word == "false":
            return False
        if word == "inf":
            return math.inf
        if word == "NaN":
            return math.nan
        self.skip_ws()
        if word == "None" and self.peek() != "(":
            return None
        if self.peek() == "(":
            if word == "Some":
                self.pos += 1
                value = self.parse_value()
                self.skip_ws()
                if self.peek() == ",":
                    self.pos += 1
                self.expect(")")
                return value
            return self.parse_parens()
        if word == "None":
            self.fail("Unexpected token after None", start)
        return word

    def parse_parens(self) -> Any:
        open_pos = self.pos
        self.expect("(")
        self.skip_ws()
        if self.peek() == ")":
            self.pos += 1
            return None
        if self.lookahead_field():
            return self._parse_struct_body(open_pos)
        items: List[Any] = []
        while True:
            items.append(self.parse_value())
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                self.skip_ws()
                if self.peek() == ")":
                    break
                continue
            if self.peek() == ")":
                break
            self.fail("Expected ',' or ')' in tuple")
        self.pos += 1
        return items

    def _parse_struct_body(self, open_pos: int) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        while True:
            self.skip_ws()
            if self.peek() == ")":
                break
            key_pos = self.pos
            key = self.ident()
            if key in fields:
                self.fail(f"Duplicate field {key!r}", key_pos)
            self.expect(":")
            fields[key] = self.parse_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            if self.peek() != ")":
                self.fail("Expected ',' or ')' in struct")
        self.pos += 1
        return fields

    def parse_list(self) -> List[Any]:
        self.expect("[")
        items: List[Any] = []
        while True:
            self.skip_ws()
            if self.peek() == "]":
                break
            items.append(self.parse_value())
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            if self.peek() != "]":
                self.fail("Expected ',' or ']' in list")
        self.pos += 1
        return items

    def parse_map(self) -> Dict[Any, Any]:
        self.expect("{")
        result: Dict[Any, Any] = {}
        while True:
            self.skip_ws()
            if self.peek() == "}":
                break
            key_pos = self.pos
            key = self.parse_value()
            try:
                hash(key)
            except TypeError:
                self.fail("Map keys must be scalar values", key_pos)
            self.expect(":")
            result[key] = self.parse_value()
            self.skip_ws()
            if self.peek() == ",":
                self.pos += 1
                continue
            if self.peek() != "}":
                self.fail("Expected ',' or '}' in map")
        self.pos += 1
        return result

    def parse_string(self) -> str:
        start = self.pos
        self.pos += 1
        out: List[str] = []
        text = self.text
        while True:
            if self.pos >= len(text):
                self.fail("Unterminated string", start)
            ch = text[self.pos]
            if ch == '"':
                self.pos += 1
                return "".join(out)
            if ch == "\\":
                out.append(self._parse_escape())
            else:
                out.append(ch)
                self.pos += 1

    def _parse_escape(self) -> str:
        esc_pos = self.pos
        self.pos += 1
        ch = self.peek()
        if ch in _ESCAPES:
            self.pos += 1
            return _ESCAPES[ch]
        if ch == "u":
            self.pos += 1
            if self.peek() == "{":
                end = self.text.find("}", self.pos)
                if end == -1:
                    self.fail("Unterminated unicode escape", esc_pos)
                digits = self.text[self.pos + 1:end]
                self.pos = end + 1
            else:
                digits = self.text[self.pos:self.pos + 4]
                self.pos += 4
            try:
                return chr(int(digits, 16))
            except ValueError:
                self.fail("Invalid unicode escape", esc_pos)
        if ch == "x":
            digits = self.text[self.pos + 1:self.pos + 3]
            self.pos += 3
            try:
                return chr(int(digits, 16))
            except ValueError:
                self.fail("Invalid hex escape", esc_pos)
        self.fail(f"Unknown escape sequence \\{ch}", esc_pos)
        return ""  # unreachable

    def parse_raw_string(self) -> str:
        start = self.pos
        self.pos += 1
        hashes = 0
        while self.peek() == "#":
            hashes += 1
            self.pos += 1
        if self.peek() != '"':
            self.fail("Expected '\"' in raw string", start)
        self.pos += 1
        terminator = '"' + "#" * hashes
        end = self.text.find(terminator, self.pos)
        if end == -1:
            self.fail("Unterminated raw string", start)
        value = self.text[self.pos:end]
        self.pos = end + len(terminator)
        return value

    def parse_char(self) -> str:
        start = self.pos
        self.pos += 1
        if self.peek() == "\\":
            value = self._parse_escape()
        else:
            value = self.peek()
            self.pos += 1
        if self.peek() != "'":
            self.fail("Unterminated char literal", start)
        self.pos += 1
        return value

    def parse_number(self) -> Any:
        m = _NUMBER_RE.match(self.text, self.pos)
        if not m or not m.group(0).strip("+-"):
            self.fail("Invalid number")
        raw = m.group(0)
        start = self.pos
        self.pos = m.end()
        cleaned = raw.replace("_", "")
        body = cleaned.lstrip("+-")
        try:
            if body[:2] in ("0x", "0o", "0b"):
                return int(cleaned, 0)
            if any(c in body for c in ".eE"):
                return float(cleaned)
            return int(cleaned)
        except ValueError:
            self.fail(f"Invalid number {raw!r}", start)
