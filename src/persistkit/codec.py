from __future__ import annotations

import json
from typing import Any, Dict

from . import ron
from .descriptors import Format
from .errors import FormatError


def encode(fmt: Format, value: Any) -> str:
    """Encode a plain value (dicts, lists, scalars) as JSON or RON text."""
    if fmt is Format.JSON:
        try:
            return json.dumps(value, ensure_ascii=False, sort_keys=True, indent=2)
        except (TypeError, ValueError) as e:
            raise FormatError(f"JSON serialization error: {e}") from e
    if fmt is Format.RON:
        return ron.dumps(value)
    raise FormatError(f"Unsupported format: {fmt!r}")


def decode(fmt: Format, text: str) -> Any:
    """Decode JSON or RON text; errors carry the line/column reported by the parser."""
    if fmt is Format.JSON:
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise FormatError(
                f"JSON parse error: {e.msg}", line=e.lineno, column=e.colno, offset=e.pos
            ) from e
    if fmt is Format.RON:
        return ron.loads(text)
    raise FormatError(f"Unsupported format: {fmt!r}")


def encode_container(fmt: Format, mapping: Dict[str, Any]) -> str:
    """Encode a record-name -> payload mapping."""
    if fmt is Format.RON:
        # Map syntax keeps record names quoted even when they are identifiers
        return ron.dumps_map(mapping)
    return encode(fmt, mapping)


def decode_container(fmt: Format, text: str) -> Dict[str, Any]:
    if not text.strip():
        return {}
    data = decode(fmt, text)
    if not isinstance(data, dict):
        raise FormatError(
            f"Container must be a mapping of record names, got {type(data).__name__}",
            line=1,
            column=1,
            offset=0,
        )
    bad_keys = [k for k in data if not isinstance(k, str)]
    if bad_keys:
        raise FormatError(f"Container keys must be record names, got {bad_keys!r}")
    return data


def dump_container(fmt: Format, mapping: Dict[str, Any]) -> bytes:
    text = encode_container(fmt, mapping)
    if not text.endswith("\n"):
        text += "\n"
    return text.encode("utf-8")


def load_container(fmt: Format, data: bytes) -> Dict[str, Any]:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"Container is not valid UTF-8: {e.reason}", offset=e.start) from e
    return decode_container(fmt, text)
