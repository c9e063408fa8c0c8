"""Content digest of a request body.

The body is encoded with a closed, recursive canonical encoder before
hashing so that two logically equal bodies always produce the same
digest, whatever the key insertion order of their maps.
"""

from __future__ import annotations

import hashlib
import json
import math
from collections.abc import Mapping, Sequence
from typing import Any, Union

__all__ = ["Body", "JsonValue", "content_digest", "encode_body"]

JsonValue = Union[None, bool, int, float, str, Sequence["JsonValue"], Mapping[Any, "JsonValue"]]
Body = Union[JsonValue, bytes]


def _encode_string(value: str) -> str:
    return json.dumps(value, ensure_ascii=True)


def _encode_number(value: int | float) -> str:
    if isinstance(value, float) and not math.isfinite(value):
        raise ValueError(f"Cannot encode non-finite number: {value!r}")
    return json.dumps(value)


def _key_text(key: Any) -> str:
    """Stringify a map key the way it would appear once encoded."""
    if isinstance(key, str):
        return key
    if key is None:
        return "null"
    if isinstance(key, bool):
        return "true" if key else "false"
    if isinstance(key, (int, float)):
        return _encode_number(key)
    raise TypeError(f"Unsupported map key type: {type(key).__name__}")


def _encode_object(value: Mapping[Any, Any]) -> str:
    items: dict[str, Any] = {}
    for key, item in value.items():
        text = _key_text(key)
        if text in items:
            raise ValueError(f"Map keys collide once stringified: {text!r}")
        items[text] = item
    members = (f"{_encode_string(k)}:{encode_body(items[k])}" for k in sorted(items))
    return "{" + ",".join(members) + "}"


def encode_body(value: JsonValue) -> str:
    """Encode a body value as compact JSON with lexicographically sorted keys.

    Accepted kinds: object (``Mapping``), array (``list``/``tuple``),
    string, number, boolean and null. Anything else raises ``TypeError``.
    """
    if value is None:
        return "null"
    # bool before int: True is an int
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return _encode_number(value)
    if isinstance(value, str):
        return _encode_string(value)
    if isinstance(value, Mapping):
        return _encode_object(value)
    if isinstance(value, (list, tuple)):
        return "[" + ",".join(encode_body(item) for item in value) + "]"
    raise TypeError(f"Unsupported body value type: {type(value).__name__}")


def content_digest(params: Body) -> str:
    """Return the lower-case hex MD5 of the canonically encoded body.

    ``None`` and an empty map yield ``""``. A ``str`` or ``bytes`` body
    is treated as already encoded and hashed verbatim.
    """
    if params is None:
        return ""
    if isinstance(params, Mapping) and not params:
        return ""

    if isinstance(params, bytes):
        data = params
    elif isinstance(params, str):
        data = params.encode("utf-8")
    else:
        data = encode_body(params).encode("utf-8")
    return hashlib.md5(data, usedforsecurity=False).hexdigest()
