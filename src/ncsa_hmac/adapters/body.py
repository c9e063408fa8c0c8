"""Body decoding shared by the outbound and inbound request adapters.

Both sides of a signed exchange must turn the same bytes into the same
digest input, so they decode through this one function.
"""

from __future__ import annotations

import json
import math
from urllib.parse import parse_qs

from ncsa_hmac.signing.digest import Body

__all__ = ["decode_body", "media_type"]

_FORM = "application/x-www-form-urlencoded"


def _reject_constant(name: str) -> float:
    raise ValueError(f"Non-finite JSON literal: {name}")


def _finite_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise ValueError(f"Non-finite JSON number: {text}")
    return value


def media_type(content_type: str | None) -> str:
    """``"application/json; charset=utf-8"`` -> ``"application/json"``."""
    return (content_type or "").split(";", 1)[0].strip().lower()


def _is_json(media: str) -> bool:
    return media == "application/json" or media.endswith("+json")


def decode_body(content_type: str | None, body: bytes) -> Body:
    """Turn a raw body into the value the content digest is computed over.

    Empty body -> None. JSON -> decoded value. Form -> map of strings
    (lists for repeated keys). Anything else, including undecodable
    JSON or form data, is digested as the raw bytes. JSON carrying
    non-finite numbers (``NaN``, ``Infinity``, ``1e400``) or nested too
    deeply to decode counts as undecodable.
    """
    if not body:
        return None
    media = media_type(content_type)
    if _is_json(media):
        try:
            return json.loads(  # type: ignore[no-any-return]
                body, parse_constant=_reject_constant, parse_float=_finite_float
            )
        except (ValueError, RecursionError):
            return body
    if media == _FORM:
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError:
            return body
        parsed = parse_qs(text, keep_blank_values=True)
        return {k: v[0] if len(v) == 1 else v for k, v in parsed.items()}
    return body
