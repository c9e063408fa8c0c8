"""Canonical request string for HMAC signing."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from ncsa_hmac.signing.digest import Body, content_digest

__all__ = [
    "DEFAULT_BODYLESS_METHODS",
    "CanonicalRequest",
    "RequestDetails",
    "canonicalize",
    "format_date",
    "prepare",
    "resolve_date",
    "strip_bodyless_params",
]

DEFAULT_BODYLESS_METHODS: frozenset[str] = frozenset({"GET"})


@dataclass(frozen=True)
class RequestDetails:
    """Immutable snapshot of the request fields covered by the signature."""

    method: str
    path: str
    content_type: str | None = ""
    date: str | None = None
    params: Body = None


@dataclass(frozen=True)
class CanonicalRequest:
    """Outcome of canonicalization: the resolved snapshot plus the string to sign."""

    details: RequestDetails
    content_digest: str
    text: str

    @property
    def date(self) -> str:
        return self.details.date or ""


def format_date(moment: datetime) -> str:
    """Render a timestamp as extended ISO-8601 with a ``Z`` designator."""
    return moment.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def resolve_date(details: RequestDetails, now: datetime | None = None) -> RequestDetails:
    """Fill in the current UTC time when ``date`` is absent or empty."""
    if details.date:
        return details
    return replace(details, date=format_date(now or datetime.now(UTC)))


def strip_bodyless_params(
    details: RequestDetails,
    bodyless_methods: Iterable[str] = DEFAULT_BODYLESS_METHODS,
) -> RequestDetails:
    """Drop ``params`` for methods whose body never takes part in the digest."""
    methods = {m.upper() for m in bodyless_methods}
    if details.method.upper() in methods and details.params is not None:
        return replace(details, params=None)
    return details


def prepare(
    details: RequestDetails,
    bodyless_methods: Iterable[str] = DEFAULT_BODYLESS_METHODS,
    now: datetime | None = None,
) -> CanonicalRequest:
    """Run the full pipeline: date, bodyless stripping, digest, assembly.

    Args:
        details: Snapshot of the request; never mutated.
        bodyless_methods: Methods whose params are excluded from the digest.
        now: Clock override used only when ``details.date`` is absent.

    Returns:
        CanonicalRequest carrying the resolved date and digest, which the
        caller must persist on the outgoing request.
    """
    resolved = resolve_date(details, now)
    resolved = strip_bodyless_params(resolved, bodyless_methods)
    digest = content_digest(resolved.params)
    text = "\n".join(
        [
            resolved.method.upper(),
            resolved.content_type or "",
            digest,
            resolved.date or "",
            resolved.path.lower(),
        ]
    )
    return CanonicalRequest(details=resolved, content_digest=digest, text=text)


def canonicalize(
    details: RequestDetails,
    bodyless_methods: Iterable[str] = DEFAULT_BODYLESS_METHODS,
    now: datetime | None = None,
) -> str:
    """Produce the deterministic string that the HMAC is computed over."""
    return prepare(details, bodyless_methods, now).text
