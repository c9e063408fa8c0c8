"""Exception hierarchy for signing and credential handling."""

from __future__ import annotations

__all__ = [
    "MalformedCredential",
    "NcsaHmacError",
    "SigningError",
    "UnsupportedAlgorithm",
]


class NcsaHmacError(Exception):
    """Base class for every error raised by this package."""


class SigningError(NcsaHmacError):
    """A request cannot be signed because a key is missing or empty.

    Fatal for the caller: fix the configuration, do not retry.
    """


class UnsupportedAlgorithm(NcsaHmacError, ValueError):
    """Requested hash algorithm is not one of the supported variants."""


class MalformedCredential(NcsaHmacError, ValueError):
    """An ``Authorization`` value does not have the ``<service> <key_id>:<sig>`` shape."""
