"""Signature verification against a key store.

The verifier recomputes the signature from an inbound request snapshot
and the looked-up secret, then compares it in constant time. Failures
are reported as values, never raised.
"""

from __future__ import annotations

import hmac
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ncsa_hmac.errors import MalformedCredential
from ncsa_hmac.logging import get_logger
from ncsa_hmac.signing.canonical import RequestDetails
from ncsa_hmac.signing.hmac import Credential, Signer, SignerConfig

__all__ = [
    "InMemoryKeyStore",
    "KeyStoreProtocol",
    "VerificationOutcome",
    "VerificationResult",
    "Verifier",
]

logger = get_logger(component="verifier")

AUTH_FAILED_MESSAGE = "Authentication failed"
_UNKNOWN_KEY_SECRET = "ncsa-hmac-unknown-key"


class KeyStoreProtocol(Protocol):
    """Maps a public key id to its shared secret."""

    def lookup(self, key_id: str) -> str | None:
        """Return the secret for ``key_id``, or None when unknown."""
        ...


class InMemoryKeyStore:
    """Read-only key store backed by a dict, for dev, tests and small deployments."""

    def __init__(self, keys: Mapping[str, str] | None = None) -> None:
        self._keys: dict[str, str] = {k: v for k, v in (keys or {}).items() if k and v}

    def lookup(self, key_id: str) -> str | None:
        return self._keys.get(key_id)

    def __len__(self) -> int:
        return len(self._keys)


class _CallableKeyStore:
    def __init__(self, fn: Callable[[str], str | None]) -> None:
        self._fn = fn

    def lookup(self, key_id: str) -> str | None:
        return self._fn(key_id)


class VerificationOutcome(str, Enum):
    AUTHENTICATED = "authenticated"
    UNKNOWN_KEY_ID = "unknown_key_id"
    SIGNATURE_MISMATCH = "signature_mismatch"


@dataclass(frozen=True)
class VerificationResult:
    """Decision handed to the enclosing authorization layer.

    ``outcome`` is for logs and metrics only; ``message`` is identical
    for every failure so callers cannot tell unknown keys from bad
    signatures.
    """

    outcome: VerificationOutcome
    key_id: str = ""
    message: str = ""

    @property
    def authenticated(self) -> bool:
        return self.outcome is VerificationOutcome.AUTHENTICATED

    def __bool__(self) -> bool:
        return self.authenticated


class Verifier:
    """Recomputes request signatures and compares them to received credentials."""

    def __init__(
        self,
        key_store: KeyStoreProtocol | Callable[[str], str | None],
        config: SignerConfig | None = None,
    ) -> None:
        if callable(key_store) and not hasattr(key_store, "lookup"):
            key_store = _CallableKeyStore(key_store)
        self._key_store: KeyStoreProtocol = key_store  # type: ignore[assignment]
        self._signer = Signer(config)

    @property
    def config(self) -> SignerConfig:
        return self._signer.config

    def _fail(self, outcome: VerificationOutcome, key_id: str = "") -> VerificationResult:
        logger.warning("request_rejected", outcome=outcome.value, key_id=key_id)
        return VerificationResult(outcome=outcome, key_id=key_id, message=AUTH_FAILED_MESSAGE)

    def _expected_signature(self, request_details: RequestDetails, secret: str) -> str | None:
        try:
            return self._signer.signature(request_details, secret)
        except (ValueError, TypeError, RecursionError):
            logger.warning("unencodable_request_body", method=request_details.method.upper())
            return None

    def verify(self, request_details: RequestDetails, authorization: str | None) -> VerificationResult:
        """Check ``authorization`` against the signature recomputed from ``request_details``.

        The snapshot must carry the ``date`` the signer used; a missing
        date cannot be reproduced and is reported as a mismatch. A body
        the digest encoder rejects is a mismatch too, never an exception.
        """
        try:
            credential = Credential.parse(authorization or "", self.config.service_name)
        except MalformedCredential:
            return self._fail(VerificationOutcome.SIGNATURE_MISMATCH)

        secret = self._key_store.lookup(credential.key_id)
        # Unknown keys still pay for one HMAC so timing matches a mismatch
        expected = self._expected_signature(request_details, secret or _UNKNOWN_KEY_SECRET)
        if not secret:
            return self._fail(VerificationOutcome.UNKNOWN_KEY_ID, credential.key_id)

        if not request_details.date or expected is None:
            return self._fail(VerificationOutcome.SIGNATURE_MISMATCH, credential.key_id)

        if not hmac.compare_digest(expected.encode("ascii"), credential.signature.encode("utf-8")):
            return self._fail(VerificationOutcome.SIGNATURE_MISMATCH, credential.key_id)

        logger.info("request_authenticated", key_id=credential.key_id)
        return VerificationResult(outcome=VerificationOutcome.AUTHENTICATED, key_id=credential.key_id)
