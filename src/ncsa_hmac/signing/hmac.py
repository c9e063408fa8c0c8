"""HMAC signature computation and credential formatting."""

from __future__ import annotations

import base64
import hashlib
import hmac as hmac_mod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

from ncsa_hmac.errors import MalformedCredential, SigningError, UnsupportedAlgorithm
from ncsa_hmac.logging import get_logger
from ncsa_hmac.signing.canonical import DEFAULT_BODYLESS_METHODS, RequestDetails, prepare

if TYPE_CHECKING:
    from ncsa_hmac.settings import Settings

__all__ = [
    "DEFAULT_SERVICE_NAME",
    "Credential",
    "HashAlgorithm",
    "SignedRequest",
    "Signer",
    "SignerConfig",
    "sign",
    "signature",
]

logger = get_logger(component="signer")

DEFAULT_SERVICE_NAME = "NCSA.HMAC"


class HashAlgorithm(str, Enum):
    """Keyed-hash variants. Not transmitted; both sides agree by configuration."""

    SHA256 = "sha256"
    SHA384 = "sha384"
    SHA512 = "sha512"

    @classmethod
    def coerce(cls, value: HashAlgorithm | str) -> HashAlgorithm:
        """Accept a member or its name in any case, reject everything else."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise UnsupportedAlgorithm(f"Unsupported hash algorithm: {value!r}")

    @property
    def digestmod(self) -> Callable[..., Any]:
        return _DIGESTMODS[self]


_DIGESTMODS: dict[HashAlgorithm, Callable[..., Any]] = {
    HashAlgorithm.SHA256: hashlib.sha256,
    HashAlgorithm.SHA384: hashlib.sha384,
    HashAlgorithm.SHA512: hashlib.sha512,
}


@dataclass(frozen=True)
class Credential:
    """Parsed form of ``<service_name> <key_id>:<signature>``."""

    service_name: str
    key_id: str
    signature: str

    def __str__(self) -> str:
        return f"{self.service_name} {self.key_id}:{self.signature}"

    @classmethod
    def parse(cls, header: str, service_name: str | None = None) -> Credential:
        """Split an ``Authorization`` value into its parts.

        When ``service_name`` is given the header must start with it,
        which allows service names containing spaces.
        """
        value = (header or "").strip()
        if service_name is not None:
            prefix = service_name + " "
            if not value.startswith(prefix):
                raise MalformedCredential("Unexpected authorization scheme")
            service, rest = service_name, value[len(prefix) :]
        else:
            service, _, rest = value.partition(" ")
        key_id, sep, sig = rest.strip().partition(":")
        if not service or not sep or not key_id or not sig:
            raise MalformedCredential("Authorization must be '<service> <key_id>:<signature>'")
        return cls(service_name=service, key_id=key_id, signature=sig)


@dataclass(frozen=True)
class SignedRequest:
    """Everything an adapter writes back onto the outgoing request."""

    authorization: str
    content_digest: str
    date: str


def _validate_key(key: str | None, key_type: str) -> str:
    if key is None or key == "":
        raise SigningError(f"{key_type} is required")
    return key


def signature(
    request_details: RequestDetails,
    key_secret: str,
    hash_algorithm: HashAlgorithm | str = HashAlgorithm.SHA512,
    bodyless_methods: Iterable[str] = DEFAULT_BODYLESS_METHODS,
    now: datetime | None = None,
) -> str:
    """Compute the base64 HMAC of the canonical request string."""
    algorithm = HashAlgorithm.coerce(hash_algorithm)
    canonical = prepare(request_details, bodyless_methods, now)
    return _digest(canonical.text, key_secret, algorithm)


def _digest(message: str, key_secret: str, algorithm: HashAlgorithm) -> str:
    raw = hmac_mod.new(key_secret.encode("utf-8"), message.encode("utf-8"), algorithm.digestmod).digest()
    return base64.b64encode(raw).decode("ascii")


def sign(
    request_details: RequestDetails,
    key_id: str | None,
    key_secret: str | None,
    hash_algorithm: HashAlgorithm | str = HashAlgorithm.SHA512,
    service_name: str = DEFAULT_SERVICE_NAME,
    bodyless_methods: Iterable[str] = DEFAULT_BODYLESS_METHODS,
) -> str:
    """Return the ``Authorization`` credential for a request.

    Raises:
        SigningError: ``key_id`` or ``key_secret`` is missing or empty.
        UnsupportedAlgorithm: ``hash_algorithm`` is not supported.
    """
    _validate_key(key_id, "key_id")
    _validate_key(key_secret, "key_secret")
    config = SignerConfig(
        hash_algorithm=HashAlgorithm.coerce(hash_algorithm),
        service_name=service_name,
        bodyless_methods=frozenset(m.upper() for m in bodyless_methods),
    )
    return Signer(config).sign(request_details, key_id, key_secret)


@dataclass(frozen=True)
class SignerConfig:
    """Agreement shared by signer and verifier."""

    hash_algorithm: HashAlgorithm = HashAlgorithm.SHA512
    service_name: str = DEFAULT_SERVICE_NAME
    bodyless_methods: frozenset[str] = DEFAULT_BODYLESS_METHODS

    @classmethod
    def from_settings(cls, settings: Settings) -> SignerConfig:
        return cls(
            hash_algorithm=HashAlgorithm.coerce(settings.hash_algorithm),
            service_name=settings.service_name,
            bodyless_methods=frozenset(m.upper() for m in settings.bodyless_methods),
        )


class Signer:
    """Signs request snapshots under a fixed ``SignerConfig``.

    Holds no mutable state, so one instance can be shared across
    threads and tasks.
    """

    def __init__(self, config: SignerConfig | None = None) -> None:
        self.config = config or SignerConfig()

    def signature(self, request_details: RequestDetails, key_secret: str, now: datetime | None = None) -> str:
        canonical = prepare(request_details, self.config.bodyless_methods, now)
        return _digest(canonical.text, key_secret, self.config.hash_algorithm)

    def sign(self, request_details: RequestDetails, key_id: str | None, key_secret: str | None) -> str:
        return self.sign_details(request_details, key_id, key_secret).authorization

    def sign_details(
        self,
        request_details: RequestDetails,
        key_id: str | None,
        key_secret: str | None,
        now: datetime | None = None,
    ) -> SignedRequest:
        """Sign and return the credential plus the resolved date and digest."""
        key_id = _validate_key(key_id, "key_id")
        key_secret = _validate_key(key_secret, "key_secret")

        canonical = prepare(request_details, self.config.bodyless_methods, now)
        credential = Credential(
            service_name=self.config.service_name,
            key_id=key_id,
            signature=_digest(canonical.text, key_secret, self.config.hash_algorithm),
        )
        logger.debug(
            "request_signed",
            key_id=key_id,
            method=canonical.details.method.upper(),
            content_digest=canonical.content_digest,
            algorithm=self.config.hash_algorithm.value,
        )
        return SignedRequest(
            authorization=str(credential),
            content_digest=canonical.content_digest,
            date=canonical.date,
        )
