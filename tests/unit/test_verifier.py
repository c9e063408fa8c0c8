"""Tests for signature verification."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest
from structlog.testing import capture_logs

from ncsa_hmac.signing.canonical import RequestDetails
from ncsa_hmac.signing.hmac import HashAlgorithm, Signer, SignerConfig, sign
from ncsa_hmac.verifier import (
    InMemoryKeyStore,
    VerificationOutcome,
    Verifier,
)


@pytest.fixture()
def verifier(key_id: str, key_secret: str) -> Verifier:
    return Verifier(InMemoryKeyStore({key_id: key_secret}))


@pytest.fixture()
def authorization(vector_details: RequestDetails, key_id: str, key_secret: str) -> str:
    return sign(vector_details, key_id, key_secret)


def test_valid_signature_authenticates(
    verifier: Verifier, vector_details: RequestDetails, authorization: str, key_id: str
) -> None:
    result = verifier.verify(vector_details, authorization)
    assert result.outcome is VerificationOutcome.AUTHENTICATED
    assert result.authenticated
    assert bool(result)
    assert result.key_id == key_id


def test_unknown_key_id(verifier: Verifier, vector_details: RequestDetails, key_secret: str) -> None:
    result = verifier.verify(vector_details, sign(vector_details, "OTHER_KEY", key_secret))
    assert result.outcome is VerificationOutcome.UNKNOWN_KEY_ID
    assert not result


def test_wrong_secret_is_mismatch(verifier: Verifier, vector_details: RequestDetails, key_id: str) -> None:
    result = verifier.verify(vector_details, sign(vector_details, key_id, "not-the-secret"))
    assert result.outcome is VerificationOutcome.SIGNATURE_MISMATCH


def test_tampered_body_is_mismatch(
    verifier: Verifier, vector_details: RequestDetails, authorization: str
) -> None:
    tampered = replace(vector_details, params={"abc": "evil"})
    assert verifier.verify(tampered, authorization).outcome is VerificationOutcome.SIGNATURE_MISMATCH


def test_failure_messages_do_not_leak_reason(
    verifier: Verifier, vector_details: RequestDetails, key_id: str, key_secret: str
) -> None:
    unknown = verifier.verify(vector_details, sign(vector_details, "OTHER_KEY", key_secret))
    mismatch = verifier.verify(vector_details, sign(vector_details, key_id, "wrong"))
    assert unknown.message == mismatch.message == "Authentication failed"


@pytest.mark.parametrize("header", [None, "", "Bearer abc", "NCSA.HMAC missing-colon"])
def test_malformed_header_is_mismatch(verifier: Verifier, vector_details: RequestDetails, header: str | None) -> None:
    assert verifier.verify(vector_details, header).outcome is VerificationOutcome.SIGNATURE_MISMATCH


def test_missing_date_cannot_verify(
    verifier: Verifier, vector_details: RequestDetails, authorization: str
) -> None:
    result = verifier.verify(replace(vector_details, date=""), authorization)
    assert result.outcome is VerificationOutcome.SIGNATURE_MISMATCH


def test_algorithm_must_agree(vector_details: RequestDetails, key_id: str, key_secret: str) -> None:
    header = sign(vector_details, key_id, key_secret, hash_algorithm=HashAlgorithm.SHA256)
    default = Verifier({key_id: key_secret}.get)
    sha256 = Verifier({key_id: key_secret}.get, SignerConfig(hash_algorithm=HashAlgorithm.SHA256))
    assert default.verify(vector_details, header).outcome is VerificationOutcome.SIGNATURE_MISMATCH
    assert sha256.verify(vector_details, header).authenticated


def test_callable_key_store(vector_details: RequestDetails, authorization: str, key_id: str, key_secret: str) -> None:
    lookups: list[str] = []

    def lookup(kid: str) -> str | None:
        lookups.append(kid)
        return key_secret if kid == key_id else None

    assert Verifier(lookup).verify(vector_details, authorization).authenticated
    assert lookups == [key_id]


def test_in_memory_store_ignores_empty_entries() -> None:
    store = InMemoryKeyStore({"a": "secret", "b": "", "": "x"})
    assert len(store) == 1
    assert store.lookup("b") is None


def test_rejection_is_logged_without_secret(
    verifier: Verifier, vector_details: RequestDetails, key_id: str
) -> None:
    with capture_logs() as logs:
        verifier.verify(vector_details, sign(vector_details, key_id, "wrong-secret"))
    rejected = [entry for entry in logs if entry["event"] == "request_rejected"]
    assert len(rejected) == 1
    assert rejected[0]["outcome"] == "signature_mismatch"
    assert rejected[0]["key_id"] == key_id
    assert rejected[0]["log_level"] == "warning"
    assert "wrong-secret" not in str(logs)


def _deeply_nested(depth: int) -> list[Any]:
    root: list[Any] = []
    node = root
    for _ in range(depth):
        child: list[Any] = []
        node.append(child)
        node = child
    return root


@pytest.mark.parametrize(
    "params",
    [
        {"a": float("nan")},
        {"a": float("inf")},
        {"a": object()},
        {1: "x", "1": "y"},
    ],
)
def test_unencodable_body_is_mismatch_not_error(
    verifier: Verifier, vector_details: RequestDetails, authorization: str, params: Any
) -> None:
    result = verifier.verify(replace(vector_details, params=params), authorization)
    assert result.outcome is VerificationOutcome.SIGNATURE_MISMATCH
    assert result.message == "Authentication failed"


def test_deeply_nested_body_is_mismatch_not_error(
    verifier: Verifier, vector_details: RequestDetails, authorization: str
) -> None:
    result = verifier.verify(replace(vector_details, params=_deeply_nested(100_000)), authorization)
    assert result.outcome is VerificationOutcome.SIGNATURE_MISMATCH


def test_unencodable_body_with_unknown_key_is_unknown_key(
    verifier: Verifier, vector_details: RequestDetails, key_secret: str
) -> None:
    header = sign(vector_details, "OTHER_KEY", key_secret)
    result = verifier.verify(replace(vector_details, params={"a": float("nan")}), header)
    assert result.outcome is VerificationOutcome.UNKNOWN_KEY_ID
    assert result.message == "Authentication failed"


def test_unknown_key_still_computes_a_signature(
    monkeypatch: pytest.MonkeyPatch, verifier: Verifier, vector_details: RequestDetails, key_secret: str
) -> None:
    secrets_used: list[str] = []
    original = Signer.signature

    def counting(self: Signer, details: RequestDetails, secret: str) -> str:
        secrets_used.append(secret)
        return original(self, details, secret)

    header = sign(vector_details, "OTHER_KEY", key_secret)
    monkeypatch.setattr(Signer, "signature", counting)
    result = verifier.verify(vector_details, header)

    assert result.outcome is VerificationOutcome.UNKNOWN_KEY_ID
    assert len(secrets_used) == 1
    assert secrets_used[0] != key_secret
