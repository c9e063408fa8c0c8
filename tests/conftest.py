"""Shared fixtures: the reference signing vector."""

from __future__ import annotations

from typing import Any

import pytest

from ncsa_hmac.settings import Settings
from ncsa_hmac.signing.canonical import RequestDetails


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def key_id() -> str:
    return "SECRET_KEY_ID"


@pytest.fixture()
def key_secret() -> str:
    return "abcdefghijkl"


@pytest.fixture()
def target_body() -> dict[str, Any]:
    return {"abc": "def"}


@pytest.fixture()
def target_md5() -> str:
    return "ecadfcaf838cc3166d637a196530bd90"


@pytest.fixture()
def expected_sha512() -> str:
    return "svO1jOUW+3wSVc/rzs4WQSOsWtABji6ppN0AkS++2SNvt6fPPvxonLV5WRgFaqnVc63RNmAndel8e/hxoNB4Pg=="


@pytest.fixture()
def vector_details(target_body: dict[str, Any]) -> RequestDetails:
    """POST /api/auth as signed in the published test vector."""
    return RequestDetails(
        method="POST",
        path="/api/auth",
        content_type="application/json",
        date="Fri, 22 Jul 2016",
        params=target_body,
    )


@pytest.fixture()
def test_settings(key_id: str, key_secret: str) -> Settings:
    return Settings(
        keys={key_id: key_secret},
        log_json=False,
    )
