"""Inbound request adapter: verifies Starlette / FastAPI requests."""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import HTTPException, Request, status

from ncsa_hmac.adapters.body import decode_body
from ncsa_hmac.signing.canonical import RequestDetails
from ncsa_hmac.verifier import VerificationResult, Verifier

__all__ = ["HmacAuthGuard", "UnauthorizedHook", "request_details_from_request"]

UnauthorizedHook = Callable[[Request, VerificationResult], Awaitable[Any] | Any]


async def request_details_from_request(request: Request) -> RequestDetails:
    """Snapshot the signed fields of an inbound request.

    Starlette caches the body, so route handlers can still read it.
    """
    body = await request.body()
    content_type = request.headers.get("content-type", "")
    return RequestDetails(
        method=request.method,
        path=request.url.path,
        content_type=content_type,
        date=request.headers.get("date", ""),
        params=decode_body(content_type, body),
    )


class HmacAuthGuard:
    """FastAPI dependency rejecting requests without a valid HMAC credential.

    The verifier is taken from the constructor, or from
    ``request.app.state.verifier`` when none was given. On failure the
    optional ``on_unauthorized`` hook runs first, sync or async; it may
    raise its own exception, otherwise a 401 is raised.

    Sets ``request.state.authorized`` and, on failure,
    ``request.state.error_message``.
    """

    def __init__(
        self,
        verifier: Verifier | None = None,
        on_unauthorized: UnauthorizedHook | None = None,
    ) -> None:
        self._verifier = verifier
        self._on_unauthorized = on_unauthorized

    def _resolve_verifier(self, request: Request) -> Verifier:
        if self._verifier is not None:
            return self._verifier
        verifier = getattr(request.app.state, "verifier", None)
        if verifier is None:
            raise RuntimeError("No Verifier configured on HmacAuthGuard or app.state.verifier")
        return verifier  # type: ignore[no-any-return]

    async def __call__(self, request: Request) -> VerificationResult:
        verifier = self._resolve_verifier(request)
        details = await request_details_from_request(request)
        result = verifier.verify(details, request.headers.get("authorization"))

        request.state.authorized = result.authenticated
        if result.authenticated:
            request.state.key_id = result.key_id
            return result

        request.state.error_message = result.message
        if self._on_unauthorized is not None:
            outcome = self._on_unauthorized(request, result)
            if inspect.isawaitable(outcome):
                await outcome
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=result.message)
