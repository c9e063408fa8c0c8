"""Outbound request adapter: signs ``httpx`` requests."""

from __future__ import annotations

from collections.abc import Generator

import httpx

from ncsa_hmac.adapters.body import decode_body
from ncsa_hmac.logging import get_logger
from ncsa_hmac.signing.canonical import RequestDetails
from ncsa_hmac.signing.hmac import SignedRequest, Signer

__all__ = ["HmacAuth", "request_details_from_httpx", "sign_request"]

logger = get_logger(component="httpx_auth")


def request_details_from_httpx(request: httpx.Request) -> RequestDetails:
    """Snapshot the signed fields of an outgoing request.

    The body must already be read (``HmacAuth`` asks httpx to do so).
    """
    content_type = request.headers.get("content-type", "")
    return RequestDetails(
        method=request.method,
        path=request.url.path,
        content_type=content_type,
        date=request.headers.get("date") or None,
        params=decode_body(content_type, request.content),
    )


def sign_request(
    request: httpx.Request,
    key_id: str | None,
    key_secret: str | None,
    signer: Signer | None = None,
) -> SignedRequest:
    """Sign ``request`` in place.

    Sets ``Authorization`` and ``Content-Digest``; sets ``Date`` when the
    caller did not, so the receiver sees the timestamp that was signed.

    Raises:
        SigningError: Missing key id or secret. The request is left unsigned.
    """
    signer = signer or Signer()
    details = request_details_from_httpx(request)
    signed = signer.sign_details(details, key_id, key_secret)

    request.headers["Authorization"] = signed.authorization
    request.headers["Content-Digest"] = signed.content_digest
    if not request.headers.get("date"):
        request.headers["Date"] = signed.date
    return signed


class HmacAuth(httpx.Auth):
    """``httpx`` auth hook adding NCSA HMAC credentials to every request.

    Usage::

        client = httpx.Client(auth=HmacAuth("KEY_ID", "secret"))
    """

    requires_request_body = True

    def __init__(self, key_id: str | None, key_secret: str | None, signer: Signer | None = None) -> None:
        self._key_id = key_id
        self._key_secret = key_secret
        self._signer = signer or Signer()

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        signed = sign_request(request, self._key_id, self._key_secret, self._signer)
        logger.debug("outbound_request_signed", key_id=self._key_id, date=signed.date, url=str(request.url))
        yield request
