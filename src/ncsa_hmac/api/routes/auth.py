"""Authentication check endpoint: echoes the caller's verified key id."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ncsa_hmac.adapters.starlette import HmacAuthGuard
from ncsa_hmac.verifier import VerificationResult

router = APIRouter()

__all__ = ["AuthCheckResponse", "router"]

require_hmac = HmacAuthGuard()


class AuthCheckResponse(BaseModel):
    authorized: bool
    key_id: str


@router.api_route(
    "/api/auth",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    response_model=AuthCheckResponse,
    summary="Verify the request's HMAC credential",
    operation_id="auth_check",
)
async def auth_check(result: VerificationResult = Depends(require_hmac)) -> AuthCheckResponse:
    return AuthCheckResponse(authorized=result.authenticated, key_id=result.key_id)
