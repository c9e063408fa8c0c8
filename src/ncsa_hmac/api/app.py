"""FastAPI application factory for the reference verifying service."""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse

from ncsa_hmac.api.routes import auth, health
from ncsa_hmac.logging import configure_from_settings, get_logger, new_correlation_id
from ncsa_hmac.settings import Settings
from ncsa_hmac.signing.hmac import SignerConfig
from ncsa_hmac.verifier import InMemoryKeyStore, KeyStoreProtocol, Verifier

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

__all__ = ["create_app"]

logger = get_logger(component="api")

_ERROR_CODE_BY_STATUS: dict[int, str] = {
    401: "SIGNATURE_INVALID",
}


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Inject correlation_id and request duration headers."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cid = request.headers.get("x-correlation-id") or new_correlation_id()
        request.state.request_id = cid

        start = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start

        response.headers["x-correlation-id"] = cid
        response.headers["x-request-duration-ms"] = f"{duration * 1000:.1f}"
        return response


def _resolve_request_id(request: Request) -> str:
    state_request_id = getattr(request.state, "request_id", "")
    if state_request_id:
        return state_request_id
    header_request_id = request.headers.get("x-correlation-id", "")
    if header_request_id:
        request.state.request_id = header_request_id
        return header_request_id
    generated = new_correlation_id()
    request.state.request_id = generated
    return generated


def _error_payload(error_code: str, message: str, request_id: str, *, details: Any = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "error_code": error_code,
        "message": message,
        "request_id": request_id,
    }
    if details is not None:
        payload["details"] = details
    return payload


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    request_id = _resolve_request_id(request)
    status_code = exc.status_code

    if status_code in _ERROR_CODE_BY_STATUS:
        error_code = _ERROR_CODE_BY_STATUS[status_code]
    elif 400 <= status_code < 500:
        error_code = "INVALID_REQUEST"
    else:
        error_code = "INTERNAL_ERROR"

    message = exc.detail if isinstance(exc.detail, str) else "Request failed"

    return JSONResponse(
        status_code=status_code,
        content=_error_payload(error_code, message, request_id),
        headers=getattr(exc, "headers", None),
    )


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    request_id = _resolve_request_id(request)
    return JSONResponse(
        status_code=422,
        content=_error_payload(
            "INVALID_REQUEST",
            "Request validation failed",
            request_id,
            details=exc.errors(),
        ),
    )


async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    request_id = _resolve_request_id(request)
    logger.exception("unhandled_application_exception", exc_info=exc)
    return JSONResponse(
        status_code=500,
        content=_error_payload("INTERNAL_ERROR", "Internal server error", request_id),
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    configure_from_settings(settings)
    logger.info(
        "verifier_ready",
        algorithm=app.state.verifier.config.hash_algorithm.value,
        service_name=app.state.verifier.config.service_name,
    )
    yield


def create_app(
    settings: Settings | None = None,
    key_store: KeyStoreProtocol | None = None,
) -> FastAPI:
    """Build the app. Keys default to ``settings.keys``.

    Raises:
        UnsupportedAlgorithm: ``settings.hash_algorithm`` is not supported.
    """
    settings = settings or Settings()
    config = SignerConfig.from_settings(settings)

    app = FastAPI(
        title="NCSA HMAC Verifier",
        version="0.1.0",
        description="Reference service verifying NCSA HMAC signed requests.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.verifier = Verifier(key_store or InMemoryKeyStore(settings.keys), config)

    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unhandled_exception_handler)
    app.add_middleware(ObservabilityMiddleware)
    app.include_router(health.router, tags=["health"])
    app.include_router(auth.router, tags=["auth"])
    return app


app = create_app()
