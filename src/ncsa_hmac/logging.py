"""structlog setup for signing clients and verifying services.

Every event passes through ``_redact_secrets`` so shared secrets and
signatures never reach a log sink, whatever a caller binds.
"""

from __future__ import annotations

import uuid
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from ncsa_hmac.settings import Settings

__all__ = [
    "REDACTED",
    "build_processors",
    "configure_from_settings",
    "configure_logging",
    "correlation_id_var",
    "get_logger",
    "new_correlation_id",
]

REDACTED = "***"

# Field names whose values are secret material
_SECRET_FIELDS = frozenset({"key_secret", "secret", "signature"})

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="")


def new_correlation_id() -> str:
    """Generate and set a new correlation ID for the current context."""
    cid = str(uuid.uuid4())
    correlation_id_var.set(cid)
    return cid


def _add_correlation_id(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    cid = correlation_id_var.get("")
    if cid:
        event_dict["correlation_id"] = cid
    return event_dict


def _mask_authorization(value: Any) -> str:
    # "<service> <key_id>:<signature>" keeps everything but the signature
    head, sep, _ = str(value).partition(":")
    return f"{head}:{REDACTED}" if sep and head else REDACTED


def _redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask secret fields and the signature part of ``authorization``."""
    for field in _SECRET_FIELDS.intersection(event_dict):
        event_dict[field] = REDACTED
    if "authorization" in event_dict:
        event_dict["authorization"] = _mask_authorization(event_dict["authorization"])
    return event_dict


def build_processors(*, json_output: bool = True) -> list[Any]:
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _add_correlation_id,
        _redact_secrets,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())
    return processors


def configure_logging(*, json_output: bool = True, level: str = "INFO") -> None:
    """Configure structlog.

    Args:
        json_output: True for JSON (production), False for console (dev).
        level: Log level string.
    """
    structlog.configure(
        processors=build_processors(json_output=json_output),
        wrapper_class=structlog.make_filtering_bound_logger(
            structlog.get_level_from_name(level)  # type: ignore[operator]
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Settings) -> None:
    configure_logging(json_output=settings.log_json, level=settings.log_level)


def get_logger(**kwargs: Any) -> structlog.BoundLogger:
    """Get a bound logger with optional initial context."""
    return structlog.get_logger(**kwargs)  # type: ignore[no-any-return]
