"""Structured logging for tokenauth (structlog over stdlib logging).

Every event carries, when known:
- path / method of the request being authenticated
- subject: `sub` claim of the verified token

Never-log policy: token strings, Authorization headers and secret material.
`drop_sensitive_keys` masks any event key that names them, so a careless
`logger.info("x", token=token)` cannot leak a credential.

Usage:
    from tokenauth.logging import configure_logging, get_logger

    configure_logging(json_format=False)
    logger = get_logger(__name__)
    logger.warning("auth_failure", reason="missing_token", origin="default")
"""

import logging
import sys
from contextvars import ContextVar

import structlog

path_var: ContextVar[str | None] = ContextVar("path", default=None)
method_var: ContextVar[str | None] = ContextVar("method", default=None)
subject_var: ContextVar[str | None] = ContextVar("subject", default=None)

_CONTEXT_VARS = (
    ("path", path_var),
    ("method", method_var),
    ("subject", subject_var),
)

SENSITIVE_KEYS = frozenset(
    {
        "token",
        "bearer",
        "authorization",
        "secret",
        "passphrase",
        "password",
        "key",
    }
)

REDACTED = "***"


def add_request_context(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Copy the request-scoped ContextVars that are set into the event."""
    for name, var in _CONTEXT_VARS:
        value = var.get()
        if value:
            event_dict[name] = value
    return event_dict


def drop_sensitive_keys(logger: logging.Logger, method_name: str, event_dict: dict) -> dict:
    """Mask values whose key names a credential."""
    for name in list(event_dict):
        if name.lower() in SENSITIVE_KEYS:
            event_dict[name] = REDACTED
    return event_dict


def _shared_processors() -> list:
    return [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_request_context,
        drop_sensitive_keys,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging(json_format: bool = True, level: int = logging.INFO) -> None:
    """Configure structlog and route stdlib records through the same renderer.

    Args:
        json_format: JSON lines when True, console rendering otherwise.
        level: Root log level.
    """
    processors = _shared_processors()
    renderer = (
        structlog.processors.JSONRenderer() if json_format else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger (typically `get_logger(__name__)`)."""
    return structlog.get_logger(name)


def set_request_context(path: str | None = None, method: str | None = None) -> None:
    """Record the request being authenticated for the current context."""
    if path is not None:
        path_var.set(path)
    if method is not None:
        method_var.set(method)


def set_subject(subject: str | None) -> None:
    """Record the verified token subject for log correlation."""
    subject_var.set(subject)


def clear_request_context() -> None:
    """Reset all request-scoped context once the request is handled."""
    for _, var in _CONTEXT_VARS:
        var.set(None)
