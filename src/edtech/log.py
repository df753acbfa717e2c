"""structlog configuration.

Learn: Application code logs through structlog.get_logger() with dotted
event names ("auth.login_succeeded") and keyword context. Here structlog
is bridged onto stdlib logging so uvicorn/sqlalchemy records share one
formatter. Request ids come from contextvars bound by RequestIdMiddleware.

Credentials must never reach the log: the redact processor masks JWTs,
bearer values and any field whose name marks it as a secret.
"""

import logging
import re
import sys
from typing import Any

import structlog

from edtech.config import Settings

_JWT_RE = re.compile(r"\beyJ[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\.[A-Za-z0-9_\-]+\b")
_BEARER_RE = re.compile(r"(?i)\bBearer\s+([A-Za-z0-9_\-\.=]+)")
_SECRET_KEYS = frozenset(
    {"password", "password_hash", "token", "refresh_token", "session_token", "jwt_secret"}
)
REDACTED = "***REDACTED***"


def _redact_str(value: str) -> str:
    value = _JWT_RE.sub(REDACTED, value)
    return _BEARER_RE.sub(f"Bearer {REDACTED}", value)


def redact_event(_, __, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key, value in list(event_dict.items()):
        if key in _SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str):
            event_dict[key] = _redact_str(value)
    return event_dict


def configure_logging(settings: Settings) -> None:
    """Install structlog + stdlib handlers. Safe to call more than once."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_event,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if settings.log_json
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
