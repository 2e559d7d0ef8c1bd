"""Logging settings.

Pass generation logs through structlog. Events are rendered as JSON in
deployed environments and as coloured key/value lines when ``DEBUG`` is on;
stdlib loggers (Django, httpx) are routed through the same renderer.
"""

import typing as t

import structlog
from decouple import config

from .base import DEBUG, VERSION

SERVICE_NAME = config("SERVICE_NAME", default="wallet-passes")
DEPLOYMENT_ENVIRONMENT = config("DEPLOYMENT_ENVIRONMENT", default="development" if DEBUG else "production")
LOG_LEVEL = config("LOG_LEVEL", default="INFO")
LOG_FORMAT = config("LOG_FORMAT", default="console" if DEBUG else "json")

# Substrings of event keys whose values never reach the log pipeline
REDACTED_KEY_PARTS = (
    "password",
    "secret",
    "private_key",
    "certificate",
    "service_account_key",
    "token",
    "authorization",
)


def _redact(value: t.Any) -> t.Any:
    if not isinstance(value, dict):
        return value
    return {
        key: "[REDACTED]" if any(part in key.lower() for part in REDACTED_KEY_PARTS) else _redact(item)
        for key, item in value.items()
    }


def scrub_secrets(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    """Redact credential material passed as log context by mistake.

    Signer bundles, service account keys and their passwords are
    configuration values; only their presence may be logged.
    """
    return t.cast(dict[str, t.Any], _redact(event_dict))


def add_service_context(logger: t.Any, method_name: str, event_dict: dict[str, t.Any]) -> dict[str, t.Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    event_dict.setdefault("version", VERSION)
    event_dict.setdefault("environment", DEPLOYMENT_ENVIRONMENT)
    return event_dict


def _renderer() -> t.Any:
    if LOG_FORMAT == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


SHARED_PROCESSORS: list[t.Any] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    add_service_context,
    scrub_secrets,
]

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        *SHARED_PROCESSORS,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "structured": {
            "()": structlog.stdlib.ProcessorFormatter,
            "processors": [
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(),
            ],
            "foreign_pre_chain": SHARED_PROCESSORS,
        },
    },
    "handlers": {
        "stream": {
            "class": "logging.StreamHandler",
            "formatter": "structured",
        },
    },
    "root": {"handlers": ["stream"], "level": LOG_LEVEL},
    "loggers": {
        "django": {"handlers": ["stream"], "level": "INFO", "propagate": False},
        # Request lines for certificate and image downloads
        "httpx": {"handlers": ["stream"], "level": "WARNING", "propagate": False},
    },
}
