"""structlog configuration.

Routes structlog through the standard library so third-party loggers
(openai, botocore) share one output stream. Every event passes through
``redact_secrets`` before rendering.
"""

import logging
import sys
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from camp_registry.core.redaction import scrub_secrets

if TYPE_CHECKING:
    from camp_registry.core.config import Settings

# Event keys whose values are always credentials.
_SECRET_KEYS = frozenset(
    {
        "api_key",
        "authorization",
        "secret_access_key",
        "access_key_id",
        "password",
        "token",
    }
)

_configured = False


def _redact(value: Any) -> Any:
    if isinstance(value, str):
        return scrub_secrets(value)
    if isinstance(value, Mapping):
        return {k: _redact_field(k, v) for k, v in value.items()}
    if isinstance(value, list | tuple):
        return type(value)(_redact(v) for v in value)
    return value


def _redact_field(key: str, value: Any) -> Any:
    if key.lower() in _SECRET_KEYS and isinstance(value, str):
        # Already-masked previews keep their shape.
        return value if "..." in value or value == "***" else "***"
    return _redact(value)


def redact_secrets(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Mask credentials in a log event.

    Values under credential-named keys are replaced unless already masked;
    every other string is scrubbed of ``sk-...`` and ``Bearer ...`` tokens.

    Args:
        logger: Logger instance
        method_name: Log method name
        event_dict: Event dictionary to process

    Returns:
        Event dictionary with credentials masked
    """
    return {key: _redact_field(key, value) for key, value in event_dict.items()}


def _add_environment(environment: str) -> Any:
    def processor(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("environment", environment)
        return event_dict

    return processor


def configure_logging(
    level: str = "INFO",
    json_output: bool = True,
    *,
    environment: str | None = None,
    force: bool = False,
) -> None:
    """Configure structlog and the standard library root logger.

    Safe to call more than once; later calls are ignored unless ``force``.

    Args:
        level: Minimum level name (``DEBUG`` ... ``CRITICAL``).
        json_output: Render JSON lines instead of the console renderer.
        environment: Deployment name stamped on every event, if given.
        force: Reconfigure even if already configured.
    """
    global _configured
    if _configured and not force:
        return

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
        force=force,
    )

    renderer: Any = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    processors: list[Any] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if environment:
        processors.append(_add_environment(environment))
    processors.extend([redact_secrets, renderer])

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    _configured = True


def setup_logging(settings: "Settings") -> None:
    """Configure logging from application settings (once per process)."""
    configure_logging(
        settings.log_level,
        settings.log_json,
        environment=settings.environment,
    )
