"""Retry strategy for provider operations.

Linear backoff: attempt ``n`` failing waits ``base_delay_ms * n`` before
attempt ``n + 1``. Client errors (4xx after classification) are never
retried. Each attempt re-invokes the operation from scratch, so callers
wrapping non-idempotent operations (e.g. "create") accept possible
duplicates on the vendor side.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog

from camp_registry.providers.errors import ProviderError, classify_error

__all__ = ["with_retries", "is_client_error"]

logger = structlog.get_logger()

T = TypeVar("T")

Classifier = Callable[..., ProviderError]


def is_client_error(error: BaseException, classify: Classifier = classify_error) -> bool:
    """Return True if the error classifies as a 4xx-class failure.

    Statusless errors (connection resets, unknown failures) classify as 500
    and therefore count as retryable.

    Args:
        error: Raw or already-classified error.
        classify: Classifier used for raw errors.
    """
    return classify(error).is_client_error


async def with_retries(
    func: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay_ms: int = 1000,
    *,
    classify: Classifier = classify_error,
    provider: str | None = None,
    operation: str | None = None,
) -> T:
    """Execute an async operation with linear-backoff retry.

    Args:
        func: Async function to execute (no arguments). Called once per attempt.
        max_attempts: Total attempts, including the first. Values below 1 are
            treated as 1.
        base_delay_ms: Delay unit; the wait after attempt ``n`` is ``n`` units.
        classify: Maps raw errors to the provider taxonomy to decide retryability.
        provider: Provider name for log context.
        operation: Operation name for log context.

    Returns:
        Result from the first successful attempt.

    Raises:
        Exception: The original error of a client-side failure (immediately),
            or of the last attempt once the budget is exhausted.
    """
    attempts = max(1, max_attempts)
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e
            classified = classify(e)

            if classified.is_client_error:
                raise

            if attempt == attempts:
                break

            delay = base_delay_ms * attempt / 1000
            log_fields: dict[str, Any] = {
                "attempt": attempt,
                "max_attempts": attempts,
                "delay_seconds": delay,
                "error_kind": classified.kind.value,
                "status_code": classified.status_code,
                "error": classified.message,
            }
            if provider:
                log_fields["provider"] = provider
            if operation:
                log_fields["operation"] = operation
            logger.warning("provider_retry_scheduled", **log_fields)

            await asyncio.sleep(delay)

    # Should not reach here without an error, but satisfy type checker
    if last_error is not None:
        raise last_error
    raise RuntimeError("Retry loop exited without error or result")
