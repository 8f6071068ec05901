"""Attachment polling state machine.

Drives an attachment (or batch) from ``in_progress`` to a terminal state:

    PENDING -> POLLING -> COMPLETED | FAILED | CANCELLED | TIMED_OUT

Polls are strictly sequential. The first poll happens immediately; each
later poll waits ``delay`` first, with ``delay`` growing by ``backoff_factor``
up to ``max_delay_ms``.

A not-found response while polling means the vendor has not made the
attachment visible yet. It is tolerated while attempts remain; on the last
attempt it propagates like any other error. This tolerance is local to
polling: the generic retry executor keeps treating 404 as terminal.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, Protocol, TypeVar

import structlog

from camp_registry.providers.errors import (
    AttachmentCancelledError,
    AttachmentFailedError,
    ErrorKind,
    ProviderTimeoutError,
    classify_error,
)
from camp_registry.providers.retry import Classifier
from camp_registry.providers.vector.base import AttachmentStatus

__all__ = ["PollState", "PollPolicy", "AttachmentPoller", "check_terminal"]

logger = structlog.get_logger()


class PollState(Enum):
    """Poller lifecycle."""

    PENDING = "pending"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


@dataclass(frozen=True)
class PollPolicy:
    """Attempt budget and backoff schedule.

    Attributes:
        max_attempts: Total polls, including the immediate first one.
        initial_delay_ms: Wait before the second poll.
        max_delay_ms: Cap on any single wait.
        backoff_factor: Multiplier applied to the wait after each poll.
    """

    max_attempts: int = 60
    initial_delay_ms: int = 1000
    max_delay_ms: int = 5000
    backoff_factor: float = 1.5

    def delays_ms(self) -> list[float]:
        """Return the wait before each poll after the first."""
        delays: list[float] = []
        delay = float(self.initial_delay_ms)
        for _ in range(max(0, self.max_attempts - 1)):
            delays.append(delay)
            delay = min(delay * self.backoff_factor, float(self.max_delay_ms))
        return delays


class _Pollable(Protocol):
    status: AttachmentStatus


P = TypeVar("P", bound=_Pollable)


def check_terminal(record: _Pollable, *, provider: str) -> bool:
    """Inspect one attachment record.

    Args:
        record: Normalized attachment or batch record.
        provider: Provider name attached to raised errors.

    Returns:
        True if the record is completed, False if still in progress.

    Raises:
        AttachmentFailedError: Status is ``failed`` (carries the vendor reason).
        AttachmentCancelledError: Status is ``cancelled``.
    """
    if record.status is AttachmentStatus.COMPLETED:
        return True
    if record.status is AttachmentStatus.FAILED:
        raise AttachmentFailedError(
            getattr(record, "last_error", None), provider=provider
        )
    if record.status is AttachmentStatus.CANCELLED:
        raise AttachmentCancelledError(provider=provider)
    return False


class AttachmentPoller(Generic[P]):
    """Poll an attachment until it reaches a terminal state.

    Attributes:
        state: Current PollState.
        attempts: Number of polls issued so far.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[P]],
        policy: PollPolicy | None = None,
        *,
        provider: str,
        store_id: str,
        file_id: str,
        classify: Classifier = classify_error,
    ) -> None:
        """Initialize the poller.

        Args:
            fetch: Returns the current normalized record (anything with a
                ``status`` AttachmentStatus and optional ``last_error``).
            policy: Attempt budget and backoff. Defaults to 60 polls, 1s→5s.
            provider: Provider name for log context and errors.
            store_id: Vector store id for log context.
            file_id: Attachment (or batch) id for log context.
            classify: Maps fetch failures to the provider taxonomy. Adapters
                pass their vendor-aware classifier.
        """
        self._fetch = fetch
        self.policy = policy or PollPolicy()
        self._provider = provider
        self._store_id = store_id
        self._file_id = file_id
        self._classify = classify
        self.state = PollState.PENDING
        self.attempts = 0

    async def run(self) -> P:
        """Poll until terminal.

        Returns:
            The record that reported ``completed``.

        Raises:
            AttachmentFailedError: Vendor reported ``failed``.
            AttachmentCancelledError: Vendor reported ``cancelled``.
            ProviderTimeoutError: Attempt budget exhausted.
            ProviderError: Any other fetch failure (including a not-found on
                the final attempt), classified.
        """
        self.state = PollState.POLLING
        max_attempts = max(1, self.policy.max_attempts)
        delays = self.policy.delays_ms()

        for attempt in range(1, max_attempts + 1):
            if attempt > 1:
                await asyncio.sleep(delays[attempt - 2] / 1000)
            self.attempts = attempt
            delay_ms = delays[attempt - 1] if attempt < max_attempts else None

            try:
                record = await self._fetch()
            except Exception as e:
                classified = self._classify(e, provider=self._provider)
                if classified.kind is ErrorKind.NOT_FOUND and attempt < max_attempts:
                    logger.warning(
                        "attachment_not_visible_yet",
                        provider=self._provider,
                        vector_store_id=self._store_id,
                        file_id=self._file_id,
                        attempt=attempt,
                        max_attempts=max_attempts,
                        next_delay_ms=delay_ms,
                    )
                    continue
                self.state = PollState.FAILED
                if classified is e:
                    raise
                raise classified from e

            logger.debug(
                "attachment_polled",
                provider=self._provider,
                vector_store_id=self._store_id,
                file_id=self._file_id,
                status=record.status.value,
                attempt=attempt,
                max_attempts=max_attempts,
                next_delay_ms=delay_ms,
            )

            if record.status is AttachmentStatus.FAILED:
                self.state = PollState.FAILED
            elif record.status is AttachmentStatus.CANCELLED:
                self.state = PollState.CANCELLED

            if check_terminal(record, provider=self._provider):
                self.state = PollState.COMPLETED
                logger.info(
                    "attachment_completed",
                    provider=self._provider,
                    vector_store_id=self._store_id,
                    file_id=self._file_id,
                    attempts=attempt,
                )
                return record

        self.state = PollState.TIMED_OUT
        logger.error(
            "attachment_poll_timeout",
            provider=self._provider,
            vector_store_id=self._store_id,
            file_id=self._file_id,
            attempts=max_attempts,
        )
        raise ProviderTimeoutError(
            f"File did not finish processing after {max_attempts} attempts",
            provider=self._provider,
        )
