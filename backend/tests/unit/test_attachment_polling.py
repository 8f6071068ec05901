"""Tests for the attachment polling state machine.

Covers the backoff schedule, terminal states, the attempt budget and the
not-found tolerance while a new attachment becomes visible.
"""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, patch

import pytest

from camp_registry.providers.errors import (
    AttachmentCancelledError,
    AttachmentFailedError,
    AuthenticationError,
    NotFoundError,
    ProviderTimeoutError,
)
from camp_registry.providers.vector.base import AttachmentStatus, FileInfo
from camp_registry.providers.vector.polling import (
    AttachmentPoller,
    PollPolicy,
    PollState,
    check_terminal,
)

_SLEEP = "camp_registry.providers.vector.polling.asyncio.sleep"


def _file(status: AttachmentStatus, last_error: str | None = None) -> FileInfo:
    return FileInfo(
        id="file-abc",
        status=status,
        created_at=datetime(2024, 6, 1, tzinfo=UTC),
        last_error=last_error,
    )


def _poller(fetch, policy=None) -> AttachmentPoller:
    return AttachmentPoller(
        fetch, policy, provider="openai", store_id="vs_123", file_id="file-abc"
    )


class TestPollPolicy:
    """Test the backoff schedule."""

    def test_default_schedule(self):
        """Waits grow by 1.5x from 1s and cap at 5s."""
        delays = PollPolicy().delays_ms()

        assert delays[:6] == [1000, 1500, 2250, 3375, 5000, 5000]
        assert len(delays) == 59

    def test_single_attempt_has_no_waits(self):
        """A one-poll budget never sleeps."""
        assert PollPolicy(max_attempts=1).delays_ms() == []


class TestAttachmentPollerTerminalStates:
    """Test terminal state handling."""

    @pytest.mark.asyncio
    async def test_completes_after_in_progress(self):
        """Should keep polling through in_progress and return the completed record."""
        fetch = AsyncMock(
            side_effect=[
                _file(AttachmentStatus.IN_PROGRESS),
                _file(AttachmentStatus.IN_PROGRESS),
                _file(AttachmentStatus.COMPLETED),
            ]
        )
        poller = _poller(fetch)

        with patch(_SLEEP, new_callable=AsyncMock):
            result = await poller.run()

        assert result.status is AttachmentStatus.COMPLETED
        assert poller.state is PollState.COMPLETED
        assert poller.attempts == 3

    @pytest.mark.asyncio
    async def test_first_poll_is_immediate(self):
        """An already-completed attachment should return without sleeping."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.COMPLETED))
        sleep = AsyncMock()

        with patch(_SLEEP, sleep):
            await _poller(fetch).run()

        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_raises_with_vendor_reason(self):
        """A failed status should raise with the vendor's last_error message."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.FAILED, "unsupported_file"))
        poller = _poller(fetch)

        with pytest.raises(AttachmentFailedError, match="unsupported_file"):
            await poller.run()

        assert poller.state is PollState.FAILED

    @pytest.mark.asyncio
    async def test_failed_without_reason(self):
        """A failed status without last_error should say 'Unknown error'."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.FAILED))

        with pytest.raises(AttachmentFailedError, match="Unknown error"):
            await _poller(fetch).run()

    @pytest.mark.asyncio
    async def test_cancelled_raises(self):
        """A cancelled status should raise AttachmentCancelledError."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.CANCELLED))
        poller = _poller(fetch)

        with pytest.raises(AttachmentCancelledError):
            await poller.run()

        assert poller.state is PollState.CANCELLED


class TestAttachmentPollerBudget:
    """Test the attempt budget and backoff."""

    @pytest.mark.asyncio
    async def test_times_out_after_max_attempts(self):
        """A file stuck in progress should time out after the budget."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.IN_PROGRESS))
        poller = _poller(fetch)

        with (
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(ProviderTimeoutError, match="after 60 attempts"),
        ):
            await poller.run()

        assert fetch.await_count == 60
        assert poller.state is PollState.TIMED_OUT

    @pytest.mark.asyncio
    async def test_sleeps_follow_backoff(self):
        """Waits between polls should follow 1.0, 1.5, 2.25, 3.375, 5.0 seconds."""
        fetch = AsyncMock(return_value=_file(AttachmentStatus.IN_PROGRESS))
        sleep_calls = []

        async def mock_sleep(delay):
            sleep_calls.append(delay)

        with (
            patch(_SLEEP, side_effect=mock_sleep),
            pytest.raises(ProviderTimeoutError),
        ):
            await _poller(fetch, PollPolicy(max_attempts=7)).run()

        assert sleep_calls == [1.0, 1.5, 2.25, 3.375, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_sleeps_match_policy_schedule(self):
        """run() should wait exactly the policy's delays_ms() schedule."""
        policy = PollPolicy(
            max_attempts=5, initial_delay_ms=200, max_delay_ms=500, backoff_factor=2.0
        )
        fetch = AsyncMock(return_value=_file(AttachmentStatus.IN_PROGRESS))
        sleep = AsyncMock()

        with patch(_SLEEP, sleep), pytest.raises(ProviderTimeoutError):
            await _poller(fetch, policy).run()

        waits = [call.args[0] for call in sleep.await_args_list]
        assert waits == [delay / 1000 for delay in policy.delays_ms()]
        assert waits == [0.2, 0.4, 0.5, 0.5]


class TestAttachmentPollerNotFound:
    """Test the not-found tolerance window."""

    @pytest.mark.asyncio
    async def test_not_found_tolerated_while_attempts_remain(self):
        """A 404 right after attaching should be polled through."""
        fetch = AsyncMock(
            side_effect=[
                NotFoundError("No file found"),
                NotFoundError("No file found"),
                _file(AttachmentStatus.COMPLETED),
            ]
        )

        with patch(_SLEEP, new_callable=AsyncMock):
            result = await _poller(fetch).run()

        assert result.status is AttachmentStatus.COMPLETED
        assert fetch.await_count == 3

    @pytest.mark.asyncio
    async def test_raw_404_is_classified(self):
        """Unclassified vendor 404s should also be tolerated."""

        class VendorNotFound(Exception):
            status_code = 404

        fetch = AsyncMock(
            side_effect=[VendorNotFound("missing"), _file(AttachmentStatus.COMPLETED)]
        )

        with patch(_SLEEP, new_callable=AsyncMock):
            result = await _poller(fetch).run()

        assert result.status is AttachmentStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_not_found_on_last_attempt_propagates(self):
        """A 404 on the final attempt should surface as NotFoundError."""
        fetch = AsyncMock(side_effect=NotFoundError("No file found"))
        poller = _poller(fetch, PollPolicy(max_attempts=3))

        with (
            patch(_SLEEP, new_callable=AsyncMock),
            pytest.raises(NotFoundError),
        ):
            await poller.run()

        assert fetch.await_count == 3
        assert poller.state is PollState.FAILED

    @pytest.mark.asyncio
    async def test_uses_given_classifier(self):
        """Fetch failures should be classified with the injected classifier."""

        class VendorTimeout(Exception):
            pass

        raw = VendorTimeout("Request timed out.")

        def classify(error, *, provider=None):
            return ProviderTimeoutError(str(error), cause=error, provider=provider)

        fetch = AsyncMock(side_effect=raw)
        poller = AttachmentPoller(
            fetch,
            provider="openai",
            store_id="vs_123",
            file_id="file-abc",
            classify=classify,
        )

        with pytest.raises(ProviderTimeoutError) as exc_info:
            await poller.run()

        assert exc_info.value.__cause__ is raw
        assert exc_info.value.provider == "openai"
        assert poller.state is PollState.FAILED

    @pytest.mark.asyncio
    async def test_other_errors_propagate_immediately(self):
        """Errors other than not-found should stop polling at once."""
        fetch = AsyncMock(side_effect=AuthenticationError("revoked"))

        with pytest.raises(AuthenticationError):
            await _poller(fetch).run()

        fetch.assert_awaited_once()


class TestCheckTerminal:
    """Test check_terminal()."""

    def test_completed_is_true(self):
        """Completed records report True."""
        assert check_terminal(_file(AttachmentStatus.COMPLETED), provider="openai") is True

    def test_in_progress_is_false(self):
        """In-progress records report False."""
        assert check_terminal(_file(AttachmentStatus.IN_PROGRESS), provider="openai") is False

    def test_failed_raises(self):
        """Failed records raise AttachmentFailedError."""
        with pytest.raises(AttachmentFailedError):
            check_terminal(_file(AttachmentStatus.FAILED, "bad"), provider="openai")
