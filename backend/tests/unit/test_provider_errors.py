"""Tests for the provider error taxonomy and classifier.

Covers tag precedence over status, status fallbacks, message extraction
from nested vendor payloads, and credential scrubbing.
"""

import asyncio
from types import SimpleNamespace

import pytest

from camp_registry.providers.errors import (
    AttachmentCancelledError,
    AttachmentFailedError,
    AuthenticationError,
    ConfigurationError,
    ErrorKind,
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    QuotaExceededError,
    RateLimitError,
    ServerError,
    UnsupportedOperationError,
    ValidationError,
    classify_error,
)


class _VendorError(Exception):
    """Exception shaped like an SDK API error."""

    def __init__(self, message="", *, status_code=None, code=None, type=None, body=None):
        super().__init__(message)
        if message:
            self.message = message
        self.status_code = status_code
        self.code = code
        self.type = type
        self.body = body


class TestErrorDefaults:
    """Test status codes and kinds carried by each error class."""

    @pytest.mark.parametrize(
        ("error_class", "kind", "status"),
        [
            (AuthenticationError, ErrorKind.AUTHENTICATION, 401),
            (RateLimitError, ErrorKind.RATE_LIMIT, 429),
            (QuotaExceededError, ErrorKind.QUOTA, 429),
            (ValidationError, ErrorKind.VALIDATION, 400),
            (NotFoundError, ErrorKind.NOT_FOUND, 404),
            (ProviderTimeoutError, ErrorKind.TIMEOUT, 408),
            (ServerError, ErrorKind.SERVER, 500),
            (ConfigurationError, ErrorKind.CONFIGURATION, 500),
            (UnsupportedOperationError, ErrorKind.UNSUPPORTED, 501),
        ],
    )
    def test_default_kind_and_status(self, error_class, kind, status):
        """Each class should carry its taxonomy tag and HTTP-equivalent status."""
        error = error_class()
        assert error.kind is kind
        assert error.type == kind.value
        assert error.status_code == status

    def test_is_client_error_only_for_4xx(self):
        """is_client_error should be True for 400-499 only."""
        assert NotFoundError().is_client_error is True
        assert ServerError().is_client_error is False
        assert ServerError(status_code=503).is_client_error is False

    def test_str_includes_provider(self):
        """str() should prefix the provider name when known."""
        error = NotFoundError("No such store", provider="openai")
        assert str(error) == "openai: No such store"

    def test_to_dict_omits_cause(self):
        """to_dict should expose type, message and status but never the cause."""
        error = ServerError("boom", cause=RuntimeError("secret internals"))
        assert error.to_dict() == {
            "type": "server_error",
            "message": "boom",
            "status_code": 500,
        }

    def test_attachment_failed_carries_reason(self):
        """AttachmentFailedError should expose the vendor reason."""
        error = AttachmentFailedError("unsupported file type")
        assert error.reason == "unsupported file type"
        assert error.message == "File processing failed: unsupported file type"
        assert isinstance(error, ServerError)

    def test_attachment_failed_without_reason(self):
        """A missing vendor reason should read 'Unknown error'."""
        assert AttachmentFailedError().message == "File processing failed: Unknown error"

    def test_attachment_cancelled_is_server_error(self):
        """AttachmentCancelledError belongs to the server family."""
        error = AttachmentCancelledError()
        assert error.kind is ErrorKind.SERVER
        assert error.message == "File processing was cancelled"


class TestClassifyByTag:
    """Test vendor tag mapping (checked before the status)."""

    @pytest.mark.parametrize(
        ("code", "expected"),
        [
            ("invalid_api_key", AuthenticationError),
            ("rate_limit_exceeded", RateLimitError),
            ("insufficient_quota", QuotaExceededError),
            ("not_found", NotFoundError),
            ("NoSuchKey", NotFoundError),
            ("SignatureDoesNotMatch", AuthenticationError),
            ("SlowDown", RateLimitError),
        ],
    )
    def test_code_maps_to_class(self, code, expected):
        """Known vendor codes should map to their error class."""
        result = classify_error(_VendorError("msg", code=code))
        assert type(result) is expected

    def test_quota_tag_wins_over_429_status(self):
        """insufficient_quota at 429 is a quota error, not a rate limit."""
        raw = _VendorError("You exceeded your quota", status_code=429, code="insufficient_quota")
        result = classify_error(raw)
        assert isinstance(result, QuotaExceededError)
        assert result.status_code == 429

    def test_auth_code_wins_over_invalid_request_type(self):
        """OpenAI 401s carry type=invalid_request_error and code=invalid_api_key."""
        raw = _VendorError(
            "Incorrect API key provided",
            status_code=401,
            type="invalid_request_error",
            code="invalid_api_key",
        )
        assert isinstance(classify_error(raw), AuthenticationError)

    def test_invalid_request_type_yields_to_404_status(self):
        """A generic invalid_request_error tag should not mask a 404."""
        raw = _VendorError("No vector store found", status_code=404, type="invalid_request_error")
        assert isinstance(classify_error(raw), NotFoundError)

    def test_invalid_request_type_at_400_is_validation(self):
        """invalid_request_error with a plain 400 is a validation error."""
        raw = _VendorError("Bad metadata", status_code=400, type="invalid_request_error")
        assert isinstance(classify_error(raw), ValidationError)

    def test_nested_body_error_tag(self):
        """Tags inside body['error'] should be honoured."""
        raw = _VendorError(status_code=429, body={"error": {"message": "slow down", "code": "rate_limit_exceeded"}})
        result = classify_error(raw)
        assert isinstance(result, RateLimitError)
        assert result.message == "slow down"


class TestClassifyByStatus:
    """Test HTTP status fallbacks when no tag matches."""

    @pytest.mark.parametrize(
        ("status", "expected"),
        [
            (401, AuthenticationError),
            (404, NotFoundError),
            (429, RateLimitError),
            (408, ProviderTimeoutError),
            (400, ValidationError),
            (422, ValidationError),
            (500, ServerError),
            (503, ServerError),
        ],
    )
    def test_status_maps_to_class(self, status, expected):
        """Known statuses should map to their error class."""
        assert type(classify_error({"message": "x", "status": status})) is expected

    def test_server_error_preserves_status(self):
        """5xx statuses should be preserved on the classified error."""
        assert classify_error({"message": "down", "statusCode": 503}).status_code == 503

    def test_validation_preserves_status(self):
        """Other 4xx statuses should be preserved on the classified error."""
        assert classify_error({"status_code": 422}).status_code == 422

    def test_status_from_response_object(self):
        """Status should be read from response.status_code as a last resort."""
        raw = SimpleNamespace(message="gone", response=SimpleNamespace(status_code=404))
        assert isinstance(classify_error(raw), NotFoundError)


class TestClassifyFallbacks:
    """Test classifier behavior for shapeless errors."""

    def test_provider_error_returned_unchanged(self):
        """Already-classified errors should pass through as the same object."""
        error = NotFoundError("gone")
        assert classify_error(error) is error

    def test_timeout_error_maps_to_timeout(self):
        """Builtin TimeoutError without status should map to a timeout."""
        assert isinstance(classify_error(TimeoutError("slow")), ProviderTimeoutError)
        assert isinstance(classify_error(asyncio.TimeoutError()), ProviderTimeoutError)

    def test_unknown_error_is_500(self):
        """Anything unrecognized should be an unknown 500."""
        result = classify_error(RuntimeError("connection reset"))
        assert type(result) is ProviderError
        assert result.kind is ErrorKind.UNKNOWN
        assert result.status_code == 500
        assert result.message == "connection reset"

    def test_empty_error_gets_default_message(self):
        """An error with no message should get the default message."""
        assert classify_error({}).message == "Unknown provider error"

    def test_cause_and_provider_attached(self):
        """The raw error and provider name should be kept on the result."""
        raw = _VendorError("boom", status_code=502)
        result = classify_error(raw, provider="openai")
        assert result.cause is raw
        assert result.provider == "openai"

    def test_explicit_cause_kept(self):
        """A normalized view of an error can carry the original as cause."""
        original = RuntimeError("NoSuchKey")
        view = {"message": "The key does not exist", "code": "NoSuchKey", "status_code": 404}

        result = classify_error(view, provider="r2", cause=original)

        assert isinstance(result, NotFoundError)
        assert result.cause is original
        assert result.message == "The key does not exist"


class TestSecretScrubbing:
    """Test that credentials never survive into error messages."""

    def test_api_key_masked_in_message(self):
        """An sk- key quoted by the vendor should be masked."""
        key = "sk-proj-abcdefghijklmnopqrstuvwxyz"
        result = classify_error(_VendorError(f"Incorrect API key provided: {key}", status_code=401))
        assert key not in result.message
        assert "sk-proj...wxyz" in result.message

    def test_bearer_token_masked(self):
        """Bearer tokens echoed in messages should be masked."""
        error = ServerError("Header was Bearer abcdefghijklmnop1234")
        assert "abcdefghijklmnop1234" not in error.message
