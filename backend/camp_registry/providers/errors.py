"""Provider error taxonomy.

Every failure that leaves a vendor adapter is one of the classes below.
Callers branch on ``ProviderError.kind`` (or the subclass); the raw vendor
exception stays reachable through ``cause`` and ``__cause__`` for logging.

``classify_error`` maps an opaque upstream error (SDK exception, botocore
``ClientError``, plain dict) onto this taxonomy.
"""

import asyncio
from enum import Enum
from typing import Any

from camp_registry.core.redaction import scrub_secrets

__all__ = [
    "ErrorKind",
    "ProviderError",
    "AuthenticationError",
    "RateLimitError",
    "QuotaExceededError",
    "ValidationError",
    "NotFoundError",
    "ProviderTimeoutError",
    "ServerError",
    "ConfigurationError",
    "UnsupportedOperationError",
    "AttachmentFailedError",
    "AttachmentCancelledError",
    "classify_error",
]


class ErrorKind(str, Enum):
    """Stable type tag carried by every provider error."""

    AUTHENTICATION = "authentication_error"
    RATE_LIMIT = "rate_limit_error"
    QUOTA = "insufficient_quota"
    VALIDATION = "invalid_request_error"
    NOT_FOUND = "not_found_error"
    TIMEOUT = "timeout_error"
    SERVER = "server_error"
    CONFIGURATION = "configuration_error"
    UNSUPPORTED = "unsupported_operation"
    UNKNOWN = "unknown_error"


class ProviderError(Exception):
    """Base class for all provider errors.

    Attributes:
        message: Human-readable description, scrubbed of credentials.
        kind: Taxonomy tag. The only field downstream logic should branch on.
        status_code: HTTP-equivalent status for the failure.
        cause: The raw upstream error, if any.
        provider: Name of the provider that raised, if known.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    default_status_code: int = 500
    default_message: str = "Unknown provider error"

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        cause: Any = None,
        provider: str | None = None,
    ) -> None:
        self.message = scrub_secrets(message or self.default_message)
        self.status_code = (
            status_code if status_code is not None else self.default_status_code
        )
        self.cause = cause
        self.provider = provider
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.provider:
            return f"{self.provider}: {self.message}"
        return self.message

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"status_code={self.status_code}, message={self.message!r})"
        )

    @property
    def type(self) -> str:
        """Return the taxonomy tag as a plain string."""
        return self.kind.value

    @property
    def is_client_error(self) -> bool:
        """Return True for 4xx-class failures (not worth retrying)."""
        return 400 <= self.status_code < 500

    def to_dict(self) -> dict[str, Any]:
        """Render a response-safe view. Never includes the cause."""
        return {
            "type": self.kind.value,
            "message": self.message,
            "status_code": self.status_code,
        }


class AuthenticationError(ProviderError):
    """Missing, invalid or revoked credential. Needs operator action."""

    kind = ErrorKind.AUTHENTICATION
    default_status_code = 401
    default_message = "Invalid or missing provider credentials"


class RateLimitError(ProviderError):
    """Vendor rate limit exceeded."""

    kind = ErrorKind.RATE_LIMIT
    default_status_code = 429
    default_message = "Provider rate limit exceeded"

    def __init__(
        self,
        message: str | None = None,
        *,
        retry_after_seconds: float | None = None,
        **kwargs: Any,
    ) -> None:
        """Initialize RateLimitError.

        Args:
            message: Error description from the provider.
            retry_after_seconds: Optional hint from the provider on when to retry.
            **kwargs: Forwarded to ProviderError.
        """
        super().__init__(message, **kwargs)
        self.retry_after_seconds = retry_after_seconds


class QuotaExceededError(ProviderError):
    """Billing quota exhausted. Distinct from rate limiting: waiting won't help."""

    kind = ErrorKind.QUOTA
    default_status_code = 429
    default_message = "Provider quota exceeded or no credits left"


class ValidationError(ProviderError):
    """Malformed request rejected by the vendor."""

    kind = ErrorKind.VALIDATION
    default_status_code = 400
    default_message = "Invalid request sent to provider"


class NotFoundError(ProviderError):
    """Requested vendor resource does not exist."""

    kind = ErrorKind.NOT_FOUND
    default_status_code = 404
    default_message = "Provider resource not found"


class ProviderTimeoutError(ProviderError):
    """Request or polling budget ran out."""

    kind = ErrorKind.TIMEOUT
    default_status_code = 408
    default_message = "Provider request timed out"


class ServerError(ProviderError):
    """Vendor-side failure (5xx)."""

    kind = ErrorKind.SERVER
    default_status_code = 500
    default_message = "Provider server error"


class ConfigurationError(ProviderError):
    """Local configuration is missing or malformed. Blocks adapter construction."""

    kind = ErrorKind.CONFIGURATION
    default_status_code = 500
    default_message = "Provider configuration error"


class UnsupportedOperationError(ProviderError):
    """Operation exists in the capability contract but not for this vendor."""

    kind = ErrorKind.UNSUPPORTED
    default_status_code = 501
    default_message = "Operation not supported by provider"


class AttachmentFailedError(ServerError):
    """Vendor reported ``failed`` while ingesting an attached file."""

    def __init__(self, reason: str | None = None, **kwargs: Any) -> None:
        self.reason = reason or "Unknown error"
        super().__init__(f"File processing failed: {self.reason}", **kwargs)


class AttachmentCancelledError(ServerError):
    """Vendor reported ``cancelled`` while ingesting an attached file."""

    default_message = "File processing was cancelled"


# Vendor machine tags, checked before the numeric status.
_AUTH_TAGS = frozenset(
    {
        "invalid_api_key",
        "authentication_error",
        "InvalidAccessKeyId",
        "SignatureDoesNotMatch",
    }
)
_RATE_LIMIT_TAGS = frozenset({"rate_limit_exceeded", "SlowDown"})
_QUOTA_TAGS = frozenset({"insufficient_quota"})
_VALIDATION_TAGS = frozenset({"invalid_request_error"})
_NOT_FOUND_TAGS = frozenset({"not_found", "NoSuchKey", "NoSuchBucket"})


def _lookup(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _nested_error(raw: Any) -> Any:
    """Return the ``error`` sub-object from the raw error or its body, if present."""
    nested = _lookup(raw, "error")
    if nested is None:
        nested = _lookup(_lookup(raw, "body"), "error")
    return nested


def _extract_message(raw: Any) -> str:
    message = _lookup(raw, "message")
    if not isinstance(message, str) or not message:
        message = _lookup(_nested_error(raw), "message")
    if (not isinstance(message, str) or not message) and isinstance(raw, BaseException):
        message = str(raw)
    if not isinstance(message, str) or not message:
        return ProviderError.default_message
    return message


def _extract_tags(raw: Any) -> list[str]:
    tags: list[str] = []
    for candidate in (raw, _nested_error(raw)):
        for field in ("type", "code"):
            value = _lookup(candidate, field)
            if isinstance(value, str) and value and value not in tags:
                tags.append(value)
    return tags


def _extract_status(raw: Any) -> int | None:
    for field in ("status_code", "status", "statusCode"):
        value = _lookup(raw, field)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    value = _lookup(_lookup(raw, "response"), "status_code")
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


_TAG_TABLE: tuple[tuple[frozenset[str], type[ProviderError]], ...] = (
    (_AUTH_TAGS, AuthenticationError),
    (_RATE_LIMIT_TAGS, RateLimitError),
    (_QUOTA_TAGS, QuotaExceededError),
    (_VALIDATION_TAGS, ValidationError),
    (_NOT_FOUND_TAGS, NotFoundError),
)

# Statuses specific enough to override the catch-all validation tag.
_SPECIFIC_STATUSES = frozenset({401, 404, 408, 429})


def _from_tags(tags: list[str], status: int | None) -> type[ProviderError] | None:
    for known, error_class in _TAG_TABLE:
        if known.intersection(tags):
            if error_class is ValidationError and status in _SPECIFIC_STATUSES:
                return None
            return error_class
    return None


def _from_status(status: int | None) -> type[ProviderError] | None:
    if status is None:
        return None
    if status == 401:
        return AuthenticationError
    if status == 404:
        return NotFoundError
    if status == 429:
        return RateLimitError
    if status == 408:
        return ProviderTimeoutError
    if 400 <= status < 500:
        return ValidationError
    if status >= 500:
        return ServerError
    return None


def classify_error(
    raw: Any, *, provider: str | None = None, cause: Any = None
) -> ProviderError:
    """Map an upstream error onto the provider taxonomy.

    Extraction order is message, then vendor tag, then numeric status. Tags
    win over status; ``TimeoutError`` instances without either map to a
    timeout; anything else is an unknown 500.

    Returns a ProviderError instance (does not raise). The caller is
    responsible for raising via ``raise classify_error(e) from e``.

    Args:
        raw: Error object of unknown shape.
        provider: Provider name attached to the result.
        cause: Original exception to keep on the result when ``raw`` is a
            normalized view of it. Defaults to ``raw``.

    Returns:
        Classified ProviderError. ``raw`` itself if it already is one.
    """
    if isinstance(raw, ProviderError):
        return raw

    if cause is None:
        cause = raw
    message = _extract_message(raw)
    tags = _extract_tags(raw)
    status = _extract_status(raw)

    error_class = _from_tags(tags, status)
    if error_class is not None:
        return error_class(message, cause=cause, provider=provider)

    error_class = _from_status(status)
    if error_class is ServerError:
        return ServerError(message, status_code=status, cause=cause, provider=provider)
    if error_class is ValidationError:
        return ValidationError(
            message, status_code=status, cause=cause, provider=provider
        )
    if error_class is not None:
        return error_class(message, cause=cause, provider=provider)

    if isinstance(raw, TimeoutError | asyncio.TimeoutError):
        return ProviderTimeoutError(message, cause=cause, provider=provider)

    return ProviderError(message, cause=cause, provider=provider)
