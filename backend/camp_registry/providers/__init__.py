"""Provider abstraction layer.

Exports:
    Error classes and the error classifier
    ProviderConfig / StorageConfig and their validators
    with_retries for retrying vendor calls
    ProviderRegistry for provider instances
"""

from camp_registry.providers.config import (
    ProviderConfig,
    StorageConfig,
    mask_secret,
    validate_provider_config,
    validate_storage_config,
)
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
from camp_registry.providers.factory import (
    ProviderKind,
    ProviderRegistry,
    ProviderType,
    create_registry,
)
from camp_registry.providers.metadata import sanitize_metadata
from camp_registry.providers.retry import with_retries

__all__ = [
    # Config
    "ProviderConfig",
    "StorageConfig",
    "validate_provider_config",
    "validate_storage_config",
    "mask_secret",
    # Errors
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
    # Retry / metadata
    "with_retries",
    "sanitize_metadata",
    # Registry
    "ProviderKind",
    "ProviderRegistry",
    "ProviderType",
    "create_registry",
]
