"""Provider configuration records and their validators.

Adapters never read raw settings. They receive a frozen ``ProviderConfig``
or ``StorageConfig`` that has already passed ``validate_provider_config`` /
``validate_storage_config``. Changing a config means validating a new one.
"""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from camp_registry.core.redaction import mask_secret
from camp_registry.providers.errors import ConfigurationError

if TYPE_CHECKING:
    from camp_registry.core.config import Settings

__all__ = [
    "DEFAULT_OPENAI_BASE_URL",
    "DEFAULT_TIMEOUT_MS",
    "DEFAULT_MAX_RETRIES",
    "DEFAULT_OPENAI_HEADERS",
    "ProviderConfig",
    "StorageConfig",
    "validate_provider_config",
    "validate_storage_config",
    "mask_secret",
]

DEFAULT_OPENAI_BASE_URL = "https://api.openai.com/v1"
DEFAULT_TIMEOUT_MS = 60_000
DEFAULT_MAX_RETRIES = 3
# Vector store endpoints still live behind the assistants beta header.
DEFAULT_OPENAI_HEADERS: Mapping[str, str] = MappingProxyType(
    {"OpenAI-Beta": "assistants=v2"}
)

_API_KEY_PREFIX = "sk-"
_API_KEY_MIN_LENGTH = 21
_DEFAULT_STORAGE_REGION = "auto"


@dataclass(frozen=True)
class ProviderConfig:
    """Validated configuration for an AI vector-store provider.

    Attributes:
        api_key: Vendor credential. Never log directly; use ``masked_api_key``.
        organization: Optional organization header value.
        base_url: API base endpoint.
        timeout_ms: Per-request timeout in milliseconds.
        max_retries: Attempts handed to the retry executor.
        default_headers: Extra headers sent with every request.
    """

    api_key: str = field(repr=False)
    organization: str | None = None
    base_url: str = DEFAULT_OPENAI_BASE_URL
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    default_headers: Mapping[str, str] = field(
        default_factory=lambda: DEFAULT_OPENAI_HEADERS, hash=False
    )

    @property
    def masked_api_key(self) -> str:
        """Return the API key with only a short prefix and suffix visible."""
        return mask_secret(self.api_key)

    @property
    def timeout_seconds(self) -> float:
        """Return the timeout in seconds (SDK clients take seconds)."""
        return self.timeout_ms / 1000

    def headers(self) -> dict[str, str]:
        """Build request headers: bearer credential, JSON, defaults, organization."""
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            **self.default_headers,
        }
        if self.organization:
            headers["OpenAI-Organization"] = self.organization
        return headers

    def with_updates(self, **changes: Any) -> "ProviderConfig":
        """Return a new, re-validated config with ``changes`` applied.

        Raises:
            ConfigurationError: If the merged config is invalid.
        """
        current = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        merged = {**current, **changes}
        return validate_provider_config(merged)

    def safe_dict(self) -> dict[str, Any]:
        """Return a log-safe view of the config (credential masked)."""
        return {
            "api_key": self.masked_api_key,
            "organization": self.organization or "default",
            "base_url": self.base_url,
            "timeout_ms": self.timeout_ms,
            "max_retries": self.max_retries,
        }

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ProviderConfig":
        """Validate a ProviderConfig from application settings.

        Raises:
            ConfigurationError: If the OpenAI key is missing or malformed.
        """
        raw: dict[str, Any] = {
            "api_key": settings.openai_api_key.get_secret_value(),
            "organization": settings.openai_organization,
            "timeout_ms": settings.openai_timeout_ms,
            "max_retries": settings.openai_max_retries,
        }
        if settings.openai_base_url:
            raw["base_url"] = settings.openai_base_url
        return validate_provider_config(raw)


@dataclass(frozen=True)
class StorageConfig:
    """Validated configuration for an S3-compatible object store.

    Attributes:
        endpoint: S3 API endpoint (e.g. ``https://<account>.r2.cloudflarestorage.com``).
        access_key_id: Access key identifier.
        secret_access_key: Secret key. Never log directly.
        bucket: Default bucket.
        region: Signing region. R2 uses ``auto``.
        bucket_public: Whether objects are publicly readable.
        public_base_url: Optional base for browsable links, no trailing slash.
    """

    endpoint: str
    access_key_id: str = field(repr=False)
    secret_access_key: str = field(repr=False)
    bucket: str
    region: str = _DEFAULT_STORAGE_REGION
    bucket_public: bool = False
    public_base_url: str | None = None

    @property
    def masked_access_key(self) -> str:
        """Return the access key id with the middle elided."""
        return mask_secret(self.access_key_id)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "StorageConfig":
        """Validate a StorageConfig from application settings.

        Raises:
            ConfigurationError: If R2 is disabled or its credentials are incomplete.
        """
        return validate_storage_config(
            {
                "enabled": settings.r2_enabled,
                "endpoint": settings.r2_endpoint,
                "access_key_id": settings.r2_access_key_id,
                "secret_access_key": settings.r2_secret_access_key.get_secret_value(),
                "bucket": settings.r2_bucket,
                "region": settings.r2_region,
                "bucket_public": settings.r2_bucket_public,
                "public_base_url": settings.r2_public_base_url,
            }
        )


def _is_valid_api_key(api_key: str) -> bool:
    return api_key.startswith(_API_KEY_PREFIX) and len(api_key) >= _API_KEY_MIN_LENGTH


def validate_provider_config(raw: Mapping[str, Any]) -> ProviderConfig:
    """Validate raw provider settings and merge defaults.

    The input mapping is never mutated.

    Args:
        raw: Partial config. ``api_key`` is mandatory; ``organization``,
            ``base_url``, ``timeout_ms``, ``max_retries`` and
            ``default_headers`` are optional.

    Returns:
        A fully-populated, frozen ProviderConfig.

    Raises:
        ConfigurationError: If the key is missing, malformed, or an optional
            field is out of range.
    """
    api_key = raw.get("api_key")
    if not api_key:
        raise ConfigurationError("OpenAI API key is required")
    if not isinstance(api_key, str) or not _is_valid_api_key(api_key):
        raise ConfigurationError(
            "Invalid OpenAI API key format. It must start with 'sk-'"
        )

    timeout_ms = raw.get("timeout_ms")
    if timeout_ms is None:
        timeout_ms = DEFAULT_TIMEOUT_MS
    if not isinstance(timeout_ms, int) or timeout_ms <= 0:
        raise ConfigurationError(f"timeout_ms must be a positive integer. Got: {timeout_ms}")

    max_retries = raw.get("max_retries")
    if max_retries is None:
        max_retries = DEFAULT_MAX_RETRIES
    if not isinstance(max_retries, int) or max_retries < 0:
        raise ConfigurationError(f"max_retries cannot be negative. Got: {max_retries}")

    headers = {**DEFAULT_OPENAI_HEADERS, **(raw.get("default_headers") or {})}

    return ProviderConfig(
        api_key=api_key,
        organization=raw.get("organization") or None,
        base_url=(raw.get("base_url") or DEFAULT_OPENAI_BASE_URL).rstrip("/"),
        timeout_ms=timeout_ms,
        max_retries=max_retries,
        default_headers=MappingProxyType(headers),
    )


def validate_storage_config(raw: Mapping[str, Any]) -> StorageConfig:
    """Validate raw object-storage settings.

    Args:
        raw: Mapping with ``enabled``, ``endpoint``, ``access_key_id``,
            ``secret_access_key``, ``bucket`` and optional ``region``,
            ``bucket_public``, ``public_base_url``.

    Returns:
        A frozen StorageConfig.

    Raises:
        ConfigurationError: If storage is disabled or a required field is missing.
    """
    if not raw.get("enabled"):
        raise ConfigurationError("R2 is not enabled: set R2_ENABLED=true")

    missing = [
        name
        for name in ("endpoint", "access_key_id", "secret_access_key")
        if not raw.get(name)
    ]
    if missing:
        raise ConfigurationError(
            f"Incomplete R2 config, missing: {', '.join(missing)}"
        )

    bucket = raw.get("bucket")
    if not bucket:
        raise ConfigurationError("R2 bucket name is required")

    public_base_url = raw.get("public_base_url")
    if public_base_url:
        public_base_url = public_base_url.rstrip("/")

    return StorageConfig(
        endpoint=raw["endpoint"],
        access_key_id=raw["access_key_id"],
        secret_access_key=raw["secret_access_key"],
        bucket=bucket,
        region=raw.get("region") or _DEFAULT_STORAGE_REGION,
        bucket_public=bool(raw.get("bucket_public")),
        public_base_url=public_base_url or None,
    )
