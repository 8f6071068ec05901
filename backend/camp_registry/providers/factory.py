"""Provider registry.

One registry per application holds a lazily-built instance of each provider
type. Construction is serialized per type, so concurrent first calls share
a single instance. A provider whose configuration is missing or invalid is
reported as unavailable (``None``) instead of raising.
"""

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum
from typing import TYPE_CHECKING, Any

import structlog

from camp_registry.core.logging import setup_logging
from camp_registry.core.redaction import scrub_secrets
from camp_registry.providers.config import ProviderConfig, StorageConfig
from camp_registry.providers.errors import ConfigurationError
from camp_registry.providers.storage.base import StorageProvider
from camp_registry.providers.storage.r2_adapter import R2StorageAdapter
from camp_registry.providers.vector.base import VectorStoreProvider
from camp_registry.providers.vector.openai_adapter import OpenAIVectorStoreAdapter

if TYPE_CHECKING:
    from camp_registry.core.config import Settings

logger = structlog.get_logger()

Provider = VectorStoreProvider | StorageProvider
ProviderBuilder = Callable[["Settings"], Provider | Awaitable[Provider]]


class ProviderKind(Enum):
    """Capability a provider type implements."""

    VECTOR_STORE = "vector_store"
    STORAGE = "storage"


class ProviderType(Enum):
    """Closed set of supported providers, in listing order."""

    OPENAI = "openai"
    R2 = "r2"

    @property
    def kind(self) -> ProviderKind:
        """Return the capability this provider type implements."""
        return _KINDS[self]


_KINDS = {
    ProviderType.OPENAI: ProviderKind.VECTOR_STORE,
    ProviderType.R2: ProviderKind.STORAGE,
}


def build_openai_provider(settings: "Settings") -> OpenAIVectorStoreAdapter:
    """Build the OpenAI vector-store adapter.

    Raises:
        ConfigurationError: If ``OPENAI_API_KEY`` is missing or malformed.
    """
    return OpenAIVectorStoreAdapter(ProviderConfig.from_settings(settings))


def build_r2_provider(settings: "Settings") -> R2StorageAdapter:
    """Build the R2 storage adapter.

    Raises:
        ConfigurationError: If R2 is disabled or its credentials are incomplete.
    """
    return R2StorageAdapter(StorageConfig.from_settings(settings))


DEFAULT_BUILDERS: Mapping[ProviderType, ProviderBuilder] = {
    ProviderType.OPENAI: build_openai_provider,
    ProviderType.R2: build_r2_provider,
}


class ProviderRegistry:
    """Lazily-built, shared provider instances.

    Attributes:
        settings: Settings passed to builders.
    """

    def __init__(
        self,
        settings: "Settings",
        builders: Mapping[ProviderType, ProviderBuilder] | None = None,
    ) -> None:
        """Initialize an empty registry.

        Args:
            settings: Application settings handed to each builder.
            builders: Builder per provider type. Defaults to the OpenAI and
                R2 builders; tests override individual entries.
        """
        self.settings = settings
        self._builders: dict[ProviderType, ProviderBuilder] = {
            **DEFAULT_BUILDERS,
            **(builders or {}),
        }
        self._providers: dict[ProviderType, Provider] = {}
        self._locks: dict[ProviderType, asyncio.Lock] = {}

    def _lock_for(self, provider_type: ProviderType) -> asyncio.Lock:
        lock = self._locks.get(provider_type)
        if lock is None:
            lock = self._locks[provider_type] = asyncio.Lock()
        return lock

    async def get_provider(self, provider_type: ProviderType) -> Provider | None:
        """Return the shared instance for ``provider_type``, building it on first use.

        Never raises for configuration or construction failures: they are
        logged and reported as ``None``. A provider that fails to become
        ready is not cached, so a later call tries again.

        Args:
            provider_type: Provider to fetch.

        Returns:
            A ready provider, or None if unavailable.
        """
        provider = self._providers.get(provider_type)
        if provider is not None:
            return provider

        builder = self._builders.get(provider_type)
        if builder is None:
            logger.error("provider_unknown", provider=str(provider_type))
            return None

        async with self._lock_for(provider_type):
            # Another caller may have finished construction while we waited.
            provider = self._providers.get(provider_type)
            if provider is not None:
                return provider

            try:
                built = builder(self.settings)
                if asyncio.iscoroutine(built):
                    built = await built
                await built.initialize()
            except ConfigurationError as e:
                logger.warning(
                    "provider_unavailable",
                    provider=provider_type.value,
                    reason=e.message,
                )
                return None
            except Exception as e:
                logger.error(
                    "provider_construction_failed",
                    provider=provider_type.value,
                    error=scrub_secrets(str(e)),
                    error_type=type(e).__name__,
                )
                return None

            if not built.is_ready:
                logger.warning("provider_not_ready", provider=provider_type.value)
                return None

            self._providers[provider_type] = built
            logger.info("provider_registered", provider=provider_type.value)
            return built

    async def get_vector_provider(
        self, provider_type: ProviderType = ProviderType.OPENAI
    ) -> VectorStoreProvider | None:
        """Return a vector-store provider, or None if unavailable."""
        provider = await self.get_provider(provider_type)
        if provider is not None and not isinstance(provider, VectorStoreProvider):
            logger.error(
                "provider_kind_mismatch",
                provider=provider_type.value,
                expected=ProviderKind.VECTOR_STORE.value,
            )
            return None
        return provider

    async def get_storage_provider(
        self, provider_type: ProviderType = ProviderType.R2
    ) -> StorageProvider | None:
        """Return an object-storage provider, or None if unavailable."""
        provider = await self.get_provider(provider_type)
        if provider is not None and not isinstance(provider, StorageProvider):
            logger.error(
                "provider_kind_mismatch",
                provider=provider_type.value,
                expected=ProviderKind.STORAGE.value,
            )
            return None
        return provider

    async def is_available(self, provider_type: ProviderType) -> bool:
        """Return True if the provider can be obtained."""
        return await self.get_provider(provider_type) is not None

    async def list_available(self) -> list[ProviderType]:
        """Return every available provider type, in enum order."""
        return [
            provider_type
            for provider_type in ProviderType
            if await self.is_available(provider_type)
        ]

    def register(self, provider_type: ProviderType, provider: Provider) -> None:
        """Install a ready instance, replacing any existing one.

        Raises:
            ConfigurationError: If ``provider`` is not ready.
        """
        if not provider.is_ready:
            raise ConfigurationError(
                f"Cannot register {provider_type.value}: provider is not initialized"
            )
        self._providers[provider_type] = provider

    def providers_info(self) -> dict[str, dict[str, Any]]:
        """Describe the providers built so far (log-safe)."""
        return {
            provider_type.value: {
                "name": provider.provider_name,
                "is_ready": provider.is_ready,
                "kind": provider_type.kind.value,
            }
            for provider_type, provider in self._providers.items()
        }

    def reset_all(self) -> None:
        """Drop every cached instance and lock.

        Used in tests to ensure isolation between test cases.
        """
        self._providers.clear()
        self._locks.clear()


def create_registry(settings: "Settings | None" = None) -> ProviderRegistry:
    """Create a registry from ``settings`` (the module settings by default).

    Also configures logging from the same settings, so credential redaction
    is installed before any provider logs.
    """
    if settings is None:
        from camp_registry.core.config import settings as app_settings

        settings = app_settings
    setup_logging(settings)
    return ProviderRegistry(settings)
