from collections.abc import Iterator

import pytest
from pydantic import SecretStr

from camp_registry.core.config import Settings
from camp_registry.providers.config import (
    ProviderConfig,
    StorageConfig,
    validate_provider_config,
    validate_storage_config,
)
from camp_registry.providers.factory import ProviderRegistry, ProviderType
from camp_registry.providers.storage.mock_adapter import MockStorageProvider
from camp_registry.providers.vector.mock_adapter import MockVectorStoreProvider

# Test-only credentials. Shaped like real keys so validation passes.
TEST_OPENAI_API_KEY = "sk-test-1234567890abcdefghij"  # nosec B105  # gitleaks:allow
TEST_R2_ACCESS_KEY_ID = "r2-access-key-id-0001"
TEST_R2_SECRET_ACCESS_KEY = "r2-secret-access-key-0001"  # nosec B105
TEST_R2_ENDPOINT = "https://account123.r2.cloudflarestorage.com"


def make_settings(**overrides) -> Settings:
    """Build Settings isolated from the process environment and .env.

    Args:
        **overrides: Field values replacing the test defaults.

    Returns:
        Settings with OpenAI configured and R2 disabled unless overridden.
    """
    values = {
        "openai_api_key": SecretStr(TEST_OPENAI_API_KEY),
        "openai_organization": None,
        "openai_base_url": None,
        "r2_enabled": False,
        "r2_endpoint": "",
        "r2_access_key_id": "",
        "r2_secret_access_key": SecretStr(""),
        "r2_public_base_url": None,
        **overrides,
    }
    return Settings(_env_file=None, **values)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with a valid OpenAI key and R2 disabled."""
    return make_settings()


@pytest.fixture
def r2_settings() -> Settings:
    """Settings with both OpenAI and R2 fully configured."""
    return make_settings(
        r2_enabled=True,
        r2_endpoint=TEST_R2_ENDPOINT,
        r2_access_key_id=TEST_R2_ACCESS_KEY_ID,
        r2_secret_access_key=SecretStr(TEST_R2_SECRET_ACCESS_KEY),
    )


@pytest.fixture
def provider_config() -> ProviderConfig:
    """Validated OpenAI provider config with fast test defaults."""
    return validate_provider_config({"api_key": TEST_OPENAI_API_KEY})


@pytest.fixture
def storage_config() -> StorageConfig:
    """Validated R2 config for a private bucket."""
    return validate_storage_config(
        {
            "enabled": True,
            "endpoint": TEST_R2_ENDPOINT,
            "access_key_id": TEST_R2_ACCESS_KEY_ID,
            "secret_access_key": TEST_R2_SECRET_ACCESS_KEY,
            "bucket": "agentik",
        }
    )


@pytest.fixture
def mock_vector_store() -> MockVectorStoreProvider:
    """In-memory vector-store provider."""
    return MockVectorStoreProvider()


@pytest.fixture
def mock_storage() -> MockStorageProvider:
    """In-memory object-storage provider."""
    return MockStorageProvider()


@pytest.fixture
def registry(
    test_settings: Settings,
    mock_vector_store: MockVectorStoreProvider,
    mock_storage: MockStorageProvider,
) -> Iterator[ProviderRegistry]:
    """Registry pre-loaded with mock providers and reset after test.

    Yields:
        ProviderRegistry whose OPENAI and R2 entries are the mocks.
    """
    registry = ProviderRegistry(test_settings)
    registry.register(ProviderType.OPENAI, mock_vector_store)
    registry.register(ProviderType.R2, mock_storage)

    yield registry

    registry.reset_all()
