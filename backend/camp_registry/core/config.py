"""Application configuration loaded from environment variables.

Settings for the AI vector-store provider (OpenAI), object storage (R2)
and logging. Uses pydantic-settings for validation and .env file support.

Credentials are deliberately optional here: a missing or malformed key
makes the corresponding provider unavailable (see ``ProviderRegistry``)
instead of preventing the application from starting.
"""

from pydantic import SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # OpenAI (vector stores)
    openai_api_key: SecretStr = SecretStr("")
    openai_organization: str | None = None
    openai_base_url: str | None = None
    openai_timeout_ms: int = 60_000
    openai_max_retries: int = 3

    # Cloudflare R2 (object storage)
    r2_enabled: bool = False
    r2_bucket: str = "agentik"
    r2_bucket_public: bool = False
    r2_endpoint: str = ""
    r2_access_key_id: str = ""
    r2_secret_access_key: SecretStr = SecretStr("")
    r2_region: str = "auto"
    r2_public_base_url: str | None = None

    # Application
    environment: str = "development"
    log_level: str = "INFO"
    log_json: bool = True

    @model_validator(mode="after")
    def check_log_level(self) -> "Settings":
        """Normalize LOG_LEVEL and reject unknown levels."""
        self.log_level = self.log_level.upper()
        if self.log_level not in _LOG_LEVELS:
            msg = (
                f"LOG_LEVEL must be one of {', '.join(sorted(_LOG_LEVELS))}. "
                f"Got: {self.log_level}"
            )
            raise ValueError(msg)
        return self


settings = Settings()
