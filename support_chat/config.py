"""Application configuration using Pydantic settings."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    DATABASE_URL: str = "sqlite:///./support_chat.db"

    # LLM Configuration
    LLM_PROVIDER: str = "openai"  # openai, anthropic, openai_compatible
    LLM_API_KEY: str = ""
    LLM_MODEL: str = "gpt-4o-mini"
    LLM_BASE_URL: str = ""  # For openai_compatible
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 500
    LLM_TIMEOUT: float | None = None

    # Number of prior turns forwarded to the model
    HISTORY_WINDOW: int = 10

    # Store details used in the system prompt and fallback reply
    STORE_NAME: str = "SpurMart"
    SUPPORT_EMAIL: str = "support@spurmart.com"

    # HTTP
    API_HOST: str = "127.0.0.1"
    API_PORT: int = 8000
    CORS_ALLOW_ORIGINS: str = "*"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 10_485_760
    LOG_BACKUP_COUNT: int = 5

    @property
    def llm_configured(self) -> bool:
        """True when a provider credential is present."""
        return bool(self.LLM_API_KEY.strip())

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse allowed CORS origins into a list."""
        return [
            origin.strip()
            for origin in self.CORS_ALLOW_ORIGINS.split(",")
            if origin.strip()
        ]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
