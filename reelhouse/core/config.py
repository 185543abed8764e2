from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from reelhouse.core.exceptions import ConfigurationError

PLACEHOLDER_PREFIXES = ("your-", "sk-your-", "change-me")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
    )

    APP_ENV: Literal["development", "production", "test"] = "production"
    PORT: int = 8000

    # Credentials for the two outbound providers
    TMDB_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None

    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 20
    REDIS_KEY_PREFIX: str = "reelhouse:"

    QDRANT_URL: str = "http://localhost:6333"
    QDRANT_API_KEY: str | None = None
    QDRANT_COLLECTION: str = "movies"

    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSIONS: int = 1536

    DEFAULT_REGION: str = "US"
    TMDB_LANGUAGE: str = "en-US"

    # Rate ceilings stay under the published provider limits (50/s and 5000/min)
    TMDB_MAX_REQUESTS_PER_WINDOW: int = 40
    TMDB_RATE_WINDOW_SECONDS: float = 1.0
    EMBEDDING_MAX_REQUESTS_PER_WINDOW: int = 4500
    EMBEDDING_RATE_WINDOW_SECONDS: float = 60.0

    API_MAX_RETRIES: int = 3
    API_RETRY_BASE_DELAY_SECONDS: float = 1.0
    REQUEST_DEADLINE_SECONDS: float = 20.0

    # Ratings at or above this value feed the household taste vector
    TASTE_MIN_RATING: int = 7

    def missing_credentials(self) -> list[str]:
        missing = []
        for name in ("TMDB_API_KEY", "OPENAI_API_KEY"):
            value = (getattr(self, name) or "").strip()
            if not value or value.startswith(PLACEHOLDER_PREFIXES):
                missing.append(name)
        return missing

    def require_credentials(self) -> None:
        """Fail fast when a provider credential is absent or still the example value."""
        missing = self.missing_credentials()
        if missing:
            raise ConfigurationError(
                f"Missing provider credentials: {', '.join(missing)}. "
                "Set them in the environment or .env before starting the service."
            )


settings = Settings()
