"""Application configuration using pydantic-settings."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Notification client and service settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BMCMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # REST collaborator
    api_base_url: str = "http://localhost:8000"
    request_timeout_seconds: float = 10.0

    # Local persistent storage for the bearer token
    token_file: Path = Path.home() / ".bmcms" / "storage.json"
    token_key: str = "bmcms_token"

    # Polling
    refresh_interval_seconds: float = 30.0

    # Push stream
    stream_max_reconnect_attempts: int = 5
    stream_reconnect_delay_seconds: float = 5.0

    # Reference service
    jwt_secret: str = "dev-jwt-secret-change-in-production"
    access_token_expire_minutes: int = 60
    environment: str = "development"
    cors_origins: str = "http://localhost:5173"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins, filtering empty strings."""
        if not self.cors_origins:
            return ["http://localhost:5173"]
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins if origins else ["http://localhost:5173"]

    @property
    def normalized_api_base_url(self) -> str:
        """Base URL with a scheme, accepting bare ``host:port`` values."""
        url = self.api_base_url.strip().rstrip("/")
        if not url.startswith(("http://", "https://")):
            url = f"http://{url}"
        return url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()


def validate_security_settings() -> None:
    """Ensure the default signing secret is never used in production-like environments."""
    if settings.environment.lower() not in {"production", "prod"}:
        return

    if settings.jwt_secret == "dev-jwt-secret-change-in-production":
        raise RuntimeError(
            "Insecure default secrets are configured for production: BMCMS_JWT_SECRET. "
            "Set a strong value in the environment before starting the service."
        )
