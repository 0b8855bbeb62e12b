"""Application settings loaded from environment variables.

Hey future me - every setting group is its own BaseSettings with an env_prefix, and
Settings just aggregates them. That way DropboxSettings() can be built on its own in
tests without touching the rest. Call get_settings() in app code (it's cached); build
Settings(...) directly in tests so you don't leak state between them.
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="DATABASE_", extra="ignore")

    # SQLite (aiosqlite) for dev/tests, postgresql+asyncpg:// for production
    url: str = Field(default="sqlite+aiosqlite:///./cloudmusic.db")
    echo: bool = False
    pool_pre_ping: bool = True
    # Pool settings only apply to PostgreSQL
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


class DropboxSettings(BaseSettings):
    """Dropbox OAuth application credentials and endpoints."""

    model_config = SettingsConfigDict(env_prefix="DROPBOX_", extra="ignore")

    client_id: str = ""
    client_secret: str = ""
    api_base_url: str = "https://api.dropboxapi.com/2"
    token_url: str = "https://api.dropboxapi.com/oauth2/token"  # nosec B105 - public endpoint URL

    def is_configured(self) -> bool:
        """Check if credentials are complete."""
        return bool(self.client_id.strip() and self.client_secret.strip())


class YandexSettings(BaseSettings):
    """Yandex Disk OAuth application credentials and endpoints."""

    model_config = SettingsConfigDict(env_prefix="YANDEX_", extra="ignore")

    client_id: str = ""
    client_secret: str = ""
    api_base_url: str = "https://cloud-api.yandex.net/v1/disk"
    token_url: str = "https://oauth.yandex.ru/token"  # nosec B105 - public endpoint URL
    # Yandex caps /resources/files pages at 1000 items
    page_size: int = Field(default=1000, ge=1, le=1000)

    def is_configured(self) -> bool:
        """Check if credentials are complete."""
        return bool(self.client_id.strip() and self.client_secret.strip())


class ProviderSettings(BaseSettings):
    """Settings shared by all storage provider adapters."""

    model_config = SettingsConfigDict(env_prefix="PROVIDER_", extra="ignore")

    # Seconds before an adapter HTTP call gives up
    http_timeout: float = Field(default=30.0, gt=0)


class LogSettings(BaseSettings):
    """Logging settings."""

    model_config = SettingsConfigDict(env_prefix="LOG_", extra="ignore")

    level: str = "INFO"
    json_format: bool = False


class Settings(BaseSettings):
    """Aggregated application settings."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    app_name: str = "cloudmusic"
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    dropbox: DropboxSettings = Field(default_factory=DropboxSettings)
    yandex: YandexSettings = Field(default_factory=YandexSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    log: LogSettings = Field(default_factory=LogSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
