"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str = "sqlite+pysqlite:///./flexbook.db"

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Rate Limiting (requests per minute per IP, 0 disables)
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_STORAGE_URI: str = "memory://"
    RATE_LIMIT_BOOKINGS: int = 20

    # Scheduling
    # Tenants without a timezone of their own are interpreted in this zone
    DEFAULT_TIMEZONE: str = "America/Sao_Paulo"
    SLOT_GRANULARITY_MINUTES: int = 30

    # Analytics dashboard
    ANALYTICS_TOP_N: int = 5
    ANALYTICS_RECENT_LIMIT: int = 5
    ANALYTICS_TRAILING_DAYS: int = 30

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
