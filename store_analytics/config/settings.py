"""
Store Analytics
Centralized Configuration Management

Pydantic settings with environment variable support for the database,
the rollup schedule, the payment provider and logging.
"""

from functools import lru_cache
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    """Order ledger / summary database configuration"""

    model_config = SettingsConfigDict(env_prefix="POSTGRES_")

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    db: str = Field(default="store_analytics", alias="database", description="Database name")
    user: str = Field(default="store_analytics", description="Database user")
    password: SecretStr = Field(default="secure_password", description="Database password")
    command_timeout: float = Field(default=60.0, description="Per-statement timeout in seconds")
    echo: bool = Field(default=False, description="Echo SQL queries")
    url: Optional[str] = Field(default=None, alias="DATABASE_URL", description="Full async URL (overrides host/port)")

    @property
    def async_url(self) -> str:
        """Async database URL, DATABASE_URL wins when set"""
        if self.url:
            return self.url
        return f"postgresql+asyncpg://{self.user}:{self.password.get_secret_value()}@{self.host}:{self.port}/{self.db}"


class StripeSettings(BaseSettings):
    """
    Payment provider configuration.

    The two secrets are read here only by the environment secret provider,
    which rebuilds this object on every lookup so rotated values are picked up.
    """

    model_config = SettingsConfigDict(env_prefix="STRIPE_", env_file=".env", extra="ignore")

    secret_key: Optional[SecretStr] = Field(default=None, description="Stripe API key")
    webhook_secret: Optional[SecretStr] = Field(default=None, description="Webhook signing secret")
    signature_tolerance_seconds: int = Field(default=300, description="Max age of a signed payload")
    secrets_backend: str = Field(default="env", description="Secret provider: env or prefect")
    secret_key_block: str = Field(default="stripe-secret-key", description="Prefect Secret block for the API key")
    webhook_secret_block: str = Field(default="stripe-webhook-secret", description="Prefect Secret block for the signing secret")

    @field_validator("secrets_backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        allowed = ["env", "prefect"]
        if v.lower() not in allowed:
            raise ValueError(f"Secrets backend must be one of: {allowed}")
        return v.lower()


class RollupSettings(BaseSettings):
    """Revenue rollup configuration"""

    model_config = SettingsConfigDict(env_prefix="ROLLUP_")

    timezone: str = Field(default="America/Los_Angeles", description="Zone used to bucket order dates")
    schedule_cron: str = Field(default="0 2 * * *", description="Daily trigger, interpreted in timezone")
    deployment_name: str = Field(default="monthly-revenue-daily", description="Prefect deployment name")


class MonitoringSettings(BaseSettings):
    """Logging Configuration"""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL", description="Logging level")
    log_format: str = Field(default="json", alias="LOG_FORMAT", description="Log format: json or text")


class Settings(BaseSettings):
    """
    Main Application Settings

    Aggregates all configuration sections and provides a single entry point
    for accessing application configuration.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = Field(default="store-analytics", alias="APP_NAME", description="Application name")
    app_env: str = Field(default="development", alias="APP_ENV", description="Environment")

    # API Server
    api_host: str = Field(default="0.0.0.0", alias="API_HOST", description="API host")
    api_port: int = Field(default=8000, alias="API_PORT", description="API port")

    # Version
    version: str = Field(default="1.0.0", description="Application version")

    # Subsystem configurations
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    rollup: RollupSettings = Field(default_factory=RollupSettings)
    monitoring: MonitoringSettings = Field(default_factory=MonitoringSettings)

    @field_validator("app_env")
    @classmethod
    def validate_env(cls, v: str) -> str:
        """Validate environment value"""
        allowed = ["development", "staging", "production", "testing"]
        if v.lower() not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v.lower()


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are only loaded once.

    Returns:
        Settings: Application settings instance
    """
    return Settings()
