"""
Configuration Management for Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The signing secret is read once, validated at startup and then handed
to the TokenService constructor. Nothing else reads it from the environment.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


MIN_RECOMMENDED_SECRET_LENGTH = 32


class AuthSettings(BaseSettings):
    """Token signing configuration."""

    model_config = SettingsConfigDict(
        env_prefix="JWT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    secret: str = Field(
        ...,
        min_length=1,
        description="Shared secret used to sign access tokens (JWT_SECRET)"
    )
    expiration_hours: int = Field(
        default=24,
        ge=1,
        le=720,
        description="Access token lifetime in hours"
    )
    algorithm: str = Field(
        default="HS256",
        description="Token signing algorithm"
    )

    @field_validator("secret")
    @classmethod
    def validate_secret_length(cls, v: str) -> str:
        """Warn on short secrets (but don't fail - dev setups use short ones)."""
        if len(v) < MIN_RECOMMENDED_SECRET_LENGTH:
            import warnings
            warnings.warn(
                f"JWT_SECRET is shorter than {MIN_RECOMMENDED_SECRET_LENGTH} characters. "
                "Use a longer random value in production."
            )
        return v

    @field_validator("algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v != "HS256":
            raise ValueError("Only HS256 is supported")
        return v


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite+aiosqlite:///finance_tracker.db",
        description="SQLAlchemy async database URL (DATABASE_URL)"
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        le=100,
        description="Maximum pooled connections"
    )
    echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def redacted_url(self) -> str:
        """URL without credentials (everything after the last '@')."""
        if "@" in self.url:
            scheme = self.url.split("://", 1)[0]
            return f"{scheme}://{self.url.rsplit('@', 1)[1]}"
        return self.url


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    # Server
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="HTTP port"
    )
    run_migrations: bool = Field(
        default=False,
        description="Create the database schema at startup"
    )
    cors_allow_origins: str = Field(
        default="*",
        description="Comma-separated list of allowed CORS origins"
    )

    @property
    def cors_origins_list(self) -> list[str]:
        """Get allowed origins as a list."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Note: These are loaded lazily to allow partial configuration

    @property
    def auth(self) -> AuthSettings:
        return AuthSettings()

    @property
    def database(self) -> DatabaseSettings:
        return DatabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}.
    Useful for startup checks.
    """
    results = {}

    settings = get_settings()

    for name in ("auth", "database", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
