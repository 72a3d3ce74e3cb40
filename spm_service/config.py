"""Application configuration using Pydantic Settings.

Reads configuration from environment variables with sensible defaults.
Database credentials should be provided via environment variables.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # =========================================================================
    # Application
    # =========================================================================
    environment: Literal["prod", "staging", "dev"] = Field(
        default="dev",
        description="Environment name",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # =========================================================================
    # Document store
    # =========================================================================
    store_backend: Literal["sql", "memory"] = Field(
        default="sql",
        description="Backing store for taxonomy nodes and products",
    )

    # =========================================================================
    # Database
    # =========================================================================
    db_user: str = Field(
        default="spm_app",
        description="Database user",
    )
    db_password: str = Field(
        default="",
        description="Database password",
    )
    db_name: str = Field(
        default="spm",
        description="Database name",
    )
    db_host: str = Field(
        default="localhost",
        description="Database host",
    )
    db_port: int = Field(
        default=5432,
        description="Database port",
    )
    db_pool_size: int = Field(
        default=5,
        description="Database connection pool size",
    )
    db_pool_max_overflow: int = Field(
        default=10,
        description="Max overflow connections beyond pool size",
    )
    database_url_override: str | None = Field(
        default=None,
        description="Full SQLAlchemy URL, takes precedence over the db_* parts",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def database_url(self) -> str:
        """Build the async database URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.db_user}:{self.db_password}"
            f"@{self.db_host}:{self.db_port}/{self.db_name}"
        )

    # =========================================================================
    # Taxonomy
    # =========================================================================
    max_hierarchy_depth: int = Field(
        default=64,
        ge=3,
        description="Upper bound on parent-chain walks (cycle guard against corrupted data)",
    )
    recently_updated_hours: int = Field(
        default=24,
        ge=1,
        description="Default window for the recently-updated query",
    )
    suggestion_limit: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Maximum number of category suggestions returned",
    )

    # =========================================================================
    # Logging
    # =========================================================================
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    log_json: bool = Field(
        default=True,
        description="Output logs as JSON",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Singleton instance for convenience
settings = get_settings()
