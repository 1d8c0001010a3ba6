"""
Application settings for the Grofvuil API using Pydantic Settings.

All values can be overridden through environment variables or a local
``.env`` file. The report guard thresholds live here so the server and the
client agree on the same numbers.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """
    Settings for the reporting API.

    Uses Pydantic Settings to load and validate configuration from
    environment variables with proper type checking and defaults.
    """

    # Database
    database_url: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
        description="Full SQLAlchemy async URL; overrides the POSTGRES_* parts when set",
    )
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_database: str = Field(default="grofvuil", alias="POSTGRES_DATABASE")
    postgres_user: str = Field(default="grofvuil", alias="POSTGRES_USER")
    postgres_password: str = Field(default="grofvuil", alias="POSTGRES_PASSWORD")
    postgres_pool_max_size: int = Field(default=10, alias="POSTGRES_POOL_MAX_SIZE")
    db_auto_create: bool = Field(
        default=True,
        alias="DB_AUTO_CREATE",
        description="Create missing tables on startup (alembic is used in production)",
    )

    # Authentication
    jwt_secret_key: str = Field(
        default="change-me-in-production",
        alias="JWT_SECRET_KEY",
        description="Secret used to sign access tokens",
    )
    jwt_algorithm: str = Field(default="HS256", alias="JWT_ALGORITHM")
    jwt_expire_hours: int = Field(default=24 * 7, alias="JWT_EXPIRE_HOURS")
    seed_demo_users: bool = Field(
        default=True,
        alias="SEED_DEMO_USERS",
        description="Create the admin/worker/user demo accounts on startup",
    )

    # HTTP surface
    api_prefix: str = Field(default="/api", alias="API_PREFIX")
    cors_origins: List[str] = Field(default=["*"], alias="CORS_ORIGINS")
    debug: bool = Field(
        default=False,
        alias="DEBUG",
        description="Include stack traces in error responses",
    )
    grofvuil_host: str = Field(default="127.0.0.1", alias="GROFVUIL_HOST")
    grofvuil_port: int = Field(default=8000, alias="GROFVUIL_PORT")

    # Report guards
    spam_radius_meters: float = Field(
        default=10.0,
        alias="SPAM_RADIUS_METERS",
        description="Minimum distance between two open reports",
    )
    spam_window_hours: float = Field(
        default=24.0,
        alias="SPAM_WINDOW_HOURS",
        description="How long an earlier report blocks its surroundings",
    )
    max_reports_per_hour: int = Field(
        default=5,
        alias="MAX_REPORTS_PER_HOUR",
        description="Maximum submissions per user in a rolling hour",
    )
    max_photo_bytes: int = Field(
        default=5 * 1024 * 1024,
        alias="MAX_PHOTO_BYTES",
        description="Maximum decoded size of an inline photo",
    )
    nearby_radius_km: float = Field(
        default=2.0,
        alias="NEARBY_RADIUS_KM",
        description="Default radius for the nearby filter of the report list",
    )

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "env_prefix": "",
        "extra": "ignore",
        "populate_by_name": True,
    }


# Global settings instance
_settings: Optional[AppSettings] = None


def get_settings() -> AppSettings:
    """
    Get global settings instance (singleton pattern).

    Returns:
        Validated AppSettings instance
    """
    global _settings
    if _settings is None:
        _settings = AppSettings()
    return _settings


def reset_settings() -> None:
    """Reset global settings (useful for testing)."""
    global _settings
    _settings = None
