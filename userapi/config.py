"""
User API Backend — Application Configuration
==============================================

What:  Centralized configuration management using Pydantic Settings.
Why:   Type-safe environment variable loading with validation on startup.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a `settings` object.
Who:   Imported by the application factory and the Alembic environment.
When:  Loaded once at module import time; validated before app starts.

Database connection values come from five separate variables
(DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASSWORD) rather than a single URL.
The connection provider assembles them; see userapi.database.DatabaseConfig.
"""

from pydantic_settings import BaseSettings
from pydantic import Field, field_validator
from typing import List


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have defaults for development except the database
    credentials, which deployments must provide.
    """

    # ── Database ──────────────────────────────────────────────────────────
    db_host: str = Field(default="localhost", description="PostgreSQL host")
    db_port: int = Field(default=5432, ge=1, le=65535, description="PostgreSQL port")
    db_name: str = Field(default="", description="Database name")
    db_user: str = Field(default="", description="Database user")
    db_password: str = Field(default="", description="Database password")

    # Pool sizing; PostgreSQL default max_connections is 100
    db_pool_size: int = Field(default=20, ge=5, le=100)
    db_max_overflow: int = Field(default=10, ge=0, le=50)
    db_pool_pre_ping: bool = Field(default=True)

    # ── CORS ──────────────────────────────────────────────────────────────
    # Comma-separated list of origins
    cors_origins: str = Field(default="http://localhost:3000")

    @property
    def cors_origins_list(self) -> List[str]:
        """Splits comma-separated CORS origins into a list."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8080, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    # DEBUG also turns on the per-query SQL log lines
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # DB_HOST and db_host both work
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that the database credentials are configured.
        When:  Called during app startup (lifespan).
        How:   Collects every missing variable and raises one ValueError.
        """
        errors = []
        for field_name in ("db_name", "db_user", "db_password"):
            if not getattr(self, field_name):
                errors.append(f"{field_name.upper()} is not set.")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


settings = Settings()
