"""
Engine configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files.
Values here are defaults only: engine components take them as explicit
arguments and never read settings while evaluating.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CALCFIELDS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ==========================================================================
    # Logging
    # ==========================================================================
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Emit JSON log lines")

    # ==========================================================================
    # Evaluation
    # ==========================================================================
    default_date_field: str = Field(
        default="created_at",
        description="Record attribute used for time-scope filtering of aggregations",
    )
    max_nesting_depth: int = Field(
        default=32,
        description="Maximum parenthesis / function-call nesting accepted by the parser",
    )

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        """Upper-case the level name so env values like 'debug' work."""
        return str(v).upper()

    @field_validator("max_nesting_depth")
    @classmethod
    def validate_max_nesting_depth(cls, v: int) -> int:
        """Nesting depth must allow at least a single function call."""
        if v < 1:
            raise ValueError("max_nesting_depth must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


# Global settings instance
settings = get_settings()
