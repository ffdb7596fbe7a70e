"""
Configuration management using Pydantic Settings
"""
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_prefix="INTENTUI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Logging
    service_name: str = Field(default="intentui", description="Service name bound into every log entry")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="'json' for structured logs, 'console' for dev output")

    # Reference memory
    intent_max_count: int = Field(default=50, ge=1, description="Maximum intents kept in the log")
    intent_max_age_seconds: float = Field(default=3600.0, gt=0, description="Age after which intents and references expire")

    # Suggestions
    suggestion_min_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    suggestion_max_count: int = Field(default=3, ge=1)
    suggestion_display_threshold: float = Field(
        default=0.6, ge=0.0, le=1.0,
        description="The suggestion bar is rendered only when one suggestion reaches this confidence"
    )
    suggestion_bar_order: float = Field(default=999, description="Order of the synthetic suggestion bar")

    # Orchestration
    policy_timeout_seconds: float = Field(default=30.0, gt=0, description="Upper bound for one policy call")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=8000, ge=1, le=65535)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
