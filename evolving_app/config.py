"""
Configuration management for the evolving app services.
"""

from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        protected_namespaces=("settings_",),
    )

    # Application
    app_name: str = Field(default="Evolving App")
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # API
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=3001)
    cors_allow_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Database
    database_url: str = Field(default="sqlite:///./evolving_app.db")

    # Logging
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="json", description="json or console")

    # Generation
    generator_backend: str = Field(default="anthropic", description="anthropic or stub")
    anthropic_api_key: Optional[str] = Field(default=None)
    generation_model: str = Field(default="claude-3-5-sonnet-latest")
    generation_max_tokens: int = Field(default=8000)

    # Iteration coordinator
    coordinator_enabled: bool = Field(default=True)
    initial_delay_seconds: float = Field(default=120.0)
    iteration_period_seconds: float = Field(default=120.0)
    input_char_budget: int = Field(default=70)
    feature_summary_limit: int = Field(default=5)
    external_call_timeout_seconds: float = Field(default=120.0)

    # Recognizer
    queue_task_timeout_seconds: Optional[float] = Field(default=30.0)
    model_hidden_units: int = Field(default=128)
    model_learning_rate: float = Field(default=0.05)
    model_seed: Optional[int] = Field(default=None)

    # Pixel canvas
    canvas_width: int = Field(default=50)
    canvas_height: int = Field(default=50)


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings."""
    return settings
