"""
Runtime settings loaded from the environment.
"""
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Interpolator settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="AI_INTERPOLATOR_",
        case_sensitive=False,
        extra="ignore"
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Environment"
    )
    log_level: str = Field(default="INFO", description="Log level")
    enable_structured_logging: bool = Field(
        default=False, description="Render logs as JSON"
    )
    enable_metrics: bool = Field(default=True, description="Enable Prometheus metrics")

    # Field configuration
    field_config_path: str = Field(
        default="config/interpolation.yaml",
        description="YAML file with bundle field definitions and interpolation settings",
    )

    # Generation backend (OpenAI-compatible chat completions)
    generation_base_url: str = Field(
        default="https://api.openai.com/v1", description="Generation API base URL"
    )
    generation_api_key: str = Field(default="", description="Generation API key")
    generation_model: str = Field(default="gpt-4o-mini", description="Default text model")
    generation_image_model: str = Field(default="dall-e-3", description="Default image model")
    generation_transcription_model: str = Field(
        default="whisper-1", description="Default audio transcription model"
    )
    generation_timeout: float = Field(default=120.0, description="Request timeout in seconds")
    generation_max_retries: int = Field(default=3, description="Retries for transient failures")

    # Durable work queue
    queue_database_url: str = Field(
        default="sqlite:///ai_interpolator_queue.db", description="Work queue database URL"
    )
    queue_name: str = Field(default="ai_interpolator_field_data", description="Queue name")
    queue_lease_seconds: int = Field(
        default=300, description="Seconds before an unacknowledged claim may be reclaimed"
    )
    worker_time_limit: float = Field(
        default=60.0, description="Seconds a worker run may spend claiming items"
    )
    save_max_attempts: int = Field(
        default=5, description="Compare-and-swap attempts when a worker re-saves an entity"
    )

    # Managed file storage
    file_storage_root: str = Field(default="files", description="Root directory for stored files")
    file_default_scheme: str = Field(default="public", description="Default uri scheme")
    file_download_timeout: float = Field(default=60.0, description="Remote download timeout")


settings = Settings()

_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the active settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = settings
    return _settings


def reset_settings(new_settings: Optional[Settings] = None) -> None:
    """Replace the active settings (useful for testing)."""
    global _settings
    _settings = new_settings
