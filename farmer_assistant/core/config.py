"""
Configuration management using Pydantic Settings.

This module defines the Settings class that loads configuration from
environment variables and .env files.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    app_name: str = Field(default="Farmer Assistant", description="Application name")
    debug: bool = Field(default=False, description="Debug mode")
    log_level: str = Field(default="INFO", description="Root log level")

    # Cloud inference backend
    backend_url: str = Field(
        default="https://us-central1-agro-bot-1212.cloudfunctions.net/farmer-assistant",
        description="Base URL of the cloud inference function",
    )
    analyze_path: str = Field(default="/api/analyze", description="Analysis route")
    health_path: str = Field(default="/health", description="Health check route")
    request_timeout: Optional[float] = Field(
        default=None, description="Outbound request timeout in seconds (None = no timeout)"
    )

    # Farm data backend (classification, uploads, dashboard)
    data_backend_url: Optional[str] = Field(
        default=None, description="Farm data backend URL (defaults to backend_url)"
    )

    # Local persistent key-value storage
    storage_path: Path = Field(
        default=Path.home() / ".farmer_assistant" / "storage.json",
        description="JSON file backing the local key-value store",
    )

    # Image classifier
    classifier_model_url: str = Field(
        default="https://teachablemachine.withgoogle.com/models/mango-tree/",
        description="Base URL holding model.json and metadata.json",
    )
    classifier_fallback_model_url: Optional[str] = Field(
        default=None, description="Fallback base URL tried when the primary fails"
    )
    classifier_cache_dir: Path = Field(
        default=Path.home() / ".farmer_assistant" / "models",
        description="Directory where downloaded model files are cached",
    )
    classifier_model_type: str = Field(
        default="teachable_machine",
        description="\"teachable_machine\" (local model) or \"mobilenet\" (backend inference)",
    )

    # Crop-type inference
    crop_label_mapping: Dict[str, str] = Field(
        default={"mango_tree": "Mango"},
        description="Classifier label -> crop name",
    )
    crop_probability_threshold: float = Field(
        default=0.5, description="Top-1 probability required to accept a mapped label"
    )
    crop_negative_label: str = Field(
        default="Not Mango", description="Crop name used when no mapping applies"
    )

    # UI orchestration
    thought_delay_seconds: float = Field(
        default=2.0, description="Delay between progress thoughts"
    )
    max_image_size: int = Field(
        default=5 * 1024 * 1024, description="Largest image accepted for disease analysis"
    )

    # Asset upload
    upload_max_dimension: int = Field(
        default=1280, description="Longest edge of images before upload"
    )
    upload_jpeg_quality: int = Field(default=85, description="JPEG quality for uploads")

    # API Configuration
    api_v1_prefix: str = Field(default="/api/v1", description="API v1 prefix")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8000"],
        description="CORS allowed origins",
    )

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: Any) -> Any:
        """Parse CORS origins from environment variable."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("backend_url", "data_backend_url")
    @classmethod
    def strip_trailing_slash(cls, v: Optional[str]) -> Optional[str]:
        return v.rstrip("/") if v else v

    @property
    def farm_backend_url(self) -> str:
        """Base URL for the farm data routes."""
        return self.data_backend_url or self.backend_url

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global Settings instance.

    Returns:
        Settings: The application settings

    Raises:
        ValidationError: If environment variables are invalid
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
