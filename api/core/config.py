"""
Configuration settings for the staging API
"""
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings"""

    # Application
    app_name: str = "Virtual Staging API"
    version: str = "1.0.0"
    environment: str = "development"
    debug: bool = True

    # CORS
    cors_origins: List[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8000",
        "http://127.0.0.1:8000",
    ]

    # Google AI Studio
    google_ai_api_key: str = ""
    planning_model: str = "gemini-2.5-pro"
    image_model: str = "gemini-2.5-flash-image"
    planning_temperature: float = 0.7

    # Generation
    design_count: int = 2  # 1 or 2 design concepts per request
    plan_format: str = "json"  # json or delimited
    letterbox_size: int = 1024
    letterbox_background: str = "#000000"
    jpeg_quality: int = 95
    use_maps_grounding: bool = True

    # File upload
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_image_types: List[str] = ["image/jpeg", "image/png", "image/webp"]

    # Sessions
    max_sessions: int = 500

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Allow extra fields from .env


# Global settings instance
settings = Settings()
