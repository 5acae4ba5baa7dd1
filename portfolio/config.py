"""
Application configuration using Pydantic Settings
"""
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    """Application settings loaded from environment variables

    Connection details and secrets have no defaults, so a missing value
    stops the process when this module is imported.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Application
    debug: bool = False
    app_name: str = "portfolio"
    app_version: str = "1.0.0"
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = True
    log_dir: str = "logs"

    # Database
    database_url: str

    # Sessions / admin bootstrap
    session_secret: str = Field(min_length=32)
    session_algorithm: str = "HS256"
    session_max_age_hours: int = 24
    admin_email: str = "admin@localhost"
    admin_name: str = "Admin"
    admin_password: str = Field(min_length=8)

    # Nextcloud
    nextcloud_url: str
    nextcloud_username: str
    nextcloud_password: str
    nextcloud_photos_path: str = "/Photos/Portfolio"
    nextcloud_timeout_seconds: float = 30.0

    # Photo serving
    api_photo_prefix: str = "/api/photos"
    placeholder_url: str = "/static/placeholder-image.svg"
    photo_cache_control: str = "public, max-age=31536000, immutable"

    # Uploads
    max_upload_size_mb: int = 50
    allowed_image_extensions: str = "jpg,jpeg,png,gif,webp,svg"
    default_photo_width: int = 1600
    default_photo_height: int = 1067
    upload_retry_attempts: int = 3
    upload_backoff_base_seconds: float = 1.0
    upload_backoff_cap_seconds: float = 4.0

    # Image processing
    resize_threshold_mb: float = 5.0
    resize_max_width: int = 2400
    resize_max_height: int = 2400
    resize_start_quality: int = 90
    resize_min_quality: int = 70
    resize_quality_step: int = 5

    @field_validator("nextcloud_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        value = value.strip().rstrip("/")
        if not value:
            raise ValueError("nextcloud_url must not be empty")
        return value

    @field_validator("api_photo_prefix")
    @classmethod
    def normalize_prefix(cls, value: str) -> str:
        return "/" + value.strip("/")

    @property
    def allowed_image_exts(self) -> List[str]:
        """Get allowed image extensions as list"""
        return [ext.strip().lower() for ext in self.allowed_image_extensions.split(",") if ext.strip()]

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024

    @property
    def resize_threshold_bytes(self) -> int:
        return int(self.resize_threshold_mb * 1024 * 1024)


# Global settings instance
settings = Settings()
