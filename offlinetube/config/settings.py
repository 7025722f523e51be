"""
Application settings using Pydantic for configuration management.
Supports environment variables, a .env file and validation.
"""

from pathlib import Path
from typing import Annotated, List, Optional
from enum import Enum

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Environment(str, Enum):
    """Application environment types."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class VideoQuality(str, Enum):
    """Download quality presets offered to the user."""
    P360 = "360p"
    P480 = "480p"
    P720 = "720p"
    P1080 = "1080p"
    AUDIO_ONLY = "audio_only"


class Settings(BaseSettings):
    """Application settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        validate_assignment=True,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "OfflineTube"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Environment = Environment.DEVELOPMENT
    DEBUG: bool = False

    # API Configuration
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_PREFIX: str = "/api/v1"
    API_DOCS_URL: str = "/api/docs"
    ALLOWED_HOSTS: Annotated[List[str], NoDecode] = Field(default=["*"])

    # Downloads (server-side executor)
    DOWNLOADS_DIR: Path = Path("./public/downloads/videos")
    DOWNLOADS_URL_PATH: str = "/downloads/videos"
    YTDLP_BINARY: str = "yt-dlp"
    ARCHIVE_NAME_PREFIX: str = "OfflineTube_Downloads"
    ZIP_COMPRESSION_LEVEL: int = Field(default=9, ge=0, le=9)
    ARCHIVE_CHUNK_SIZE: int = 1024 * 1024  # 1MB

    # Download queue
    MAX_CONCURRENT_DOWNLOADS: int = Field(default=2, ge=1, le=10)
    DEFAULT_VIDEO_QUALITY: VideoQuality = VideoQuality.P480

    # Executor client
    EXECUTOR_BASE_URL: str = "http://127.0.0.1:8000"
    EXECUTOR_REQUEST_TIMEOUT: float = Field(default=30.0, gt=0)  # seconds
    EXECUTOR_COMPLETION_CHECK: bool = True
    EXECUTOR_POLL_INTERVAL: float = Field(default=2.0, gt=0)  # seconds
    EXECUTOR_COMPLETION_TIMEOUT: float = Field(default=3600.0, gt=0)  # seconds
    EXECUTOR_MAX_POLL_FAILURES: int = Field(default=3, ge=1)

    # Video catalog (YouTube Data API v3)
    YOUTUBE_API_KEY: Optional[str] = None
    YOUTUBE_CHANNEL_URL: Optional[str] = None
    YOUTUBE_API_BASE_URL: str = "https://www.googleapis.com/youtube/v3"
    VIDEOS_PER_PAGE: int = Field(default=50, ge=1, le=50)

    # Logging
    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: Optional[Path] = None

    # Monitoring
    ENABLE_METRICS: bool = True

    @field_validator("DOWNLOADS_DIR", mode="before")
    @classmethod
    def validate_downloads_dir(cls, v):
        """Ensure the downloads directory is a Path and exists."""
        if isinstance(v, str):
            v = Path(v)
        v.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("ALLOWED_HOSTS", mode="before")
    @classmethod
    def validate_allowed_hosts(cls, v):
        """Parse ALLOWED_HOSTS from string if needed."""
        if isinstance(v, str):
            return [host.strip() for host in v.split(",") if host.strip()]
        return v

    @field_validator("EXECUTOR_BASE_URL")
    @classmethod
    def validate_executor_base_url(cls, v):
        """Executor base URL must be http(s) and carry no trailing slash."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("EXECUTOR_BASE_URL must start with http:// or https://")
        return v.rstrip("/")

    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.ENVIRONMENT == Environment.DEVELOPMENT

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.ENVIRONMENT == Environment.PRODUCTION

    @property
    def is_testing(self) -> bool:
        """Check if running in testing mode."""
        return self.ENVIRONMENT == Environment.TESTING

    @property
    def youtube_configured(self) -> bool:
        """Both the API key and the channel URL are present."""
        return bool(self.YOUTUBE_API_KEY and self.YOUTUBE_CHANNEL_URL)

    @property
    def executor_config(self) -> dict:
        """Get executor client configuration dictionary."""
        return {
            "base_url": self.EXECUTOR_BASE_URL,
            "api_prefix": self.API_PREFIX,
            "request_timeout": self.EXECUTOR_REQUEST_TIMEOUT,
            "poll_interval": self.EXECUTOR_POLL_INTERVAL,
            "completion_timeout": self.EXECUTOR_COMPLETION_TIMEOUT,
            "max_poll_failures": self.EXECUTOR_MAX_POLL_FAILURES,
        }

    @property
    def cors_config(self) -> dict:
        """Get CORS configuration dictionary."""
        return {
            "allow_origins": self.ALLOWED_HOSTS,
            "allow_credentials": True,
            "allow_methods": ["*"],
            "allow_headers": ["*"],
        }


# Global settings instance
settings = Settings()
