import json
import logging
import os
import tempfile
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")


class RedisConfig(BaseModel):
    url: Optional[str] = Field(default=None, description="Redis connection URL (disabled when unset)")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting")
    max_requests: int = Field(default=5, ge=1, description="Max requests per window")
    window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")


class DownloadConfig(BaseModel):
    max_concurrent: int = Field(default=10, ge=1, le=100, description="Max concurrent downloads")
    timeout_seconds: int = Field(default=600, ge=1, description="Extractor run timeout in seconds")
    info_timeout_seconds: int = Field(default=30, ge=1, description="Metadata lookup timeout in seconds")
    socket_timeout: int = Field(default=10, ge=1, description="Socket timeout for yt-dlp")
    retries: int = Field(default=3, ge=0, description="yt-dlp internal retries")
    temp_dir: str = Field(
        default=os.path.join(tempfile.gettempdir(), "ytdlp_downloads"),
        description="Shared directory for temporary downloads"
    )
    chunk_size: int = Field(default=256 * 1024, ge=1024, description="Relay chunk size in bytes")
    max_height: int = Field(default=720, ge=144, le=4320, description="Max video height for coarse 'video' downloads")
    max_filesize_video: Optional[str] = Field(default="100M", description="yt-dlp --max-filesize for video")
    max_filesize_audio: Optional[str] = Field(default="50M", description="yt-dlp --max-filesize for audio")


class YtDlpConfig(BaseModel):
    command: List[str] = Field(default=["yt-dlp"], description="Command used to invoke yt-dlp")
    backend: Literal["process", "direct"] = Field(default="process", description="Extractor backend")
    js_runtime: Optional[str] = Field(default=None, description="JS runtime path (e.g., deno:/usr/local/bin/deno)")
    enable_live_streams: bool = Field(default=False, description="Allow live stream downloads")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="[%(request_id)s] %(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "ja"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="tubeproxy", description="API title")
    description: str = Field(default="YouTube metadata and download proxy", description="API description")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class Config(BaseSettings):
    """Main configuration model"""
    model_config = SettingsConfigDict(env_prefix="TUBEPROXY_", env_nested_delimiter="__")

    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    ytdlp: YtDlpConfig = Field(default_factory=YtDlpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str) -> "Config":
        """Load configuration from JSON file"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return cls(**config_data)
        except (OSError, ValueError) as e:
            logger.error(f"Failed to load config from {config_path}: {str(e)}")
            logger.info("Using environment/default configuration")
            return cls()


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    return Config()


config = load_config()
