"""
Configuration Management
Loads and validates environment variables
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional

VERSION = "1.0.0"


class Settings(BaseSettings):
    """Application settings from environment variables"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )
    APP_NAME: str = "Mavida"

    # TMDB (v4 read access token, sent as a bearer token)
    TMDB_API_TOKEN: Optional[str] = None
    TMDB_BASE_URL: str = "https://api.themoviedb.org/3"
    TMDB_LANGUAGE: str = "en-US"
    TMDB_REGION: str = "US"
    TMDB_INCLUDE_ADULT: bool = False

    # API Rate Limits (requests per second)
    # TMDB allows far more, 4/s keeps a browsing session well clear of it
    TMDB_RATE_LIMIT: float = 4
    TMDB_REQUEST_TIMEOUT: float = 10
    TMDB_TASK_TIMEOUT: Optional[float] = None

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    STATE_REDIS_URL: Optional[str] = None  # falls back to REDIS_URL
    # State writes run on the event loop, so a stalled server must not hang it
    STATE_REDIS_TIMEOUT: float = 2.0

    # Freshness windows (seconds)
    CACHE_TTL_TRENDING: int = 3600  # 1 hour
    CACHE_TTL_LIST: int = 3600  # 1 hour
    CACHE_TTL_DETAIL: int = 86400  # 24 hours
    CACHE_TTL_SEARCH: int = 300  # 5 minutes
    CACHE_TTL_DEFAULT: int = 300  # 5 minutes
    CACHE_RETENTION_FACTOR: int = 5  # stale entries kept for ttl * factor

    # Retry policy for transient catalog failures
    CACHE_RETRY_ATTEMPTS: int = 3
    CACHE_RETRY_BASE_DELAY: float = 1.0
    CACHE_RETRY_MAX_DELAY: float = 30.0

    # Playback
    PROGRESS_SAVE_INTERVAL: float = 10.0

    # Development
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    @property
    def state_redis_url(self) -> str:
        return self.STATE_REDIS_URL or self.REDIS_URL


settings = Settings()
