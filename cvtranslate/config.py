"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 4000
    cors_origins: str = (
        "http://localhost:5173,http://localhost:5174,http://localhost:5175,"
        "http://127.0.0.1:5173,http://127.0.0.1:5174"
    )

    # ==========================================================================
    # AI / LLM
    # ==========================================================================

    # Accepts either GOOGLE_API_KEY or GEMINI_API_KEY
    google_api_key: str = ""
    gemini_api_key: str = ""
    primary_model: str = "gemini-2.0-flash-lite"
    fallback_model: str = "gemini-2.0-flash-lite-001"
    models_endpoint: str = "https://generativelanguage.googleapis.com/v1/models"

    # ==========================================================================
    # Pipeline
    # ==========================================================================

    chunk_size: int = 1000
    chunk_strategy: str = "structural"  # "words" is the degraded whitespace splitter
    max_attempts: int = 4
    retry_initial_delay: float = 0.3  # seconds, doubled after every retry
    fallback_attempt: int = 3  # 1-based attempt that switches to the fallback model
    bulk_workers: int = 5
    stream_pause: float = 0.05  # seconds between streamed chunks

    # ==========================================================================
    # Cache
    # ==========================================================================

    cache_ttl_days: int = 7
    cache_dir: str = "./data/translation-cache"
    cache_flush_interval: float = 300.0  # seconds
    segment_cache_ttl_seconds: int = 0  # 0 disables the sub-segment cache

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def api_key(self) -> str:
        return self.google_api_key or self.gemini_api_key

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_days * 24 * 60 * 60

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
