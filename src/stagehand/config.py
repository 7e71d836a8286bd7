"""
Application settings using Pydantic.

Provides environment-based configuration loading with STAGEHAND_ prefix.
"""

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings."""

    # Cluster access
    kubeconfig: str | None = None
    kube_context: str | None = None
    namespace: str = "default"
    request_timeout: float = 30.0

    # Retries for cluster calls (create, status, reports)
    max_attempts: int = 5
    retry_backoff: float = 0.5
    retry_max_delay: float = 10.0

    # Status polling
    poll_interval: float = 1.0
    poll_backoff: float = 1.5
    poll_max_interval: float = 15.0
    poll_timeout: float = 600.0  # 0 disables

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_prefix = "STAGEHAND_"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
