"""
Application configuration using Pydantic Settings.
Loads from environment variables with .env file support.
"""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Anthropic (content provider). Empty key means the provider is unavailable.
    anthropic_api_key: str = ""
    anthropic_model: str = "claude-3-5-sonnet-20241022"
    anthropic_max_tokens: int = 4096

    # Image provider (OpenAI-compatible images endpoint)
    image_api_key: str = ""
    image_api_url: str = "https://api.openai.com/v1/images/generations"
    image_model: str = "dall-e-3"
    image_request_timeout_seconds: float = 60.0

    # Redis (generation queue worker)
    redis_url: str = "redis://localhost:6379"
    generation_queue: str = "generation_queue"
    worker_concurrency: int = 1

    # App Config
    environment: Literal["development", "staging", "production"] = "development"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    artifacts_dir: str = "./output"

    # Iteration loop
    max_iterations: int = 3
    auto_improve_max_iterations: int = 10
    auto_improve_target_score: float = 95.0
    category_threshold: float = 7.5

    # Stage execution
    provider_retry_attempts: int = 2
    provider_retry_backoff_seconds: float = 1.0
    run_timeout_seconds: int = 600

    # Image generation
    image_concurrency: int = 10
    image_batch_size: int = 10
    image_retry_attempts: int = 3
    image_retry_backoff_seconds: float = 2.0
    image_batch_delay_seconds: float = 0.5

    # Quality assessment
    render_timeout_ms: int = 30000
    render_retry_backoff_seconds: float = 2.0

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
