"""Application configuration settings."""

import logging
from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "AskAussie"
    app_version: str = "0.1.0"
    debug: bool = False
    api_prefix: str = "/api"
    log_level: str = "INFO"
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
    ]

    # OpenAI
    openai_api_key: Optional[str] = None
    openai_chat_model: str = "gpt-4o"
    openai_embedding_model: str = "text-embedding-3-small"

    # Retrieval
    corpus_path: str = "public/constitution_embeddings.json"
    rag_top_k: int = 3

    # Completion
    ai_max_tokens: int = 2000
    ai_temperature: float = 0.1

    # Observability
    metrics_backend: str = "inmemory"  # "inmemory" | "prometheus"
    otel_enabled: bool = False
    otel_service_name: str = "askaussie-api"
    otel_exporter_otlp_endpoint: Optional[str] = None


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Warns when no OpenAI key is configured; chat requests will be rejected
    with a configuration error until one is set.
    """
    settings = Settings()

    if not settings.openai_api_key:
        logger.warning(
            "openai_api_key is not set. "
            "Set OPENAI_API_KEY environment variable to enable chat."
        )

    return settings
