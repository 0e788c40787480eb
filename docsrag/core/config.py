"""Application configuration settings."""

import logging
from functools import lru_cache
from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Model and vector dimension used when only the provider is configured
EMBEDDING_DEFAULTS = {
    "openai": ("text-embedding-3-small", 1536),
    "google": ("text-embedding-004", 768),
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "docsrag"
    app_version: str = "0.1.0"
    debug: bool = False
    api_prefix: str = "/api/v1"

    # Logging
    logger_name: str = "docsrag"
    log_level: str = "INFO"

    # GitHub
    github_repo_url: str = "facebook/react"  # owner/repo
    github_token: Optional[str] = None
    github_api_base_url: str = "https://api.github.com"
    github_http_timeout_seconds: float = 30.0
    docs_local_path: Optional[str] = None  # read markdown from disk instead of GitHub

    # Embeddings
    embedding_provider: Literal["openai", "google"] = "openai"
    embedding_api_key: Optional[str] = None
    embedding_base_url: str = "https://api.openai.com/v1"
    embedding_model: Optional[str] = None  # defaults per provider
    embedding_dimension: Optional[int] = None

    # Answer agent (OpenAI-compatible chat endpoint)
    agent_api_key: Optional[str] = None
    agent_base_url: Optional[str] = None
    agent_model: str = "deepseek-chat"
    agent_temperature: float = 0.3
    agent_max_tokens: int = 2000

    # Vector store
    vector_storage_path: str = "./.vector_store"
    default_index_name: str = "github_docs"
    knowledge_backend: Literal["vector", "lexical"] = "vector"

    # Batching
    embedding_batch_size: int = 50
    store_batch_size: int = 25
    api_delay_ms: int = 200
    workflow_batch_size: int = 10
    max_search_results: int = 5

    # Chunking
    chunk_max_lines: int = 50
    heading_split_threshold: int = 5
    min_chunk_length: int = 50

    @model_validator(mode="after")
    def _embedding_defaults(self) -> "Settings":
        model, dimension = EMBEDDING_DEFAULTS[self.embedding_provider]
        if self.embedding_model is None:
            self.embedding_model = model
        if self.embedding_dimension is None:
            self.embedding_dimension = dimension
        return self

    @model_validator(mode="after")
    def _clamp_store_batch(self) -> "Settings":
        if self.store_batch_size > self.embedding_batch_size:
            logger.warning(
                "store_batch_size=%s exceeds embedding_batch_size=%s; clamping",
                self.store_batch_size,
                self.embedding_batch_size,
            )
            self.store_batch_size = self.embedding_batch_size
        return self

    @property
    def api_delay_seconds(self) -> float:
        return self.api_delay_ms / 1000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
