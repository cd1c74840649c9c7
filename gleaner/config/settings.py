"""
Settings Management

Provides centralized, type-safe configuration using Pydantic.
Supports environment variables, .env files, and hierarchical config.

Design decisions:
- Using pydantic-settings for validation and type coercion
- Immutable settings after initialization (frozen model)
- One settings class per component, composed in Settings
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SchedulerSettings(BaseSettings):
    """Ingestion scheduler configuration."""

    model_config = SettingsConfigDict(env_prefix="SCHEDULER_")

    tick_interval_seconds: float = Field(default=900.0, gt=0)
    max_concurrency: int = Field(default=4, ge=1)
    job_timeout_seconds: float = Field(default=300.0, gt=0)


class CacheSettings(BaseSettings):
    """Embedding cache configuration."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    max_size_bytes: int = Field(default=1 << 30, ge=1)
    evict_to_ratio: float = Field(default=0.8, gt=0.0, le=1.0)
    cache_query_embeddings: bool = Field(default=True)


class VectorStoreSettings(BaseSettings):
    """Vector store configuration."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_")

    provider: Literal["memory", "milvus"] = "memory"
    dimension: int = Field(default=768, ge=1)

    # In-memory snapshot (load at start, explicit flush)
    snapshot_path: str | None = Field(default=None)

    # Milvus settings
    milvus_host: str = Field(default="localhost")
    milvus_port: int = Field(default=19530)
    milvus_collection: str = Field(default="gleaner_documents")


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration."""

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    provider: Literal["openai", "ollama", "local", "hash"] = "ollama"

    openai_api_key: SecretStr | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="text-embedding-3-small")

    ollama_base_url: str = Field(default="http://localhost:11434/api")
    ollama_model: str = Field(default="nomic-embed-text")

    local_model: str = Field(default="all-MiniLM-L6-v2")
    local_device: str = Field(default="cpu")

    # Enforced for ollama, hash and local; openai derives it from the model
    dimension: int = Field(default=768, ge=1)
    request_timeout: float = Field(default=30.0, gt=0)


class LLMSettings(BaseSettings):
    """Answer generation configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    provider: Literal["openai", "ollama", "stub"] = "ollama"

    openai_api_key: SecretStr | None = Field(default=None)
    openai_base_url: str | None = Field(default=None)
    openai_model: str = Field(default="gpt-4o-mini")

    ollama_base_url: str = Field(default="http://localhost:11434/api")
    ollama_model: str = Field(default="llama2")

    stub_model_name: str = Field(default="stub-model-v1")

    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(default=2000, ge=1)
    request_timeout: float = Field(default=60.0, gt=0)


class RetrievalSettings(BaseSettings):
    """Query-time retrieval configuration."""

    model_config = SettingsConfigDict(env_prefix="RETRIEVAL_")

    top_k: int = Field(default=5, ge=1)
    min_score: float = Field(default=0.3, ge=-1.0, le=1.0)
    no_context_answer: str = Field(
        default=(
            "I don't have any stored knowledge relevant to that question yet."
        )
    )


class AdapterSettings(BaseSettings):
    """Content adapter configuration."""

    model_config = SettingsConfigDict(env_prefix="ADAPTER_")

    request_timeout: float = Field(default=10.0, gt=0)
    user_agent: str = Field(default="Mozilla/5.0 (compatible; GleanerBot/1.0)")
    youtube_api_key: SecretStr | None = Field(default=None)
    youtube_api_url: str = Field(default="https://www.googleapis.com/youtube/v3")
    max_content_chars: int = Field(default=200_000, ge=1)


class RegistrySettings(BaseSettings):
    """Source registry configuration."""

    model_config = SettingsConfigDict(env_prefix="REGISTRY_")

    path: str | None = Field(default=None, description="JSON file, None keeps sources in memory")


class ObservabilitySettings(BaseSettings):
    """Observability configuration."""

    model_config = SettingsConfigDict(env_prefix="OBS_")

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    log_format: Literal["json", "text"] = "json"
    log_file: str | None = Field(default=None)


class Settings(BaseSettings):
    """
    Master settings aggregator.

    This is the single source of truth for all configuration.
    Sub-settings are composed here to maintain clear boundaries.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,  # Immutable after creation
    )

    app_name: str = Field(default="Gleaner")
    app_version: str = Field(default="0.1.0")
    environment: Literal["development", "staging", "production"] = "development"

    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    vector_store: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    adapters: AdapterSettings = Field(default_factory=AdapterSettings)
    registry: RegistrySettings = Field(default_factory=RegistrySettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses LRU cache to ensure only one settings instance exists.
    This is safe because settings are frozen/immutable.
    """
    return Settings()
