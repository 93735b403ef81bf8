"""Configuration models and loaders."""

from .settings import (
    A3SConfig,
    EmbeddingConfig,
    IngestConfig,
    LLMConfig,
    RerankConfig,
    RetrievalConfig,
    StorageBackendType,
    StorageConfig,
    VectorIndexConfig,
    get_config,
    load_config,
    save_config,
)

__all__ = [
    "A3SConfig",
    "EmbeddingConfig",
    "IngestConfig",
    "LLMConfig",
    "RerankConfig",
    "RetrievalConfig",
    "StorageBackendType",
    "StorageConfig",
    "VectorIndexConfig",
    "get_config",
    "load_config",
    "save_config",
]
