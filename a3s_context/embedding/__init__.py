"""
Embedder capability and its providers.
"""

from a3s_context.config.settings import EmbeddingConfig
from a3s_context.errors import ConfigError

from .base import Embedder
from .local import SentenceTransformerEmbedder
from .mock import MockEmbedder
from .openai import OpenAIEmbedder


def create_embedder(config: EmbeddingConfig) -> Embedder:
    """Instantiate the embedder selected by ``config.provider``."""
    if config.provider == "openai":
        return OpenAIEmbedder(
            api_base=config.api_base,
            api_key=config.api_key,
            model=config.model,
            dimension=config.dimension,
            batch_size=config.batch_size,
            timeout=config.timeout,
        )
    if config.provider == "sentence-transformers":
        return SentenceTransformerEmbedder(
            model_name=config.model if "model" in config.model_fields_set else None,
            batch_size=config.batch_size,
        )
    if config.provider == "mock":
        return MockEmbedder(config.dimension)
    raise ConfigError(f"Unknown embedding provider: {config.provider}")


__all__ = [
    "Embedder",
    "MockEmbedder",
    "OpenAIEmbedder",
    "SentenceTransformerEmbedder",
    "create_embedder",
]
