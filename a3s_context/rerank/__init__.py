"""
Reranker capability and its providers.
"""

from a3s_context.config.settings import RerankConfig
from a3s_context.errors import ConfigError

from .base import RerankDocument, Reranker, RerankResult, rank
from .cohere import CohereReranker
from .hosted import HostedReranker
from .jina import JinaReranker
from .mock import MockReranker
from .openai import OpenAIReranker


def create_reranker(config: RerankConfig) -> Reranker:
    """Instantiate the reranker selected by ``config.provider``."""
    if config.provider == "mock":
        return MockReranker()
    if config.provider == "jina":
        return JinaReranker(config.api_base, config.api_key, config.model)
    if config.provider == "cohere":
        return CohereReranker(config.api_base, config.api_key, config.model)
    if config.provider == "openai":
        return OpenAIReranker(config.api_base, config.api_key, config.model)
    raise ConfigError(f"Unknown rerank provider: {config.provider}")


__all__ = [
    "RerankDocument",
    "Reranker",
    "RerankResult",
    "rank",
    "CohereReranker",
    "HostedReranker",
    "JinaReranker",
    "MockReranker",
    "OpenAIReranker",
    "create_reranker",
]
