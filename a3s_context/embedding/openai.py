"""
OpenAI-compatible embeddings client (``POST /embeddings``).
"""

import os
from typing import List, Optional

import structlog

from a3s_context.errors import ConfigError, EmbeddingError
from a3s_context.http import JSONHTTPClient

from .base import Embedder

log = structlog.get_logger()

DEFAULT_API_BASE = "https://api.openai.com/v1"


class OpenAIEmbedder(Embedder):
    """
    Embed text through any OpenAI-compatible endpoint.

    Args:
        api_base: API root (default OpenAI)
        api_key: Bearer key, falls back to ``OPENAI_API_KEY``
        model: Embedding model name
        dimension: Expected vector size
        batch_size: Texts per request in ``embed_batch``

    Raises:
        ConfigError: if no API key is available
    """

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        model: str = "text-embedding-3-small",
        dimension: int = 1536,
        batch_size: int = 32,
        timeout: float = 30.0,
    ):
        api_key = api_key or os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise ConfigError("No API key provided")

        self.model = model
        self._dimension = dimension
        self.batch_size = batch_size
        self.http = JSONHTTPClient(
            api_base or DEFAULT_API_BASE,
            api_key=api_key,
            timeout=timeout,
            error_cls=EmbeddingError,
        )

    async def _request(self, texts: List[str]) -> List[List[float]]:
        data = await self.http.post("/embeddings", {"model": self.model, "input": texts})

        try:
            items = sorted(data["data"], key=lambda item: item.get("index", 0))
            vectors = [[float(v) for v in item["embedding"]] for item in items]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"unexpected embeddings response: {e}") from e

        if len(vectors) != len(texts):
            raise EmbeddingError(f"expected {len(texts)} embeddings, got {len(vectors)}")
        return vectors

    async def embed(self, text: str) -> List[float]:
        vectors = await self._request([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        vectors: List[List[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start:start + self.batch_size]
            vectors.extend(await self._request(batch))

        log.debug(f"Embedded {len(texts)} texts in {-(-len(texts) // self.batch_size)} request(s)")
        return vectors

    def dimension(self) -> int:
        return self._dimension

    async def close(self) -> None:
        await self.http.close()
