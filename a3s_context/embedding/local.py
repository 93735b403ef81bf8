"""
Local sentence-transformers embedder.

Key Features:
- Lazy loading (model loaded on first use, not on construction)
- Thread-safe initialization (double-checked locking)
- Encoding runs in the default executor so the event loop is never blocked
- Configurable device (CPU/CUDA, auto-detected by default)

Requires the ``local`` extra: ``pip install a3s-context[local]``.
"""

import asyncio
import os
from threading import Lock
from typing import Any, List, Optional

import structlog

from a3s_context.errors import ConfigError, EmbeddingError

from .base import Embedder

log = structlog.get_logger()

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class SentenceTransformerEmbedder(Embedder):
    """
    Embed text with a local sentence-transformers model.

    Usage:
        embedder = SentenceTransformerEmbedder("sentence-transformers/all-MiniLM-L6-v2")
        vector = await embedder.embed("hello")
    """

    def __init__(
        self,
        model_name: Optional[str] = None,
        device: Optional[str] = None,
        batch_size: int = 32,
        normalize_embeddings: bool = True,
    ):
        self.model_name = model_name or os.getenv("A3S_LOCAL_EMBEDDING_MODEL", DEFAULT_MODEL)
        self.device = device or os.getenv("A3S_EMBEDDING_DEVICE")
        self.batch_size = batch_size
        self.normalize_embeddings = normalize_embeddings
        self._model: Any = None
        self._lock = Lock()

    def _load_model(self):
        """
        Lazy load the sentence-transformers model.

        Downloads the model if not cached.
        """
        if self._model is None:
            with self._lock:
                if self._model is None:
                    try:
                        from sentence_transformers import SentenceTransformer
                        import torch
                    except ImportError as e:
                        raise ConfigError(
                            "sentence-transformers and torch are required for the "
                            "sentence-transformers provider. "
                            "Install with: pip install a3s-context[local]"
                        ) from e

                    device = self.device or ("cuda" if torch.cuda.is_available() else "cpu")
                    log.info(f"Loading embedding model: {self.model_name} on device: {device}")

                    try:
                        self._model = SentenceTransformer(self.model_name, device=device)
                    except Exception as e:
                        log.error(f"Failed to load model: {e}")
                        raise EmbeddingError(f"Failed to load embedding model: {e}") from e

                    log.info(
                        f"Model loaded successfully. Embedding dimension: "
                        f"{self._model.get_sentence_embedding_dimension()}"
                    )
        return self._model

    @property
    def is_loaded(self) -> bool:
        return self._model is not None

    def dimension(self) -> int:
        return self._load_model().get_sentence_embedding_dimension()

    def encode_batch(self, texts: List[str]) -> List[List[float]]:
        """Synchronous batch encoding."""
        if not texts:
            return []

        model = self._load_model()
        embeddings = model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=self.normalize_embeddings,
            show_progress_bar=False,
            convert_to_numpy=True,
        )
        return embeddings.tolist()

    async def embed(self, text: str) -> List[float]:
        vectors = await self.embed_batch([text])
        return vectors[0]

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        loop = asyncio.get_event_loop()
        return await loop.run_in_executor(None, self.encode_batch, texts)
