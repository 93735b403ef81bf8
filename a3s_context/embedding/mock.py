"""
Deterministic embedder for tests and offline use.

The vector depends only on the byte sum of the text, so equal texts always
embed identically. It carries no semantic signal.
"""

import math
from typing import List

from .base import Embedder


class MockEmbedder(Embedder):

    def __init__(self, dimension: int = 1536):
        if dimension < 1:
            raise ValueError(f"dimension must be >= 1, got {dimension}")
        self._dimension = dimension

    def _vector(self, text: str) -> List[float]:
        seed = sum(text.encode("utf-8"))
        values = [((seed + i) % 1000) / 1000.0 - 0.5 for i in range(self._dimension)]
        norm = math.sqrt(sum(v * v for v in values))
        if norm == 0:
            return values
        return [v / norm for v in values]

    async def embed(self, text: str) -> List[float]:
        return self._vector(text)

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [self._vector(t) for t in texts]

    def dimension(self) -> int:
        return self._dimension
