"""Embedder capability interface."""

from abc import ABC, abstractmethod
from typing import List


class Embedder(ABC):
    """Turn text into vectors."""

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        ...

    @abstractmethod
    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed ``texts``; output order matches input order."""

    @abstractmethod
    def dimension(self) -> int:
        ...

    async def close(self) -> None:
        pass
