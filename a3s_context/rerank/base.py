"""
Reranker capability interface.

``rerank`` returns ``RerankResult`` items sorted by score descending, at most
``top_n`` long. Empty input returns ``[]`` without any external call.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass
class RerankDocument:
    id: str
    text: str


@dataclass
class RerankResult:
    """
    Attributes:
        id: Document id
        index: Position of the document in the input list
        score: Relevance score (higher is better)
    """
    id: str
    index: int
    score: float


def rank(
    documents: Sequence[RerankDocument],
    scores: Sequence[float],
    top_n: Optional[int],
) -> List[RerankResult]:
    """Pair documents with scores, sort descending (ties by input index) and truncate."""
    results = [
        RerankResult(id=doc.id, index=i, score=float(score))
        for i, (doc, score) in enumerate(zip(documents, scores))
    ]
    results.sort(key=lambda r: (-r.score, r.index))
    if top_n is not None:
        results = results[:max(top_n, 0)]
    return results


class Reranker(ABC):

    @abstractmethod
    async def rerank(
        self,
        query: str,
        documents: List[RerankDocument],
        top_n: Optional[int] = None,
    ) -> List[RerankResult]:
        ...

    async def close(self) -> None:
        pass
