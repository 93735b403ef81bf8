"""Deterministic reranker used when no scoring service is configured."""

from typing import List, Optional

from .base import RerankDocument, Reranker, RerankResult, rank


def mock_score(text: str) -> float:
    return (sum(text.encode("utf-8")) % 100) / 100.0


class MockReranker(Reranker):

    async def rerank(
        self,
        query: str,
        documents: List[RerankDocument],
        top_n: Optional[int] = None,
    ) -> List[RerankResult]:
        if not documents:
            return []
        return rank(documents, [mock_score(doc.text) for doc in documents], top_n)
