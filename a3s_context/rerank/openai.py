"""
Pointwise LLM reranker.

Each document is scored independently by asking a chat model for a 0-10
relevance rating, normalized to [0, 1]. Unparsable answers score 0.
"""

import asyncio
import re
from typing import List, Optional

import structlog

from a3s_context.errors import RerankError
from a3s_context.llm import ChatClient

from .base import RerankDocument, Reranker, RerankResult, rank

log = structlog.get_logger()

DEFAULT_MODEL = "gpt-4o-mini"

_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")


def parse_rating(answer: str) -> float:
    """Extract a 0-10 rating from the model's answer and scale it to [0, 1]."""
    match = _NUMBER.search(answer or "")
    if match is None:
        return 0.0
    value = float(match.group(0))
    return min(max(value, 0.0), 10.0) / 10.0


def build_prompt(query: str, document: str) -> str:
    return (
        "Rate the relevance of the following document to the query on a scale of 0 to 10.\n\n"
        f"Query: {query}\n\n"
        f"Document: {document}\n\n"
        "Respond with ONLY a number between 0 and 10, nothing else."
    )


class OpenAIReranker(Reranker):

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
        llm: Optional[ChatClient] = None,
    ):
        self.llm = llm or ChatClient(
            api_base=api_base,
            api_key=api_key,
            model=model or DEFAULT_MODEL,
            temperature=0.0,
            max_tokens=10,
            timeout=timeout,
            error_cls=RerankError,
        )

    async def _score(self, query: str, document: RerankDocument) -> float:
        answer = await self.llm.complete(build_prompt(query, document.text), max_tokens=10)
        score = parse_rating(answer)
        log.debug(f"Pointwise score {score:.2f} for {document.id}")
        return score

    async def rerank(
        self,
        query: str,
        documents: List[RerankDocument],
        top_n: Optional[int] = None,
    ) -> List[RerankResult]:
        if not documents:
            return []
        scores = await asyncio.gather(*(self._score(query, doc) for doc in documents))
        return rank(documents, scores, top_n)

    async def close(self) -> None:
        await self.llm.close()
