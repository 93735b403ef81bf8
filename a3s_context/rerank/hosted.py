"""
Shared client for hosted ``POST /rerank`` APIs.

Jina and Cohere accept the same request body and answer with
``{"results": [{"index": i, "relevance_score": s}, ...]}``; providers only
differ in defaults and the environment variable holding the key.
"""

import os
from typing import List, Optional

import structlog

from a3s_context.errors import ConfigError, RerankError
from a3s_context.http import JSONHTTPClient

from .base import RerankDocument, Reranker, RerankResult

log = structlog.get_logger()


class HostedReranker(Reranker):
    """
    Reranker backed by a hosted ``/rerank`` endpoint.

    Subclasses set ``provider``, ``api_key_env``, ``default_api_base`` and
    ``default_model``.
    """

    provider: str = ""
    api_key_env: str = ""
    default_api_base: str = ""
    default_model: str = ""

    def __init__(
        self,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 30.0,
    ):
        api_key = api_key or os.getenv(self.api_key_env)
        if not api_key:
            raise ConfigError(f"No API key provided for {self.provider} reranker")
        self.model = model or self.default_model
        self.http = JSONHTTPClient(
            api_base or self.default_api_base, api_key=api_key, timeout=timeout, error_cls=RerankError
        )

    async def rerank(
        self,
        query: str,
        documents: List[RerankDocument],
        top_n: Optional[int] = None,
    ) -> List[RerankResult]:
        if not documents:
            return []

        top_n = len(documents) if top_n is None else top_n
        data = await self.http.post("/rerank", {
            "model": self.model,
            "query": query,
            "documents": [doc.text for doc in documents],
            "top_n": top_n,
        })

        results = self._parse_results(data, documents)
        log.debug(f"{self.provider} reranked {len(documents)} documents with {self.model}")

        results.sort(key=lambda r: (-r.score, r.index))
        return results[:top_n]

    def _parse_results(self, data, documents: List[RerankDocument]) -> List[RerankResult]:
        try:
            results = []
            for item in data["results"]:
                index = int(item["index"])
                if not 0 <= index < len(documents):
                    raise IndexError(f"index {index} out of range")
                results.append(RerankResult(
                    id=documents[index].id,
                    index=index,
                    score=float(item["relevance_score"]),
                ))
            return results
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RerankError(f"unexpected {self.provider} response: {e}") from e

    async def close(self) -> None:
        await self.http.close()
