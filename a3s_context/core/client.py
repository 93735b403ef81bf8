"""
A3S Client
==========

Facade wiring storage, embedder, digest generator, retriever and reranker
together behind the client-facing operations used by the CLI and by
embedding applications.

Usage:
    from a3s_context import A3SClient, A3SConfig

    async with A3SClient(A3SConfig.from_env()) as client:
        await client.ingest("./docs", "a3s://knowledge/docs")
        result = await client.query("How does authentication work?")
        for match in result.matches:
            print(match.pathway, match.score, match.brief)
"""

from pathlib import Path
from typing import List, Optional, Union

import structlog

from a3s_context.config.settings import A3SConfig
from a3s_context.core.digest import DigestGenerator
from a3s_context.core.models import Node, NodeInfo, NodeKind, StorageStats
from a3s_context.core.pathway import Pathway
from a3s_context.embedding import Embedder, create_embedder
from a3s_context.errors import NotInitializedError
from a3s_context.ingest.processor import IngestResult, Processor
from a3s_context.llm import ChatClient
from a3s_context.rerank import Reranker, create_reranker
from a3s_context.retrieval import QueryOptions, QueryResult, Retriever
from a3s_context.session import Session
from a3s_context.storage import StorageBackend, create_backend

log = structlog.get_logger()

PathwayLike = Union[str, Pathway]


def as_pathway(value: PathwayLike) -> Pathway:
    if isinstance(value, Pathway):
        return value
    return Pathway.parse(value)


class A3SClient:
    """
    Entry point for storing and querying context.

    Components are selected from ``config`` once, at construction; any of
    them can be injected instead (tests, custom backends).
    """

    def __init__(
        self,
        config: Optional[A3SConfig] = None,
        storage: Optional[StorageBackend] = None,
        embedder: Optional[Embedder] = None,
        reranker: Optional[Reranker] = None,
        digest_generator: Optional[DigestGenerator] = None,
    ):
        self.config = config or A3SConfig()

        self.storage = storage or create_backend(self.config.storage)
        self.embedder = embedder or create_embedder(self.config.embedding)
        self.reranker = reranker or self._build_reranker()
        self.digests = digest_generator or DigestGenerator(self._build_llm())

        self.retriever = Retriever(
            self.storage, self.embedder, self.config.retrieval, reranker=self.reranker
        )
        self.processor = Processor(
            self.storage, self.embedder, self.config, digest_generator=self.digests
        )

        self._initialized = False

    def _build_reranker(self) -> Optional[Reranker]:
        rerank_config = self.config.retrieval.rerank_config
        if self.config.retrieval.rerank or rerank_config.provider == "mock":
            return create_reranker(rerank_config)
        return None

    def _build_llm(self) -> Optional[ChatClient]:
        llm = self.config.llm
        if not llm.auto_digest or not llm.api_base:
            return None
        return ChatClient(
            api_base=llm.api_base,
            api_key=llm.api_key,
            model=llm.model,
            temperature=llm.temperature,
            max_tokens=llm.max_tokens,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def initialize(self) -> "A3SClient":
        if self._initialized:
            return self
        await self.storage.initialize()
        self._initialized = True
        log.info(
            f"A3SClient initialized - storage={type(self.storage).__name__}, "
            f"embedder={type(self.embedder).__name__}, "
            f"reranker={type(self.reranker).__name__ if self.reranker else None}"
        )
        return self

    async def shutdown(self) -> None:
        """Flush storage and release network sessions."""
        if not self._initialized:
            return
        try:
            await self.storage.flush()
        finally:
            try:
                await self.storage.close()
            finally:
                await self.embedder.close()
                await self.digests.close()
                if self.reranker is not None:
                    await self.reranker.close()
                self._initialized = False
        log.info("A3SClient shut down")

    async def __aenter__(self) -> "A3SClient":
        return await self.initialize()

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitializedError("Call initialize() first.")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def ingest(self, source: Union[str, Path], target: PathwayLike) -> IngestResult:
        self._require_initialized()
        return await self.processor.process(source, as_pathway(target))

    async def ingest_text(
        self,
        pathway: PathwayLike,
        content: str,
        kind: NodeKind = NodeKind.DOCUMENT,
    ) -> IngestResult:
        self._require_initialized()
        return await self.processor.process_text(as_pathway(pathway), content, kind)

    async def query(self, text: str) -> QueryResult:
        self._require_initialized()
        return await self.retriever.search(text)

    async def query_with_options(self, text: str, options: QueryOptions) -> QueryResult:
        self._require_initialized()
        return await self.retriever.search(text, options)

    async def list(self, pathway: PathwayLike) -> List[NodeInfo]:
        self._require_initialized()
        return await self.storage.list(as_pathway(pathway))

    async def read(self, pathway: PathwayLike) -> Node:
        self._require_initialized()
        return await self.storage.get(as_pathway(pathway))

    async def brief(self, pathway: PathwayLike) -> str:
        node = await self.read(pathway)
        return node.digest.brief

    async def summary(self, pathway: PathwayLike) -> str:
        node = await self.read(pathway)
        return node.digest.summary

    async def remove(self, pathway: PathwayLike, recursive: bool = False) -> int:
        self._require_initialized()
        return await self.storage.remove(as_pathway(pathway), recursive=recursive)

    async def search_text(
        self,
        pattern: str,
        pathway: Optional[PathwayLike] = None,
        case_insensitive: bool = False,
    ) -> List[Pathway]:
        self._require_initialized()
        root = as_pathway(pathway) if pathway is not None else None
        return await self.storage.search_text(pattern, root, case_insensitive)

    def session(self, session_id: Optional[str] = None, user: str = "default") -> Session:
        self._require_initialized()
        return Session(self.storage, self.processor, session_id=session_id, user=user)

    async def stats(self) -> StorageStats:
        self._require_initialized()
        return await self.storage.stats()
