"""
Hierarchical Retriever
======================

Semantic search over stored nodes, combining flat vector search with
directory-aware expansion.

Core algorithm:
1. Embed the query (failure or timeout aborts the query)
2. Vector search for ``limit * oversample_factor`` candidates above threshold
3. Flat mode: fetch the top ``limit`` candidates
4. Hierarchical mode: leaf hits become matches and mark their parent for
   expansion; directory hits mark themselves. Every marked directory's
   descendants (up to ``max_depth`` levels) are scored directly against the
   query vector and kept if they meet the threshold. Results are
   deduplicated by pathway.
5. Sort by score descending (ties by pathway) and truncate to ``limit``
6. Optionally reorder with the reranker
"""

import asyncio
import re
import time
from typing import Dict, List, Optional, Set, Tuple

import structlog

from a3s_context.config.settings import RetrievalConfig
from a3s_context.core.models import Node
from a3s_context.core.pathway import Pathway
from a3s_context.embedding.base import Embedder
from a3s_context.errors import A3SError, NodeNotFoundError, RetrievalError
from a3s_context.rerank.base import RerankDocument, Reranker
from a3s_context.storage.base import StorageBackend
from a3s_context.storage.vector_index import cosine_similarity

from .models import MatchedNode, QueryOptions, QueryResult

log = structlog.get_logger()

RERANK_TEXT_CHARS = 2000
MAX_HIGHLIGHTS = 3
HIGHLIGHT_CHARS = 200

_WORD = re.compile(r"\w{3,}")


def extract_highlights(content: str, query: str, max_highlights: int = MAX_HIGHLIGHTS) -> List[str]:
    """Lines of ``content`` mentioning any query term (3+ characters)."""
    terms = {t.lower() for t in _WORD.findall(query)}
    if not terms or not content:
        return []

    highlights = []
    for line in content.splitlines():
        stripped = line.strip()
        if stripped and any(term in stripped.lower() for term in terms):
            highlights.append(stripped[:HIGHLIGHT_CHARS])
            if len(highlights) >= max_highlights:
                break
    return highlights


class Retriever:
    """
    Query pipeline over a storage backend.

    Example:
        >>> retriever = Retriever(storage, embedder, RetrievalConfig())
        >>> result = await retriever.search("how do I authenticate?")
        >>> [m.pathway for m in result.matches]
    """

    def __init__(
        self,
        storage: StorageBackend,
        embedder: Embedder,
        config: Optional[RetrievalConfig] = None,
        reranker: Optional[Reranker] = None,
    ):
        self.storage = storage
        self.embedder = embedder
        self.config = config or RetrievalConfig()
        self.reranker = reranker

        log.info(
            f"Retriever initialized - "
            f"limit={self.config.default_limit}, "
            f"threshold={self.config.score_threshold}, "
            f"hierarchical={self.config.hierarchical}, "
            f"oversample={self.config.oversample_factor}x"
        )

    async def search(self, query: str, options: Optional[QueryOptions] = None) -> QueryResult:
        """
        Run a semantic query.

        Args:
            query: Natural-language query text
            options: Per-query overrides of the configured defaults

        Returns:
            QueryResult with ranked matches and step latencies

        Raises:
            RetrievalError: embedding failed or timed out, or reranking failed
        """
        options = options or QueryOptions()
        limit = options.limit or self.config.default_limit
        threshold = self.config.score_threshold if options.threshold is None else options.threshold
        hierarchical = self.config.hierarchical if options.hierarchical is None else options.hierarchical
        max_depth = options.max_depth or self.config.max_depth
        use_rerank = self.config.rerank if options.rerank is None else options.rerank

        if use_rerank and self.reranker is None:
            raise RetrievalError("reranking requested but no reranker is configured")

        # STEP 1: Embed query
        embed_start = time.perf_counter()
        query_vector = await self._embed_query(query)
        embed_ms = (time.perf_counter() - embed_start) * 1000

        # STEP 2: Oversampled vector search
        search_start = time.perf_counter()
        candidates = await self.storage.search_vector(
            query_vector,
            namespace=options.namespace,
            limit=limit * self.config.oversample_factor,
            threshold=threshold,
        )
        candidates = [(p, s) for p, s in candidates if self._eligible(p, options)]

        log.debug(f"Vector search returned {len(candidates)} candidates")

        # STEP 3/4: Assemble matches
        found: Dict[Pathway, Tuple[MatchedNode, Node]] = {}
        if hierarchical:
            searched = await self._hierarchical(
                query, query_vector, candidates, threshold, max_depth, options, found
            )
        else:
            searched = len(candidates)
            for pathway, score in candidates[:limit]:
                node = await self._fetch(pathway)
                if node is not None:
                    found[pathway] = (self._match(node, score, query, options), node)

        # STEP 5: Sort and truncate
        ranked = sorted(found.values(), key=lambda item: (-item[0].score, item[0].pathway))[:limit]

        # STEP 6: Optional rerank
        if use_rerank and ranked:
            matches = await self._rerank(query, ranked, limit)
        else:
            matches = [match for match, _ in ranked]

        search_ms = (time.perf_counter() - search_start) * 1000

        log.info(
            f"search() - returned {len(matches)} matches from {searched} candidates "
            f"(embed={embed_ms:.1f}ms, search={search_ms:.1f}ms)"
        )

        return QueryResult(
            matches=matches,
            total_searched=searched,
            query_embedding_time_ms=embed_ms,
            search_time_ms=search_ms,
        )

    async def _embed_query(self, query: str) -> List[float]:
        try:
            return await asyncio.wait_for(
                self.embedder.embed(query), timeout=self.config.embedding_timeout
            )
        except asyncio.TimeoutError as e:
            raise RetrievalError(
                f"query embedding timed out after {self.config.embedding_timeout}s"
            ) from e
        except A3SError as e:
            raise RetrievalError(f"query embedding failed: {e}") from e

    async def _hierarchical(
        self,
        query: str,
        query_vector: List[float],
        candidates: List[Tuple[Pathway, float]],
        threshold: float,
        max_depth: int,
        options: QueryOptions,
        found: Dict[Pathway, Tuple[MatchedNode, Node]],
    ) -> int:
        """Fill ``found`` and return the number of distinct candidates scored."""
        to_expand: Set[Pathway] = set()

        for pathway, score in candidates:
            if score < threshold:
                continue
            node = await self._fetch(pathway)
            if node is None:
                continue
            if node.is_directory:
                to_expand.add(pathway)
            else:
                found[pathway] = (self._match(node, score, query, options), node)
                parent = pathway.parent()
                if parent is not None:
                    to_expand.add(parent)

        scored: Set[Pathway] = {p for p, _ in candidates}

        for directory in sorted(to_expand):
            try:
                children = await self.storage.get_children(directory, max_depth)
            except A3SError as e:
                log.warning(f"Skipping expansion of {directory}: {e}")
                continue

            for child in children:
                if child.is_directory or not child.is_embedded():
                    continue
                if child.pathway in found or not self._eligible(child.pathway, options):
                    continue

                scored.add(child.pathway)
                score = cosine_similarity(query_vector, child.embedding)
                if score >= threshold:
                    found[child.pathway] = (self._match(child, score, query, options), child)

        log.debug(f"Expanded {len(to_expand)} directories, {len(found)} matches")
        return len(scored)

    async def _rerank(
        self,
        query: str,
        ranked: List[Tuple[MatchedNode, Node]],
        limit: int,
    ) -> List[MatchedNode]:
        documents = [
            RerankDocument(id=str(match.pathway), text=self._rerank_text(node))
            for match, node in ranked
        ]
        top_n = self.config.rerank_config.top_n or limit

        try:
            results = await self.reranker.rerank(query, documents, top_n)
        except A3SError as e:
            raise RetrievalError(f"reranking failed: {e}") from e

        matches = []
        for result in results:
            match = ranked[result.index][0]
            match.rerank_score = result.score
            matches.append(match)
        return matches

    async def _fetch(self, pathway: Pathway) -> Optional[Node]:
        try:
            return await self.storage.get(pathway)
        except NodeNotFoundError:
            log.warning(f"Node {pathway} disappeared between search and fetch")
            return None

    @staticmethod
    def _eligible(pathway: Pathway, options: QueryOptions) -> bool:
        if options.namespace is not None and pathway.namespace != options.namespace:
            return False
        return options.pathway_filter is None or options.pathway_filter.is_prefix_of(pathway)

    @staticmethod
    def _rerank_text(node: Node) -> str:
        return node.digest.summary or node.digest.brief or node.content[:RERANK_TEXT_CHARS]

    @staticmethod
    def _match(node: Node, score: float, query: str, options: QueryOptions) -> MatchedNode:
        return MatchedNode(
            pathway=node.pathway,
            node_kind=node.kind,
            score=score,
            brief=node.digest.brief,
            summary=node.digest.summary,
            content=node.content if options.include_content else None,
            highlights=extract_highlights(node.content, query),
        )
