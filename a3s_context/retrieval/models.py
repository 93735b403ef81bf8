"""
Retrieval Models
================

Dataclasses for query options and results.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from a3s_context.core.models import NodeKind
from a3s_context.core.pathway import Namespace, Pathway


@dataclass
class QueryOptions:
    """
    Per-query options. ``None`` means "use the configured default".

    Attributes:
        namespace: Restrict matches to one namespace
        limit: Maximum matches returned
        threshold: Minimum cosine similarity
        include_content: Attach full node content to each match
        pathway_filter: Only nodes under this pathway are eligible
        hierarchical: Enable directory-aware expansion
        max_depth: Levels below an expanded directory to score
        rerank: Reorder matches with the configured reranker
    """
    namespace: Optional[Namespace] = None
    limit: Optional[int] = None
    threshold: Optional[float] = None
    include_content: bool = False
    pathway_filter: Optional[Pathway] = None
    hierarchical: Optional[bool] = None
    max_depth: Optional[int] = None
    rerank: Optional[bool] = None

    def __post_init__(self):
        """Validate option values."""
        if self.limit is not None and self.limit < 1:
            raise ValueError(f"limit must be >= 1, got {self.limit}")
        if self.threshold is not None and not -1 <= self.threshold <= 1:
            raise ValueError(f"threshold must be in [-1, 1], got {self.threshold}")
        if self.max_depth is not None and self.max_depth < 1:
            raise ValueError(f"max_depth must be >= 1, got {self.max_depth}")


@dataclass
class MatchedNode:
    pathway: Pathway
    node_kind: NodeKind
    score: float
    brief: str = ""
    summary: str = ""
    content: Optional[str] = None
    rerank_score: Optional[float] = None
    highlights: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pathway": str(self.pathway),
            "node_kind": self.node_kind.value,
            "score": self.score,
            "brief": self.brief,
            "summary": self.summary,
            "content": self.content,
            "rerank_score": self.rerank_score,
            "highlights": list(self.highlights),
        }

    def __repr__(self) -> str:
        return f"<MatchedNode({self.pathway}, score={self.score:.3f})>"


@dataclass
class QueryResult:
    """
    Attributes:
        matches: Ranked matches
        total_searched: Distinct candidates scored before truncation
        query_embedding_time_ms: Wall-clock time of the embedding step
        search_time_ms: Wall-clock time of search, expansion and reranking
    """
    matches: List[MatchedNode] = field(default_factory=list)
    total_searched: int = 0
    query_embedding_time_ms: float = 0.0
    search_time_ms: float = 0.0

    def summary(self) -> Dict[str, Any]:
        return {
            "matches": len(self.matches),
            "total_searched": self.total_searched,
            "query_embedding_time_ms": round(self.query_embedding_time_ms, 2),
            "search_time_ms": round(self.search_time_ms, 2),
        }
