"""
In-memory storage backend.

Nodes live in a lock-guarded dict; vectors in a ``VectorIndex``. Used for
tests and ephemeral sessions, and as the cache layer of ``LocalStorage``.
"""

import copy
import threading
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from a3s_context.core.digest import Digest
from a3s_context.core.models import Node, NodeInfo, StorageStats, utcnow
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import NodeNotFoundError
from a3s_context.storage.base import StorageBackend, is_within_depth, matches_text
from a3s_context.storage.vector_index import VectorIndex

log = structlog.get_logger()


class MemoryStorage(StorageBackend):
    """Non-durable backend; ``initialize`` and ``flush`` are no-ops."""

    def __init__(self):
        self._nodes: Dict[Pathway, Node] = {}
        self._lock = threading.Lock()
        self.index = VectorIndex()

    # ------------------------------------------------------------------
    # Cache primitives (synchronous, shared with LocalStorage)
    # ------------------------------------------------------------------

    def _store(self, node: Node) -> None:
        node = copy.deepcopy(node)
        with self._lock:
            self._nodes[node.pathway] = node
        self.index.add(node.pathway, node.embedding)

    def _lookup(self, pathway: Pathway) -> Node:
        with self._lock:
            node = self._nodes.get(pathway)
        if node is None:
            raise NodeNotFoundError(str(pathway))
        return node

    def _snapshot(self) -> List[Node]:
        with self._lock:
            return list(self._nodes.values())

    def _affected(self, pathway: Pathway, recursive: bool) -> List[Pathway]:
        with self._lock:
            if not recursive:
                return [pathway] if pathway in self._nodes else []
            return sorted(p for p in self._nodes if pathway.is_prefix_of(p))

    def _discard(self, pathway: Pathway) -> bool:
        with self._lock:
            removed = self._nodes.pop(pathway, None) is not None
        self.index.remove(pathway)
        return removed

    def _apply(self, pathway: Pathway, mutate) -> Node:
        """Mutate the cached node in place and return a copy of the result."""
        with self._lock:
            node = self._nodes.get(pathway)
            if node is None:
                raise NodeNotFoundError(str(pathway))
            mutate(node)
            node.updated_at = utcnow()
            result = copy.deepcopy(node)
        self.index.add(result.pathway, result.embedding)
        return result

    # ------------------------------------------------------------------
    # StorageBackend
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        log.debug("MemoryStorage initialized")

    async def put(self, node: Node) -> None:
        self._store(node)

    async def get(self, pathway: Pathway) -> Node:
        return copy.deepcopy(self._lookup(pathway))

    async def exists(self, pathway: Pathway) -> bool:
        with self._lock:
            return pathway in self._nodes

    async def remove(self, pathway: Pathway, recursive: bool = False) -> int:
        removed = 0
        for target in self._affected(pathway, recursive):
            if self._discard(target):
                removed += 1
        log.debug(f"Removed {removed} node(s) at {pathway} (recursive={recursive})")
        return removed

    async def list(self, pathway: Pathway) -> List[NodeInfo]:
        children = [
            NodeInfo.from_node(node) for node in self._snapshot()
            if node.pathway.parent() == pathway
        ]
        return sorted(children, key=lambda info: info.pathway)

    async def search_vector(
        self,
        query: Sequence[float],
        namespace: Optional[Namespace] = None,
        limit: int = 10,
        threshold: float = 0.0,
    ) -> List[Tuple[Pathway, float]]:
        return self.index.search(query, namespace=namespace, limit=limit, threshold=threshold)

    async def search_text(
        self,
        pattern: str,
        pathway: Optional[Pathway] = None,
        case_insensitive: bool = False,
    ) -> List[Pathway]:
        return sorted(
            node.pathway for node in self._snapshot()
            if (pathway is None or pathway.is_prefix_of(node.pathway))
            and matches_text(node.content, pattern, case_insensitive)
        )

    async def get_children(self, pathway: Pathway, max_depth: int = 1) -> List[Node]:
        children = [
            copy.deepcopy(node) for node in self._snapshot()
            if is_within_depth(pathway, node.pathway, max_depth)
        ]
        return sorted(children, key=lambda n: n.pathway)

    async def update_embedding(self, pathway: Pathway, embedding: Sequence[float]) -> None:
        vector = [float(v) for v in embedding]

        def mutate(node: Node):
            node.embedding = vector

        self._apply(pathway, mutate)

    async def update_digest(self, pathway: Pathway, digest: Digest) -> None:
        def mutate(node: Node):
            node.digest = copy.deepcopy(digest)

        self._apply(pathway, mutate)

    async def stats(self) -> StorageStats:
        return StorageStats.from_nodes(self._snapshot())

    async def flush(self) -> None:
        pass

    def __len__(self) -> int:
        with self._lock:
            return len(self._nodes)
