"""
Storage Backend Contract
========================

Every backend (memory, local files, remote HTTP) implements ``StorageBackend``.
Backends own the canonical copy of each node and keep a ``VectorIndex`` in
sync with every mutation.
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, Tuple

from a3s_context.core.digest import Digest
from a3s_context.core.models import Node, NodeInfo, StorageStats
from a3s_context.core.pathway import Namespace, Pathway


class StorageBackend(ABC):
    """Capability interface for node persistence and vector search."""

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend; durable backends rehydrate here."""

    @abstractmethod
    async def put(self, node: Node) -> None:
        """Upsert ``node`` and refresh its vector."""

    @abstractmethod
    async def get(self, pathway: Pathway) -> Node:
        """Return a copy of the node at ``pathway`` or raise ``NodeNotFoundError``."""

    @abstractmethod
    async def exists(self, pathway: Pathway) -> bool:
        ...

    @abstractmethod
    async def remove(self, pathway: Pathway, recursive: bool = False) -> int:
        """
        Remove the node at ``pathway`` (and, if ``recursive``, everything
        under it) together with the affected vectors.

        Returns:
            Number of nodes removed
        """

    @abstractmethod
    async def list(self, pathway: Pathway) -> List[NodeInfo]:
        """Direct children of ``pathway``, ordered by pathway."""

    @abstractmethod
    async def search_vector(
        self,
        query: Sequence[float],
        namespace: Optional[Namespace] = None,
        limit: int = 10,
        threshold: float = 0.0,
    ) -> List[Tuple[Pathway, float]]:
        ...

    @abstractmethod
    async def search_text(
        self,
        pattern: str,
        pathway: Optional[Pathway] = None,
        case_insensitive: bool = False,
    ) -> List[Pathway]:
        """Pathways under ``pathway`` whose content contains ``pattern``."""

    @abstractmethod
    async def get_children(self, pathway: Pathway, max_depth: int = 1) -> List[Node]:
        """Nodes between 1 and ``max_depth`` levels below ``pathway``."""

    @abstractmethod
    async def update_embedding(self, pathway: Pathway, embedding: Sequence[float]) -> None:
        ...

    @abstractmethod
    async def update_digest(self, pathway: Pathway, digest: Digest) -> None:
        ...

    @abstractmethod
    async def stats(self) -> StorageStats:
        ...

    @abstractmethod
    async def flush(self) -> None:
        ...

    async def put_batch(self, nodes: Sequence[Node]) -> None:
        for node in nodes:
            await self.put(node)

    async def close(self) -> None:
        """Release resources; ``flush`` is called by the client first."""


def is_within_depth(root: Pathway, candidate: Pathway, max_depth: int) -> bool:
    """True if ``candidate`` is 1..max_depth levels below ``root``."""
    if not root.is_prefix_of(candidate):
        return False
    distance = candidate.depth - root.depth
    return 1 <= distance <= max_depth


def matches_text(content: str, pattern: str, case_insensitive: bool) -> bool:
    if case_insensitive:
        return pattern.lower() in content.lower()
    return pattern in content
