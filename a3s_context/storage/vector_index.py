"""
Vector Index
============

Exact (linear-scan) cosine similarity index keyed by pathway string.

``cosine_similarity`` is the single scoring primitive used by flat search,
hierarchical expansion and the benchmarks.
"""

import threading
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import structlog

from a3s_context.core.pathway import Namespace, Pathway

log = structlog.get_logger()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two vectors.

    Returns 0.0 when lengths differ, either vector is empty, or either norm
    is zero. Never returns NaN.
    """
    if len(a) != len(b) or len(a) == 0:
        return 0.0

    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    score = float(np.dot(va, vb) / (norm_a * norm_b))
    if not np.isfinite(score):
        return 0.0
    return score


class VectorIndex:
    """
    Thread-safe mapping from pathway to embedding vector.

    Example:
        >>> index = VectorIndex()
        >>> index.add(Pathway.knowledge("docs/a"), [1.0, 0.0])
        >>> index.search([1.0, 0.0], limit=5, threshold=0.5)
        [(Pathway('a3s://knowledge/docs/a'), 1.0)]
    """

    def __init__(self):
        self._vectors: Dict[str, Tuple[Pathway, np.ndarray]] = {}
        self._lock = threading.Lock()

    def add(self, pathway: Pathway, vector: Sequence[float]) -> None:
        """Insert or replace the vector for ``pathway``; empty vectors remove it."""
        key = str(pathway)
        if len(vector) == 0:
            self.remove(pathway)
            return
        array = np.asarray(vector, dtype=np.float32)
        with self._lock:
            self._vectors[key] = (pathway, array)

    def remove(self, pathway: Pathway) -> bool:
        with self._lock:
            return self._vectors.pop(str(pathway), None) is not None

    def remove_prefix(self, prefix: Pathway) -> int:
        """Remove every vector whose pathway lies under ``prefix`` (inclusive)."""
        with self._lock:
            doomed = [key for key, (p, _) in self._vectors.items() if prefix.is_prefix_of(p)]
            for key in doomed:
                del self._vectors[key]
        return len(doomed)

    def contains(self, pathway: Pathway) -> bool:
        with self._lock:
            return str(pathway) in self._vectors

    def get(self, pathway: Pathway) -> Optional[List[float]]:
        with self._lock:
            entry = self._vectors.get(str(pathway))
        return entry[1].tolist() if entry is not None else None

    def size(self) -> int:
        with self._lock:
            return len(self._vectors)

    def clear(self) -> None:
        with self._lock:
            self._vectors.clear()

    def __len__(self) -> int:
        return self.size()

    def search(
        self,
        query: Sequence[float],
        namespace: Optional[Namespace] = None,
        limit: int = 10,
        threshold: float = 0.0,
    ) -> List[Tuple[Pathway, float]]:
        """
        Score every stored vector against ``query``.

        Args:
            query: Query vector
            namespace: Restrict to one namespace
            limit: Maximum results
            threshold: Scores strictly below are discarded

        Returns:
            (pathway, score) pairs, score descending, ties by pathway order
        """
        if limit <= 0:
            return []

        with self._lock:
            entries = [
                (p, v) for p, v in self._vectors.values()
                if namespace is None or p.namespace == namespace
            ]

        scored = []
        for pathway, vector in entries:
            score = cosine_similarity(query, vector)
            if score >= threshold:
                scored.append((pathway, score))

        scored.sort(key=lambda item: (-item[1], item[0]))
        return scored[:limit]
