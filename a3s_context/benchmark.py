"""
Benchmarks
==========

Wall-clock timing of the scoring primitive and flat vector search over
deterministic synthetic vectors.

Usage:
    from a3s_context.benchmark import run_all
    for result in run_all():
        print(result.summary())
"""

import math
import time
from dataclasses import dataclass
from typing import Any, Dict, List

import structlog

from a3s_context.core.pathway import Pathway
from a3s_context.storage.vector_index import VectorIndex, cosine_similarity

log = structlog.get_logger()


@dataclass
class BenchmarkResult:
    name: str
    iterations: int
    total_ms: float

    @property
    def mean_ms(self) -> float:
        if self.iterations == 0:
            return 0.0
        return self.total_ms / self.iterations

    def summary(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "iterations": self.iterations,
            "total_ms": round(self.total_ms, 3),
            "mean_ms": round(self.mean_ms, 4),
        }


def synthetic_vector(seed: int, dim: int) -> List[float]:
    return [math.sin(seed * 0.1 + i * 0.01) for i in range(dim)]


def bench_cosine(dim: int = 1536, iterations: int = 1000) -> BenchmarkResult:
    a = [math.sin(i * 0.1) for i in range(dim)]
    b = [math.cos(i * 0.1) for i in range(dim)]

    start = time.perf_counter()
    for _ in range(iterations):
        cosine_similarity(a, b)
    total_ms = (time.perf_counter() - start) * 1000

    return BenchmarkResult(f"cosine_similarity[{dim}]", iterations, total_ms)


def build_index(num_vectors: int, dim: int) -> VectorIndex:
    index = VectorIndex()
    for i in range(num_vectors):
        index.add(Pathway.knowledge(f"bench/doc{i}"), synthetic_vector(i, dim))
    return index


def bench_vector_search(
    num_vectors: int = 10_000,
    dim: int = 128,
    limit: int = 10,
    iterations: int = 10,
) -> BenchmarkResult:
    index = build_index(num_vectors, dim)
    query = synthetic_vector(num_vectors // 2, dim)

    start = time.perf_counter()
    for _ in range(iterations):
        index.search(query, limit=limit, threshold=0.0)
    total_ms = (time.perf_counter() - start) * 1000

    return BenchmarkResult(f"vector_search[{num_vectors}x{dim}]", iterations, total_ms)


def run_all(quick: bool = False) -> List[BenchmarkResult]:
    """Run the standard suite; ``quick`` shrinks sizes for smoke runs."""
    if quick:
        results = [
            bench_cosine(dim=128, iterations=50),
            bench_vector_search(num_vectors=200, dim=32, iterations=2),
        ]
    else:
        results = [
            bench_cosine(),
            bench_vector_search(),
        ]

    for result in results:
        log.info(f"{result.name}: {result.mean_ms:.4f} ms/iter over {result.iterations} iterations")
    return results
