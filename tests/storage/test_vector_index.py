"""
Test VectorIndex
================

Cosine similarity primitive and exact top-k search.
"""

import math
import threading

import pytest

from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.storage.vector_index import VectorIndex, cosine_similarity


class TestCosineSimilarity:
    """Test the scoring primitive."""

    def test_identical_unit_vectors(self):
        assert cosine_similarity([1.0, 0.0], [1.0, 0.0]) == pytest.approx(1.0, abs=1e-3)

    def test_orthogonal(self):
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0, abs=1e-6)

    def test_opposite(self):
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0, abs=1e-3)

    def test_scale_invariant(self):
        assert cosine_similarity([1.0, 2.0, 3.0], [2.0, 4.0, 6.0]) == pytest.approx(1.0, abs=1e-6)

    @pytest.mark.parametrize("a,b", [
        ([1.0, 0.0], [1.0, 0.0, 0.0]),
        ([], []),
        ([], [1.0]),
        ([0.0, 0.0], [1.0, 0.0]),
        ([1.0, 0.0], [0.0, 0.0]),
    ])
    def test_degenerate_inputs_score_zero(self, a, b):
        score = cosine_similarity(a, b)
        assert score == 0.0
        assert not math.isnan(score)


class TestVectorIndex:
    """Test VectorIndex operations."""

    @pytest.fixture
    def index(self):
        index = VectorIndex()
        index.add(Pathway.knowledge("a"), [1.0, 0.0, 0.0])
        index.add(Pathway.knowledge("b"), [0.0, 1.0, 0.0])
        index.add(Pathway.knowledge("c"), [0.7, 0.7, 0.0])
        index.add(Pathway.memory("m"), [1.0, 0.0, 0.0])
        return index

    def test_size_and_remove(self, index):
        assert index.size() == 4
        assert index.remove(Pathway.knowledge("a"))
        assert not index.remove(Pathway.knowledge("a"))
        assert len(index) == 3

    def test_add_replaces(self, index):
        index.add(Pathway.knowledge("a"), [0.0, 0.0, 1.0])
        assert index.size() == 4
        assert index.get(Pathway.knowledge("a")) == [0.0, 0.0, 1.0]

    def test_add_empty_removes(self, index):
        index.add(Pathway.knowledge("a"), [])
        assert not index.contains(Pathway.knowledge("a"))

    def test_search_sorted_and_thresholded(self, index):
        results = index.search([1.0, 0.0, 0.0], limit=10, threshold=0.5)
        scores = [score for _, score in results]

        assert scores == sorted(scores, reverse=True)
        assert all(score >= 0.5 for score in scores)
        assert Pathway.knowledge("b") not in [p for p, _ in results]

    def test_search_limit(self, index):
        assert len(index.search([1.0, 0.0, 0.0], limit=2, threshold=-1.0)) == 2
        assert index.search([1.0, 0.0, 0.0], limit=0) == []

    def test_namespace_filter(self, index):
        results = index.search([1.0, 0.0, 0.0], namespace=Namespace.MEMORY, limit=10, threshold=0.0)
        assert [p for p, _ in results] == [Pathway.memory("m")]

        results = index.search([1.0, 0.0, 0.0], namespace=Namespace.KNOWLEDGE, limit=10, threshold=0.0)
        assert all(p.namespace == Namespace.KNOWLEDGE for p, _ in results)

    def test_ties_broken_by_pathway(self, index):
        results = index.search([1.0, 0.0, 0.0], limit=2, threshold=0.9)
        assert [p for p, _ in results] == [Pathway.knowledge("a"), Pathway.memory("m")]

    def test_remove_prefix(self):
        index = VectorIndex()
        index.add(Pathway.knowledge("docs"), [1.0])
        index.add(Pathway.knowledge("docs/api"), [1.0])
        index.add(Pathway.knowledge("docs/api/auth"), [1.0])
        index.add(Pathway.knowledge("docsother"), [1.0])

        assert index.remove_prefix(Pathway.knowledge("docs")) == 3
        assert index.contains(Pathway.knowledge("docsother"))

    def test_concurrent_writers(self):
        index = VectorIndex()

        def writer(offset):
            for i in range(200):
                index.add(Pathway.knowledge(f"t{offset}/n{i}"), [1.0, float(i)])

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert index.size() == 800
