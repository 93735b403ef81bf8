"""
Test Retriever
==============

Flat and hierarchical search, filtering, timing fields and reranking.
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from a3s_context.config.settings import RerankConfig, RetrievalConfig
from a3s_context.core.digest import Digest
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import EmbeddingError, RerankError, RetrievalError, StorageError
from a3s_context.rerank import RerankResult
from a3s_context.retrieval import QueryOptions, Retriever
from a3s_context.retrieval.retriever import extract_highlights
from a3s_context.storage.memory import MemoryStorage


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def config():
    return RetrievalConfig(score_threshold=0.5, oversample_factor=1)


@pytest.fixture
def make_retriever(memory_storage, static_embedder, config):
    def _make(**kwargs):
        return Retriever(
            kwargs.get("storage", memory_storage),
            kwargs.get("embedder", static_embedder),
            kwargs.get("config", config),
            kwargs.get("reranker"),
        )
    return _make


@pytest_asyncio.fixture
async def seeded(memory_storage, node_factory):
    first = node_factory("a3s://knowledge/a", [1.0, 0.0, 0.0], "a" * 3000)
    second = node_factory("a3s://knowledge/b", [0.9, 0.3, 0.0])
    second.digest = Digest.with_content("brief b", "summary b")
    await memory_storage.put(first)
    await memory_storage.put(second)
    return memory_storage


class FailingChildrenStorage(MemoryStorage):
    """Memory storage whose directory expansion always fails."""

    async def get_children(self, pathway, max_depth=1):
        raise StorageError(f"cannot list {pathway}")


# ==============================================================================
# Flat search
# ==============================================================================

class TestFlatSearch:
    """Test plain vector search."""

    @pytest.mark.asyncio
    async def test_three_node_scenario(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/b", [0.0, 1.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/c", [0.0, 0.0, 1.0]))

        result = await make_retriever().search("query", QueryOptions(limit=10, threshold=0.5))

        assert result.matches[0].pathway == Pathway.knowledge("a")
        assert result.matches[0].score == pytest.approx(1.0, abs=1e-3)
        assert all(m.score >= 0.5 for m in result.matches)
        assert len(result.matches) == 1

    @pytest.mark.asyncio
    async def test_flat_returns_index_hits_only(self, memory_storage, node_factory, directory_factory,
                                                       make_retriever):
        await memory_storage.put(directory_factory("a3s://knowledge/docs", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/x", [0.8, 0.6, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/other/z", [0.99, 0.14, 0.0]))

        result = await make_retriever().search("q", QueryOptions(limit=2, hierarchical=False))

        assert [m.pathway for m in result.matches] == [
            Pathway.knowledge("docs"),
            Pathway.knowledge("other/z"),
        ]
        assert result.total_searched == 2

    @pytest.mark.asyncio
    async def test_sorted_with_pathway_tiebreak(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/b", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/c", [0.9, 0.3, 0.0]))

        result = await make_retriever().search("q", QueryOptions(limit=3, hierarchical=False))

        assert [m.pathway.name for m in result.matches] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_no_matches(self, make_retriever):
        result = await make_retriever().search("q")
        assert result.matches == []
        assert result.total_searched == 0
        assert result.query_embedding_time_ms >= 0
        assert result.search_time_ms >= 0


# ==============================================================================
# Hierarchical search
# ==============================================================================

class TestHierarchicalSearch:
    """Test directory-aware expansion."""

    @pytest.mark.asyncio
    async def test_directory_hit_expands_children(self, memory_storage, node_factory, directory_factory,
                                                  make_retriever):
        await memory_storage.put(directory_factory("a3s://knowledge/docs", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/x", [0.8, 0.6, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/y", [0.0, 1.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/other/z", [0.99, 0.14, 0.0]))

        result = await make_retriever().search("q", QueryOptions(limit=2))

        assert [m.pathway for m in result.matches] == [
            Pathway.knowledge("other/z"),
            Pathway.knowledge("docs/x"),
        ]
        assert Pathway.knowledge("docs") not in [m.pathway for m in result.matches]
        # docs and other/z from the index, docs/x and docs/y from expansion
        assert result.total_searched == 4

    @pytest.mark.asyncio
    async def test_leaf_hit_expands_siblings(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/docs/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/b", [0.9, 0.3, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/other/q", [1.0, 0.0, 0.0]))

        result = await make_retriever().search("q", QueryOptions(limit=2))

        assert [m.pathway for m in result.matches] == [
            Pathway.knowledge("docs/a"),
            Pathway.knowledge("other/q"),
        ]
        # docs/b was outside the index window and scored through expansion
        assert result.total_searched == 3

    @pytest.mark.asyncio
    async def test_max_depth_bounds_expansion(self, memory_storage, node_factory, directory_factory,
                                              make_retriever):
        await memory_storage.put(directory_factory("a3s://knowledge/docs", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/sub/deep", [0.8, 0.6, 0.0]))

        shallow = await make_retriever().search("q", QueryOptions(limit=1, max_depth=1))
        deep = await make_retriever().search("q", QueryOptions(limit=1, max_depth=2))

        assert shallow.matches == []
        assert [m.pathway for m in deep.matches] == [Pathway.knowledge("docs/sub/deep")]

    @pytest.mark.asyncio
    async def test_results_are_deduplicated(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/docs/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/docs/b", [1.0, 0.0, 0.0]))

        result = await make_retriever().search("q", QueryOptions(limit=10))

        pathways = [m.pathway for m in result.matches]
        assert len(pathways) == len(set(pathways)) == 2

    @pytest.mark.asyncio
    async def test_expansion_failure_is_skipped(self, static_embedder, node_factory, config):
        storage = FailingChildrenStorage()
        await storage.initialize()
        await storage.put(node_factory("a3s://knowledge/docs/a", [1.0, 0.0, 0.0]))

        result = await Retriever(storage, static_embedder, config).search("q")

        assert [m.pathway for m in result.matches] == [Pathway.knowledge("docs/a")]


# ==============================================================================
# Options
# ==============================================================================

class TestOptions:
    """Test per-query options."""

    @pytest.mark.asyncio
    async def test_namespace_filter(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://memory/m", [1.0, 0.0, 0.0]))

        result = await make_retriever().search("q", QueryOptions(namespace=Namespace.MEMORY))

        assert [m.pathway for m in result.matches] == [Pathway.memory("m")]

    @pytest.mark.asyncio
    async def test_pathway_filter(self, memory_storage, node_factory, make_retriever):
        await memory_storage.put(node_factory("a3s://knowledge/docs/a", [1.0, 0.0, 0.0]))
        await memory_storage.put(node_factory("a3s://knowledge/notes/b", [1.0, 0.0, 0.0]))

        result = await make_retriever().search(
            "q", QueryOptions(pathway_filter=Pathway.knowledge("notes"))
        )

        assert [m.pathway for m in result.matches] == [Pathway.knowledge("notes/b")]

    @pytest.mark.asyncio
    async def test_include_content_and_highlights(self, memory_storage, node_factory, make_retriever):
        node = node_factory("a3s://knowledge/a", [1.0, 0.0, 0.0], "intro\nToken refresh works\nother")
        node.digest = Digest.with_content("brief a", "summary a")
        await memory_storage.put(node)

        without = await make_retriever().search("token refresh")
        with_content = await make_retriever().search("token refresh", QueryOptions(include_content=True))

        assert without.matches[0].content is None
        assert without.matches[0].brief == "brief a"
        assert without.matches[0].highlights == ["Token refresh works"]
        assert with_content.matches[0].content == node.content

    def test_invalid_options(self):
        with pytest.raises(ValueError):
            QueryOptions(limit=0)
        with pytest.raises(ValueError):
            QueryOptions(threshold=2.0)

    def test_highlights_are_capped(self):
        content = "\n".join(f"line {i} mentions auth" for i in range(10))
        assert len(extract_highlights(content, "auth")) == 3
        assert extract_highlights(content, "an") == []
        assert len(extract_highlights("auth " + "x" * 500, "auth")[0]) == 200


# ==============================================================================
# Failures
# ==============================================================================

class TestFailures:
    """Test error mapping."""

    @pytest.mark.asyncio
    async def test_embedding_failure(self, make_retriever, embedder_factory):
        embedder = embedder_factory()
        embedder.embed = AsyncMock(side_effect=EmbeddingError("API error 500"))

        with pytest.raises(RetrievalError, match="embedding failed"):
            await make_retriever(embedder=embedder).search("q")

    @pytest.mark.asyncio
    async def test_embedding_timeout(self, make_retriever, embedder_factory):
        embedder = embedder_factory()

        async def slow(text):
            await asyncio.sleep(5)
            return [1.0, 0.0, 0.0]

        embedder.embed = slow
        config = RetrievalConfig(embedding_timeout=0.05)

        with pytest.raises(RetrievalError, match="timed out"):
            await make_retriever(embedder=embedder, config=config).search("q")

    @pytest.mark.asyncio
    async def test_rerank_without_reranker(self, make_retriever):
        with pytest.raises(RetrievalError):
            await make_retriever().search("q", QueryOptions(rerank=True))


# ==============================================================================
# Reranking
# ==============================================================================

class TestReranking:
    """Test reordering through a reranker."""

    @pytest.fixture
    def reranker(self):
        reranker = Mock()
        reranker.rerank = AsyncMock(side_effect=lambda query, documents, top_n: [
            RerankResult(id=doc.id, index=i, score=0.1 * (i + 1))
            for i, doc in reversed(list(enumerate(documents)))
        ][:top_n])
        return reranker

    @pytest.mark.asyncio
    async def test_rerank_reorders(self, seeded, make_retriever, reranker):
        result = await make_retriever(reranker=reranker).search(
            "q", QueryOptions(rerank=True, hierarchical=False)
        )

        assert [m.pathway.name for m in result.matches] == ["b", "a"]
        assert result.matches[0].rerank_score == pytest.approx(0.2)
        assert result.matches[0].score < result.matches[1].score

        query, documents, top_n = reranker.rerank.call_args.args
        assert [d.text for d in documents] == ["a" * 2000, "summary b"]
        assert top_n == 10

    @pytest.mark.asyncio
    async def test_configured_top_n(self, seeded, make_retriever, reranker):
        config = RetrievalConfig(oversample_factor=1, rerank_config=RerankConfig(top_n=1))
        result = await make_retriever(reranker=reranker, config=config).search(
            "q", QueryOptions(rerank=True, hierarchical=False)
        )
        assert len(result.matches) == 1

    @pytest.mark.asyncio
    async def test_rerank_failure(self, seeded, make_retriever):
        reranker = Mock()
        reranker.rerank = AsyncMock(side_effect=RerankError("API error 503"))

        with pytest.raises(RetrievalError, match="reranking failed"):
            await make_retriever(reranker=reranker).search("q", QueryOptions(rerank=True))
