"""
Test Processor
==============

File and directory ingestion, ignore rules, per-file errors and text ingestion.
"""

from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from a3s_context.config import A3SConfig
from a3s_context.core.models import NodeKind
from a3s_context.core.pathway import Pathway
from a3s_context.errors import EmbeddingError, IngestError
from a3s_context.ingest import Processor, detect_kind


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def config():
    return A3SConfig.model_validate({"ingest": {"max_file_size": 1024}})


@pytest.fixture
def processor(memory_storage, static_embedder, config):
    return Processor(memory_storage, static_embedder, config)


@pytest.fixture
def source_tree(tmp_path):
    root = tmp_path / "docs"
    (root / "api").mkdir(parents=True)
    (root / "node_modules" / "pkg").mkdir(parents=True)
    (root / "README.md").write_text("# Docs\n\nOverview of the project.", encoding="utf-8")
    (root / "api" / "auth.py").write_text("def login():\n    pass\n", encoding="utf-8")
    (root / "api" / "image.png").write_bytes(b"\x89PNG")
    (root / "node_modules" / "pkg" / "index.js").write_text("module.exports = 1", encoding="utf-8")
    (root / "cache.pyc").write_bytes(b"\x00")
    return root


# ==============================================================================
# Tests
# ==============================================================================

class TestDetectKind:
    """Test kind detection by extension."""

    @pytest.mark.parametrize("name,kind", [
        ("README.md", NodeKind.MARKDOWN),
        ("main.RS", NodeKind.CODE),
        ("app.py", NodeKind.CODE),
        ("notes.txt", NodeKind.DOCUMENT),
        ("config.yaml", NodeKind.DOCUMENT),
    ])
    def test_detect_kind(self, name, kind):
        assert detect_kind(Path(name)) == kind


class TestFilters:
    """Test ignore patterns and extension filtering."""

    def test_should_ignore_any_component(self, processor):
        assert processor.should_ignore(Path("node_modules/pkg/index.js"))
        assert processor.should_ignore(Path("src/module.pyc"))
        assert not processor.should_ignore(Path("src/main.py"))

    def test_accepts_extension(self, processor):
        assert processor.accepts_extension(Path("a.MD"))
        assert not processor.accepts_extension(Path("image.png"))

    def test_empty_extension_list_accepts_everything(self, memory_storage, static_embedder):
        config = A3SConfig.model_validate({"ingest": {"extensions": []}})
        assert Processor(memory_storage, static_embedder, config).accepts_extension(Path("x.bin"))


class TestProcessDirectory:
    """Test directory ingestion."""

    @pytest.mark.asyncio
    async def test_walks_tree(self, processor, memory_storage, source_tree):
        target = Pathway.knowledge("docs")

        result = await processor.process(source_tree, target)

        assert result.succeeded
        readme = await memory_storage.get(Pathway.knowledge("docs/README.md"))
        auth = await memory_storage.get(Pathway.knowledge("docs/api/auth.py"))
        assert readme.kind == NodeKind.MARKDOWN
        assert auth.kind == NodeKind.CODE
        assert readme.is_embedded()
        assert readme.digest.generated
        assert readme.digest.brief == "# Docs\n\nOverview of the project."
        assert readme.metadata.source.content_type == "text/markdown"
        assert len(readme.metadata.source.hash) == 64

        assert (await memory_storage.get(target)).is_directory
        assert (await memory_storage.get(Pathway.knowledge("docs/api"))).is_directory
        assert not await memory_storage.exists(Pathway.knowledge("docs/api/image.png"))
        assert not await memory_storage.exists(Pathway.knowledge("docs/node_modules"))
        assert not await memory_storage.exists(Pathway.knowledge("docs/cache.pyc"))

        # docs, docs/api, README.md, auth.py
        assert result.nodes_created == 4
        assert result.nodes_updated == 0

    @pytest.mark.asyncio
    async def test_reingest_updates(self, processor, memory_storage, source_tree):
        target = Pathway.knowledge("docs")
        await processor.process(source_tree, target)
        original = await memory_storage.get(Pathway.knowledge("docs/README.md"))

        (source_tree / "README.md").write_text("Rewritten. Entirely.", encoding="utf-8")
        result = await processor.process(source_tree, target)

        updated = await memory_storage.get(Pathway.knowledge("docs/README.md"))
        assert result.nodes_created == 0
        assert result.nodes_updated == 2
        assert updated.id == original.id
        assert updated.content == "Rewritten. Entirely."
        assert updated.digest.brief == "Rewritten."

    @pytest.mark.asyncio
    async def test_oversized_file_is_reported(self, processor, memory_storage, source_tree):
        (source_tree / "big.txt").write_text("x" * 2048, encoding="utf-8")

        result = await processor.process(source_tree, Pathway.knowledge("docs"))

        assert not result.succeeded
        assert len(result.errors) == 1
        assert result.errors[0].startswith("big.txt: ")
        assert "too large" in result.errors[0]
        assert await memory_storage.exists(Pathway.knowledge("docs/README.md"))

    @pytest.mark.asyncio
    async def test_undecodable_file_is_reported(self, processor, source_tree):
        (source_tree / "broken.txt").write_bytes(b"\xff\xfe\xfa")

        result = await processor.process(source_tree, Pathway.knowledge("docs"))

        assert [e.split(":")[0] for e in result.errors] == ["broken.txt"]

    @pytest.mark.asyncio
    async def test_embedding_failure_is_per_file(self, processor, static_embedder, source_tree):
        static_embedder.embed = AsyncMock(side_effect=EmbeddingError("API error 500"))

        result = await processor.process(source_tree, Pathway.knowledge("docs"))

        assert len(result.errors) == 2
        assert result.nodes_created == 2


class TestProcessFile:
    """Test single-file and text ingestion."""

    @pytest.mark.asyncio
    async def test_single_file(self, processor, memory_storage, tmp_path):
        path = tmp_path / "notes.txt"
        path.write_text("Single file.", encoding="utf-8")

        result = await processor.process(path, Pathway.knowledge("inbox"))

        node = await memory_storage.get(Pathway.knowledge("inbox/notes.txt"))
        assert node.content == "Single file."
        assert result.nodes_created == 2

    @pytest.mark.asyncio
    async def test_missing_source(self, processor, tmp_path):
        with pytest.raises(IngestError, match="Source not found"):
            await processor.process(tmp_path / "nope", Pathway.knowledge("x"))

    @pytest.mark.asyncio
    async def test_process_text(self, processor, memory_storage):
        pathway = Pathway.memory("prefs")

        first = await processor.process_text(pathway, "Likes tea.", metadata={"source": "chat"})
        second = await processor.process_text(pathway, "Likes coffee.")

        node = await memory_storage.get(pathway)
        assert first.nodes_created == 1
        assert second.nodes_updated == 1
        assert node.content == "Likes coffee."
        assert node.metadata.custom == {"source": "chat"}

    @pytest.mark.asyncio
    async def test_auto_digest_off(self, memory_storage, static_embedder):
        config = A3SConfig.model_validate({"llm": {"auto_digest": False}})
        processor = Processor(memory_storage, static_embedder, config)

        await processor.process_text(Pathway.knowledge("a"), "Text. More.")

        assert not (await memory_storage.get(Pathway.knowledge("a"))).digest.generated
