"""
A3S Context Test Configuration
==============================

Shared fixtures and test doubles.
"""

from typing import Dict, List, Optional

import pytest
import pytest_asyncio

from a3s_context.config import A3SConfig
from a3s_context.core.models import Node, NodeKind
from a3s_context.core.pathway import Pathway
from a3s_context.embedding.base import Embedder
from a3s_context.storage.memory import MemoryStorage


class StaticEmbedder(Embedder):
    """Embedder returning preset vectors per text (default vector otherwise)."""

    def __init__(self, vectors: Optional[Dict[str, List[float]]] = None, default: Optional[List[float]] = None, dim: int = 3):
        self.vectors = dict(vectors or {})
        self.default = default or [1.0] + [0.0] * (dim - 1)
        self.calls: List[str] = []
        self._dim = dim

    async def embed(self, text: str) -> List[float]:
        self.calls.append(text)
        return list(self.vectors.get(text, self.default))

    async def embed_batch(self, texts: List[str]) -> List[List[float]]:
        return [await self.embed(t) for t in texts]

    def dimension(self) -> int:
        return self._dim


def make_node(path: str, embedding=None, content: str = "", kind: NodeKind = NodeKind.DOCUMENT) -> Node:
    node = Node.new(Pathway.parse(path), kind, content or f"content of {path}")
    node.embedding = list(embedding or [])
    return node


def make_directory(path: str, embedding=None) -> Node:
    node = Node.directory(Pathway.parse(path))
    node.embedding = list(embedding or [])
    return node


# ==============================================================================
# Fixtures
# ==============================================================================

@pytest.fixture
def memory_config(tmp_path):
    """Config using in-memory storage and the mock embedder."""
    return A3SConfig.model_validate({
        "storage": {"backend": "memory", "path": str(tmp_path / "data")},
        "embedding": {"provider": "mock", "dimension": 16},
        "llm": {"auto_digest": True},
    })


@pytest.fixture
def static_embedder():
    return StaticEmbedder()


@pytest_asyncio.fixture
async def memory_storage():
    storage = MemoryStorage()
    await storage.initialize()
    yield storage
    await storage.flush()


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep host A3S_* and provider keys out of tests."""
    import os
    for key in list(os.environ):
        if key.startswith("A3S_") or key in ("OPENAI_API_KEY", "JINA_API_KEY", "COHERE_API_KEY"):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def node_factory():
    """Factory for embedded document nodes: node_factory(path, embedding, content)."""
    return make_node


@pytest.fixture
def directory_factory():
    return make_directory


@pytest.fixture
def embedder_factory():
    """Factory for StaticEmbedder instances."""
    return StaticEmbedder
