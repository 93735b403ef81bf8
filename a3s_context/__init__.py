"""
A3S Context
===========

Hierarchically-addressed context store for AI agents: documents, memories,
capabilities and session messages, each with a layered digest and an
embedding, searchable with hierarchical semantic retrieval.

Usage:
    from a3s_context import A3SClient, A3SConfig, Pathway

    async with A3SClient(A3SConfig.from_env()) as client:
        await client.ingest("./docs", Pathway.knowledge("docs"))
        result = await client.query("How do I configure logging?")
"""

from a3s_context.config import A3SConfig, get_config, load_config
from a3s_context.core import (
    Digest,
    DigestGenerator,
    DigestLevel,
    Namespace,
    Node,
    NodeInfo,
    NodeKind,
    Pathway,
    RelationKind,
    StorageStats,
)
from a3s_context.core.client import A3SClient
from a3s_context.errors import A3SError
from a3s_context.ingest import IngestResult
from a3s_context.retrieval import MatchedNode, QueryOptions, QueryResult
from a3s_context.session import Message, MessageRole, Session

__version__ = "0.1.0"

__all__ = [
    "A3SClient",
    "A3SConfig",
    "A3SError",
    "Digest",
    "DigestGenerator",
    "DigestLevel",
    "IngestResult",
    "MatchedNode",
    "Message",
    "MessageRole",
    "Namespace",
    "Node",
    "NodeInfo",
    "NodeKind",
    "Pathway",
    "QueryOptions",
    "QueryResult",
    "RelationKind",
    "Session",
    "StorageStats",
    "get_config",
    "load_config",
]
