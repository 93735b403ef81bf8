"""
Core data model: pathways, nodes and digests.
"""

from .digest import Digest, DigestGenerator, DigestLevel, extract_first_sentence
from .models import (
    Metadata,
    NamespaceStats,
    Node,
    NodeInfo,
    NodeKind,
    Relation,
    RelationKind,
    SourceInfo,
    StorageStats,
)
from .pathway import Namespace, Pathway

__all__ = [
    "Digest",
    "DigestGenerator",
    "DigestLevel",
    "extract_first_sentence",
    "Metadata",
    "NamespaceStats",
    "Node",
    "NodeInfo",
    "NodeKind",
    "Relation",
    "RelationKind",
    "SourceInfo",
    "StorageStats",
    "Namespace",
    "Pathway",
]
