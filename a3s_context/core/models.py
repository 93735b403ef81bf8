"""
Node Model
==========

Dataclasses for stored context nodes and the lightweight records derived
from them (listings and storage statistics).

A ``Node`` owns its pathway, raw content, layered digest, embedding and
relations. Nodes serialize to plain JSON-compatible dicts via ``to_dict`` /
``from_dict``; that form is what durable and remote backends exchange.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from a3s_context.core.digest import Digest
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import StorageError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_timestamp(value: Optional[str]) -> datetime:
    if not value:
        return utcnow()
    return datetime.fromisoformat(value)


class NodeKind(str, Enum):
    DIRECTORY = "directory"
    DOCUMENT = "document"
    CODE = "code"
    MARKDOWN = "markdown"
    MEMORY = "memory"
    CAPABILITY = "capability"
    MESSAGE = "message"
    DATA = "data"

    def __str__(self) -> str:
        return self.value


class RelationKind(str, Enum):
    REFERENCES = "references"
    DERIVED_FROM = "derivedfrom"
    RELATED_TO = "relatedto"
    DEPENDS_ON = "dependson"
    CUSTOM = "custom"

    def __str__(self) -> str:
        return self.value


@dataclass
class SourceInfo:
    """Provenance of ingested content."""
    origin: str
    content_type: Optional[str] = None
    size: int = 0
    hash: Optional[str] = None


@dataclass
class Metadata:
    custom: Dict[str, Any] = field(default_factory=dict)
    source: Optional[SourceInfo] = None
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    tags: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "custom": dict(self.custom),
            "source": vars(self.source).copy() if self.source else None,
            "access_count": self.access_count,
            "last_accessed": self.last_accessed.isoformat() if self.last_accessed else None,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Metadata":
        source = data.get("source")
        last_accessed = data.get("last_accessed")
        return cls(
            custom=dict(data.get("custom") or {}),
            source=SourceInfo(**source) if source else None,
            access_count=int(data.get("access_count", 0)),
            last_accessed=datetime.fromisoformat(last_accessed) if last_accessed else None,
            tags=list(data.get("tags") or []),
        )


@dataclass
class Relation:
    """Typed link from a node to another pathway."""
    target: Pathway
    kind: RelationKind
    reason: str = ""
    created_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target": str(self.target),
            "kind": self.kind.value,
            "reason": self.reason,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relation":
        return cls(
            target=Pathway.parse(data["target"]),
            kind=RelationKind(data["kind"]),
            reason=data.get("reason", ""),
            created_at=_parse_timestamp(data.get("created_at")),
        )


@dataclass
class Node:
    """
    A stored, addressable content item or directory marker.

    Attributes:
        id: Opaque unique token (uuid4 string)
        pathway: Owning address; unique within a store
        kind: Content kind
        is_directory: Container marker flag
        digest: Brief / summary layers
        content: Raw text (empty for directories)
        embedding: Vector, empty when the node is not embedded
        metadata: Free-form key/values, provenance, access counters, tags
        relations: Typed links to other pathways
    """
    pathway: Pathway
    kind: NodeKind
    content: str = ""
    is_directory: bool = False
    digest: Digest = field(default_factory=Digest)
    embedding: List[float] = field(default_factory=list)
    metadata: Metadata = field(default_factory=Metadata)
    relations: List[Relation] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def new(cls, pathway: Pathway, kind: NodeKind, content: str) -> "Node":
        return cls(pathway=pathway, kind=kind, content=content)

    @classmethod
    def directory(cls, pathway: Pathway) -> "Node":
        return cls(pathway=pathway, kind=NodeKind.DIRECTORY, is_directory=True)

    def update_content(self, content: str) -> None:
        """Replace content; the digest becomes ungenerated."""
        self.content = content
        self.digest = Digest()
        self.updated_at = utcnow()

    def add_relation(self, target: Pathway, kind: RelationKind, reason: str = "") -> None:
        self.relations.append(Relation(target=target, kind=kind, reason=reason))

    def namespace(self) -> Namespace:
        return self.pathway.namespace

    def size(self) -> int:
        return len(self.content.encode("utf-8"))

    def is_embedded(self) -> bool:
        return len(self.embedding) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "pathway": str(self.pathway),
            "kind": self.kind.value,
            "is_directory": self.is_directory,
            "digest": self.digest.to_dict(),
            "content": self.content,
            "embedding": [float(v) for v in self.embedding],
            "metadata": self.metadata.to_dict(),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "relations": [r.to_dict() for r in self.relations],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        """
        Rebuild a node from its serialized form.

        Raises:
            StorageError: if the record is missing fields or malformed
        """
        try:
            return cls(
                id=data["id"],
                pathway=Pathway.parse(data["pathway"]),
                kind=NodeKind(data["kind"]),
                is_directory=bool(data.get("is_directory", False)),
                digest=Digest.from_dict(data.get("digest") or {}),
                content=data.get("content", ""),
                embedding=[float(v) for v in data.get("embedding") or []],
                metadata=Metadata.from_dict(data.get("metadata") or {}),
                created_at=_parse_timestamp(data.get("created_at")),
                updated_at=_parse_timestamp(data.get("updated_at")),
                relations=[Relation.from_dict(r) for r in data.get("relations") or []],
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StorageError(f"malformed node record: {e}") from e

    def __repr__(self) -> str:
        return (
            f"<Node({self.pathway}, kind={self.kind.value}, "
            f"size={self.size()}, embedded={self.is_embedded()})>"
        )


@dataclass
class NodeInfo:
    """Listing entry for a node."""
    pathway: Pathway
    kind: NodeKind
    is_directory: bool
    size: int
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_node(cls, node: Node) -> "NodeInfo":
        return cls(
            pathway=node.pathway,
            kind=node.kind,
            is_directory=node.is_directory,
            size=node.size(),
            created_at=node.created_at,
            updated_at=node.updated_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pathway": str(self.pathway),
            "kind": self.kind.value,
            "is_directory": self.is_directory,
            "size": self.size,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeInfo":
        return cls(
            pathway=Pathway.parse(data["pathway"]),
            kind=NodeKind(data["kind"]),
            is_directory=bool(data["is_directory"]),
            size=int(data["size"]),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
        )


@dataclass
class NamespaceStats:
    namespace: Namespace
    node_count: int = 0
    size_bytes: int = 0


@dataclass
class StorageStats:
    total_nodes: int = 0
    total_directories: int = 0
    total_size_bytes: int = 0
    namespaces: List[NamespaceStats] = field(default_factory=list)

    @classmethod
    def from_nodes(cls, nodes) -> "StorageStats":
        stats = cls()
        per_namespace: Dict[Namespace, NamespaceStats] = {}
        for node in nodes:
            size = node.size()
            stats.total_nodes += 1
            stats.total_size_bytes += size
            if node.is_directory:
                stats.total_directories += 1
            ns = per_namespace.setdefault(node.namespace(), NamespaceStats(node.namespace()))
            ns.node_count += 1
            ns.size_bytes += size
        stats.namespaces = [per_namespace[ns] for ns in sorted(per_namespace)]
        return stats

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_nodes": self.total_nodes,
            "total_directories": self.total_directories,
            "total_size_bytes": self.total_size_bytes,
            "namespaces": [
                {"namespace": ns.namespace.value, "node_count": ns.node_count, "size_bytes": ns.size_bytes}
                for ns in self.namespaces
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageStats":
        return cls(
            total_nodes=int(data.get("total_nodes", 0)),
            total_directories=int(data.get("total_directories", 0)),
            total_size_bytes=int(data.get("total_size_bytes", 0)),
            namespaces=[
                NamespaceStats(Namespace(ns["namespace"]), int(ns["node_count"]), int(ns["size_bytes"]))
                for ns in data.get("namespaces") or []
            ],
        )
