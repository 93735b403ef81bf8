"""
Local File Storage
==================

Durable backend: one JSON record per node under a root directory, with an
in-memory cache and vector index rebuilt on ``initialize``.

Layout:
    <root>/<namespace>/<seg1>/.../<segN>/@node.json

Segments are percent-encoded so any segment is a safe directory name.
``@`` is always encoded, so the record file name never collides with a
child segment.

Every mutation is written to disk (atomically, via a temp file and rename)
before the cache is updated.
"""

import asyncio
import copy
import json
import os
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union
from urllib.parse import quote

import structlog

from a3s_context.core.digest import Digest
from a3s_context.core.models import Node, NodeInfo, StorageStats, utcnow
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import A3SError, NotInitializedError, StorageError
from a3s_context.storage.memory import MemoryStorage

log = structlog.get_logger()

RECORD_NAME = "@node.json"
LOCK_STRIPES = 64
WRITE_ATTEMPTS = 3


def encode_segment(segment: str) -> str:
    encoded = quote(segment, safe="")
    if encoded in (".", ".."):
        encoded = encoded.replace(".", "%2E")
    return encoded


class LocalStorage(MemoryStorage):
    """
    File-backed storage.

    Example:
        >>> storage = LocalStorage("./a3s_data")
        >>> await storage.initialize()
        >>> await storage.put(Node.new(Pathway.knowledge("notes"), NodeKind.DOCUMENT, "hi"))
    """

    def __init__(self, root: Union[str, Path]):
        super().__init__()
        self.root = Path(root)
        self.skipped_records = 0
        self._initialized = False
        self._stripes: List[Optional[asyncio.Lock]] = [None] * LOCK_STRIPES

    # ------------------------------------------------------------------
    # Paths & locking
    # ------------------------------------------------------------------

    def record_path(self, pathway: Pathway) -> Path:
        parts = [pathway.namespace.value] + [encode_segment(s) for s in pathway.segments]
        return self.root.joinpath(*parts, RECORD_NAME)

    def _write_lock(self, pathway: Pathway) -> asyncio.Lock:
        slot = hash(pathway) % LOCK_STRIPES
        lock = self._stripes[slot]
        if lock is None:
            lock = self._stripes[slot] = asyncio.Lock()
        return lock

    def _require_initialized(self):
        if not self._initialized:
            raise NotInitializedError("LocalStorage.initialize() has not completed")

    async def _run(self, func: Callable, *args):
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, func, *args)
        except OSError as e:
            raise StorageError(str(e)) from e

    # ------------------------------------------------------------------
    # Disk I/O (run in executor)
    # ------------------------------------------------------------------

    def _write_record(self, node: Node) -> None:
        path = self.record_path(node.pathway)
        tmp = path.with_name(f"{RECORD_NAME}.tmp")
        payload = json.dumps(node.to_dict())
        for attempt in range(WRITE_ATTEMPTS):
            path.parent.mkdir(parents=True, exist_ok=True)
            try:
                tmp.write_text(payload, encoding="utf-8")
                break
            except FileNotFoundError:
                # A concurrent removal pruned the parent between mkdir and write
                if attempt == WRITE_ATTEMPTS - 1:
                    raise
        os.replace(tmp, path)

    def _delete_record(self, pathway: Pathway) -> None:
        path = self.record_path(pathway)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        self._prune(path.parent)

    def _prune(self, directory: Path) -> None:
        """Remove emptied directories up to (not including) the root."""
        root = self.root.resolve()
        current = directory
        while current.resolve() != root and root in current.resolve().parents:
            try:
                current.rmdir()
            except OSError:
                break
            current = current.parent

    def _load_all(self) -> List[Node]:
        nodes = []
        skipped = 0
        if not self.root.exists():
            return nodes

        for record in sorted(self.root.rglob(RECORD_NAME)):
            try:
                data = json.loads(record.read_text(encoding="utf-8"))
                node = Node.from_dict(data)
            except (OSError, ValueError, A3SError) as e:
                skipped += 1
                log.warning(f"Skipping unreadable node record {record}: {e}")
                continue

            if self.record_path(node.pathway) != record:
                skipped += 1
                log.warning(f"Skipping node record {record}: stored pathway {node.pathway} does not match location")
                continue

            nodes.append(node)

        self.skipped_records = skipped
        return nodes

    # ------------------------------------------------------------------
    # StorageBackend
    # ------------------------------------------------------------------

    async def initialize(self) -> None:
        await self._run(lambda: self.root.mkdir(parents=True, exist_ok=True))

        nodes = await self._run(self._load_all)
        with self._lock:
            self._nodes.clear()
        self.index.clear()
        for node in nodes:
            self._store(node)

        self._initialized = True
        log.info(
            f"LocalStorage initialized at {self.root} - "
            f"loaded {len(nodes)} nodes, {self.index.size()} vectors, "
            f"skipped {self.skipped_records} records"
        )

    async def put(self, node: Node) -> None:
        self._require_initialized()
        snapshot = copy.deepcopy(node)
        async with self._write_lock(node.pathway):
            await self._run(self._write_record, snapshot)
            self._store(snapshot)

    async def get(self, pathway: Pathway) -> Node:
        self._require_initialized()
        return await super().get(pathway)

    async def exists(self, pathway: Pathway) -> bool:
        self._require_initialized()
        return await super().exists(pathway)

    async def remove(self, pathway: Pathway, recursive: bool = False) -> int:
        self._require_initialized()
        removed = 0
        # Deepest first so parent directories are empty when pruned.
        for target in sorted(self._affected(pathway, recursive), key=lambda p: -p.depth):
            async with self._write_lock(target):
                await self._run(self._delete_record, target)
                if self._discard(target):
                    removed += 1
        log.debug(f"Removed {removed} node(s) at {pathway} (recursive={recursive})")
        return removed

    async def list(self, pathway: Pathway) -> List[NodeInfo]:
        self._require_initialized()
        return await super().list(pathway)

    async def search_vector(self, query: Sequence[float], namespace: Optional[Namespace] = None,
                            limit: int = 10, threshold: float = 0.0):
        self._require_initialized()
        return await super().search_vector(query, namespace=namespace, limit=limit, threshold=threshold)

    async def search_text(self, pattern: str, pathway: Optional[Pathway] = None,
                          case_insensitive: bool = False) -> List[Pathway]:
        self._require_initialized()
        return await super().search_text(pattern, pathway, case_insensitive)

    async def get_children(self, pathway: Pathway, max_depth: int = 1) -> List[Node]:
        self._require_initialized()
        return await super().get_children(pathway, max_depth)

    async def _update(self, pathway: Pathway, mutate: Callable[[Node], None]) -> None:
        self._require_initialized()
        async with self._write_lock(pathway):
            node = copy.deepcopy(self._lookup(pathway))
            mutate(node)
            node.updated_at = utcnow()
            await self._run(self._write_record, node)
            self._store(node)

    async def update_embedding(self, pathway: Pathway, embedding: Sequence[float]) -> None:
        vector = [float(v) for v in embedding]

        def mutate(node: Node):
            node.embedding = vector

        await self._update(pathway, mutate)

    async def update_digest(self, pathway: Pathway, digest: Digest) -> None:
        def mutate(node: Node):
            node.digest = copy.deepcopy(digest)

        await self._update(pathway, mutate)

    async def stats(self) -> StorageStats:
        self._require_initialized()
        return await super().stats()

    async def flush(self) -> None:
        # Records are written through on every mutation.
        self._require_initialized()
