"""
Ingestion Processor
===================

Walk a file or directory and turn each text file into an embedded node.

Per file:
1. Size check against ``ingest.max_file_size``
2. Read UTF-8 text and detect the node kind from the extension
3. ``exists`` decides create vs update (update replaces content and resets the digest)
4. Digest generation (when ``llm.auto_digest`` is on)
5. Embedding and ``put``

Per-file failures are collected in ``IngestResult.errors``; they never abort
the batch.

Usage:
    processor = Processor(storage, embedder, config)
    result = await processor.process("./docs", Pathway.knowledge("docs"))
    print(result.summary())
"""

import asyncio
import hashlib
import os
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import structlog

from a3s_context.config.settings import A3SConfig
from a3s_context.core.digest import DigestGenerator
from a3s_context.core.models import Node, NodeKind, SourceInfo
from a3s_context.core.pathway import Pathway
from a3s_context.embedding.base import Embedder
from a3s_context.errors import A3SError, IngestError
from a3s_context.storage.base import StorageBackend

log = structlog.get_logger()

CODE_EXTENSIONS = {"rs", "py", "js", "ts", "go", "java", "c", "cpp", "h"}

CONTENT_TYPES = {
    "md": "text/markdown",
    "json": "application/json",
    "yaml": "application/yaml",
    "toml": "application/toml",
}


@dataclass
class IngestResult:
    """
    Outcome of an ingestion run.

    Attributes:
        pathway: Target pathway
        nodes_created: New nodes written
        nodes_updated: Existing nodes replaced
        errors: ``"<relative path>: <error>"`` per failed file
    """
    pathway: Pathway
    nodes_created: int = 0
    nodes_updated: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return not self.errors

    def summary(self) -> Dict[str, Any]:
        return {
            "pathway": str(self.pathway),
            "nodes_created": self.nodes_created,
            "nodes_updated": self.nodes_updated,
            "errors": len(self.errors),
        }


def detect_kind(path: Path) -> NodeKind:
    ext = path.suffix.lower().lstrip(".")
    if ext == "md":
        return NodeKind.MARKDOWN
    if ext in CODE_EXTENSIONS:
        return NodeKind.CODE
    return NodeKind.DOCUMENT


class Processor:
    """Turns files and text into stored, embedded nodes."""

    def __init__(
        self,
        storage: StorageBackend,
        embedder: Embedder,
        config: Optional[A3SConfig] = None,
        digest_generator: Optional[DigestGenerator] = None,
    ):
        self.storage = storage
        self.embedder = embedder
        self.config = config or A3SConfig()
        self.digests = digest_generator or DigestGenerator()

    def should_ignore(self, relative: Path) -> bool:
        """True if any path component matches an ignore pattern."""
        for part in relative.parts:
            for pattern in self.config.ingest.ignore_patterns:
                if fnmatch(part, pattern):
                    return True
        return False

    def accepts_extension(self, path: Path) -> bool:
        extensions = self.config.ingest.extensions
        if not extensions:
            return True
        return path.suffix.lower().lstrip(".") in extensions

    async def process(self, source: Union[str, Path], target: Pathway) -> IngestResult:
        """
        Ingest ``source`` (file or directory) under ``target``.

        A single file becomes ``target/<file name>``; a directory's files keep
        their relative layout below ``target``.

        Raises:
            IngestError: if ``source`` does not exist
        """
        source = Path(source)
        if not source.exists():
            raise IngestError(f"Source not found: {source}")

        result = IngestResult(pathway=target)

        if source.is_file():
            await self._ensure_directory(target, result)
            await self._ingest_file(source, target.join(source.name), Path(source.name), result)
        else:
            await self._ensure_directory(target, result)
            await self._walk(source, target, result)

        log.info(
            f"Ingested {source} into {target} - "
            f"created={result.nodes_created}, updated={result.nodes_updated}, "
            f"errors={len(result.errors)}"
        )
        return result

    async def _walk(self, root: Path, target: Pathway, result: IngestResult) -> None:
        for dirpath, dirnames, filenames in os.walk(root):
            current = Path(dirpath)
            relative_dir = current.relative_to(root)

            dirnames[:] = sorted(
                d for d in dirnames if not self.should_ignore(relative_dir / d)
            )

            dir_pathway = target.join(*relative_dir.parts)
            if relative_dir.parts:
                await self._ensure_directory(dir_pathway, result)

            for name in sorted(filenames):
                relative = relative_dir / name
                path = current / name
                if self.should_ignore(relative) or not self.accepts_extension(path):
                    log.debug(f"Skipping {relative}")
                    continue
                await self._ingest_file(path, dir_pathway.join(name), relative, result)

    async def _ensure_directory(self, pathway: Pathway, result: IngestResult) -> None:
        try:
            if not await self.storage.exists(pathway):
                await self.storage.put(Node.directory(pathway))
                result.nodes_created += 1
        except A3SError as e:
            result.errors.append(f"{pathway}: {e}")

    async def _ingest_file(
        self, path: Path, pathway: Pathway, relative: Path, result: IngestResult
    ) -> None:
        try:
            size = path.stat().st_size
            if size > self.config.ingest.max_file_size:
                raise IngestError(
                    f"file too large ({size} bytes > {self.config.ingest.max_file_size})"
                )

            loop = asyncio.get_event_loop()
            content = await loop.run_in_executor(None, lambda: path.read_text(encoding="utf-8"))

            source = SourceInfo(
                origin=str(path),
                content_type=CONTENT_TYPES.get(path.suffix.lower().lstrip("."), "text/plain"),
                size=size,
                hash=hashlib.sha256(content.encode("utf-8")).hexdigest(),
            )
            created = await self._store(pathway, content, detect_kind(path), source)
        except (OSError, UnicodeDecodeError, A3SError) as e:
            log.warning(f"Failed to ingest {relative}: {e}")
            result.errors.append(f"{relative}: {e}")
            return

        if created:
            result.nodes_created += 1
        else:
            result.nodes_updated += 1

    async def process_text(
        self,
        pathway: Pathway,
        content: str,
        kind: NodeKind = NodeKind.DOCUMENT,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> IngestResult:
        """Ingest in-memory text at ``pathway``."""
        result = IngestResult(pathway=pathway)
        try:
            created = await self._store(pathway, content, kind, None, metadata)
        except A3SError as e:
            result.errors.append(f"{pathway}: {e}")
            return result

        if created:
            result.nodes_created += 1
        else:
            result.nodes_updated += 1
        return result

    async def _store(
        self,
        pathway: Pathway,
        content: str,
        kind: NodeKind,
        source: Optional[SourceInfo],
        custom: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Create or update the node at ``pathway``; returns True if created."""
        if await self.storage.exists(pathway):
            node = await self.storage.get(pathway)
            node.update_content(content)
            node.kind = kind
            created = False
        else:
            node = Node.new(pathway, kind, content)
            created = True

        if source is not None:
            node.metadata.source = source
        if custom:
            node.metadata.custom.update(custom)

        if self.config.llm.auto_digest:
            node.digest = await self.digests.generate(content, kind)

        node.embedding = await self.embedder.embed(content)
        await self.storage.put(node)

        log.debug(f"{'Created' if created else 'Updated'} {pathway} ({node.size()} bytes)")
        return created
