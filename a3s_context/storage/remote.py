"""
Remote storage backend: the storage contract over HTTP against a server
built with ``create_storage_app``.
"""

from typing import List, Optional, Sequence, Tuple

import structlog

from a3s_context.core.digest import Digest
from a3s_context.core.models import Node, NodeInfo, StorageStats
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import (
    InvalidPathwayError,
    NodeNotFoundError,
    NotInitializedError,
    StorageError,
)
from a3s_context.http import HTTPStatusError, JSONHTTPClient
from a3s_context.storage.base import StorageBackend

log = structlog.get_logger()


class RemoteStorage(StorageBackend):
    """
    HTTP client for a remote storage server.

    Args:
        url: Server root, e.g. ``http://127.0.0.1:8700``
        timeout: Per-request timeout in seconds
    """

    def __init__(self, url: str, timeout: float = 30.0, api_key: Optional[str] = None):
        self.url = url
        self.http = JSONHTTPClient(url, api_key=api_key, timeout=timeout, error_cls=StorageError)
        self._initialized = False

    async def _call(self, method: str, path: str, pathway: Optional[Pathway] = None, **kwargs):
        if not self._initialized:
            raise NotInitializedError("RemoteStorage.initialize() has not completed")
        try:
            return await self.http.request(method, path, raise_status=True, **kwargs)
        except HTTPStatusError as e:
            if e.status == 404:
                raise NodeNotFoundError(str(pathway) if pathway else path) from e
            if e.status == 400:
                raise InvalidPathwayError(e.server_detail()) from e
            raise StorageError(f"{method} {path} failed: {e.server_detail()}") from e

    async def initialize(self) -> None:
        try:
            await self.http.request("GET", "/health")
        except StorageError:
            log.error(f"Remote storage at {self.url} is unreachable")
            raise
        self._initialized = True
        log.info(f"RemoteStorage connected to {self.url}")

    async def put(self, node: Node) -> None:
        await self._call("PUT", "/nodes", node.pathway, payload=node.to_dict())

    async def get(self, pathway: Pathway) -> Node:
        data = await self._call("GET", "/nodes", pathway, params={"pathway": str(pathway)})
        return Node.from_dict(data)

    async def exists(self, pathway: Pathway) -> bool:
        data = await self._call("GET", "/nodes/exists", pathway, params={"pathway": str(pathway)})
        return bool(data["exists"])

    async def remove(self, pathway: Pathway, recursive: bool = False) -> int:
        data = await self._call(
            "DELETE", "/nodes", pathway,
            params={"pathway": str(pathway), "recursive": "true" if recursive else "false"},
        )
        return int(data["removed"])

    async def list(self, pathway: Pathway) -> List[NodeInfo]:
        data = await self._call("GET", "/list", pathway, params={"pathway": str(pathway)})
        return [NodeInfo.from_dict(item) for item in data]

    async def search_vector(
        self,
        query: Sequence[float],
        namespace: Optional[Namespace] = None,
        limit: int = 10,
        threshold: float = 0.0,
    ) -> List[Tuple[Pathway, float]]:
        payload = {
            "vector": [float(v) for v in query],
            "namespace": namespace.value if namespace else None,
            "limit": limit,
            "threshold": threshold,
        }
        data = await self._call("POST", "/search/vector", payload=payload)
        return [(Pathway.parse(item["pathway"]), float(item["score"])) for item in data]

    async def search_text(
        self,
        pattern: str,
        pathway: Optional[Pathway] = None,
        case_insensitive: bool = False,
    ) -> List[Pathway]:
        payload = {
            "pattern": pattern,
            "pathway": str(pathway) if pathway else None,
            "case_insensitive": case_insensitive,
        }
        data = await self._call("POST", "/search/text", pathway, payload=payload)
        return [Pathway.parse(p) for p in data]

    async def get_children(self, pathway: Pathway, max_depth: int = 1) -> List[Node]:
        data = await self._call(
            "GET", "/children", pathway,
            params={"pathway": str(pathway), "max_depth": max_depth},
        )
        return [Node.from_dict(item) for item in data]

    async def update_embedding(self, pathway: Pathway, embedding: Sequence[float]) -> None:
        payload = {"pathway": str(pathway), "embedding": [float(v) for v in embedding]}
        await self._call("PUT", "/nodes/embedding", pathway, payload=payload)

    async def update_digest(self, pathway: Pathway, digest: Digest) -> None:
        payload = {"pathway": str(pathway), **digest.to_dict()}
        await self._call("PUT", "/nodes/digest", pathway, payload=payload)

    async def stats(self) -> StorageStats:
        return StorageStats.from_dict(await self._call("GET", "/stats"))

    async def flush(self) -> None:
        await self._call("POST", "/flush")

    async def close(self) -> None:
        await self.http.close()
