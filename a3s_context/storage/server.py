"""
Storage Server
==============

FastAPI application exposing any ``StorageBackend`` over HTTP, consumed by
``RemoteStorage``.

Usage:
    app = create_storage_app(LocalStorage("./a3s_data"))
    uvicorn.run(app, host="127.0.0.1", port=8700)
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from a3s_context.core.digest import Digest
from a3s_context.core.models import Node
from a3s_context.core.pathway import Namespace, Pathway
from a3s_context.errors import (
    A3SError,
    InvalidPathwayError,
    NodeNotFoundError,
    NotInitializedError,
    StorageError,
)
from a3s_context.storage.base import StorageBackend

log = structlog.get_logger()


# ===========================================
# Request models
# ===========================================

class EmbeddingUpdate(BaseModel):
    pathway: str
    embedding: List[float]


class DigestUpdate(BaseModel):
    pathway: str
    brief: str = ""
    summary: str = ""
    generated: bool = True


class VectorSearchRequest(BaseModel):
    vector: List[float]
    namespace: Optional[str] = None
    limit: int = Field(default=10, ge=0)
    threshold: float = 0.0


class TextSearchRequest(BaseModel):
    pattern: str
    pathway: Optional[str] = None
    case_insensitive: bool = False


def _status_for(error: A3SError) -> int:
    if isinstance(error, NodeNotFoundError):
        return 404
    if isinstance(error, InvalidPathwayError):
        return 400
    if isinstance(error, NotInitializedError):
        return 503
    return 500


def _parse_namespace(value: Optional[str]) -> Optional[Namespace]:
    if value is None:
        return None
    namespace = Namespace.parse(value)
    if namespace is None:
        raise InvalidPathwayError(f"Invalid namespace: {value}")
    return namespace


def create_storage_app(backend: StorageBackend) -> FastAPI:
    """Build the FastAPI app; the backend is initialized on startup and flushed on shutdown."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await backend.initialize()
        log.info(f"Storage server ready ({type(backend).__name__})")
        yield
        await backend.flush()
        await backend.close()

    app = FastAPI(title="A3S Context Storage", version="0.1.0", lifespan=lifespan)
    app.state.backend = backend

    @app.exception_handler(A3SError)
    async def a3s_error_handler(request: Request, exc: A3SError):
        status = _status_for(exc)
        if status >= 500:
            log.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(
            status_code=status,
            content={"error": type(exc).__name__, "detail": exc.detail},
        )

    @app.get("/health")
    async def health() -> Dict[str, str]:
        return {"status": "ok"}

    @app.put("/nodes")
    async def put_node(payload: Dict[str, Any]) -> Dict[str, str]:
        try:
            node = Node.from_dict(payload)
        except StorageError as e:
            raise HTTPException(status_code=400, detail=e.detail) from e
        await backend.put(node)
        return {"pathway": str(node.pathway)}

    @app.get("/nodes")
    async def get_node(pathway: str = Query(...)) -> Dict[str, Any]:
        node = await backend.get(Pathway.parse(pathway))
        return node.to_dict()

    @app.get("/nodes/exists")
    async def node_exists(pathway: str = Query(...)) -> Dict[str, bool]:
        return {"exists": await backend.exists(Pathway.parse(pathway))}

    @app.delete("/nodes")
    async def remove_node(pathway: str = Query(...), recursive: bool = False) -> Dict[str, int]:
        removed = await backend.remove(Pathway.parse(pathway), recursive=recursive)
        return {"removed": removed}

    @app.put("/nodes/embedding")
    async def update_embedding(update: EmbeddingUpdate) -> Dict[str, str]:
        await backend.update_embedding(Pathway.parse(update.pathway), update.embedding)
        return {"pathway": update.pathway}

    @app.put("/nodes/digest")
    async def update_digest(update: DigestUpdate) -> Dict[str, str]:
        digest = Digest(brief=update.brief, summary=update.summary, generated=update.generated)
        await backend.update_digest(Pathway.parse(update.pathway), digest)
        return {"pathway": update.pathway}

    @app.get("/list")
    async def list_children(pathway: str = Query(...)) -> List[Dict[str, Any]]:
        return [info.to_dict() for info in await backend.list(Pathway.parse(pathway))]

    @app.get("/children")
    async def get_children(pathway: str = Query(...), max_depth: int = Query(1, ge=1)) -> List[Dict[str, Any]]:
        nodes = await backend.get_children(Pathway.parse(pathway), max_depth)
        return [node.to_dict() for node in nodes]

    @app.post("/search/vector")
    async def search_vector(request: VectorSearchRequest) -> List[Dict[str, Any]]:
        results = await backend.search_vector(
            request.vector,
            namespace=_parse_namespace(request.namespace),
            limit=request.limit,
            threshold=request.threshold,
        )
        return [{"pathway": str(p), "score": score} for p, score in results]

    @app.post("/search/text")
    async def search_text(request: TextSearchRequest) -> List[str]:
        root = Pathway.parse(request.pathway) if request.pathway else None
        results = await backend.search_text(request.pattern, root, request.case_insensitive)
        return [str(p) for p in results]

    @app.get("/stats")
    async def stats() -> Dict[str, Any]:
        return (await backend.stats()).to_dict()

    @app.post("/flush")
    async def flush() -> Dict[str, str]:
        await backend.flush()
        return {"status": "flushed"}

    return app
