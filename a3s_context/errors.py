"""
A3S Context Errors
==================

Exception hierarchy shared by every component.

All errors derive from ``A3SError`` and render as ``"<Label>: <detail>"``
so they can be shown to a CLI user verbatim.
"""

from typing import Optional


class A3SError(Exception):
    """Base class for all A3S Context errors."""

    label: str = "Internal error"

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(detail)

    def __str__(self) -> str:
        if not self.detail:
            return self.label
        return f"{self.label}: {self.detail}"


class InvalidPathwayError(A3SError, ValueError):
    label = "Invalid pathway"


class NodeNotFoundError(A3SError, LookupError):
    label = "Node not found"


class DirectoryNotEmptyError(A3SError):
    label = "Directory not empty"


class AlreadyExistsError(A3SError):
    label = "Already exists"


class StorageError(A3SError):
    label = "Storage error"


class EmbeddingError(A3SError):
    label = "Embedding error"


class DigestGenerationError(A3SError):
    label = "Digest generation error"


class IngestError(A3SError):
    label = "Ingest error"


class RetrievalError(A3SError):
    label = "Retrieval error"


class RerankError(A3SError):
    label = "Rerank error"


class SessionError(A3SError):
    label = "Session error"


class ConfigError(A3SError, ValueError):
    label = "Configuration error"


class NotInitializedError(A3SError, RuntimeError):
    label = "Not initialized"

    def __init__(self, detail: Optional[str] = None):
        super().__init__(detail or "")


class InternalError(A3SError):
    label = "Internal error"
