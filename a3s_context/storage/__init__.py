"""
Storage backends and similarity index.
"""

from a3s_context.config.settings import StorageBackendType, StorageConfig
from a3s_context.errors import ConfigError

from .base import StorageBackend
from .local import LocalStorage
from .memory import MemoryStorage
from .remote import RemoteStorage
from .vector_index import VectorIndex, cosine_similarity


def create_backend(config: StorageConfig) -> StorageBackend:
    """Instantiate the backend selected by ``config.backend``."""
    if config.backend == StorageBackendType.MEMORY:
        return MemoryStorage()
    if config.backend == StorageBackendType.LOCAL:
        return LocalStorage(config.path)
    if config.backend == StorageBackendType.REMOTE:
        if not config.url:
            raise ConfigError("storage.url is required for the remote backend")
        return RemoteStorage(config.url, timeout=config.timeout)
    raise ConfigError(f"Unknown storage backend: {config.backend}")


__all__ = [
    "StorageBackend",
    "LocalStorage",
    "MemoryStorage",
    "RemoteStorage",
    "VectorIndex",
    "cosine_similarity",
    "create_backend",
]
