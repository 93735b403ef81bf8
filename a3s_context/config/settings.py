"""
A3S Context Configuration
=========================

Pydantic models for the ``a3s.yaml`` / ``a3s.toml`` / ``a3s.json`` configuration
file. String values support ``${VAR}`` and ``${VAR:-default}`` environment
expansion; ``A3SConfig.from_env()`` reads the ``A3S_*`` variables directly.

Usage:
    config = load_config("a3s.yaml")
    config = A3SConfig.from_env().merge(load_config("a3s.yaml"))
"""

import json
import os
import re
import tomllib
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from a3s_context.errors import ConfigError

log = structlog.get_logger()

DEFAULT_EXTENSIONS = [
    "md", "txt", "rs", "py", "js", "ts", "go", "java",
    "c", "cpp", "h", "json", "yaml", "toml",
]

DEFAULT_IGNORE_PATTERNS = [
    ".git", "node_modules", "target", "__pycache__", ".venv",
    "*.pyc", "*.pyo", ".DS_Store",
]


# ===========================================
# Storage
# ===========================================

class StorageBackendType(str, Enum):
    LOCAL = "local"
    MEMORY = "memory"
    REMOTE = "remote"


class VectorIndexConfig(BaseModel):
    """Similarity index; only exact linear scan is implemented"""
    index_type: Literal["flat"] = Field(default="flat")


class StorageConfig(BaseModel):
    backend: StorageBackendType = Field(default=StorageBackendType.LOCAL)
    path: Path = Field(default=Path("./a3s_data"))
    url: Optional[str] = None
    timeout: float = Field(default=30.0, gt=0)
    vector_index: VectorIndexConfig = Field(default_factory=VectorIndexConfig)


# ===========================================
# Capabilities
# ===========================================

class EmbeddingConfig(BaseModel):
    provider: Literal["openai", "sentence-transformers", "mock"] = Field(default="openai")
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    model: str = Field(default="text-embedding-3-small")
    dimension: int = Field(default=1536, ge=1)
    batch_size: int = Field(default=32, ge=1)
    timeout: float = Field(default=30.0, gt=0)


class LLMConfig(BaseModel):
    provider: Literal["openai"] = Field(default="openai")
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    model: str = Field(default="gpt-4o-mini")
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1000, ge=1)
    auto_digest: bool = Field(default=True)


class RerankConfig(BaseModel):
    provider: Literal["mock", "jina", "cohere", "openai"] = Field(default="mock")
    api_base: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    top_n: Optional[int] = Field(default=None, ge=1)


# ===========================================
# Retrieval & Ingestion
# ===========================================

class RetrievalConfig(BaseModel):
    default_limit: int = Field(default=10, ge=1)
    score_threshold: float = Field(default=0.5, ge=-1.0, le=1.0)
    hierarchical: bool = Field(default=True)
    max_depth: int = Field(default=3, ge=1)
    oversample_factor: int = Field(default=3, ge=1)
    embedding_timeout: float = Field(default=30.0, gt=0)
    rerank: bool = Field(default=False)
    rerank_config: RerankConfig = Field(default_factory=RerankConfig)


class IngestConfig(BaseModel):
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    max_file_size: int = Field(default=10 * 1024 * 1024, ge=1)
    ignore_patterns: List[str] = Field(default_factory=lambda: list(DEFAULT_IGNORE_PATTERNS))

    @field_validator("extensions")
    @classmethod
    def normalize_extensions(cls, v):
        return [ext.lower().lstrip(".") for ext in v]


# ===========================================
# Root
# ===========================================

class A3SConfig(BaseModel):
    """Complete A3S Context configuration"""
    storage: StorageConfig = Field(default_factory=StorageConfig)
    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    llm: LLMConfig = Field(default_factory=LLMConfig)
    retrieval: RetrievalConfig = Field(default_factory=RetrievalConfig)
    ingest: IngestConfig = Field(default_factory=IngestConfig)
    log_level: str = Field(default="info")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = v.lower()
        if level not in {"debug", "info", "warning", "error", "critical"}:
            raise ValueError(f"log_level must be one of debug/info/warning/error/critical, got {v}")
        return level

    @classmethod
    def from_env(cls) -> "A3SConfig":
        """Build a config from defaults plus ``A3S_*`` environment variables."""
        data: Dict[str, Dict[str, Any]] = {}

        def put(section: str, key: str, env: str):
            value = os.getenv(env)
            if value is not None:
                data.setdefault(section, {})[key] = value

        put("storage", "backend", "A3S_STORAGE_BACKEND")
        put("storage", "path", "A3S_STORAGE_PATH")
        put("storage", "url", "A3S_STORAGE_URL")
        put("embedding", "provider", "A3S_EMBEDDING_PROVIDER")
        put("embedding", "api_base", "A3S_EMBEDDING_API_BASE")
        put("embedding", "api_key", "A3S_EMBEDDING_API_KEY")
        put("embedding", "model", "A3S_EMBEDDING_MODEL")
        put("llm", "api_base", "A3S_LLM_API_BASE")
        put("llm", "api_key", "A3S_LLM_API_KEY")
        put("llm", "model", "A3S_LLM_MODEL")

        payload: Dict[str, Any] = dict(data)
        if os.getenv("A3S_LOG_LEVEL"):
            payload["log_level"] = os.getenv("A3S_LOG_LEVEL")

        return _validate(payload, source="environment")

    def merge(self, other: "A3SConfig") -> "A3SConfig":
        """
        Return a new config where every section ``other`` explicitly set
        replaces the corresponding section of this config.
        """
        update = {name: getattr(other, name) for name in other.model_fields_set}
        return self.model_copy(update=update, deep=True)


# ===========================================
# Loading
# ===========================================

_ENV_VAR_PATTERN = re.compile(r'\$\{([^}^{]+)\}')


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${VAR} and ${VAR:-default} syntax. Unset variables without a
    default are left untouched.
    """
    if isinstance(value, str):
        def replace_var(match):
            var_expr = match.group(1)

            if ':-' in var_expr:
                var_name, default_val = var_expr.split(':-', 1)
                return os.getenv(var_name.strip(), default_val.strip())

            var_name = var_expr.strip()
            env_value = os.getenv(var_name)
            if env_value is None:
                log.warning(f"Environment variable '{var_name}' not set, using original value")
                return match.group(0)
            return env_value

        return _ENV_VAR_PATTERN.sub(replace_var, value)

    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    if isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def _validate(data: Dict[str, Any], source: str) -> A3SConfig:
    try:
        return A3SConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration from {source}: {e}") from e


def load_config(config_path: Union[str, Path]) -> A3SConfig:
    """
    Load configuration from a YAML, TOML or JSON file.

    Args:
        config_path: ``.yaml``/``.yml`` and ``.toml`` are detected by suffix,
            anything else is parsed as JSON

    Raises:
        ConfigError: missing file, parse failure or invalid values
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")

    text = path.read_text(encoding="utf-8")
    suffix = path.suffix.lower()

    try:
        if suffix in (".yaml", ".yml"):
            raw = yaml.safe_load(text) or {}
        elif suffix == ".toml":
            raw = tomllib.loads(text)
        else:
            raw = json.loads(text) if text.strip() else {}
    except (yaml.YAMLError, tomllib.TOMLDecodeError, ValueError) as e:
        raise ConfigError(f"failed to parse {path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"{path} must contain a mapping at top level")

    config = _validate(_expand_env_vars(raw), source=str(path))
    log.info(f"Loaded configuration from {path}")
    return config


def save_config(config: A3SConfig, config_path: Union[str, Path]) -> Path:
    """Write ``config`` as YAML (or JSON for a ``.json`` path)."""
    path = Path(config_path)
    data = config.model_dump(mode="json")
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".json":
        path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


_config_instance: Optional[A3SConfig] = None


def get_config(config_path: Optional[Union[str, Path]] = None, reload: bool = False) -> A3SConfig:
    """
    Get the process-wide configuration (singleton).

    Environment variables are applied first, then the file at ``config_path``
    (or ``A3S_CONFIG``) if one is given.
    """
    global _config_instance

    if _config_instance is None or reload:
        config = A3SConfig.from_env()
        path = config_path or os.getenv("A3S_CONFIG")
        if path:
            config = config.merge(load_config(path))
        _config_instance = config

    return _config_instance
