"""
Configuration objects for the indexing engine.

Settings loading is the host's job; the host builds one ``IndexerConfig``
and hands it to ``CodeIndexService``. Re-initialization constructs a fresh
object graph from the config instead of mutating shared state.

Usage:
    config = IndexerConfig.from_dict({
        "embedding": {"provider": "ollama", "model_name": "nomic-embed-text"},
        "include": ["src/**/*.{ts,tsx}"],
    })
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

DEFAULT_EXCLUDE: List[str] = [
    '.git/',
    'node_modules/',
    '__pycache__/',
    'venv/',
    '.venv/',
    'dist/',
    'build/',
    '.codeweave/',
]


class EmbeddingConfig(BaseModel):
    """Which embedding backend to use, selected once at construction."""

    provider: Literal["sentence-transformers", "ollama"] = Field(
        default="sentence-transformers",
        description="Embedding backend (sentence-transformers=local, ollama=HTTP)",
    )
    model_name: str = Field(default="coderankembed", description="Model name or alias")
    base_url: str = Field(default="http://localhost:11434", description="Ollama server URL")
    batch_size: int = Field(default=32, ge=1, le=1024)
    timeout_seconds: float = Field(default=120.0, gt=0)
    enabled: bool = Field(default=True, description="Master switch for embedding/indexing")


class IndexerConfig(BaseModel):
    """Settings for one workspace index."""

    embedding: EmbeddingConfig = Field(default_factory=EmbeddingConfig)
    include: Optional[List[str]] = Field(
        default=None,
        description="Inclusion globs; None means every supported source extension",
    )
    exclude: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE))
    quiet_interval_seconds: float = Field(default=0.5, ge=0)
    expansion_cap: int = Field(default=5, ge=0)
    default_k: int = Field(default=3, ge=1)
    max_document_chars: int = Field(default=4000, ge=1)
    describe_chunks: bool = False
    parallel: bool = False
    max_workers: Optional[int] = Field(default=None, ge=1)
    collection_name: str = Field(default="codebase", min_length=3)
    storage_dir: str = ".codeweave"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'IndexerConfig':
        """Validate a plain settings mapping.

        Raises:
            ConfigurationError: If any value is invalid
        """
        try:
            return cls.model_validate(data or {})
        except ValidationError as e:
            raise ConfigurationError(f"Invalid indexer configuration: {e}") from e
