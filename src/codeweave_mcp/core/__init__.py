"""
Core data models and structures for CodeWeave MCP.

This module provides the foundational data structures, collaborator
interfaces, configuration and exceptions used throughout the engine.
"""

from .models import (
    SymbolKind,
    SourceRange,
    SymbolRecord,
    FileRecord,
    Chunk,
    GraphEdge,
    ParseResult,
    VectorEntry,
    VectorHit,
    IndexResult,
    IndexStatus,
    CodeDocument,
    QueryResult,
    ChangeKind,
    FileChange,
)
from .interfaces import ISymbolRetriever, IEmbeddingProvider, ILanguageModel
from .config import IndexerConfig, EmbeddingConfig

__all__ = [
    "SymbolKind",
    "SourceRange",
    "SymbolRecord",
    "FileRecord",
    "Chunk",
    "GraphEdge",
    "ParseResult",
    "VectorEntry",
    "VectorHit",
    "IndexResult",
    "IndexStatus",
    "CodeDocument",
    "QueryResult",
    "ChangeKind",
    "FileChange",
    "ISymbolRetriever",
    "IEmbeddingProvider",
    "ILanguageModel",
    "IndexerConfig",
    "EmbeddingConfig",
]
