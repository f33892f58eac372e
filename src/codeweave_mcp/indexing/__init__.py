"""
CodeWeave MCP Indexing Module.

This module provides the write and read paths of the code index:
- EmbeddingService / OllamaEmbeddingProvider: embedding backends
- VectorStore: chunk embeddings in ChromaDB
- Indexer: parse -> embed -> store -> graph for batches of files
- DocumentQueue: debounced, single-flight batching of change notifications
- VectorQuery: similarity search with graph expansion
- CodeIndexService: the operations exposed to the transport layer

Usage:
    from codeweave_mcp.indexing import CodeIndexService

    service = CodeIndexService("/path/to/code")
    service.initialize()
    service.full_index_build()
    result = service.query("How does auth work?", k=3)
"""

from codeweave_mcp.indexing.embedding_service import (
    EmbeddingService,
    OllamaEmbeddingProvider,
    create_embedding_provider,
    get_embedding_service,
    reset_embedding_service,
    EMBEDDING_MODELS,
    DEFAULT_MODEL,
)
from codeweave_mcp.indexing.inclusion_filter import InclusionFilter, expand_braces
from codeweave_mcp.indexing.vector_store import VectorStore
from codeweave_mcp.indexing.generator import Generator
from codeweave_mcp.indexing.parallel_indexer import parallel_parse_documents, ParallelProgress
from codeweave_mcp.indexing.indexer import Indexer, IndexerState, content_hash
from codeweave_mcp.indexing.document_queue import DocumentQueue, QueueState
from codeweave_mcp.indexing.vector_query import VectorQuery
from codeweave_mcp.indexing.service import CodeIndexService

__all__ = [
    # Embedding providers
    'EmbeddingService',
    'OllamaEmbeddingProvider',
    'create_embedding_provider',
    'get_embedding_service',
    'reset_embedding_service',
    'EMBEDDING_MODELS',
    'DEFAULT_MODEL',
    # Write path
    'InclusionFilter',
    'expand_braces',
    'VectorStore',
    'Generator',
    'parallel_parse_documents',
    'ParallelProgress',
    'Indexer',
    'IndexerState',
    'content_hash',
    'DocumentQueue',
    'QueueState',
    # Read path
    'VectorQuery',
    # Facade
    'CodeIndexService',
]
