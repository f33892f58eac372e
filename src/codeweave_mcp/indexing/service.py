"""
CodeIndexService: the operations exposed to the editor/transport layer.

Builds and owns one object graph per workspace:

    FileChange -> DocumentQueue -> Indexer -> {CodeParser, Generator}
                                           -> {CodeGraph, VectorStore}
    query      -> VectorQuery -> {VectorStore, CodeGraph}

Re-initialization and ``delete_index`` never mutate the old objects in
place: the old indexer is cancelled, its queue disposed, and a fresh set
of objects is built from the same configuration.

Usage:
    service = CodeIndexService("/path/to/repo", IndexerConfig())
    service.initialize()
    service.full_index_build()
    result = service.query("where are users authenticated?", k=3)
"""

import logging
import threading
from pathlib import Path
from typing import Any, List, Optional

from codeweave_mcp.core.config import IndexerConfig
from codeweave_mcp.core.exceptions import ConfigurationError
from codeweave_mcp.core.interfaces import IEmbeddingProvider, ILanguageModel, ISymbolRetriever
from codeweave_mcp.core.models import (
    FileChange,
    IndexResult,
    IndexStatus,
    QueryResult,
)
from codeweave_mcp.graph.code_graph import CodeGraph
from codeweave_mcp.indexing.document_queue import DocumentQueue
from codeweave_mcp.indexing.embedding_service import create_embedding_provider
from codeweave_mcp.indexing.generator import Generator
from codeweave_mcp.indexing.inclusion_filter import InclusionFilter
from codeweave_mcp.indexing.indexer import Indexer
from codeweave_mcp.indexing.vector_query import VectorQuery
from codeweave_mcp.indexing.vector_store import VectorStore
from codeweave_mcp.parsers.code_parser import CodeParser
from codeweave_mcp.parsers.treesitter_parser import TreeSitterSymbolRetriever

logger = logging.getLogger(__name__)

CHROMA_DIR = 'chroma'


class CodeIndexService:
    """Facade over indexer, queue and query path for one workspace."""

    def __init__(
        self,
        workspace_root: str,
        config: Optional[IndexerConfig] = None,
        embedding_provider: Optional[IEmbeddingProvider] = None,
        language_model: Optional[ILanguageModel] = None,
        symbol_retriever: Optional[ISymbolRetriever] = None,
    ):
        """
        Args:
            workspace_root: Directory to index
            config: Indexer settings (defaults apply when omitted)
            embedding_provider: Overrides the provider named in the config
            language_model: Enables descriptions and prose project summaries
            symbol_retriever: Overrides the tree-sitter outline provider

        Raises:
            ConfigurationError: If the workspace is not a directory
        """
        root = Path(workspace_root).resolve()
        if not root.is_dir():
            raise ConfigurationError(f"Workspace is not a directory: {root}")

        self.workspace_root = root
        self.config = config or IndexerConfig()
        self.language_model = language_model
        self._embedding_override = embedding_provider
        self._retriever_override = symbol_retriever

        self._lock = threading.Lock()
        self.embedding_provider: Optional[IEmbeddingProvider] = None
        self.store: Optional[VectorStore] = None
        self.graph: Optional[CodeGraph] = None
        self.indexer: Optional[Indexer] = None
        self.queue: Optional[DocumentQueue] = None
        self.vector_query = VectorQuery(
            expansion_cap=self.config.expansion_cap,
            max_document_chars=self.config.max_document_chars,
        )
        self.project_details = ""
        self._inclusion_filter = InclusionFilter(self.config.include, self.config.exclude)

    @property
    def enabled(self) -> bool:
        return self.config.embedding.enabled

    @property
    def is_initialized(self) -> bool:
        return self.indexer is not None

    @property
    def storage_dir(self) -> Path:
        return self.workspace_root / self.config.storage_dir

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def initialize(self) -> bool:
        """
        Build the object graph and restore any existing index.

        Returns:
            True if an existing index was found and loaded

        Raises:
            StoreUnavailableError: If the vector store cannot be opened
        """
        if not self.enabled:
            logger.info("Embedding disabled; code index not initialized")
            return False

        with self._lock:
            self._teardown()

            if self.embedding_provider is None:
                self.embedding_provider = self._embedding_override or create_embedding_provider(
                    self.config.embedding
                )

            store = VectorStore(
                str(self.storage_dir / CHROMA_DIR),
                self.embedding_provider,
                collection_name=self.config.collection_name,
            )
            store.initialize()

            retriever = self._retriever_override or TreeSitterSymbolRetriever(str(self.workspace_root))
            graph = CodeGraph()
            indexer = Indexer(
                str(self.workspace_root),
                CodeParser(retriever, str(self.workspace_root), self.config.max_document_chars),
                Generator(self.embedding_provider, self.language_model, self.config.describe_chunks),
                graph,
                store,
                inclusion_filter=self._inclusion_filter,
                parallel=self.config.parallel,
                max_workers=self.config.max_workers,
            )

            self.store, self.graph, self.indexer = store, graph, indexer
            self.queue = DocumentQueue(indexer.process_documents, self.config.quiet_interval_seconds)

            exists = store.index_exists()
            if exists:
                indexer.load_from_store()
                self.project_details = indexer.generator.summarize_project(graph.get_symbol_table())

        logger.info(f"Code index initialized for {self.workspace_root} (existing index: {exists})")
        return exists

    def close(self) -> None:
        """Cancel indexing and stop the queue."""
        with self._lock:
            self._teardown()

    def _teardown(self) -> None:
        if self.queue is not None:
            self.queue.dispose()
        if self.indexer is not None:
            self.indexer.cancel()
        if self.store is not None:
            self.store.close()
        self.queue = None
        self.indexer = None
        self.graph = None
        self.store = None

    # =========================================================================
    # Exposed operations
    # =========================================================================

    def get_index_status(self) -> IndexStatus:
        indexer = self.indexer
        if indexer is None:
            return IndexStatus(exists=False, syncing=False, files=[])
        return IndexStatus(
            exists=indexer.store.index_exists(),
            syncing=indexer.is_syncing(),
            files=indexer.graph.files(),
        )

    def full_index_build(self, files: Optional[List[str]] = None) -> IndexResult:
        """
        Force a complete re-embedding pass.

        Args:
            files: Paths to rebuild; the whole workspace when omitted
        """
        indexer = self.indexer
        if indexer is None:
            return IndexResult()

        if files:
            result = indexer.process_documents(files, force_full=True)
        else:
            result = indexer.scan_workspace(force_full=True)

        self._refresh_project_details(indexer)
        return result

    def scan_workspace(self) -> IndexResult:
        """Incremental pass over the workspace (only changed files re-embedded)."""
        indexer = self.indexer
        if indexer is None:
            return IndexResult()
        result = indexer.scan_workspace(force_full=False)
        if result.processed or result.deleted:
            self._refresh_project_details(indexer)
        return result

    def _refresh_project_details(self, indexer: Indexer) -> None:
        # A pass that outlived delete_index must not overwrite the fresh state
        if indexer is self.indexer:
            self.project_details = indexer.generator.summarize_project(indexer.graph.get_symbol_table())

    def delete_index(self) -> None:
        """
        Clear store, graph and cache, returning to the pre-index state.

        The old indexer is cancelled (in-flight work finishes and is
        discarded) and a fresh, empty object graph takes its place.
        """
        if self.indexer is None:
            return
        with self._lock:
            store = self.store
            self._teardown()
            store.delete_index()
            self.project_details = ""
        self.initialize()
        logger.info(f"Index deleted for {self.workspace_root}")

    def delete_file_from_index(self, path: str) -> bool:
        if self.indexer is None:
            return False
        return self.indexer.delete_file(path)

    def query(self, text: str, k: Optional[int] = None) -> QueryResult:
        """Related code for a query; empty when nothing is indexed."""
        indexer = self.indexer
        if indexer is None:
            return QueryResult()
        result = self.vector_query.retrieve_documents_with_related_code(
            text,
            indexer.graph,
            indexer.store,
            str(self.workspace_root),
            k or self.config.default_k,
        )
        return QueryResult(
            documents=result.documents,
            paths=result.paths,
            project_details=self.project_details,
        )

    def handle_file_change(self, change: FileChange) -> None:
        """
        Route a change notification.

        Created and modified files go through the queue; deletions are
        queued too, since a missing file is removed when its batch runs.
        """
        if self.queue is None:
            return
        logger.debug(f"File {change.change_kind.value}: {change.path}")
        self.queue.enqueue(change.path)

    def set_inclusion_filter(self, spec: Any) -> InclusionFilter:
        """
        Replace the inclusion filter for later scans.

        Raises:
            InvalidFilterError: If the specification is malformed
        """
        new_filter = InclusionFilter.from_spec(spec)
        self._inclusion_filter = new_filter
        if self.indexer is not None:
            self.indexer.set_inclusion_filter(new_filter)
        return new_filter

    @property
    def inclusion_filter(self) -> InclusionFilter:
        return self._inclusion_filter

    def wait_for_idle(self, timeout: Optional[float] = None) -> bool:
        if self.queue is None:
            return True
        return self.queue.wait_for_idle(timeout)
