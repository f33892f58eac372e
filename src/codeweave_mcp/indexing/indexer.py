"""
Indexer: parse -> embed -> store -> graph for batches of workspace files.

The indexer is the only writer of the Code Graph and the only initiator of
Vector Store writes. It owns:

- the inclusion filter (which paths are indexed at all)
- the content-hash cache (skip files whose content did not change)
- the sync state reported by ``is_syncing``

Per-file atomicity:
    For each file, the store write happens first, the graph update second,
    and the cache hash is updated last. A failure part-way leaves the old
    hash in the cache, so the file is retried on the next pass instead of
    being skipped with mismatched entries.

Failure policy:
    Errors for one file (unreadable, embedding failed, ...) are logged and
    counted; the pass continues with the remaining files.

Usage:
    indexer = Indexer(root, parser, generator, graph, store)
    indexer.load_from_store()
    result = indexer.process_documents(["src/app.py"])
    print(result.processed, result.failed)
"""

import hashlib
import logging
import threading
import time
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from codeweave_mcp.core.exceptions import StoreUnavailableError, TransientFileError
from codeweave_mcp.core.models import (
    GraphEdge,
    IndexResult,
    ParseResult,
    StoredFileState,
    VectorEntry,
)
from codeweave_mcp.graph.code_graph import CodeGraph
from codeweave_mcp.indexing.generator import Generator
from codeweave_mcp.indexing.inclusion_filter import InclusionFilter
from codeweave_mcp.indexing.parallel_indexer import parallel_parse_documents
from codeweave_mcp.indexing.vector_store import VectorStore
from codeweave_mcp.parsers.code_parser import CodeParser

logger = logging.getLogger(__name__)

# Batches above this size use the parallel parse stage (when enabled)
PARALLEL_THRESHOLD = 10


class IndexerState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    PROCESSING = "processing"


def content_hash(text: str) -> str:
    """SHA-256 hex digest of file text."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


class Indexer:
    """Incremental indexer for one workspace."""

    def __init__(
        self,
        workspace_root: str,
        code_parser: CodeParser,
        generator: Generator,
        graph: CodeGraph,
        store: VectorStore,
        inclusion_filter: Optional[InclusionFilter] = None,
        parallel: bool = False,
        max_workers: Optional[int] = None,
    ):
        self.workspace_root = Path(workspace_root).resolve()
        self.code_parser = code_parser
        self.generator = generator
        self.graph = graph
        self.store = store
        self.inclusion_filter = inclusion_filter or InclusionFilter()
        self.parallel = parallel
        self.max_workers = max_workers

        self._cache: Dict[str, str] = {}
        self._cache_loaded = False
        # One pass at a time; re-entrant so a pass can delete files
        self._pass_lock = threading.RLock()
        self._cancelled = threading.Event()
        self._state = IndexerState.IDLE

    # =========================================================================
    # State
    # =========================================================================

    @property
    def state(self) -> IndexerState:
        return self._state

    def is_syncing(self) -> bool:
        return self._state is not IndexerState.IDLE

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """
        Stop writing. The current file finishes; remaining files of the
        pass, and every later pass, are reported as skipped.
        """
        self._cancelled.set()
        logger.info("Indexer cancelled")

    def cached_hash(self, relpath: str) -> Optional[str]:
        self._ensure_cache()
        return self._cache.get(relpath)

    # =========================================================================
    # Paths
    # =========================================================================

    def normalize_path(self, path: str) -> Optional[str]:
        """
        Workspace-relative POSIX form of a path, or None if it lies outside
        the workspace.
        """
        candidate = Path(path)
        if not candidate.is_absolute():
            candidate = self.workspace_root / candidate
        try:
            relpath = candidate.resolve().relative_to(self.workspace_root).as_posix()
        except ValueError:
            return None
        return None if relpath in ('', '.') else relpath

    def workspace_files(self) -> List[str]:
        """Every path under the workspace accepted by the inclusion filter."""
        return list(self.inclusion_filter.walk(self.workspace_root))

    # =========================================================================
    # Operations
    # =========================================================================

    def load_from_store(self) -> int:
        """
        Rebuild the Code Graph and the hash cache from the Vector Store.

        Returns:
            Number of files restored
        """
        with self._pass_lock:
            states = self.store.load_file_states()
            self.graph.clear()
            self._cache.clear()
            for state in states:
                self.graph.upsert_file(
                    state.path,
                    state.symbols,
                    [GraphEdge(state.path, target) for target in state.edges],
                    language=state.language,
                    content_hash=state.content_hash,
                )
                self._cache[state.path] = state.content_hash
            self._cache_loaded = True

        logger.info(f"Restored {len(states)} files from the vector store")
        return len(states)

    def process_documents(self, paths: Sequence[str], force_full: bool = False) -> IndexResult:
        """
        Index a batch of files.

        Unchanged files (same content hash as the cache) are skipped unless
        ``force_full``. Missing files are removed from the index.

        Args:
            paths: Absolute or workspace-relative paths
            force_full: Re-index even when the hash is unchanged

        Returns:
            IndexResult with per-outcome counts and per-file errors
        """
        unique = list(dict.fromkeys(self.normalize_path(p) or p for p in paths))
        result = IndexResult(requested=len(unique))
        start_time = time.time()

        with self._pass_lock:
            self._state = IndexerState.SCANNING
            try:
                self._ensure_cache()
                jobs = self._collect_jobs(unique, force_full, result)
                self._state = IndexerState.PROCESSING
                parsed, parse_errors = self._parse_jobs(jobs)

                for relpath, text, file_hash in jobs:
                    if self.cancelled:
                        result.skipped += 1
                        continue
                    if relpath in parse_errors:
                        self._record_failure(result, relpath, parse_errors[relpath])
                        continue
                    try:
                        if self._index_file(relpath, text, file_hash, parsed[relpath]):
                            result.processed += 1
                        else:
                            result.skipped += 1
                    except StoreUnavailableError as e:
                        if self.cancelled:
                            result.skipped += 1
                        else:
                            self._record_failure(result, relpath, str(e))
                    except TransientFileError as e:
                        self._record_failure(result, relpath, str(e))
                    except Exception as e:
                        logger.warning(f"Unexpected error indexing {relpath}", exc_info=True)
                        self._record_failure(result, relpath, f"{type(e).__name__}: {e}")
            finally:
                self._state = IndexerState.IDLE

        result.duration_seconds = time.time() - start_time
        logger.info(
            f"Indexed {result.processed}/{result.requested} files "
            f"(skipped {result.skipped}, excluded {result.excluded}, "
            f"deleted {result.deleted}, failed {result.failed}) "
            f"in {result.duration_seconds:.2f}s"
        )
        return result

    def scan_workspace(self, force_full: bool = False) -> IndexResult:
        """
        Walk the workspace through the inclusion filter and index it.

        Files that are indexed but no longer present on disk are deleted.
        Indexed files that the current filter rejects are left untouched.
        """
        with self._pass_lock:
            self._state = IndexerState.SCANNING
            try:
                found = self.workspace_files()
                found_set = set(found)
                self._ensure_cache()
                vanished = [
                    p for p in sorted(self._cache)
                    if p not in found_set and not (self.workspace_root / p).exists()
                ]
            finally:
                self._state = IndexerState.IDLE
            logger.info(f"Scan found {len(found)} files ({len(vanished)} indexed files gone)")
            return self.process_documents(found + vanished, force_full=force_full)

    def delete_file(self, path: str) -> bool:
        """
        Remove a file's vector entries, graph node and cache entry.

        Idempotent: deleting an unknown path is a no-op.

        Returns:
            True if anything was removed
        """
        relpath = self.normalize_path(path)
        if relpath is None:
            return False

        with self._pass_lock:
            removed_entries = self.store.delete_file(relpath)
            removed_node = self.graph.remove_file(relpath)
            removed_hash = self._cache.pop(relpath, None) is not None

        removed = bool(removed_entries) or removed_node or removed_hash
        if removed:
            logger.info(f"Removed {relpath} from index")
        return removed

    def set_inclusion_filter(self, spec: Any) -> InclusionFilter:
        """
        Replace the inclusion filter for subsequent scans.

        Already-indexed files outside the new filter are not removed.

        Raises:
            InvalidFilterError: If ``spec`` is malformed (the old filter stays)
        """
        new_filter = InclusionFilter.from_spec(spec)
        self.inclusion_filter = new_filter
        logger.info(f"Inclusion filter set: {new_filter!r}")
        return new_filter

    def clear_cache(self) -> None:
        """
        Drop the in-memory hash cache.

        The next pass re-reads stored hashes from the vector store and
        compares again; unchanged files are still not re-embedded.
        """
        with self._pass_lock:
            self._cache.clear()
            self._cache_loaded = False
        logger.debug("Hash cache cleared")

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _ensure_cache(self) -> None:
        if not self._cache_loaded:
            self._cache.update(self.store.get_file_hashes())
            self._cache_loaded = True

    def _collect_jobs(
        self, paths: Sequence[str], force_full: bool, result: IndexResult
    ) -> List[Tuple[str, str, str]]:
        """Filter, read and hash-check; returns (relpath, text, hash) to index."""
        jobs: List[Tuple[str, str, str]] = []
        for path in paths:
            if self.cancelled:
                result.skipped += 1
                continue
            relpath = self.normalize_path(path)
            if relpath is None or not self.inclusion_filter.matches(relpath):
                if relpath is not None and relpath in self._cache and not (self.workspace_root / relpath).exists():
                    # An indexed file that vanished is removed even if the filter changed since
                    self._delete_missing(relpath, result)
                    continue
                logger.debug(f"Excluded: {path}")
                result.excluded += 1
                continue

            abs_path = self.workspace_root / relpath
            if not abs_path.is_file():
                self._delete_missing(relpath, result)
                continue

            try:
                text = abs_path.read_bytes().decode('utf-8')
            except (OSError, UnicodeDecodeError) as e:
                self._record_failure(result, relpath, f"Cannot read file: {e}")
                continue

            file_hash = content_hash(text)
            if not force_full and self._cache.get(relpath) == file_hash:
                result.skipped += 1
                continue

            jobs.append((relpath, text, file_hash))
        return jobs

    def _parse_jobs(
        self, jobs: List[Tuple[str, str, str]]
    ) -> Tuple[Dict[str, ParseResult], Dict[str, str]]:
        if self.parallel and len(jobs) > PARALLEL_THRESHOLD:
            return parallel_parse_documents(
                self.code_parser,
                [(relpath, text) for relpath, text, _ in jobs],
                max_workers=self.max_workers,
            )

        parsed: Dict[str, ParseResult] = {}
        errors: Dict[str, str] = {}
        for relpath, text, _ in jobs:
            try:
                parsed[relpath] = self.code_parser.parse_file(relpath, text)
            except Exception as e:
                logger.warning(f"Parse failed for {relpath}: {e}")
                errors[relpath] = str(e)
        return parsed, errors

    def _index_file(self, relpath: str, text: str, file_hash: str, parsed: ParseResult) -> bool:
        """Embed and write one file. Returns False if cancelled before the write."""
        chunks = list(parsed.chunks)
        descriptions = [self.generator.describe(chunk) for chunk in chunks]
        texts = [self.generator.embedding_text(c, d) for c, d in zip(chunks, descriptions)]
        vectors = self.generator.embed_batch(texts)

        entries = []
        for chunk, description, vector in zip(chunks, descriptions, vectors):
            symbol = chunk.symbol
            entries.append(VectorEntry(
                chunk_id=chunk.id,
                filepath=relpath,
                embedding=vector,
                content_hash=file_hash,
                text=chunk.text,
                description=description,
                metadata={
                    'symbol': chunk.symbol_name,
                    'kind': symbol.kind.value if symbol else "file",
                    'language': chunk.language,
                    'line_start': symbol.range.start_line + 1 if symbol else 1,
                    'line_end': symbol.range.end_line + 1 if symbol else text.count('\n') + 1,
                    'chunk_index': chunk.chunk_index,
                },
            ))

        state = StoredFileState(
            path=relpath,
            content_hash=file_hash,
            language=parsed.language,
            symbols=parsed.symbols,
            edges=tuple(edge.target for edge in parsed.edges),
        )

        # The index may have been dropped while this file was embedding
        if self.cancelled:
            logger.debug(f"Cancelled before writing {relpath}")
            return False

        self.store.upsert_file(relpath, entries, state)
        self.graph.upsert_file(
            relpath,
            parsed.symbols,
            parsed.edges,
            language=parsed.language,
            content_hash=file_hash,
        )
        self._cache[relpath] = file_hash
        logger.debug(f"Indexed {relpath}: {len(entries)} chunks, {len(parsed.edges)} edges")
        return True

    def _delete_missing(self, relpath: str, result: IndexResult) -> None:
        try:
            removed = self.delete_file(relpath)
        except StoreUnavailableError as e:
            self._record_failure(result, relpath, str(e))
            return
        if removed:
            result.deleted += 1
        else:
            result.skipped += 1

    def _record_failure(self, result: IndexResult, relpath: str, message: str) -> None:
        result.failed += 1
        result.errors[relpath] = message
        logger.warning(f"Failed to index {relpath}: {message}")
