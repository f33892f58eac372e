"""
Parallel parse stage for large indexing batches.

Parsing (outline + chunking + edge resolution) is CPU-bound and independent
per file, so it runs in a ThreadPoolExecutor. Embedding and store/graph
writes stay sequential in the indexer, one file at a time.

Performance:
    - Worthwhile from a few dozen files upwards; the indexer only uses it
      for batches of more than 10 files
    - The tree-sitter retriever keeps one parser per thread, so workers do
      not contend on parser instances

Usage:
    >>> results, errors = parallel_parse_documents(parser, [("a.py", text)], max_workers=4)
"""

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from codeweave_mcp.core.models import ParseResult
from codeweave_mcp.parsers.code_parser import CodeParser

logger = logging.getLogger(__name__)


@dataclass
class ParallelProgress:
    """
    Thread-safe progress counters for the parse stage.

    Attributes:
        total: Total number of files to parse
    """
    total: int
    _completed: int = 0
    _errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock)

    @property
    def completed(self) -> int:
        with self._lock:
            return self._completed

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors

    def increment_completed(self) -> int:
        """Increment the completed count and return the new value."""
        with self._lock:
            self._completed += 1
            return self._completed

    def increment_errors(self) -> int:
        with self._lock:
            self._errors += 1
            return self._errors


def default_worker_count() -> int:
    """CPU count - 1 (leave a core for the caller), between 1 and 32."""
    cpu_count = os.cpu_count() or 4
    return max(1, min(cpu_count - 1, 32))


def parallel_parse_documents(
    parser: CodeParser,
    documents: Sequence[Tuple[str, str]],
    max_workers: Optional[int] = None,
    progress_callback: Optional[Callable[[str, Dict[str, Any]], None]] = None,
) -> Tuple[Dict[str, ParseResult], Dict[str, str]]:
    """
    Parse many (path, text) documents concurrently.

    Args:
        parser: Code parser shared by all workers (must be thread-safe)
        documents: (workspace-relative path, file text) pairs
        max_workers: Worker threads (default: ``default_worker_count()``)
        progress_callback: Called with (event_type, data) for
            'file_parsed' and 'parse_error' events

    Returns:
        Tuple of (results by path, error message by path). A degraded parse
        (outline failed, whole-file chunk produced) is a result, not an error.
    """
    if not documents:
        return {}, {}

    progress = ParallelProgress(total=len(documents))
    results: Dict[str, ParseResult] = {}
    errors: Dict[str, str] = {}

    def emit(event_type: str, data: dict):
        if progress_callback:
            try:
                progress_callback(event_type, data)
            except Exception as e:
                logger.debug(f"Progress callback failed: {e}")

    with ThreadPoolExecutor(max_workers=max_workers or default_worker_count()) as executor:
        future_to_path = {
            executor.submit(parser.parse_file, path, text): path
            for path, text in documents
        }

        for future in as_completed(future_to_path):
            path = future_to_path[future]
            completed = progress.increment_completed()
            try:
                result = future.result()
            except Exception as e:
                progress.increment_errors()
                errors[path] = str(e)
                logger.warning(f"Parse failed for {path}: {e}")
                emit("parse_error", {"path": path, "error": str(e)})
                continue

            results[path] = result
            emit("file_parsed", {
                "path": path,
                "chunks": len(result.chunks),
                "index": completed,
                "total": progress.total,
            })

    logger.debug(f"Parallel parse: {len(results)} parsed, {progress.errors} errors")
    return results, errors
