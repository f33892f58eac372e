"""Custom exceptions for CodeWeave MCP.

This module defines a hierarchy of exceptions for better error handling
and debugging throughout the indexing and retrieval engine.

Per-file failures (``TransientFileError`` and its subclasses) are recovered
inside an indexing pass: the file is skipped and the pass continues. The
remaining exceptions are surfaced to the caller of the failing operation.

Usage:
    from codeweave_mcp.core.exceptions import ParseError, StoreUnavailableError

    try:
        store.initialize()
    except StoreUnavailableError as e:
        print(f"Cannot open index: {e}")
"""


class CodeWeaveException(Exception):
    """Base exception for all CodeWeave operations.

    All custom exceptions in CodeWeave inherit from this class,
    allowing for broad exception catching when needed.
    """
    pass


class TransientFileError(CodeWeaveException):
    """Raised when a single file cannot be parsed, outlined or embedded.

    Recovered locally by the indexer: the file is skipped and the rest of
    the batch continues.

    Attributes:
        filepath: Workspace-relative path of the failing file
        details: Specific error details
    """

    def __init__(self, filepath: str, details: str, message: str = ""):
        self.filepath = filepath
        self.details = details
        super().__init__(message or f"{filepath}: {details}")


class ParseError(TransientFileError):
    """Raised when file parsing or symbol outlining fails.

    Attributes:
        filepath: Path to the file that failed to parse
        language: Detected language of the file
        details: Specific error details
    """

    def __init__(self, filepath: str, language: str, details: str):
        self.language = language
        super().__init__(
            filepath, details, f"Failed to parse {filepath} ({language}): {details}"
        )


class EmbeddingError(TransientFileError):
    """Raised when embedding generation fails.

    This covers failures in the embedding providers including:
    - Model loading failures
    - Encoding errors
    - Embedding server connection/HTTP errors
    """

    def __init__(self, details: str, filepath: str = ""):
        super().__init__(filepath, details, f"{filepath}: {details}" if filepath else details)


class StoreUnavailableError(CodeWeaveException):
    """Raised when the vector store cannot be opened or created.

    Indexing does not start until this is resolved.
    """
    pass


class InvalidFilterError(CodeWeaveException):
    """Raised when an inclusion filter specification is malformed.

    The previously active filter stays in effect.
    """
    pass


class QueueDisposedError(CodeWeaveException):
    """Signals use of a disposed document queue.

    ``DocumentQueue.enqueue`` after ``dispose`` is a logged no-op and never
    raises this; it exists for callers that want to assert on queue liveness.
    """
    pass


class IndexingError(CodeWeaveException):
    """Raised when an indexing pass fails as a whole.

    This covers failures outside any single file, such as workspace
    discovery errors or vector store write failures affecting every file.
    """
    pass


class SearchError(CodeWeaveException):
    """Raised when semantic search fails.

    Used internally on the read path; ``VectorQuery`` logs it and returns a
    partial or empty result instead of propagating it.
    """
    pass


class ConfigurationError(CodeWeaveException):
    """Raised when configuration is invalid.

    This covers failures related to:
    - Unknown embedding providers
    - Invalid numeric settings
    - Invalid workspace paths
    """
    pass
