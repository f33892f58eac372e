"""
Abstract interfaces for CodeWeave MCP components.

This module defines the contracts at the boundary with collaborators that
the indexing engine consumes but does not own. Each interface represents a
swappable component.

Design Philosophy:
    - Interface Segregation: Each interface has a single, focused responsibility
    - Dependency Inversion: The indexer and query path depend on these abstractions
    - Selected once: providers are chosen at construction time; nothing
      downstream branches on which implementation it received

When to implement each interface:
    - ISymbolRetriever: When outlines come from somewhere other than tree-sitter
      (e.g., an editor's document-symbol provider)
    - IEmbeddingProvider: When adding a new embedding backend
    - ILanguageModel: When wiring a chat/completion client for descriptions
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .models import SymbolRecord


class ISymbolRetriever(ABC):
    """Abstract interface for symbol outline providers.

    Given a file, returns its symbol outline (functions, classes, ranges).

    Implementation considerations:
        - Files in languages the provider does not know return an empty list
        - Failures raise ``ParseError``; the code parser degrades to
          whole-file chunking instead of failing the batch
        - Implementations used with the parallel parse stage must be
          thread-safe

    Example implementation:
        >>> class EditorSymbolRetriever(ISymbolRetriever):
        ...     def get_symbols(self, filepath, text=None):
        ...         return self.client.document_symbols(filepath)
    """

    @abstractmethod
    def get_symbols(self, filepath: str, text: Optional[str] = None) -> List[SymbolRecord]:
        """Return the top-level symbols of a file, with nested children.

        Args:
            filepath: Workspace-relative path, used as the symbol's parent file
            text: File content; implementations read the file when omitted

        Returns:
            Top-level SymbolRecord list (possibly empty)

        Raises:
            ParseError: If the outline cannot be produced
        """
        pass  # pragma: no cover

    def supports(self, filepath: str) -> bool:
        """Return True if this retriever knows the file's language."""
        return True


class IEmbeddingProvider(ABC):
    """Abstract interface for embedding backends.

    One capability: turn text into a fixed-length vector. The same provider
    instance must be used for indexing and querying; mixing models
    invalidates similarity scores.
    """

    model_name: str = ""

    @abstractmethod
    def embed(self, text: str, is_query: bool = False) -> List[float]:
        """Embed a single text.

        Raises:
            EmbeddingError: If the backend fails
        """
        pass  # pragma: no cover

    @abstractmethod
    def embed_batch(self, texts: List[str], is_query: bool = False) -> List[List[float]]:
        """Embed many texts, preserving order.

        Raises:
            EmbeddingError: If the backend fails
        """
        pass  # pragma: no cover

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Vector length produced by this provider."""
        pass  # pragma: no cover


class ILanguageModel(ABC):
    """Chat/completion client used to generate descriptions.

    The client itself lives outside this package; only this call is consumed.
    """

    @abstractmethod
    def complete(self, prompt: str) -> str:
        """Return the model's text response for a prompt."""
        pass  # pragma: no cover
