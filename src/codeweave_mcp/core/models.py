"""
Core data models for CodeWeave MCP.

This module defines the fundamental data structures used throughout the system
for representing symbols, chunks, graph edges, vector entries and the results
of indexing and query operations.

All models are designed for:
- Immutability (frozen dataclasses where the value is never edited in place)
- Serialization (JSON-compatible via to_dict/from_dict where persisted)
- Type safety (comprehensive type hints)

Paths stored in these models are workspace-relative POSIX paths.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple


class SymbolKind(Enum):
    """
    Enumeration of code symbol kinds reported by the symbol retriever.

    Attributes:
        FUNCTION: Standalone function definition
        CLASS: Class, struct, interface or type declaration
        METHOD: Method within a class
        VARIABLE: Module-level constant
    """
    FUNCTION = "function"
    CLASS = "class"
    METHOD = "method"
    VARIABLE = "variable"

    def __str__(self) -> str:
        """String representation for serialization."""
        return self.value

    @classmethod
    def from_string(cls, value: str) -> 'SymbolKind':
        """
        Create SymbolKind from string value.

        Raises:
            ValueError: If value doesn't match any SymbolKind
        """
        for member in cls:
            if member.value == value.lower():
                return member
        raise ValueError(f"Invalid SymbolKind: {value}")


class ChangeKind(Enum):
    """Kind of a file change notification."""
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"

    @classmethod
    def from_string(cls, value: str) -> 'ChangeKind':
        for member in cls:
            if member.value == value.lower():
                return member
        raise ValueError(f"Invalid ChangeKind: {value}")


@dataclass(frozen=True)
class SourceRange:
    """
    A span in a source file.

    Lines and characters are 0-based, matching editor symbol providers and
    tree-sitter points. The end position is inclusive of the last line.
    """
    start_line: int
    start_character: int
    end_line: int
    end_character: int

    def __post_init__(self):
        if self.start_line < 0 or self.start_character < 0:
            raise ValueError(f"Range start must be >= 0, got {self.start_line}:{self.start_character}")
        if (self.end_line, self.end_character) < (self.start_line, self.start_character):
            raise ValueError(
                f"Range end {self.end_line}:{self.end_character} precedes "
                f"start {self.start_line}:{self.start_character}"
            )

    def to_dict(self) -> Dict[str, int]:
        return {
            'start_line': self.start_line,
            'start_character': self.start_character,
            'end_line': self.end_line,
            'end_character': self.end_character,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, int]) -> 'SourceRange':
        return cls(**data)


@dataclass(frozen=True)
class SymbolRecord:
    """
    A single symbol from a file's outline.

    Derived entirely from the symbol retriever's output at index time and
    immutable until the file is re-indexed.

    Attributes:
        name: Identifier of the symbol (e.g., "login_user", "UserClass")
        kind: Kind of symbol
        range: Source range covered by the symbol
        filepath: Workspace-relative path of the parent file
        children: Nested symbols (e.g., methods of a class)
    """
    name: str
    kind: SymbolKind
    range: SourceRange
    filepath: str
    children: Tuple['SymbolRecord', ...] = ()

    def __post_init__(self):
        if not self.name:
            raise ValueError("Symbol name cannot be empty")
        if not self.filepath:
            raise ValueError("Symbol filepath cannot be empty")
        if not isinstance(self.kind, SymbolKind):
            raise ValueError(f"kind must be SymbolKind enum, got {type(self.kind)}")

    def walk(self) -> Iterator['SymbolRecord']:
        """Yield this symbol and all nested symbols, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'kind': self.kind.value,
            'range': self.range.to_dict(),
            'filepath': self.filepath,
            'children': [c.to_dict() for c in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SymbolRecord':
        return cls(
            name=data['name'],
            kind=SymbolKind.from_string(data['kind']),
            range=SourceRange.from_dict(data['range']),
            filepath=data['filepath'],
            children=tuple(cls.from_dict(c) for c in data.get('children', [])),
        )


@dataclass(frozen=True)
class FileRecord:
    """
    An indexed file: one per Code Graph node.

    Created on first successful index, replaced when the content hash
    changes, removed on deletion.
    """
    path: str
    content_hash: str = ""
    language: str = "unknown"
    symbols: Tuple[SymbolRecord, ...] = ()

    def __post_init__(self):
        if not self.path:
            raise ValueError("FileRecord path cannot be empty")


@dataclass(frozen=True)
class GraphEdge:
    """
    Directed file -> file edge: `source` imports `target`.

    Read in reverse, the same edge says `target` is referenced by `source`.
    """
    source: str
    target: str


@dataclass(frozen=True)
class Chunk:
    """
    A contiguous span of a file's text selected for embedding.

    Whole-file chunks carry no symbol. Chunks only live for the duration
    of an indexing pass; the durable artifact is the vector entry.
    """
    id: str
    filepath: str
    text: str
    language: str
    symbol: Optional[SymbolRecord] = None
    chunk_index: int = 0

    @property
    def is_whole_file(self) -> bool:
        return self.symbol is None

    @property
    def symbol_name(self) -> str:
        return self.symbol.name if self.symbol else ""


@dataclass(frozen=True)
class ParseResult:
    """
    Output of ``CodeParser.parse_file``.

    ``error`` is set when the outline failed and the parser degraded to
    whole-file chunking; chunks are still usable in that case.
    """
    filepath: str
    language: str
    chunks: Tuple[Chunk, ...] = ()
    edges: Tuple[GraphEdge, ...] = ()
    symbols: Tuple[SymbolRecord, ...] = ()
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class VectorEntry:
    """A stored chunk embedding with the metadata needed for staleness checks."""
    chunk_id: str
    filepath: str
    embedding: List[float]
    content_hash: str
    text: str = ""
    description: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VectorHit:
    """One nearest-neighbour result from the vector store."""
    chunk_id: str
    filepath: str
    score: float
    text: str
    symbol: str = ""
    description: str = ""
    line_start: int = 0


@dataclass(frozen=True)
class StoredFileState:
    """What the vector store remembers about one file (used to rebuild state)."""
    path: str
    content_hash: str
    language: str = "unknown"
    symbols: Tuple[SymbolRecord, ...] = ()
    edges: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FileChange:
    """A change notification from the file event handler."""
    path: str
    change_kind: ChangeKind

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> 'FileChange':
        return cls(path=data['path'], change_kind=ChangeKind.from_string(data['change_kind']))


@dataclass
class IndexResult:
    """
    Summary of one ``process_documents`` pass.

    Attributes:
        requested: Number of paths handed to the pass
        processed: Files parsed, embedded and written
        skipped: Files left untouched (unchanged hash or cancelled pass);
            also missing paths that were never indexed
        excluded: Paths rejected by the inclusion filter or outside the workspace
        failed: Files that hit a transient per-file error
        deleted: Paths that no longer existed and were removed from the index
        errors: Mapping of path -> error message for failed files
        duration_seconds: Wall time of the pass
    """
    requested: int = 0
    processed: int = 0
    skipped: int = 0
    excluded: int = 0
    failed: int = 0
    deleted: int = 0
    errors: Dict[str, str] = field(default_factory=dict)
    duration_seconds: float = 0.0

    @property
    def is_partial(self) -> bool:
        return self.failed > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'requested': self.requested,
            'processed': self.processed,
            'skipped': self.skipped,
            'excluded': self.excluded,
            'failed': self.failed,
            'deleted': self.deleted,
            'errors': dict(self.errors),
            'duration_seconds': round(self.duration_seconds, 3),
        }


@dataclass(frozen=True)
class IndexStatus:
    """Snapshot returned by ``get_index_status``."""
    exists: bool
    syncing: bool
    files: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {'exists': self.exists, 'syncing': self.syncing, 'files': list(self.files)}


@dataclass(frozen=True)
class CodeDocument:
    """
    One entry of a related-code query result.

    Attributes:
        filepath: Workspace-relative path
        text: Chunk text (vector hits) or file excerpt (graph expansions)
        score: Similarity of the hit; graph expansions carry the score of
            the hit they were expanded from
        source: "vector" for direct hits, "graph" for expansions
        symbol: Symbol name of the matching chunk, if any
        related_to: For graph expansions, the hit file they came from
    """
    filepath: str
    text: str
    score: float
    source: str = "vector"
    symbol: str = ""
    related_to: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'filepath': self.filepath,
            'text': self.text,
            'score': self.score,
            'source': self.source,
            'symbol': self.symbol,
            'related_to': self.related_to,
        }


@dataclass(frozen=True)
class QueryResult:
    """Ranked documents plus the set of contributing paths."""
    documents: List[CodeDocument] = field(default_factory=list)
    paths: List[str] = field(default_factory=list)
    project_details: str = ""

    @property
    def ranked_paths(self) -> List[str]:
        return [d.filepath for d in self.documents]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'documents': [d.to_dict() for d in self.documents],
            'paths': list(self.paths),
            'project_details': self.project_details,
        }
