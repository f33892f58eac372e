"""
CodeWeave MCP - hybrid graph + vector code index served over MCP.

Indexes a workspace into a file dependency graph plus a vector store of
embedded code chunks, keeps both consistent as files change, and answers
"related code" queries that combine embedding similarity with one-hop
graph expansion.

Usage:
    # As an MCP server
    codeweave-mcp

    # Programmatic usage
    from codeweave_mcp import CodeIndexService
    service = CodeIndexService("/path/to/repo")
    service.initialize()
    service.full_index_build()
    result = service.query("where is the session token refreshed?")
"""

__version__ = "0.1.0"
__author__ = "CodeWeave Contributors"


# Lazy imports to avoid loading heavy dependencies at import time
def __getattr__(name: str):
    """Lazy import heavy modules only when accessed."""
    if name == "CodeIndexService":
        from codeweave_mcp.indexing.service import CodeIndexService

        return CodeIndexService
    elif name == "IndexerConfig":
        from codeweave_mcp.core.config import IndexerConfig

        return IndexerConfig
    elif name == "EmbeddingConfig":
        from codeweave_mcp.core.config import EmbeddingConfig

        return EmbeddingConfig
    elif name == "CodeGraph":
        from codeweave_mcp.graph.code_graph import CodeGraph

        return CodeGraph
    elif name == "CodeParser":
        from codeweave_mcp.parsers.code_parser import CodeParser

        return CodeParser
    elif name == "TreeSitterSymbolRetriever":
        from codeweave_mcp.parsers.treesitter_parser import TreeSitterSymbolRetriever

        return TreeSitterSymbolRetriever
    elif name == "QueryResult":
        from codeweave_mcp.core.models import QueryResult

        return QueryResult
    elif name == "FileChange":
        from codeweave_mcp.core.models import FileChange

        return FileChange
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "__version__",
    "__author__",
    "CodeIndexService",
    "IndexerConfig",
    "EmbeddingConfig",
    "CodeGraph",
    "CodeParser",
    "TreeSitterSymbolRetriever",
    "QueryResult",
    "FileChange",
]
