"""
MCP Server for CodeWeave - hybrid graph + vector code retrieval.

This module exposes the code index through the Model Context Protocol using
stdio transport. The server is a thin adapter: every tool delegates to the
CodeIndexService held in the session state.

Usage:
    codeweave-mcp  # Run as stdio MCP server

Tools:
    - index_workspace: Open or build the index for a workspace
        - mode='auto': Incremental scan if an index exists, full build if new
        - mode='full': Delete and rebuild the index
        - mode='load_only': Just load the existing index
    - get_index_status: Whether an index exists, is syncing, and its files
    - query_related_code: Similar code plus graph-related files
    - full_index_build: Force re-embedding of given files (or everything)
    - delete_index: Drop the whole index
    - delete_file_from_index: Drop one file
    - notify_file_changes: Feed created/modified/deleted notifications
    - set_inclusion_filter: Change which files are indexed on later scans
    - list_supported_languages: List supported file extensions
"""

import logging
import sys
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from fastmcp import FastMCP, Context
from fastmcp.exceptions import ToolError
from pydantic import Field

from codeweave_mcp.core.config import DEFAULT_EXCLUDE, IndexerConfig
from codeweave_mcp.core.exceptions import CodeWeaveException, InvalidFilterError
from codeweave_mcp.mcp.state import get_state
from codeweave_mcp.parsers.language_configs import EXTENSION_MAP, get_languages

logger = logging.getLogger(__name__)

VALID_MODES = ("auto", "full", "load_only")

mcp = FastMCP(
    name="CodeWeave",
    instructions=(
        "Code index combining a file dependency graph with embedded code chunks. "
        "Call index_workspace first, then query_related_code."
    ),
)


def _require_service():
    state = get_state()
    if not state.is_loaded:
        raise ToolError("No workspace indexed. Use 'index_workspace' first.")
    return state.service


def _filter_spec(include: Optional[List[str]], exclude: Optional[List[str]]) -> Dict[str, Any]:
    spec: Dict[str, Any] = {}
    if include:
        spec["include"] = include
    if exclude:
        spec["exclude"] = DEFAULT_EXCLUDE + exclude
    return spec


@mcp.tool(
    name="index_workspace",
    description="""Index a workspace for related-code queries.

Modes:
- auto (default): If an index exists, re-index only changed files. If new, build a full index.
- full: Delete any existing index and rebuild it.
- load_only: Just load the existing index without indexing.

Creates a .codeweave/ folder in the workspace directory."""
)
async def index_workspace(
    path: Annotated[str, Field(description="Absolute path to the workspace directory")],
    mode: Annotated[
        str,
        Field(description="Indexing mode: 'auto' (smart detection), 'full' (rebuild), 'load_only' (just load)")
    ] = "auto",
    include: Annotated[
        Optional[List[str]],
        Field(description="Optional include globs, e.g. ['src/**/*.{ts,tsx}']. Defaults to all supported extensions.")
    ] = None,
    exclude: Annotated[
        Optional[List[str]],
        Field(description="Optional exclude globs, e.g. ['tests/', '*.min.js']")
    ] = None,
    embedding_provider: Annotated[
        str,
        Field(description="Embedding backend: 'sentence-transformers' (local) or 'ollama'")
    ] = "sentence-transformers",
    embedding_model: Annotated[
        str,
        Field(description="Embedding model name (default: coderankembed)")
    ] = "coderankembed",
    ctx: Context = None
) -> Dict[str, Any]:
    """Open or build the index for a workspace."""
    from codeweave_mcp.indexing.service import CodeIndexService

    if mode not in VALID_MODES:
        raise ToolError(f"Invalid mode '{mode}'. Must be one of: {VALID_MODES}")

    workspace_path = Path(path).resolve()
    if not workspace_path.exists():
        raise ToolError(f"Path does not exist: {workspace_path}")
    if not workspace_path.is_dir():
        raise ToolError(f"Path is not a directory: {workspace_path}")

    try:
        config = IndexerConfig.from_dict({
            "embedding": {"provider": embedding_provider, "model_name": embedding_model},
            "include": include,
            **({"exclude": DEFAULT_EXCLUDE + exclude} if exclude else {}),
        })
        state = get_state()
        state.close()

        service = CodeIndexService(str(workspace_path), config)
        existed = service.initialize()
        state.service = service
        state.workspace_path = workspace_path
    except CodeWeaveException as e:
        raise ToolError(f"Failed to open index: {e}")

    if mode == "load_only":
        if not existed:
            state.close()
            raise ToolError(
                f"No existing index found at {workspace_path}. "
                "Use mode='auto' or mode='full' to create one."
            )
        status = service.get_index_status()
        return {
            "success": True,
            "mode_used": "load_only",
            "message": f"Loaded existing index for {workspace_path.name}",
            "files": len(status.files),
        }

    if ctx:
        await ctx.report_progress(10, 100, "Scanning workspace...")

    if mode == "auto" and existed:
        result = service.scan_workspace()
        mode_used = "incremental"
    else:
        if existed:
            service.delete_index()
        result = service.full_index_build()
        mode_used = "full"

    if ctx:
        await ctx.report_progress(100, 100, "Indexing complete!")

    return {
        "success": True,
        "mode_used": mode_used,
        "message": f"Indexed {workspace_path.name}",
        "result": result.to_dict(),
    }


@mcp.tool(
    name="get_index_status",
    description="Report whether an index exists, whether indexing is in progress, and which files are indexed."
)
def get_index_status() -> Dict[str, Any]:
    """Get index status."""
    state = get_state()

    if not state.is_loaded:
        return {
            "loaded": False,
            "workspace_path": None,
            "exists": False,
            "syncing": False,
            "files": [],
        }

    return {
        "loaded": True,
        "workspace_path": str(state.workspace_path),
        **state.service.get_index_status().to_dict(),
    }


@mcp.tool(
    name="query_related_code",
    description="Find code related to a question: the most similar code chunks plus the files they import or are imported by."
)
def query_related_code(
    query: Annotated[str, Field(description="Natural language question or code fragment")],
    k: Annotated[
        int,
        Field(description="Number of similar chunks to fetch before graph expansion (default: 3)", ge=1, le=50)
    ] = 3,
) -> Dict[str, Any]:
    """Similarity search with graph expansion."""
    service = _require_service()
    return service.query(query, k).to_dict()


@mcp.tool(
    name="full_index_build",
    description="Force re-embedding of the given files, or of the whole workspace when no files are given."
)
def full_index_build(
    files: Annotated[
        Optional[List[str]],
        Field(description="Paths to rebuild (absolute or workspace-relative). Omit for the whole workspace.")
    ] = None,
) -> Dict[str, Any]:
    """Force a re-embedding pass."""
    service = _require_service()
    result = service.full_index_build(files)
    return {"success": not result.is_partial, **result.to_dict()}


@mcp.tool(
    name="delete_index",
    description="Delete the whole index (vectors, graph and hash cache) for the current workspace."
)
def delete_index() -> Dict[str, Any]:
    """Delete the index."""
    service = _require_service()
    service.delete_index()
    return {"success": True, "message": f"Deleted index for {service.workspace_root.name}"}


@mcp.tool(
    name="delete_file_from_index",
    description="Remove one file from the index."
)
def delete_file_from_index(
    path: Annotated[str, Field(description="File path (absolute or workspace-relative)")],
) -> Dict[str, Any]:
    """Remove a file from the index."""
    service = _require_service()
    return {"removed": service.delete_file_from_index(path)}


@mcp.tool(
    name="notify_file_changes",
    description="Report file changes; they are batched and indexed after a short quiet interval."
)
def notify_file_changes(
    changes: Annotated[
        List[Dict[str, str]],
        Field(description="List of {'path': ..., 'change_kind': 'created'|'modified'|'deleted'}")
    ],
) -> Dict[str, Any]:
    """Queue change notifications."""
    from codeweave_mcp.core.models import FileChange

    service = _require_service()
    try:
        parsed = [FileChange.from_dict(change) for change in changes]
    except (KeyError, ValueError) as e:
        raise ToolError(f"Invalid change notification: {e}")

    for change in parsed:
        service.handle_file_change(change)
    return {"queued": len(parsed)}


@mcp.tool(
    name="set_inclusion_filter",
    description="Change which files are indexed on later scans. Already indexed files are kept."
)
def set_inclusion_filter(
    include: Annotated[
        Optional[List[str]],
        Field(description="Include globs (gitignore style, {a,b} braces allowed)")
    ] = None,
    exclude: Annotated[
        Optional[List[str]],
        Field(description="Exclude globs")
    ] = None,
) -> Dict[str, Any]:
    """Replace the inclusion filter."""
    service = _require_service()
    try:
        new_filter = service.set_inclusion_filter(_filter_spec(include, exclude))
    except InvalidFilterError as e:
        raise ToolError(f"Invalid inclusion filter: {e}")
    return {"success": True, **new_filter.to_dict()}


@mcp.tool(
    name="list_supported_languages",
    description="List all programming languages and file extensions supported by CodeWeave."
)
def list_supported_languages() -> Dict[str, Any]:
    """List supported file extensions and languages."""
    return {
        "extensions": sorted(EXTENSION_MAP.keys()),
        "languages": get_languages(),
    }


def main():  # pragma: no cover
    """Run the MCP server."""
    # stdout carries the stdio transport
    logging.basicConfig(
        stream=sys.stderr,
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    mcp.run()


if __name__ == "__main__":
    main()
