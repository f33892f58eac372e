"""Session state management for MCP server."""
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from codeweave_mcp.indexing.service import CodeIndexService


@dataclass
class MCPSessionState:
    """Singleton state for MCP server session."""
    service: Optional["CodeIndexService"] = None
    workspace_path: Optional[Path] = None

    @property
    def is_loaded(self) -> bool:
        """Check if a workspace index is currently open."""
        return self.service is not None and self.service.is_initialized

    def close(self) -> None:
        """Stop the current service (queue and indexer) if any."""
        if self.service is not None:
            self.service.close()
        self.service = None
        self.workspace_path = None


_state: Optional[MCPSessionState] = None


def get_state() -> MCPSessionState:
    """Get or create the singleton state instance."""
    global _state
    if _state is None:
        _state = MCPSessionState()
    return _state


def reset_state() -> None:
    """Reset the singleton state (useful for testing)."""
    global _state
    if _state is not None:
        _state.close()
    _state = None
