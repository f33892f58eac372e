"""
MCP Server module for CodeWeave.

This module provides the Model Context Protocol server exposing the code
index operations (build, status, query, delete, change notifications).

Exports:
    - mcp: FastMCP server instance
    - main: Entry point for running the MCP server
    - get_state: Get MCP session state
    - reset_state: Reset MCP session state (for testing)
    - MCPSessionState: Session state dataclass
"""

from codeweave_mcp.mcp.server import mcp, main
from codeweave_mcp.mcp.state import get_state, reset_state, MCPSessionState

__all__ = [
    "mcp",
    "main",
    "get_state",
    "reset_state",
    "MCPSessionState",
]
