"""
In-memory file dependency graph for CodeWeave MCP.
"""

from .code_graph import CodeGraph

__all__ = ["CodeGraph"]
