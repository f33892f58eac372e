"""
Parsers for CodeWeave MCP.

This module provides symbol outlining using tree-sitter for multi-language
support, and the code parser that turns outlines into chunks and edges.
"""

from .treesitter_parser import TreeSitterSymbolRetriever
from .code_parser import CodeParser
from .language_configs import (
    get_language_for_file,
    get_config_for_language,
    get_supported_extensions,
    get_languages,
    EXTENSION_MAP,
    LANGUAGE_CONFIGS,
)

__all__ = [
    "TreeSitterSymbolRetriever",
    "CodeParser",
    "get_language_for_file",
    "get_config_for_language",
    "get_supported_extensions",
    "get_languages",
    "EXTENSION_MAP",
    "LANGUAGE_CONFIGS",
]
