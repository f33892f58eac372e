"""
TreeSitterSymbolRetriever - multi-language symbol outlines via tree-sitter.

This module implements the ISymbolRetriever interface using tree-sitter
grammars. It parses a file into a concrete syntax tree and walks it to
produce a nested outline: classes with their methods as children, top-level
functions, and module-level constants.

Performance:
    - Parsers are cached per language and per thread
    - Only the outline is extracted; chunk text is cut by the code parser

Thread Safety:
    This class IS thread-safe. Each thread gets its own tree-sitter parser
    instances, so one retriever can serve the parallel parse stage.

Usage:
    >>> retriever = TreeSitterSymbolRetriever(workspace_root="/repo")
    >>> symbols = retriever.get_symbols("src/app.py")
    >>> [s.name for s in symbols]
    ['main', 'App']
"""

import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

from tree_sitter_languages import get_parser

from codeweave_mcp.core.exceptions import ParseError
from codeweave_mcp.core.interfaces import ISymbolRetriever
from codeweave_mcp.core.models import SourceRange, SymbolKind, SymbolRecord
from codeweave_mcp.parsers.language_configs import (
    get_config_for_language,
    get_language_for_file,
)

logger = logging.getLogger(__name__)

# Initializers that turn `const foo = ...` into a function symbol
_FUNCTION_VALUE_TYPES = ('arrow_function', 'function', 'function_expression', 'generator_function')


class TreeSitterSymbolRetriever(ISymbolRetriever):
    """
    Tree-sitter based symbol outline provider.

    Attributes:
        MAX_FILE_SIZE_MB: Files above this size are refused (outline skipped)
        workspace_root: Directory that relative paths are resolved against
            when the caller does not pass the file text
    """

    MAX_FILE_SIZE_MB = 10

    def __init__(self, workspace_root: Optional[str] = None):
        self.workspace_root = Path(workspace_root) if workspace_root else None
        self._local = threading.local()
        logger.debug("TreeSitterSymbolRetriever initialized")

    def supports(self, filepath: str) -> bool:
        """
        Fast check based on file extension lookup.

        Example:
            >>> TreeSitterSymbolRetriever().supports("example.py")
            True
            >>> TreeSitterSymbolRetriever().supports("notes.txt")
            False
        """
        return get_language_for_file(filepath) is not None

    def get_symbols(self, filepath: str, text: Optional[str] = None) -> List[SymbolRecord]:
        """
        Return the symbol outline of a file.

        Unsupported languages yield an empty outline. Unreadable or binary
        files and grammar failures raise ParseError.

        Args:
            filepath: Workspace-relative path of the file
            text: File content; read from disk when omitted

        Returns:
            Top-level symbols, classes carrying their methods as children

        Raises:
            ParseError: If the file cannot be read or parsed
        """
        language = get_language_for_file(filepath)
        if language is None:
            return []

        content = self._load_content(filepath, language, text)
        if self._is_binary_file(content):
            raise ParseError(filepath, language, "Binary file detected - cannot parse")

        try:
            parser = self._get_parser(language)
            tree = parser.parse(content)
        except Exception as e:
            raise ParseError(filepath, language, f"Parsing error: {e}") from e

        config = get_config_for_language(language)
        symbols = self._collect(tree.root_node, content, filepath, language, config, in_class=False)
        logger.debug(f"Outlined {filepath}: {len(symbols)} top-level symbols")
        return symbols

    # =========================================================================
    # Private Helper Methods
    # =========================================================================

    def _load_content(self, filepath: str, language: str, text: Optional[str]) -> bytes:
        if text is not None:
            return text.encode('utf-8', errors='replace')

        file_path = Path(filepath)
        if self.workspace_root is not None and not file_path.is_absolute():
            file_path = self.workspace_root / file_path

        try:
            size_mb = file_path.stat().st_size / (1024 * 1024)
            if size_mb > self.MAX_FILE_SIZE_MB:
                raise ParseError(filepath, language, f"File too large ({size_mb:.2f}MB)")
            return file_path.read_bytes()
        except OSError as e:
            raise ParseError(filepath, language, f"Error reading file: {e}") from e

    def _is_binary_file(self, content: bytes) -> bool:
        """
        Check if file content is binary (not text).

        Looks for null bytes in the first 8KB, then for a low ratio of
        printable bytes when the sample is not valid UTF-8.
        """
        sample = content[:8192]

        if b'\x00' in sample:
            return True

        try:
            sample.decode('utf-8')
            return False
        except UnicodeDecodeError:
            if len(sample) == 0:
                return False
            text_chars = sum(1 for b in sample if 32 <= b < 127 or b in (9, 10, 13))
            return text_chars / len(sample) < 0.7

    def _get_parser(self, language: str):
        """Get or create this thread's tree-sitter parser for a language."""
        parsers = getattr(self._local, 'parsers', None)
        if parsers is None:
            parsers = self._local.parsers = {}
        if language not in parsers:
            logger.debug(f"Creating new parser for language: {language}")
            parsers[language] = get_parser(language)
        return parsers[language]

    def _collect(
        self,
        node,
        content: bytes,
        filepath: str,
        language: str,
        config: Dict[str, Any],
        in_class: bool,
    ) -> List[SymbolRecord]:
        symbols: List[SymbolRecord] = []
        for child in node.children:
            symbols.extend(self._visit(child, content, filepath, language, config, in_class))
        return symbols

    def _visit(
        self,
        node,
        content: bytes,
        filepath: str,
        language: str,
        config: Dict[str, Any],
        in_class: bool,
    ) -> List[SymbolRecord]:
        """Turn one syntax node into zero or more symbols."""
        node_type = node.type

        if node_type in config['wrapper_types']:
            found = self._collect(node, content, filepath, language, config, in_class)
            body = node.child_by_field_name('body')
            if body is not None:
                found.extend(self._collect(body, content, filepath, language, config, in_class))
            return found

        if node_type in config['class_types']:
            name = self._get_node_name(node, content)
            if not name:
                return []
            body = node.child_by_field_name('body')
            children = ()
            if body is not None:
                children = tuple(self._collect(body, content, filepath, language, config, in_class=True))
            return [self._make_symbol(name, SymbolKind.CLASS, node, filepath, children)]

        if in_class:
            if node_type in config['method_types']:
                name = self._get_node_name(node, content)
                if name:
                    return [self._make_symbol(name, SymbolKind.METHOD, node, filepath)]
            return []

        if node_type in config['function_types']:
            name = self._get_node_name(node, content)
            if name:
                return [self._make_symbol(name, SymbolKind.FUNCTION, node, filepath)]
            return []

        if node_type in config.get('toplevel_method_types', ()):
            name = self._get_node_name(node, content)
            if name:
                return [self._make_symbol(name, SymbolKind.METHOD, node, filepath)]
            return []

        if node_type in config['constant_types']:
            return self._extract_declarations(node, content, filepath, language)

        return []

    def _extract_declarations(
        self, node, content: bytes, filepath: str, language: str
    ) -> List[SymbolRecord]:
        """
        Extract module-level declarations.

        Handles different patterns:
        - Python: expression_statement with assignment (UPPER_CASE = value)
        - JavaScript/TypeScript: lexical_declaration; `const foo = () => {}`
          becomes a function, `const MAX_SIZE = 1` a constant
        - Go: const_declaration -> const_spec names
        """
        found: List[SymbolRecord] = []

        if language == 'python':
            for child in node.children:
                if child.type != 'assignment':
                    continue
                left = child.child_by_field_name('left')
                if left is not None and left.type == 'identifier':
                    name = self._get_node_text(left, content)
                    if self._is_constant_name(name):
                        found.append(self._make_symbol(name, SymbolKind.VARIABLE, node, filepath))

        elif language in ('javascript', 'typescript', 'tsx'):
            is_const = self._get_node_text(node, content).lstrip().startswith('const ')
            for child in node.children:
                if child.type != 'variable_declarator':
                    continue
                name_node = child.child_by_field_name('name')
                if name_node is None or name_node.type != 'identifier':
                    continue
                name = self._get_node_text(name_node, content)
                value = child.child_by_field_name('value')
                if value is not None and value.type in _FUNCTION_VALUE_TYPES:
                    found.append(self._make_symbol(name, SymbolKind.FUNCTION, node, filepath))
                elif is_const and self._is_constant_name(name):
                    found.append(self._make_symbol(name, SymbolKind.VARIABLE, node, filepath))

        elif language == 'go':
            for child in node.children:
                if child.type == 'const_spec':
                    name_node = child.child_by_field_name('name')
                    if name_node is not None:
                        name = self._get_node_text(name_node, content)
                        found.append(self._make_symbol(name, SymbolKind.VARIABLE, child, filepath))

        return found

    def _make_symbol(
        self,
        name: str,
        kind: SymbolKind,
        node,
        filepath: str,
        children=(),
    ) -> SymbolRecord:
        start_row, start_col = node.start_point
        end_row, end_col = node.end_point
        return SymbolRecord(
            name=name,
            kind=kind,
            range=SourceRange(start_row, start_col, end_row, end_col),
            filepath=filepath,
            children=tuple(children),
        )

    @staticmethod
    def _is_constant_name(name: str) -> bool:
        stripped = name.replace('_', '')
        return bool(stripped) and stripped.isupper()

    def _get_node_name(self, node, content: bytes) -> Optional[str]:
        """
        Extract the name/identifier from a node.

        Tries the `name` field first, then identifier-like children, then
        recurses into C/C++ declarators and Go type specs.
        """
        name_node = node.child_by_field_name('name')
        if name_node is not None:
            return self._get_node_text(name_node, content).strip()

        for child in node.children:
            if child.type in (
                'identifier',
                'name',
                'type_identifier',
                'field_identifier',
                'property_identifier',
            ):
                return self._get_node_text(child, content).strip()

        for child in node.children:
            if child.type in ('declarator', 'function_declarator', 'pointer_declarator', 'type_spec'):
                return self._get_node_name(child, content)

        declarator = node.child_by_field_name('declarator')
        if declarator is not None:
            return self._get_node_name(declarator, content)

        return None

    def _get_node_text(self, node, content: bytes) -> str:
        return content[node.start_byte:node.end_byte].decode('utf-8', errors='ignore')
