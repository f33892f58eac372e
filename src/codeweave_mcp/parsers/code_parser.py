"""
Code parser: turns a file's text and symbol outline into embeddable chunks
and file -> file import edges.

Chunking:
    - One chunk per top-level symbol (classes include their methods)
    - One whole-file chunk when the outline is empty or failed
    - Chunk text is headed with the path and symbol so that the embedding
      carries location context, and is capped at ``max_chunk_chars``

Edges:
    Import statements are scanned with per-language patterns and resolved
    against the workspace on disk. References that do not resolve to a
    workspace file (external packages, path aliases) are dropped.

Usage:
    >>> parser = CodeParser(TreeSitterSymbolRetriever(root), workspace_root=root)
    >>> result = parser.parse_file("src/app.ts", text)
    >>> [c.id for c in result.chunks]
    ['src/app.ts::App', 'src/app.ts::main']
"""

import logging
import posixpath
import re
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set

from codeweave_mcp.core.interfaces import ISymbolRetriever
from codeweave_mcp.core.models import Chunk, GraphEdge, ParseResult, SymbolRecord
from codeweave_mcp.parsers.language_configs import (
    LANGUAGE_CONFIGS,
    get_language_for_file,
)

logger = logging.getLogger(__name__)

_PY_FROM_IMPORT = re.compile(
    r'^[ \t]*from[ \t]+(\.*)([\w.]*)[ \t]+import[ \t]+(?:\(([^)]*)\)|([^\n#]*))', re.MULTILINE
)
_PY_IMPORT = re.compile(r'^[ \t]*import[ \t]+([\w.]+(?:\s+as\s+\w+)?(?:\s*,\s*[\w.]+(?:\s+as\s+\w+)?)*)', re.MULTILINE)
_ES_SPECIFIER = re.compile(
    r"""(?:\bfrom\s*|\bimport\s*\(?\s*|\brequire\s*\(\s*)['"]([^'"\n]+)['"]"""
)
_C_INCLUDE = re.compile(r'^\s*#\s*include\s*"([^"\n]+)"', re.MULTILINE)

# Extra roots tried for absolute Python imports (src layout)
_PY_SOURCE_ROOTS = ('', 'src')


def _climb(directory: str, levels: int) -> Optional[str]:
    """Parent ``levels`` up from a workspace-relative directory, None past the root."""
    for _ in range(levels):
        if not directory:
            return None
        directory = posixpath.dirname(directory)
    return directory


class CodeParser:
    """
    Converts files into chunks and edges.

    Attributes:
        MAX_CHUNK_CHARS: Default cap on chunk text; 4000 chars is roughly
            1000-1300 tokens, a comfortable size for code embedding models
    """

    MAX_CHUNK_CHARS = 4000

    def __init__(
        self,
        symbol_retriever: ISymbolRetriever,
        workspace_root: Optional[str] = None,
        max_chunk_chars: int = MAX_CHUNK_CHARS,
    ):
        self.symbol_retriever = symbol_retriever
        self.workspace_root = Path(workspace_root) if workspace_root else None
        self.max_chunk_chars = max_chunk_chars

    def parse_file(self, filepath: str, text: str) -> ParseResult:
        """
        Parse one file.

        Never raises for outline failures: the file degrades to a single
        whole-file chunk and ``ParseResult.error`` records why.

        Args:
            filepath: Workspace-relative POSIX path
            text: Current file content

        Returns:
            ParseResult with chunks, resolved edges and the symbol outline
        """
        language = get_language_for_file(filepath) or "unknown"
        error = None
        symbols: List[SymbolRecord] = []

        try:
            symbols = list(self.symbol_retriever.get_symbols(filepath, text))
        except Exception as e:
            error = str(e)
            logger.warning(f"Outline failed for {filepath}, falling back to whole-file chunk: {e}")

        chunks = self._create_chunks(filepath, text, language, symbols)
        edges = self.extract_edges(filepath, text, language)

        return ParseResult(
            filepath=filepath,
            language=language,
            chunks=tuple(chunks),
            edges=tuple(edges),
            symbols=tuple(symbols),
            error=error,
        )

    # =========================================================================
    # Chunking
    # =========================================================================

    def _create_chunks(
        self, filepath: str, text: str, language: str, symbols: Sequence[SymbolRecord]
    ) -> List[Chunk]:
        if not symbols:
            return [Chunk(
                id=filepath,
                filepath=filepath,
                text=self._create_chunk_text(filepath, None, text),
                language=language,
            )]

        lines = text.splitlines()
        seen: Dict[str, int] = {}
        chunks: List[Chunk] = []

        for index, symbol in enumerate(sorted(symbols, key=lambda s: (s.range.start_line, s.name))):
            body = "\n".join(lines[symbol.range.start_line:symbol.range.end_line + 1])

            chunk_id = f"{filepath}::{symbol.name}"
            if chunk_id in seen:
                chunk_id = f"{chunk_id}:{symbol.range.start_line + 1}"
            seen[chunk_id] = index

            chunks.append(Chunk(
                id=chunk_id,
                filepath=filepath,
                text=self._create_chunk_text(filepath, symbol, body),
                language=language,
                symbol=symbol,
                chunk_index=index,
            ))

        return chunks

    def _create_chunk_text(self, filepath: str, symbol: Optional[SymbolRecord], body: str) -> str:
        """
        Create embedding text.

        Format:
            # filepath:line
            kind: name
            members: a, b, c

            code
        """
        if symbol is None:
            parts = [f"# {filepath}", ""]
        else:
            parts = [
                f"# {filepath}:{symbol.range.start_line + 1}",
                f"{symbol.kind.value}: {symbol.name}",
            ]
            if symbol.children:
                members = ", ".join(c.name for c in symbol.children[:10])
                if len(symbol.children) > 10:
                    members += f", ... ({len(symbol.children) - 10} more)"
                parts.append(f"members: {members}")
            parts.append("")

        parts.append(body)
        chunk_text = "\n".join(parts)

        if len(chunk_text) > self.max_chunk_chars:
            return chunk_text[:self.max_chunk_chars] + "..."
        return chunk_text

    # =========================================================================
    # Edge extraction
    # =========================================================================

    def extract_edges(self, filepath: str, text: str, language: Optional[str] = None) -> List[GraphEdge]:
        """
        Scan import statements and resolve them to workspace files.

        Returns edges sorted by target, without self-edges or duplicates.
        """
        if self.workspace_root is None:
            return []

        language = language or get_language_for_file(filepath)
        style = LANGUAGE_CONFIGS.get(language, {}).get('import_style')

        if style == 'python':
            targets = self._resolve_python(filepath, text)
        elif style == 'ecmascript':
            targets = self._resolve_ecmascript(filepath, text, LANGUAGE_CONFIGS[language]['resolve_extensions'])
        elif style == 'include':
            targets = self._resolve_includes(filepath, text)
        else:
            targets = set()

        targets.discard(filepath)
        return [GraphEdge(source=filepath, target=t) for t in sorted(targets)]

    def _resolve_python(self, filepath: str, text: str) -> Set[str]:
        targets: Set[str] = set()
        file_dir = posixpath.dirname(filepath)

        for match in _PY_FROM_IMPORT.finditer(text):
            dots, module = match.group(1), match.group(2)
            names = match.group(3) if match.group(3) is not None else match.group(4)
            imported = [n.strip().split(' as ')[0].strip() for n in names.split(',')]
            imported = [n for n in imported if n and n != '*' and n.isidentifier()]

            if dots:
                base = _climb(file_dir, len(dots) - 1)
                if base is None:
                    logger.debug(f"Relative import {dots}{module} in {filepath} leaves the workspace")
                    continue
                bases = [posixpath.join(base, *module.split('.')) if module else base]
            else:
                bases = [posixpath.join(root, *module.split('.')) for root in _PY_SOURCE_ROOTS]

            for base in bases:
                found = self._first_existing([base + '.py', base + '.pyi', posixpath.join(base, '__init__.py')])
                if found:
                    targets.add(found)
                for name in imported:
                    sub = self._first_existing([posixpath.join(base, name + '.py')])
                    if sub:
                        targets.add(sub)

        for match in _PY_IMPORT.finditer(text):
            for part in match.group(1).split(','):
                module = part.strip().split(' as ')[0].strip()
                for root in _PY_SOURCE_ROOTS:
                    base = posixpath.join(root, *module.split('.'))
                    found = self._first_existing([base + '.py', base + '.pyi', posixpath.join(base, '__init__.py')])
                    if found:
                        targets.add(found)
                        break

        return targets

    def _resolve_ecmascript(self, filepath: str, text: str, extensions: Sequence[str]) -> Set[str]:
        targets: Set[str] = set()
        file_dir = posixpath.dirname(filepath)

        for match in _ES_SPECIFIER.finditer(text):
            specifier = match.group(1)
            if not specifier.startswith(('.', '/')):
                continue  # bare specifier: external package

            base = posixpath.join(file_dir, specifier) if specifier.startswith('.') else specifier.lstrip('/')
            base = posixpath.normpath(base)

            candidates = [base]
            stem, ext = posixpath.splitext(base)
            if ext in ('.js', '.jsx', '.mjs', '.cjs'):
                # ESM-style TypeScript imports name the emitted .js file
                candidates.extend(stem + e for e in ('.ts', '.tsx', '.mts', '.cts'))
            candidates.extend(base + e for e in extensions)
            candidates.extend(posixpath.join(base, 'index' + e) for e in extensions)

            found = self._first_existing(candidates)
            if found:
                targets.add(found)

        return targets

    def _resolve_includes(self, filepath: str, text: str) -> Set[str]:
        targets: Set[str] = set()
        file_dir = posixpath.dirname(filepath)

        for match in _C_INCLUDE.finditer(text):
            header = match.group(1)
            found = self._first_existing([
                posixpath.normpath(posixpath.join(file_dir, header)),
                posixpath.normpath(header),
                posixpath.normpath(posixpath.join('include', header)),
            ])
            if found:
                targets.add(found)

        return targets

    def _first_existing(self, candidates: Sequence[str]) -> Optional[str]:
        for candidate in candidates:
            candidate = posixpath.normpath(candidate)
            if candidate.startswith('..') or candidate in ('.', ''):
                continue
            if (self.workspace_root / candidate).is_file():
                return candidate
        return None
