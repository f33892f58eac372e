"""
Inclusion filter: which workspace paths the indexer accepts.

Patterns are gitignore-style globs evaluated with ``pathspec`` against
workspace-relative POSIX paths. ``{a,b}`` brace groups are expanded before
compilation, so editor-style globs such as ``src/**/*.{ts,tsx}`` work.

Usage:
    >>> f = InclusionFilter.from_spec("src/**/*.{ts,tsx}")
    >>> f.matches("src/app/main.ts")
    True
    >>> f.matches("README.md")
    False
"""

import logging
import os
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence

import pathspec

from codeweave_mcp.core.config import DEFAULT_EXCLUDE
from codeweave_mcp.core.exceptions import InvalidFilterError
from codeweave_mcp.parsers.language_configs import get_supported_extensions

logger = logging.getLogger(__name__)


def expand_braces(pattern: str) -> List[str]:
    """
    Expand ``{a,b}`` groups, including nested ones.

    Examples:
        >>> expand_braces("*.{ts,tsx}")
        ['*.ts', '*.tsx']
        >>> expand_braces("{src,lib}/**/*.{c,h}")
        ['src/**/*.c', 'src/**/*.h', 'lib/**/*.c', 'lib/**/*.h']

    Raises:
        InvalidFilterError: On unbalanced braces
    """
    depth = 0
    start = -1
    for i, ch in enumerate(pattern):
        if ch == '{':
            if depth == 0:
                start = i
            depth += 1
        elif ch == '}':
            depth -= 1
            if depth < 0:
                raise InvalidFilterError(f"Unbalanced '}}' in pattern: {pattern}")
            if depth == 0:
                prefix, body, suffix = pattern[:start], pattern[start + 1:i], pattern[i + 1:]
                results: List[str] = []
                for option in _split_top_level(body):
                    results.extend(expand_braces(prefix + option + suffix))
                return results
    if depth != 0:
        raise InvalidFilterError(f"Unbalanced '{{' in pattern: {pattern}")
    return [pattern]


def _split_top_level(body: str) -> List[str]:
    parts, depth, current = [], 0, []
    for ch in body:
        if ch == ',' and depth == 0:
            parts.append(''.join(current))
            current = []
            continue
        if ch == '{':
            depth += 1
        elif ch == '}':
            depth -= 1
        current.append(ch)
    parts.append(''.join(current))
    return parts


def default_include_patterns() -> List[str]:
    return sorted(f"*{ext}" for ext in get_supported_extensions())


class InclusionFilter:
    """Accept/reject predicate over workspace-relative paths."""

    def __init__(self, include: Optional[Sequence[str]] = None, exclude: Optional[Sequence[str]] = None):
        """
        Args:
            include: Globs a path must match (default: supported extensions)
            exclude: Globs that reject a path even if included

        Raises:
            InvalidFilterError: If a pattern is malformed or include is empty
        """
        include = default_include_patterns() if include is None else list(include)
        exclude = list(DEFAULT_EXCLUDE) if exclude is None else list(exclude)

        self.include = self._expand(include)
        self.exclude = self._expand(exclude)
        if not self.include:
            raise InvalidFilterError("Inclusion filter must have at least one include pattern")

        self._include_spec = self._compile(self.include)
        self._exclude_spec = self._compile(self.exclude)

    @staticmethod
    def _expand(patterns: Sequence[Any]) -> List[str]:
        expanded: List[str] = []
        for pattern in patterns:
            if not isinstance(pattern, str):
                raise InvalidFilterError(f"Filter patterns must be strings, got {type(pattern).__name__}")
            pattern = pattern.strip()
            if pattern:
                expanded.extend(expand_braces(pattern))
        return expanded

    @staticmethod
    def _compile(patterns: List[str]) -> pathspec.PathSpec:
        try:
            return pathspec.PathSpec.from_lines("gitwildmatch", patterns)
        except (ValueError, TypeError) as e:
            raise InvalidFilterError(f"Invalid filter pattern: {e}") from e

    @classmethod
    def from_spec(cls, spec: Any) -> 'InclusionFilter':
        """
        Build a filter from any accepted specification form.

        Accepted forms:
            - None: the default filter
            - an InclusionFilter (returned unchanged)
            - a glob string, e.g. ``"src/**/*.{ts,tsx}"``
            - a list of globs; entries starting with ``!`` are exclusions
            - a mapping ``{"include": [...], "exclude": [...]}``

        Raises:
            InvalidFilterError: If the specification is malformed
        """
        if spec is None:
            return cls()
        if isinstance(spec, InclusionFilter):
            return spec
        if isinstance(spec, str):
            return cls(include=[spec])
        if isinstance(spec, dict):
            unknown = set(spec) - {'include', 'exclude'}
            if unknown:
                raise InvalidFilterError(f"Unknown filter keys: {', '.join(sorted(unknown))}")
            include = spec.get('include')
            exclude = spec.get('exclude')
            if isinstance(include, str):
                include = [include]
            if isinstance(exclude, str):
                exclude = [exclude]
            return cls(include=include, exclude=exclude)
        if isinstance(spec, (list, tuple)):
            include, exclude = [], list(DEFAULT_EXCLUDE)
            for entry in spec:
                if isinstance(entry, str) and entry.startswith('!'):
                    exclude.append(entry[1:])
                else:
                    include.append(entry)
            return cls(include=include or None, exclude=exclude)
        raise InvalidFilterError(f"Unsupported filter specification: {type(spec).__name__}")

    def matches(self, relpath: str) -> bool:
        """True if a workspace-relative path is accepted."""
        relpath = relpath.replace('\\', '/')
        if self._exclude_spec.match_file(relpath):
            return False
        return self._include_spec.match_file(relpath)

    def _dir_excluded(self, reldir: str) -> bool:
        return self._exclude_spec.match_file(reldir.rstrip('/') + '/')

    def walk(self, root: Path) -> Iterator[str]:
        """
        Yield accepted workspace-relative paths under ``root``, directory by
        directory with names sorted.

        Excluded directories are pruned without descending into them.
        """
        root = Path(root)
        for dirpath, dirnames, filenames in os.walk(root):
            reldir = Path(dirpath).relative_to(root).as_posix()
            reldir = '' if reldir == '.' else reldir
            dirnames[:] = sorted(
                d for d in dirnames
                if not self._dir_excluded(f"{reldir}/{d}" if reldir else d)
            )
            for name in sorted(filenames):
                relpath = f"{reldir}/{name}" if reldir else name
                if self.matches(relpath):
                    yield relpath

    def to_dict(self):
        return {'include': list(self.include), 'exclude': list(self.exclude)}

    def __repr__(self) -> str:
        return f"InclusionFilter(include={self.include!r}, exclude={self.exclude!r})"
