"""
Language-specific configurations for outlining and import resolution.

This module maps file extensions to languages and, per language, lists the
tree-sitter node types that become symbols plus the strategy used to turn
import statements into workspace file edges.

Supported Languages:
    - Python (.py, .pyi)
    - JavaScript (.js, .jsx, .mjs, .cjs)
    - TypeScript (.ts, .mts, .cts) and TSX (.tsx)
    - C (.c, .h) and C++ (.cpp, .cc, .cxx, .hpp, .hh)
    - Go (.go)
    - Java (.java)

Usage:
    >>> language = get_language_for_file("example.py")
    >>> config = get_config_for_language(language)
    >>> config['function_types']
    ['function_definition']

Adding New Languages:
    1. Add file extension mappings to EXTENSION_MAP
    2. Create a config dict with the required node types
    3. Pick an import_style (or None when imports never resolve to files)
    4. Add tests for the new language
"""

from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional, Set


# ==============================================================================
# Extension to Language Mapping
# ==============================================================================

EXTENSION_MAP: Dict[str, str] = {
    '.py': 'python',
    '.pyi': 'python',

    '.js': 'javascript',
    '.jsx': 'javascript',
    '.mjs': 'javascript',
    '.cjs': 'javascript',
    '.ts': 'typescript',
    '.mts': 'typescript',
    '.cts': 'typescript',
    '.tsx': 'tsx',

    '.c': 'c',
    '.h': 'c',  # may be C or C++
    '.cpp': 'cpp',
    '.cc': 'cpp',
    '.cxx': 'cpp',
    '.hpp': 'cpp',
    '.hh': 'cpp',

    '.go': 'go',
    '.java': 'java',
}


# ==============================================================================
# Language Configurations
# ==============================================================================

_TYPESCRIPT: Dict[str, Any] = {
    'function_types': ['function_declaration', 'generator_function_declaration'],
    'class_types': [
        'class_declaration',
        'abstract_class_declaration',
        'interface_declaration',
        'type_alias_declaration',
        'enum_declaration',
    ],
    'method_types': ['method_definition', 'method_signature'],
    'constant_types': ['lexical_declaration'],
    # export { foo } / export default class ... wrap the real declaration
    'wrapper_types': ['export_statement'],
    'import_style': 'ecmascript',
    'resolve_extensions': ['.ts', '.tsx', '.d.ts', '.js', '.jsx', '.mjs', '.cjs'],
}

LANGUAGE_CONFIGS: Dict[str, Dict[str, Any]] = {
    'python': {
        'function_types': ['function_definition'],
        'class_types': ['class_definition'],
        'method_types': ['function_definition'],
        'constant_types': ['expression_statement'],  # MODULE_CONST = value
        'wrapper_types': ['decorated_definition'],
        'import_style': 'python',
        'resolve_extensions': ['.py', '.pyi'],
    },
    'javascript': {
        'function_types': ['function_declaration', 'generator_function_declaration'],
        'class_types': ['class_declaration'],
        'method_types': ['method_definition'],
        'constant_types': ['lexical_declaration'],
        'wrapper_types': ['export_statement'],
        'import_style': 'ecmascript',
        'resolve_extensions': ['.js', '.jsx', '.mjs', '.cjs', '.ts', '.tsx'],
    },
    'typescript': _TYPESCRIPT,
    'tsx': _TYPESCRIPT,
    'c': {
        'function_types': ['function_definition'],
        'class_types': ['struct_specifier', 'union_specifier', 'enum_specifier'],
        'method_types': [],
        'constant_types': [],
        'wrapper_types': [],
        'import_style': 'include',
        'resolve_extensions': [],
    },
    'cpp': {
        'function_types': ['function_definition'],
        'class_types': ['class_specifier', 'struct_specifier', 'union_specifier'],
        'method_types': ['function_definition'],
        'constant_types': [],
        'wrapper_types': ['template_declaration', 'namespace_definition'],
        'import_style': 'include',
        'resolve_extensions': [],
    },
    'go': {
        'function_types': ['function_declaration'],
        'class_types': ['type_declaration'],
        # Go methods are declared at top level with a receiver
        'method_types': [],
        'toplevel_method_types': ['method_declaration'],
        'constant_types': ['const_declaration'],
        'wrapper_types': [],
        'import_style': None,
        'resolve_extensions': [],
    },
    'java': {
        'function_types': [],
        'class_types': ['class_declaration', 'interface_declaration', 'enum_declaration'],
        'method_types': ['method_declaration', 'constructor_declaration'],
        'constant_types': [],
        'wrapper_types': [],
        'import_style': None,
        'resolve_extensions': [],
    },
}


# ==============================================================================
# Helper Functions
# ==============================================================================

def get_language_for_file(filepath: str) -> Optional[str]:
    """
    Determine the language from a file path.

    Examples:
        >>> get_language_for_file('src/app.ts')
        'typescript'
        >>> get_language_for_file('README.md') is None
        True
    """
    return EXTENSION_MAP.get(PurePosixPath(filepath.replace('\\', '/')).suffix.lower())


def get_config_for_language(language: str) -> Dict[str, Any]:
    """
    Retrieve the outline configuration for a language.

    Raises:
        KeyError: If the language is not supported
    """
    if language not in LANGUAGE_CONFIGS:
        raise KeyError(
            f"Unsupported language: {language}. "
            f"Supported languages: {', '.join(LANGUAGE_CONFIGS.keys())}"
        )
    return LANGUAGE_CONFIGS[language]


def get_supported_extensions() -> Set[str]:
    """Get a set of all supported file extensions (including the dot)."""
    return set(EXTENSION_MAP.keys())


def get_languages() -> Dict[str, List[str]]:
    """Group supported extensions by language."""
    languages: Dict[str, List[str]] = {}
    for ext, lang in EXTENSION_MAP.items():
        languages.setdefault(lang, []).append(ext)
    return {lang: sorted(exts) for lang, exts in languages.items()}


def validate_config(language: str) -> bool:
    """
    Validate that a language configuration has all required fields.

    Raises:
        ValueError: If configuration is missing required fields
    """
    required_fields = [
        'function_types',
        'class_types',
        'method_types',
        'constant_types',
        'wrapper_types',
        'import_style',
        'resolve_extensions',
    ]

    config = get_config_for_language(language)
    missing_fields = [f for f in required_fields if f not in config]

    if missing_fields:
        raise ValueError(
            f"Configuration for {language} is missing required fields: {', '.join(missing_fields)}"
        )

    return True


# Validate all configurations on module import
for _lang in LANGUAGE_CONFIGS:
    validate_config(_lang)
