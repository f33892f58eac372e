"""
Generator: derived text and embeddings for parsed chunks.

Wraps the two expensive collaborators of an indexing pass:

- the embedding provider (always present), used for chunk vectors
- an optional language model, used for per-chunk descriptions and the
  project summary

Description failures never fail a file: the chunk is embedded without one.
"""

import logging
from collections import Counter
from typing import Dict, List, Optional, Sequence

from codeweave_mcp.core.interfaces import IEmbeddingProvider, ILanguageModel
from codeweave_mcp.core.models import Chunk, SymbolKind, SymbolRecord

logger = logging.getLogger(__name__)

# Chunk text sent to the language model is capped to keep prompts small
_DESCRIBE_MAX_CHARS = 2000


class Generator:
    """Produces chunk descriptions, chunk embeddings and the project summary."""

    def __init__(
        self,
        embedding_provider: IEmbeddingProvider,
        language_model: Optional[ILanguageModel] = None,
        describe_chunks: bool = False,
    ):
        self.embedding_provider = embedding_provider
        self.language_model = language_model
        self.describe_chunks = describe_chunks

    def describe(self, chunk: Chunk) -> Optional[str]:
        """
        One-paragraph description of a chunk, or None.

        Returns None when no language model is configured, descriptions are
        disabled, or the model call fails.
        """
        if self.language_model is None or not self.describe_chunks:
            return None

        target = f"{chunk.symbol.kind.value} {chunk.symbol.name}" if chunk.symbol else "file"
        prompt = (
            f"Describe what this {target} from {chunk.filepath} does in one or two sentences.\n\n"
            f"{chunk.text[:_DESCRIBE_MAX_CHARS]}"
        )
        try:
            description = self.language_model.complete(prompt).strip()
        except Exception as e:
            logger.warning(f"Description failed for {chunk.id}: {e}")
            return None
        return description or None

    def embedding_text(self, chunk: Chunk, description: Optional[str] = None) -> str:
        if description:
            return f"{description}\n\n{chunk.text}"
        return chunk.text

    def embed(self, text: str, is_query: bool = False) -> List[float]:
        return self.embedding_provider.embed(text, is_query=is_query)

    def embed_batch(self, texts: List[str]) -> List[List[float]]:
        """Embed document texts; raises EmbeddingError from the provider."""
        return self.embedding_provider.embed_batch(texts)

    def summarize_project(self, symbol_table: Dict[str, Sequence[SymbolRecord]]) -> str:
        """
        Project details text built from the indexed symbol table.

        Without a language model this is a structural overview (languages,
        file count, main classes and functions). With one, the overview is
        handed to the model for a prose summary, falling back to the
        overview if the call fails.
        """
        if not symbol_table:
            return ""

        overview = self._overview(symbol_table)
        if self.language_model is None:
            return overview

        try:
            summary = self.language_model.complete(
                "Summarize this project for a developer new to the codebase.\n\n" + overview
            ).strip()
        except Exception as e:
            logger.warning(f"Project summary generation failed: {e}")
            return overview
        return summary or overview

    def _overview(self, symbol_table: Dict[str, Sequence[SymbolRecord]]) -> str:
        from codeweave_mcp.parsers.language_configs import get_language_for_file

        languages = Counter(get_language_for_file(path) or "other" for path in symbol_table)
        classes: List[str] = []
        functions: List[str] = []
        for path in sorted(symbol_table):
            for symbol in symbol_table[path]:
                if symbol.kind == SymbolKind.CLASS:
                    classes.append(f"{symbol.name} ({path})")
                elif symbol.kind == SymbolKind.FUNCTION:
                    functions.append(f"{symbol.name} ({path})")

        lines = [
            f"Files: {len(symbol_table)}",
            "Languages: " + ", ".join(f"{lang} ({n})" for lang, n in languages.most_common()),
        ]
        if classes:
            lines.append("Classes: " + ", ".join(classes[:20]))
        if functions:
            lines.append("Functions: " + ", ".join(functions[:20]))
        return "\n".join(lines)
