"""
Vector query: the read path.

Given a natural-language query:

1. Embed it with the store's embedding provider (the model used at index
   time; mixing models would make similarity scores meaningless)
2. Fetch the top-k nearest chunks
3. Keep the best chunk per file, ranked by similarity (ties broken by
   chunk id so results are deterministic)
4. Expand each hit file with its direct graph neighbours that are not
   already in the result, up to ``expansion_cap`` extra files in total

The read path never raises for a partial or missing index: failures are
logged and whatever was gathered so far is returned.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

from codeweave_mcp.core.models import CodeDocument, QueryResult, VectorHit
from codeweave_mcp.graph.code_graph import CodeGraph
from codeweave_mcp.indexing.vector_store import VectorStore

logger = logging.getLogger(__name__)


class VectorQuery:
    """Similarity search plus one-hop graph expansion."""

    def __init__(self, expansion_cap: int = 5, max_document_chars: int = 4000):
        self.expansion_cap = expansion_cap
        self.max_document_chars = max_document_chars

    def retrieve_documents_with_related_code(
        self,
        query: str,
        graph: CodeGraph,
        store: VectorStore,
        workspace_root: str,
        k: int = 3,
    ) -> QueryResult:
        """
        Ranked code documents for a query, with related files appended.

        Args:
            query: Natural-language question or code fragment
            graph: Code graph to expand hits with (read only)
            store: Vector store holding the chunk embeddings
            workspace_root: Root that expanded file paths are read from
            k: Number of nearest chunks to fetch

        Returns:
            QueryResult with at most ``k + expansion_cap`` documents
        """
        if not query.strip():
            return QueryResult()

        try:
            embedding = store.embedding_provider.embed(query, is_query=True)
            hits = store.query(embedding, k)
        except Exception as e:
            logger.warning(f"Vector search failed for query {query[:60]!r}: {e}")
            return QueryResult()

        documents = [self._hit_document(hit) for hit in self._rank_hits(hits)]
        present: Set[str] = {doc.filepath for doc in documents}

        try:
            documents.extend(self._expand(documents, present, graph, store, Path(workspace_root)))
        except Exception as e:
            logger.warning(f"Graph expansion failed: {e}")

        paths = list(dict.fromkeys(doc.filepath for doc in documents))
        logger.debug(f"Query returned {len(documents)} documents ({len(hits)} raw hits)")
        return QueryResult(documents=documents, paths=paths)

    @staticmethod
    def _rank_hits(hits: List[VectorHit]) -> List[VectorHit]:
        """Best hit per file, highest score first, ties by chunk id."""
        ranked = []
        seen: Set[str] = set()
        for hit in sorted(hits, key=lambda h: (-h.score, h.chunk_id)):
            if hit.filepath not in seen:
                seen.add(hit.filepath)
                ranked.append(hit)
        return ranked

    @staticmethod
    def _hit_document(hit: VectorHit) -> CodeDocument:
        return CodeDocument(
            filepath=hit.filepath,
            text=hit.text,
            score=hit.score,
            source="vector",
            symbol=hit.symbol,
        )

    def _expand(
        self,
        hits: List[CodeDocument],
        present: Set[str],
        graph: CodeGraph,
        store: VectorStore,
        workspace_root: Path,
    ) -> List[CodeDocument]:
        expanded: List[CodeDocument] = []
        for hit in hits:
            for related in sorted(graph.get_related(hit.filepath, 1)):
                if len(expanded) >= self.expansion_cap:
                    return expanded
                if related in present:
                    continue
                try:
                    text = self._read_document(related, store, workspace_root)
                except Exception as e:
                    logger.warning(f"Skipping related file {related}: {e}")
                    continue
                if text is None:
                    continue
                present.add(related)
                expanded.append(CodeDocument(
                    filepath=related,
                    text=text,
                    score=hit.score,
                    source="graph",
                    related_to=hit.filepath,
                ))
        return expanded

    def _read_document(self, relpath: str, store: VectorStore, workspace_root: Path) -> Optional[str]:
        """File text from disk, falling back to stored chunks; truncated."""
        try:
            text = (workspace_root / relpath).read_text(encoding='utf-8', errors='replace')
        except OSError as e:
            logger.debug(f"Cannot read {relpath}, using stored chunks: {e}")
            chunks = store.get_file_chunks(relpath)
            if not chunks:
                return None
            text = "\n\n".join(chunks)

        if len(text) > self.max_document_chars:
            return text[:self.max_document_chars] + "..."
        return text
