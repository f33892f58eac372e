"""
Vector store for chunk embeddings, backed by ChromaDB.

Each chunk is stored under its identifier with the file path, symbol name
and the file's content hash at embedding time. The first entry of every
file (``chunk_index == 0``) also carries the file's symbol outline and
outgoing import edges as JSON, so the Code Graph and the hash cache can be
rebuilt from the store alone when a workspace is reopened.

Usage:
    store = VectorStore("/repo/.codeweave/chroma", embedding_provider)
    store.initialize()
    store.create_index()
    store.upsert_file("src/app.py", entries, file_state)
    hits = store.query(vector, k=3)
"""

import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import chromadb

from codeweave_mcp.core.exceptions import StoreUnavailableError
from codeweave_mcp.core.interfaces import IEmbeddingProvider
from codeweave_mcp.core.models import StoredFileState, SymbolRecord, VectorEntry, VectorHit

logger = logging.getLogger(__name__)


class VectorStore:
    """
    ChromaDB collection wrapper keyed by chunk identifier.

    Holds the embedding provider used at index time so the query path can
    embed with the very same model.
    """

    def __init__(
        self,
        persist_path: Optional[str],
        embedding_provider: IEmbeddingProvider,
        collection_name: str = "codebase",
    ):
        """
        Args:
            persist_path: Directory for persistent storage (None = in-memory)
            embedding_provider: Provider used for documents and queries
            collection_name: ChromaDB collection name
        """
        self.persist_path = persist_path
        self.embedding_provider = embedding_provider
        self.collection_name = collection_name
        self._client = None
        self._collection = None
        # Serializes writes against close() so a write never lands after it
        self._write_lock = threading.RLock()
        self._closed = False

    def initialize(self) -> None:
        """
        Open the client and attach to an existing collection if present.

        Raises:
            StoreUnavailableError: If the storage cannot be opened
        """
        try:
            if self.persist_path:
                Path(self.persist_path).mkdir(parents=True, exist_ok=True)
                self._client = chromadb.PersistentClient(path=self.persist_path)
            else:
                self._client = chromadb.Client()
        except Exception as e:
            raise StoreUnavailableError(f"Cannot open vector store at {self.persist_path}: {e}") from e

        self._collection = self._find_collection()
        logger.debug(
            f"Vector store ready at {self.persist_path or 'memory'} "
            f"(existing index: {self._collection is not None})"
        )

    def _find_collection(self):
        try:
            return self._client.get_collection(name=self.collection_name)
        except Exception as e:
            # Chroma raises different types for a missing collection across versions
            logger.debug(f"No collection {self.collection_name}: {e}")
            return None

    @property
    def client(self):
        if self._client is None:
            raise StoreUnavailableError("Vector store is not initialized")
        return self._client

    def index_exists(self) -> bool:
        """True once a file has been written (the collection is created lazily)."""
        return self._collection is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """
        Refuse further writes. Waits for a write in progress to finish.

        Reads keep working, and ``delete_index`` may still drop the
        collection.
        """
        with self._write_lock:
            self._closed = True
        logger.debug(f"Vector store {self.collection_name} closed for writes")

    def _check_writable(self) -> None:
        if self._closed:
            raise StoreUnavailableError(f"Vector store {self.collection_name} is closed")

    def create_index(self) -> None:
        """
        Create the collection if missing (no-op when it exists).

        Raises:
            StoreUnavailableError: If the store is closed or creation fails
        """
        with self._write_lock:
            self._check_writable()
            self._create_collection()

    def _create_collection(self) -> None:
        try:
            self._collection = self.client.get_or_create_collection(
                name=self.collection_name,
                metadata={"hnsw:space": "cosine"},
            )
        except StoreUnavailableError:
            raise
        except Exception as e:
            raise StoreUnavailableError(f"Cannot create collection {self.collection_name}: {e}") from e

    def delete_index(self) -> None:
        """Drop the collection and every entry in it."""
        with self._write_lock:
            if self._collection is None and self._find_collection() is None:
                return
            self.client.delete_collection(self.collection_name)
            self._collection = None
        logger.info(f"Deleted vector index {self.collection_name}")

    def count(self) -> int:
        return self._collection.count() if self._collection is not None else 0

    # =========================================================================
    # Writes
    # =========================================================================

    def upsert_file(self, path: str, entries: List[VectorEntry], state: StoredFileState) -> None:
        """
        Replace every entry of one file.

        New ids are upserted first, then ids of the file that are no longer
        produced are deleted, so a file never has duplicate or stale entries.
        The collection is created on the first write.

        Raises:
            StoreUnavailableError: If the store has been closed
        """
        with self._write_lock:
            self._check_writable()
            if not entries:
                self.delete_file(path)
                return
            if self._collection is None:
                self._create_collection()

            metadatas = []
            for entry in entries:
                metadata: Dict[str, Any] = {
                    'filepath': path,
                    'content_hash': entry.content_hash,
                    'description': entry.description or "",
                }
                metadata.update(entry.metadata)
                if metadata.get('chunk_index', 0) == 0:
                    metadata['language'] = state.language
                    metadata['symbols'] = json.dumps([s.to_dict() for s in state.symbols])
                    metadata['edges'] = json.dumps(list(state.edges))
                metadatas.append(metadata)

            new_ids = [entry.chunk_id for entry in entries]
            self._collection.upsert(
                ids=new_ids,
                embeddings=[entry.embedding for entry in entries],
                documents=[entry.text for entry in entries],
                metadatas=metadatas,
            )

            stale = [i for i in self._ids_for_file(path) if i not in set(new_ids)]
            if stale:
                self._collection.delete(ids=stale)
        logger.debug(f"Stored {len(entries)} entries for {path} ({len(stale)} stale removed)")

    def delete_file(self, path: str) -> int:
        """
        Remove all entries of a file. Returns the number removed.

        Raises:
            StoreUnavailableError: If the store has been closed
        """
        with self._write_lock:
            self._check_writable()
            if self._collection is None:
                return 0
            ids = self._ids_for_file(path)
            if ids:
                self._collection.delete(ids=ids)
            return len(ids)

    def _ids_for_file(self, path: str) -> List[str]:
        result = self._collection.get(where={"filepath": path}, include=[])
        return list(result['ids'])

    # =========================================================================
    # Reads
    # =========================================================================

    def query(self, embedding: List[float], k: int) -> List[VectorHit]:
        """Nearest entries to a query vector, most similar first."""
        if self._collection is None or k < 1:
            return []
        n_results = min(k, self._collection.count())
        if n_results == 0:
            return []

        results = self._collection.query(
            query_embeddings=[embedding],
            n_results=n_results,
            include=["documents", "metadatas", "distances"],
        )

        hits = []
        for chunk_id, text, metadata, distance in zip(
            results['ids'][0],
            results['documents'][0],
            results['metadatas'][0],
            results['distances'][0],
        ):
            hits.append(VectorHit(
                chunk_id=chunk_id,
                filepath=metadata['filepath'],
                score=1.0 - float(distance),
                text=text or "",
                symbol=metadata.get('symbol', ""),
                description=metadata.get('description', ""),
                line_start=int(metadata.get('line_start', 0)),
            ))
        return hits

    def get_file_chunks(self, path: str) -> List[str]:
        """Stored chunk texts of a file in chunk order."""
        if self._collection is None:
            return []
        result = self._collection.get(where={"filepath": path}, include=["documents", "metadatas"])
        pairs = sorted(
            zip(result['metadatas'], result['documents']),
            key=lambda pair: pair[0].get('chunk_index', 0),
        )
        return [text for _, text in pairs if text]

    def get_file_hashes(self) -> Dict[str, str]:
        """Map of path -> content hash for every stored file."""
        return {state.path: state.content_hash for state in self.load_file_states()}

    def load_file_states(self) -> List[StoredFileState]:
        """Rebuild per-file state (hash, outline, edges) from the head entries."""
        if self._collection is None:
            return []

        result = self._collection.get(where={"chunk_index": 0}, include=["metadatas"])
        states = []
        for metadata in result['metadatas']:
            symbols = tuple(
                SymbolRecord.from_dict(s) for s in json.loads(metadata.get('symbols', '[]'))
            )
            states.append(StoredFileState(
                path=metadata['filepath'],
                content_hash=metadata['content_hash'],
                language=metadata.get('language', 'unknown'),
                symbols=symbols,
                edges=tuple(json.loads(metadata.get('edges', '[]'))),
            ))
        return sorted(states, key=lambda s: s.path)

    def list_files(self) -> List[str]:
        return [state.path for state in self.load_file_states()]
