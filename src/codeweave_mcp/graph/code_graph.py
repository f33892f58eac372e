"""
CodeGraph - in-memory file dependency graph.

Nodes are indexed files (FileRecord); edges are directed file -> file
"imports" relationships held in a ``networkx.DiGraph``. Reading an edge
backwards gives "referenced-by".

Invariants:
    - A node exists for every indexed file
    - Live edges only connect existing nodes. An edge declared towards a
      file that is not (yet) indexed is remembered and becomes live when
      that file is upserted; removing a file prunes every live edge that
      touches it immediately, never lazily on read

Concurrency:
    The Indexer is the only writer. Vector Query reads concurrently, so all
    mutations and traversals run under one lock; a traversal never sees a
    half-applied upsert.

Usage:
    >>> graph = CodeGraph()
    >>> graph.upsert_file("a.py", [], [GraphEdge("a.py", "b.py")])
    >>> graph.upsert_file("b.py", [], [])
    >>> graph.get_related("b.py")
    {'a.py'}
"""

import logging
import threading
from typing import Dict, Iterable, List, Optional, Set, Tuple

import networkx as nx

from codeweave_mcp.core.models import FileRecord, GraphEdge, SymbolRecord

logger = logging.getLogger(__name__)

IMPORTS = "imports"


class CodeGraph:
    """File-level dependency graph with incremental updates."""

    def __init__(self):
        self._lock = threading.RLock()
        self.graph = nx.DiGraph()
        # Targets each file declared, whether or not the target is indexed
        self._declared: Dict[str, Set[str]] = {}
        # Reverse of _declared: target -> files that declared it
        self._wanted_by: Dict[str, Set[str]] = {}

    def upsert_file(
        self,
        path: str,
        symbols: Iterable[SymbolRecord],
        edges: Iterable[GraphEdge],
        language: str = "unknown",
        content_hash: str = "",
    ) -> None:
        """
        Replace a node's symbols and outgoing edges atomically.

        The node's previous outgoing edges are dropped before the new ones
        are added, so a file that stopped importing something loses that
        edge. Edges whose source is not ``path`` are ignored.
        """
        targets = {e.target for e in edges if e.source == path and e.target != path}
        record = FileRecord(
            path=path,
            content_hash=content_hash,
            language=language,
            symbols=tuple(symbols),
        )

        with self._lock:
            self._drop_outgoing(path)
            self.graph.add_node(path, record=record)

            self._declared[path] = targets
            for target in targets:
                self._wanted_by.setdefault(target, set()).add(path)
                if self.graph.has_node(target):
                    self.graph.add_edge(path, target, relation=IMPORTS)

            # Files indexed earlier that import this one
            for source in self._wanted_by.get(path, ()):
                if source != path and self.graph.has_node(source):
                    self.graph.add_edge(source, path, relation=IMPORTS)

        logger.debug(f"Graph upsert {path}: {len(targets)} declared imports")

    def remove_file(self, path: str) -> bool:
        """
        Delete a node and every edge touching it.

        Returns:
            True if the node existed
        """
        with self._lock:
            existed = self.graph.has_node(path)
            self._drop_outgoing(path)
            self._declared.pop(path, None)
            if existed:
                self.graph.remove_node(path)

        if existed:
            logger.debug(f"Graph removed {path}")
        return existed

    def get_related(self, path: str, depth: int = 1) -> Set[str]:
        """
        Files reachable from ``path`` within ``depth`` hops.

        Both directions count: files this one imports and files that
        import it. The starting path is never part of the result.
        """
        if depth < 1:
            return set()

        with self._lock:
            if not self.graph.has_node(path):
                return set()
            reachable = nx.single_source_shortest_path_length(
                self.graph.to_undirected(as_view=True), path, cutoff=depth
            )

        return set(reachable) - {path}

    def get_symbol_table(self) -> Dict[str, List[SymbolRecord]]:
        """Return a path -> top-level symbols snapshot."""
        with self._lock:
            return {
                p: list(data['record'].symbols)
                for p, data in sorted(self.graph.nodes(data=True))
            }

    def get_file(self, path: str) -> Optional[FileRecord]:
        with self._lock:
            if not self.graph.has_node(path):
                return None
            return self.graph.nodes[path]['record']

    def has_file(self, path: str) -> bool:
        with self._lock:
            return self.graph.has_node(path)

    def files(self) -> List[str]:
        with self._lock:
            return sorted(self.graph.nodes)

    def edges(self) -> List[Tuple[str, str]]:
        """All live edges as sorted (source, target) pairs."""
        with self._lock:
            return sorted(self.graph.edges)

    def clear(self) -> None:
        with self._lock:
            self.graph.clear()
            self._declared.clear()
            self._wanted_by.clear()

    def __len__(self) -> int:
        with self._lock:
            return self.graph.number_of_nodes()

    def __contains__(self, path: str) -> bool:
        return self.has_file(path)

    # =========================================================================
    # Private Helper Methods (caller holds the lock)
    # =========================================================================

    def _drop_outgoing(self, path: str) -> None:
        for target in self._declared.get(path, ()):
            wanted = self._wanted_by.get(target)
            if wanted is not None:
                wanted.discard(path)
                if not wanted:
                    del self._wanted_by[target]
        if self.graph.has_node(path):
            self.graph.remove_edges_from(list(self.graph.out_edges(path)))
