"""Unit tests for VectorQuery ranking and graph expansion."""
from unittest.mock import MagicMock

import pytest

from codeweave_mcp.core.models import GraphEdge, VectorHit
from codeweave_mcp.graph.code_graph import CodeGraph
from codeweave_mcp.indexing.vector_query import VectorQuery


class StubStore:
    """Returns canned hits; stored chunks stand in for files missing on disk."""

    def __init__(self, hits, chunks=None):
        self.hits = hits
        self.chunks = chunks or {}
        self.embedding_provider = MagicMock()
        self.embedding_provider.embed.return_value = [1.0, 0.0]

    def query(self, embedding, k):
        return sorted(self.hits, key=lambda h: -h.score)[:k]

    def get_file_chunks(self, path):
        return self.chunks.get(path, [])


def hit(path, score, symbol="f", chunk_id=None):
    return VectorHit(chunk_id=chunk_id or f"{path}::{symbol}", filepath=path, score=score, text=f"code of {path}", symbol=symbol)


@pytest.fixture
def graph():
    g = CodeGraph()
    g.upsert_file("app.py", [], [GraphEdge("app.py", "db.py"), GraphEdge("app.py", "auth.py")])
    g.upsert_file("db.py", [], [])
    g.upsert_file("auth.py", [], [GraphEdge("auth.py", "crypto.py")])
    g.upsert_file("crypto.py", [], [])
    return g


@pytest.fixture
def workspace(tmp_path):
    for name in ("app.py", "db.py", "auth.py", "crypto.py"):
        (tmp_path / name).write_text(f"# {name}\n")
    return tmp_path


class TestRanking:

    def test_best_hit_per_file_in_score_order(self, graph, workspace):
        store = StubStore([
            hit("db.py", 0.7),
            hit("app.py", 0.9, "main"),
            hit("app.py", 0.8, "helper"),
        ])

        result = VectorQuery(expansion_cap=0).retrieve_documents_with_related_code(
            "open a connection", graph, store, str(workspace), k=3
        )

        assert [(d.filepath, d.symbol) for d in result.documents] == [("app.py", "main"), ("db.py", "f")]
        assert all(d.source == "vector" for d in result.documents)
        store.embedding_provider.embed.assert_called_once_with("open a connection", is_query=True)

    def test_ties_broken_by_chunk_id(self, graph, workspace):
        hits = [hit("db.py", 0.5), hit("auth.py", 0.5), hit("app.py", 0.5)]
        query = VectorQuery(expansion_cap=0)

        first = query.retrieve_documents_with_related_code("q", graph, StubStore(hits), str(workspace))
        second = query.retrieve_documents_with_related_code("q", graph, StubStore(hits[::-1]), str(workspace))

        assert first.paths == ["app.py", "auth.py", "db.py"]
        assert second.paths == first.paths


class TestExpansion:

    def test_neighbours_appended_after_hits(self, graph, workspace):
        store = StubStore([hit("auth.py", 0.9)])

        result = VectorQuery().retrieve_documents_with_related_code("login", graph, store, str(workspace), k=1)

        assert result.paths == ["auth.py", "app.py", "crypto.py"]
        expanded = result.documents[1:]
        assert all(d.source == "graph" and d.related_to == "auth.py" for d in expanded)
        assert all(d.score == 0.9 for d in expanded)
        assert expanded[0].text == "# app.py\n"

    def test_hits_are_not_duplicated_by_expansion(self, graph, workspace):
        store = StubStore([hit("app.py", 0.9), hit("db.py", 0.8)])

        result = VectorQuery().retrieve_documents_with_related_code("q", graph, store, str(workspace), k=2)

        assert result.paths == ["app.py", "db.py", "auth.py"]
        assert len(result.documents) == 3

    def test_expansion_is_capped(self, tmp_path):
        g = CodeGraph()
        neighbours = [f"n{i:02d}.py" for i in range(50)]
        g.upsert_file("hub.py", [], [GraphEdge("hub.py", n) for n in neighbours])
        for n in neighbours:
            g.upsert_file(n, [], [])
            (tmp_path / n).write_text(n)

        store = StubStore([hit("hub.py", 1.0)])
        result = VectorQuery(expansion_cap=5).retrieve_documents_with_related_code("q", g, store, str(tmp_path), k=1)

        assert len(result.documents) == 6
        assert result.paths == ["hub.py"] + neighbours[:5]

    def test_falls_back_to_stored_chunks(self, graph, tmp_path):
        store = StubStore([hit("auth.py", 0.9)], chunks={"app.py": ["chunk one", "chunk two"]})

        result = VectorQuery().retrieve_documents_with_related_code("q", graph, store, str(tmp_path), k=1)

        # crypto.py is neither on disk nor stored, so it is skipped
        assert result.paths == ["auth.py", "app.py"]
        assert result.documents[1].text == "chunk one\n\nchunk two"

    def test_expanded_text_is_truncated(self, graph, workspace):
        (workspace / "app.py").write_text("x" * 100)
        store = StubStore([hit("auth.py", 0.9)])

        result = VectorQuery(max_document_chars=10).retrieve_documents_with_related_code(
            "q", graph, store, str(workspace), k=1
        )

        assert result.documents[1].text == "x" * 10 + "..."


class TestFailures:

    def test_blank_query(self, graph, workspace):
        store = StubStore([hit("app.py", 0.9)])
        assert VectorQuery().retrieve_documents_with_related_code("   ", graph, store, str(workspace)).documents == []
        store.embedding_provider.embed.assert_not_called()

    def test_embedding_failure_returns_empty(self, graph, workspace):
        store = StubStore([hit("app.py", 0.9)])
        store.embedding_provider.embed.side_effect = RuntimeError("model gone")

        result = VectorQuery().retrieve_documents_with_related_code("q", graph, store, str(workspace))

        assert result.documents == []
        assert result.paths == []

    def test_empty_index(self, graph, workspace):
        result = VectorQuery().retrieve_documents_with_related_code("q", graph, StubStore([]), str(workspace))
        assert result.documents == []

    def test_hit_missing_from_graph_is_kept(self, workspace):
        store = StubStore([hit("orphan.py", 0.4)])

        result = VectorQuery().retrieve_documents_with_related_code("q", CodeGraph(), store, str(workspace))

        assert result.paths == ["orphan.py"]

    def test_unreadable_neighbour_keeps_other_expansions(self, graph, workspace):
        (workspace / "app.py").unlink()
        store = StubStore([hit("auth.py", 0.9)])
        store.get_file_chunks = MagicMock(side_effect=RuntimeError("store closed"))

        result = VectorQuery().retrieve_documents_with_related_code("q", graph, store, str(workspace), k=1)

        assert result.paths == ["auth.py", "crypto.py"]
        assert result.documents[1].source == "graph"
        store.get_file_chunks.assert_called_once_with("app.py")
