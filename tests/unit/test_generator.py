"""Unit tests for the Generator (descriptions, embeddings, project summary)."""
from unittest.mock import MagicMock

import pytest

from codeweave_mcp.core.interfaces import ILanguageModel
from codeweave_mcp.core.models import Chunk, SourceRange, SymbolKind, SymbolRecord
from codeweave_mcp.indexing.generator import Generator


class EchoModel(ILanguageModel):
    def __init__(self, reply="Adds two numbers.", error=None):
        self.reply = reply
        self.error = error
        self.prompts = []

    def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.reply


def symbol(name, kind, path):
    return SymbolRecord(name, kind, SourceRange(0, 0, 1, 0), path)


@pytest.fixture
def chunk():
    return Chunk(
        id="calc.py::add",
        filepath="calc.py",
        text="def add(a, b):\n    return a + b",
        language="python",
        symbol=symbol("add", SymbolKind.FUNCTION, "calc.py"),
    )


class TestDescribe:

    def test_no_model_no_description(self, chunk, fake_embedder):
        assert Generator(fake_embedder).describe(chunk) is None

    def test_disabled_descriptions(self, chunk, fake_embedder):
        model = EchoModel()
        assert Generator(fake_embedder, model, describe_chunks=False).describe(chunk) is None
        assert model.prompts == []

    def test_description(self, chunk, fake_embedder):
        model = EchoModel(reply="  Adds two numbers.  ")
        generator = Generator(fake_embedder, model, describe_chunks=True)

        assert generator.describe(chunk) == "Adds two numbers."
        assert "function add from calc.py" in model.prompts[0]

    def test_model_failure_returns_none(self, chunk, fake_embedder):
        generator = Generator(fake_embedder, EchoModel(error=RuntimeError("rate limited")), describe_chunks=True)
        assert generator.describe(chunk) is None

    def test_embedding_text_prepends_description(self, chunk, fake_embedder):
        generator = Generator(fake_embedder)
        assert generator.embedding_text(chunk, "Adds.") == "Adds.\n\n" + chunk.text
        assert generator.embedding_text(chunk) == chunk.text


class TestEmbed:

    def test_delegates_to_provider(self):
        provider = MagicMock()
        provider.embed_batch.return_value = [[0.1], [0.2]]
        generator = Generator(provider)

        assert generator.embed_batch(["a", "b"]) == [[0.1], [0.2]]
        generator.embed("q", is_query=True)
        provider.embed.assert_called_once_with("q", is_query=True)


class TestSummarizeProject:

    @pytest.fixture
    def table(self):
        return {
            "app.py": [symbol("App", SymbolKind.CLASS, "app.py"), symbol("main", SymbolKind.FUNCTION, "app.py")],
            "web/index.ts": [symbol("render", SymbolKind.FUNCTION, "web/index.ts")],
            "util.py": [],
        }

    def test_empty(self, fake_embedder):
        assert Generator(fake_embedder).summarize_project({}) == ""

    def test_structural_overview(self, table, fake_embedder):
        summary = Generator(fake_embedder).summarize_project(table)

        assert summary.splitlines()[0] == "Files: 3"
        assert "python (2)" in summary
        assert "typescript (1)" in summary
        assert "Classes: App (app.py)" in summary
        assert "main (app.py)" in summary and "render (web/index.ts)" in summary

    def test_model_summary(self, table, fake_embedder):
        model = EchoModel(reply="A small web app.")
        assert Generator(fake_embedder, model).summarize_project(table) == "A small web app."
        assert "Files: 3" in model.prompts[0]

    def test_model_failure_falls_back_to_overview(self, table, fake_embedder):
        generator = Generator(fake_embedder, EchoModel(error=TimeoutError()))
        assert generator.summarize_project(table).startswith("Files: 3")
