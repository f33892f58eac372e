"""Unit tests for CodeParser chunking and import edge resolution."""
import pytest

from codeweave_mcp.core.exceptions import ParseError
from codeweave_mcp.core.interfaces import ISymbolRetriever
from codeweave_mcp.core.models import GraphEdge, SourceRange, SymbolKind, SymbolRecord
from codeweave_mcp.parsers.code_parser import CodeParser


class StubRetriever(ISymbolRetriever):
    """Returns canned outlines per path, or raises for paths listed in `broken`."""

    def __init__(self, outlines=None, broken=()):
        self.outlines = outlines or {}
        self.broken = set(broken)

    def get_symbols(self, filepath, text=None):
        if filepath in self.broken:
            raise ParseError(filepath, "python", "grammar exploded")
        return self.outlines.get(filepath, [])


def sym(name, path, start, end, kind=SymbolKind.FUNCTION, children=()):
    return SymbolRecord(name, kind, SourceRange(start, 0, end, 0), path, tuple(children))


SOURCE = "def first():\n    return 1\n\ndef second():\n    return 2\n"


class TestChunking:

    def test_one_chunk_per_symbol_in_source_order(self):
        outline = [sym("second", "m.py", 3, 4), sym("first", "m.py", 0, 1)]
        parser = CodeParser(StubRetriever({"m.py": outline}))

        result = parser.parse_file("m.py", SOURCE)

        assert [c.id for c in result.chunks] == ["m.py::first", "m.py::second"]
        assert [c.chunk_index for c in result.chunks] == [0, 1]
        assert "return 1" in result.chunks[0].text
        assert "return 2" not in result.chunks[0].text
        assert result.language == "python"
        assert not result.degraded

    def test_chunk_header(self):
        outline = [sym("Calc", "m.py", 0, 1, SymbolKind.CLASS, [sym("add", "m.py", 1, 1, SymbolKind.METHOD)])]
        parser = CodeParser(StubRetriever({"m.py": outline}))

        text = parser.parse_file("m.py", "class Calc:\n    def add(self): pass\n").chunks[0].text

        assert text.startswith("# m.py:1\nclass: Calc\nmembers: add\n")

    def test_duplicate_symbol_names_get_line_suffix(self):
        outline = [sym("run", "m.py", 0, 1), sym("run", "m.py", 3, 4)]
        parser = CodeParser(StubRetriever({"m.py": outline}))

        ids = [c.id for c in parser.parse_file("m.py", SOURCE).chunks]

        assert ids == ["m.py::run", "m.py::run:4"]

    def test_no_symbols_gives_whole_file_chunk(self):
        parser = CodeParser(StubRetriever())

        result = parser.parse_file("notes/config.py", "X = 1\n")

        assert len(result.chunks) == 1
        chunk = result.chunks[0]
        assert chunk.id == "notes/config.py"
        assert chunk.is_whole_file
        assert "X = 1" in chunk.text

    def test_outline_failure_degrades_to_whole_file(self):
        parser = CodeParser(StubRetriever(broken=["m.py"]))

        result = parser.parse_file("m.py", SOURCE)

        assert result.degraded
        assert "grammar exploded" in result.error
        assert [c.id for c in result.chunks] == ["m.py"]
        assert result.symbols == ()

    def test_chunk_text_is_truncated(self):
        parser = CodeParser(StubRetriever(), max_chunk_chars=50)

        text = parser.parse_file("big.py", "x = 1\n" * 100).chunks[0].text

        assert len(text) == 53
        assert text.endswith("...")

    def test_unknown_language(self):
        result = CodeParser(StubRetriever()).parse_file("README.md", "# hi")
        assert result.language == "unknown"
        assert result.edges == ()


class TestPythonEdges:

    @pytest.fixture
    def workspace(self, tmp_path):
        (tmp_path / "pkg" / "sub").mkdir(parents=True)
        (tmp_path / "src" / "lib").mkdir(parents=True)
        for rel in ("app.py", "utils.py", "pkg/__init__.py", "pkg/models.py",
                    "pkg/sub/__init__.py", "pkg/sub/helpers.py", "src/lib/core.py"):
            (tmp_path / rel).write_text("")
        return tmp_path

    def targets(self, workspace, path, text):
        parser = CodeParser(StubRetriever(), workspace_root=str(workspace))
        edges = parser.extract_edges(path, text)
        assert all(e.source == path for e in edges)
        return [e.target for e in edges]

    def test_absolute_imports(self, workspace):
        text = "import utils\nimport json, pkg.models as m\nfrom pkg import models\n"
        assert self.targets(workspace, "app.py", text) == ["pkg/__init__.py", "pkg/models.py", "utils.py"]

    def test_src_layout(self, workspace):
        assert self.targets(workspace, "app.py", "from lib.core import thing\n") == ["src/lib/core.py"]

    def test_relative_imports(self, workspace):
        text = "from . import helpers\nfrom .. import models\nfrom ..models import User\n"
        assert self.targets(workspace, "pkg/sub/mod.py", text) == [
            "pkg/__init__.py",
            "pkg/models.py",
            "pkg/sub/__init__.py",
            "pkg/sub/helpers.py",
        ]

    def test_relative_import_above_workspace_root_dropped(self, workspace):
        assert self.targets(workspace, "pkg/mod.py", "from ..utils import load\n") == ["utils.py"]
        assert self.targets(workspace, "pkg/mod.py", "from ...utils import load\n") == []
        assert self.targets(workspace, "app.py", "from .. import utils\n") == []
        assert self.targets(workspace, "app.py", "from . import utils\n") == ["utils.py"]

    def test_parenthesized_multiline_import(self, workspace):
        text = "from pkg import (\n    models,\n    missing,\n)\n"
        assert self.targets(workspace, "app.py", text) == ["pkg/__init__.py", "pkg/models.py"]

    def test_external_and_self_imports_dropped(self, workspace):
        text = "import os\nimport numpy as np\nimport utils\n"
        assert self.targets(workspace, "utils.py", text) == []

    def test_sample_python_project(self, python_project_fixture):
        parser = CodeParser(StubRetriever(), workspace_root=str(python_project_fixture))
        main_text = (python_project_fixture / "main.py").read_text()
        utils_text = (python_project_fixture / "utils.py").read_text()

        assert parser.extract_edges("main.py", main_text) == [GraphEdge("main.py", "utils.py")]
        assert parser.extract_edges("utils.py", utils_text) == []

    def test_without_workspace_no_edges(self):
        parser = CodeParser(StubRetriever())
        assert parser.extract_edges("app.py", "import utils\n") == []


class TestEcmascriptEdges:

    def test_web_project(self, web_project_fixture):
        parser = CodeParser(StubRetriever(), workspace_root=str(web_project_fixture))
        index_text = (web_project_fixture / "src" / "index.ts").read_text()
        app_text = (web_project_fixture / "src" / "app.ts").read_text()

        assert parser.extract_edges("src/index.ts", index_text) == [
            GraphEdge("src/index.ts", "src/app.ts"),
            GraphEdge("src/index.ts", "src/util/format.ts"),
        ]
        assert [e.target for e in parser.extract_edges("src/app.ts", app_text)] == ["src/components/index.ts"]

    def test_require_and_dynamic_import(self, tmp_path):
        (tmp_path / "a.js").write_text("")
        (tmp_path / "b.mjs").write_text("")
        parser = CodeParser(StubRetriever(), workspace_root=str(tmp_path))

        text = "const a = require('./a');\nconst b = await import('./b.mjs');\nconst fs = require('fs');\n"
        assert [e.target for e in parser.extract_edges("main.js", text)] == ["a.js", "b.mjs"]

    def test_specifier_escaping_workspace_is_dropped(self, tmp_path):
        parser = CodeParser(StubRetriever(), workspace_root=str(tmp_path))
        assert parser.extract_edges("main.ts", "import x from '../outside';\n") == []


class TestIncludeEdges:

    def test_quoted_includes_resolve(self, multi_lang_project):
        parser = CodeParser(StubRetriever(), workspace_root=str(multi_lang_project))
        text = (multi_lang_project / "src" / "calc.c").read_text()

        assert [e.target for e in parser.extract_edges("src/calc.c", text)] == ["include/calc.h"]
