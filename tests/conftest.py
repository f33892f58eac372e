import hashlib
import math
import re
from pathlib import Path
from typing import List

import pytest

from codeweave_mcp.core.config import EmbeddingConfig, IndexerConfig
from codeweave_mcp.core.interfaces import IEmbeddingProvider
from codeweave_mcp.mcp.state import reset_state

FAKE_DIMENSIONS = 512
_WORD = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words hashing embedder; texts sharing words score higher."""

    model_name = "fake-hash"

    def __init__(self, dimensions: int = FAKE_DIMENSIONS, fail_on: str = None):
        self._dimensions = dimensions
        self.fail_on = fail_on
        self.embedded: List[str] = []

    @property
    def dimensions(self) -> int:
        return self._dimensions

    def embed(self, text: str, is_query: bool = False) -> List[float]:
        from codeweave_mcp.core.exceptions import EmbeddingError

        if self.fail_on and self.fail_on in text:
            raise EmbeddingError(f"refusing to embed text containing {self.fail_on!r}")
        if not is_query:
            self.embedded.append(text)

        vector = [0.0] * self._dimensions
        vector[0] = 0.01
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % self._dimensions
            vector[bucket] += 1.0
        norm = math.sqrt(sum(v * v for v in vector))
        return [v / norm for v in vector]

    def embed_batch(self, texts: List[str], is_query: bool = False) -> List[List[float]]:
        return [self.embed(text, is_query=is_query) for text in texts]


@pytest.fixture(autouse=True)
def clean_state():
    """Reset MCP state before and after each test."""
    reset_state()
    yield
    reset_state()


@pytest.fixture
def fake_embedder():
    return FakeEmbeddingProvider()


@pytest.fixture
def patch_embedding_provider(monkeypatch):
    """Make every service built from a config use a fresh fake embedder."""
    created = []

    def factory(config: EmbeddingConfig):
        provider = FakeEmbeddingProvider()
        created.append(provider)
        return provider

    monkeypatch.setattr("codeweave_mcp.indexing.service.create_embedding_provider", factory)
    return created


@pytest.fixture
def fast_config():
    """Config with a short debounce so queue tests stay quick."""
    return IndexerConfig(quiet_interval_seconds=0.05)


@pytest.fixture
def temp_project(tmp_path):
    """Create a minimal Python project for testing."""
    project = tmp_path / "project"
    project.mkdir()

    (project / "main.py").write_text('''
from utils import load_config


def hello(name: str) -> str:
    """Say hello to someone."""
    return f"Hello, {name}!"


class Calculator:
    """A simple calculator."""

    def add(self, a: int, b: int) -> int:
        return a + b

    def multiply(self, a: int, b: int) -> int:
        return a * b
''')

    (project / "utils.py").write_text('''
import json


def load_config(path: str) -> dict:
    """Load configuration from JSON file."""
    with open(path) as f:
        return json.load(f)


CONSTANT_VALUE = 42
''')

    return project


@pytest.fixture
def multi_lang_project(tmp_path):
    """Create a multi-language project with resolvable imports."""
    project = tmp_path / "multi"
    (project / "src" / "lib").mkdir(parents=True)
    (project / "include").mkdir()
    (project / "node_modules" / "dep").mkdir(parents=True)

    (project / "app.py").write_text('def main(): pass\n')
    (project / "helper.js").write_text('function helper() { return 1; }\n')
    (project / "server.go").write_text('package main\n\nfunc main() {}\n')
    (project / "src" / "main.ts").write_text(
        "import { add } from './lib/math';\n"
        "import * as path from 'path';\n"
        "export function run(): number { return add(1, 2); }\n"
    )
    (project / "src" / "lib" / "math.ts").write_text(
        "export function add(a: number, b: number): number { return a + b; }\n"
    )
    (project / "src" / "calc.c").write_text('#include "calc.h"\n#include <stdio.h>\nint calc(void) { return 1; }\n')
    (project / "include" / "calc.h").write_text("int calc(void);\n")
    (project / "node_modules" / "dep" / "index.js").write_text("module.exports = 1;\n")
    (project / "README.md").write_text("# multi\n")
    return project


@pytest.fixture
def python_project_fixture():
    """Return path to the static Python project fixture."""
    return Path(__file__).parent / "fixtures" / "sample_projects" / "python_project"


@pytest.fixture
def web_project_fixture():
    """Return path to the static TypeScript project fixture."""
    return Path(__file__).parent / "fixtures" / "sample_projects" / "web_project"


@pytest.fixture
def embedder_cls():
    """The fake embedder class, for tests that need custom failure behaviour."""
    return FakeEmbeddingProvider
