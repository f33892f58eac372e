import pytest


def test_version():
    import codeweave_mcp
    assert codeweave_mcp.__version__ == "0.1.0"


@pytest.mark.parametrize("name", [
    "CodeIndexService",
    "IndexerConfig",
    "EmbeddingConfig",
    "CodeGraph",
    "CodeParser",
    "TreeSitterSymbolRetriever",
    "QueryResult",
    "FileChange",
])
def test_lazy_import(name):
    import codeweave_mcp
    assert hasattr(codeweave_mcp, name)


def test_lazy_import_resolves_real_class():
    import codeweave_mcp
    from codeweave_mcp.graph.code_graph import CodeGraph
    assert codeweave_mcp.CodeGraph is CodeGraph


def test_lazy_import_invalid_name():
    import codeweave_mcp
    with pytest.raises(AttributeError):
        _ = codeweave_mcp.NonExistentClass


def test_all_exported_names_are_accessible():
    import codeweave_mcp
    for name in codeweave_mcp.__all__:
        assert hasattr(codeweave_mcp, name)
