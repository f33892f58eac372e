"""Unit tests for inclusion filters and brace expansion."""
import pytest

from codeweave_mcp.core.config import DEFAULT_EXCLUDE
from codeweave_mcp.core.exceptions import InvalidFilterError
from codeweave_mcp.indexing.inclusion_filter import InclusionFilter, expand_braces


class TestExpandBraces:

    def test_simple(self):
        assert expand_braces("*.{ts,tsx}") == ["*.ts", "*.tsx"]

    def test_multiple_groups(self):
        assert expand_braces("{src,lib}/**/*.{c,h}") == [
            "src/**/*.c", "src/**/*.h", "lib/**/*.c", "lib/**/*.h",
        ]

    def test_nested(self):
        assert expand_braces("a.{js,{ts,tsx}}") == ["a.js", "a.ts", "a.tsx"]

    def test_no_braces(self):
        assert expand_braces("src/**") == ["src/**"]

    @pytest.mark.parametrize("pattern", ["*.{ts,tsx", "*.ts}", "{a,{b}"])
    def test_unbalanced(self, pattern):
        with pytest.raises(InvalidFilterError):
            expand_braces(pattern)


class TestMatches:

    def test_default_accepts_supported_sources(self):
        f = InclusionFilter()

        assert f.matches("main.py")
        assert f.matches("src/deep/app.tsx")
        assert not f.matches("README.md")
        assert not f.matches("node_modules/dep/index.js")
        assert not f.matches(".codeweave/chroma/x.py")

    def test_editor_style_glob(self):
        f = InclusionFilter.from_spec("src/**/*.{ts,tsx}")

        assert f.matches("src/app/main.ts")
        assert f.matches("src/App.tsx")
        assert not f.matches("lib/main.ts")
        assert not f.matches("src/main.js")

    def test_exclude_wins(self):
        f = InclusionFilter(include=["*.py"], exclude=["tests/"])

        assert f.matches("pkg/mod.py")
        assert not f.matches("tests/test_mod.py")

    def test_windows_separators(self):
        assert InclusionFilter(include=["src/**/*.py"], exclude=[]).matches("src\\pkg\\mod.py")


class TestFromSpec:

    def test_none_is_default(self):
        assert InclusionFilter.from_spec(None).to_dict() == InclusionFilter().to_dict()

    def test_filter_passthrough(self):
        f = InclusionFilter(include=["*.py"])
        assert InclusionFilter.from_spec(f) is f

    def test_mapping(self):
        f = InclusionFilter.from_spec({"include": "*.go", "exclude": ["vendor/"]})

        assert f.include == ["*.go"]
        assert f.exclude == ["vendor/"]
        assert not f.matches("vendor/x.go")

    def test_mapping_unknown_key(self):
        with pytest.raises(InvalidFilterError, match="Unknown filter keys"):
            InclusionFilter.from_spec({"include": ["*.py"], "paths": ["x"]})

    def test_list_with_negations(self):
        f = InclusionFilter.from_spec(["*.py", "!tests/"])

        assert f.include == ["*.py"]
        assert f.exclude == DEFAULT_EXCLUDE + ["tests/"]
        assert not f.matches("tests/a.py")

    def test_list_of_only_negations_keeps_default_include(self):
        f = InclusionFilter.from_spec(["!legacy/"])
        assert f.matches("app.py")
        assert not f.matches("legacy/app.py")

    @pytest.mark.parametrize("spec", [42, {"include": [1]}, ["*.{py"], {"include": []}])
    def test_malformed(self, spec):
        with pytest.raises(InvalidFilterError):
            InclusionFilter.from_spec(spec)


class TestWalk:

    def test_walk_prunes_and_sorts(self, multi_lang_project):
        found = list(InclusionFilter().walk(multi_lang_project))

        assert found == [
            "app.py",
            "helper.js",
            "server.go",
            "include/calc.h",
            "src/calc.c",
            "src/main.ts",
            "src/lib/math.ts",
        ]

    def test_walk_with_custom_filter(self, multi_lang_project):
        f = InclusionFilter.from_spec({"include": ["src/**/*.{ts,c}"]})
        assert list(f.walk(multi_lang_project)) == ["src/calc.c", "src/main.ts", "src/lib/math.ts"]
