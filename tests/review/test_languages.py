"""
Unit tests for language rules and heuristic structural analysis.
"""

import pytest

from diffscout.review.diff_parser import DiffParser
from diffscout.review.languages import (
    DEFAULT_RULE,
    LANGUAGE_RULES,
    ConstructKind,
    Normalization,
    normalized_tokens,
    rule_for_path,
    tokenize,
)
from diffscout.review.structure import (
    HeuristicStructuralAnalyzer,
    LineSpan,
    StaticStructuralAnalyzer,
    StructuralAnalysisUnavailable,
    StructuralMatchSet,
)


# =============================================================================
# UNIT TESTS: Rule lookup and tokenization
# =============================================================================

class TestRuleLookup:
    """Tests for picking a language rule by path."""

    @pytest.mark.parametrize("path,language", [
        ("src/app.py", "python"),
        ("src/types.pyi", "python"),
        ("web/App.TSX", "typescript"),
        ("web/index.mjs", "javascript"),
        ("cmd/main.go", "go"),
        ("src/lib.rs", "rust"),
        ("src/Main.java", "java"),
        ("README.md", "markup"),
        ("config/settings.yaml", "yaml"),
        ("deploy/chart.yml", "yaml"),
        ("pyproject.toml", "markup"),
    ])
    def test_known_extensions(self, path, language):
        assert rule_for_path(path).language == language

    def test_unknown_extension_falls_back(self):
        assert rule_for_path("Makefile") is DEFAULT_RULE
        assert DEFAULT_RULE.normalization == Normalization.WHITESPACE

    def test_every_rule_has_extensions(self):
        for name, rule in LANGUAGE_RULES.items():
            assert rule.language == name
            assert rule.extensions


class TestTokenization:
    """Tests for token extraction and normalization."""

    def test_string_literals_kept_whole(self):
        assert tokenize('x = "a  b"', Normalization.WHITESPACE) == ["x", "=", '"a  b"']

    def test_whitespace_is_ignored(self):
        assert tokenize("foo( a,b )", Normalization.WHITESPACE) == ["foo", "(", "a", ",", "b", ")"]

    def test_markup_splits_on_whitespace(self):
        assert tokenize("Hello, world!", Normalization.MARKUP) == ["Hello,", "world!"]

    def test_separators_drop_trailing_commas(self):
        with_comma = normalized_tokens(["foo(a, b,)"], Normalization.SEPARATORS)
        without = normalized_tokens(["foo(a, b)"], Normalization.SEPARATORS)
        assert with_comma == without

    def test_separators_drop_terminators(self):
        assert normalized_tokens(["return x;"], Normalization.SEPARATORS) == normalized_tokens(
            ["return x"], Normalization.SEPARATORS
        )

    def test_separators_drop_final_comma(self):
        assert normalized_tokens(["a,"], Normalization.SEPARATORS) == normalized_tokens(
            ["a"], Normalization.SEPARATORS
        )

    def test_whitespace_keeps_separators(self):
        assert normalized_tokens(["return x;"], Normalization.WHITESPACE) != normalized_tokens(
            ["return x"], Normalization.WHITESPACE
        )

    def test_indentation_prefixes_indent_depth(self):
        assert tokenize("    count += 1", Normalization.INDENTATION) == ["<indent:4>", "count", "+", "=", "1"]
        assert tokenize("\tpass", Normalization.INDENTATION) == ["<indent:4>", "pass"]
        assert tokenize("   ", Normalization.INDENTATION) == []

    def test_indentation_distinguishes_dedent(self):
        nested = normalized_tokens(["    count += 1"], Normalization.INDENTATION)
        dedented = normalized_tokens(["count += 1"], Normalization.INDENTATION)
        assert nested != dedented

    def test_indentation_ignores_intra_line_spacing(self):
        assert normalized_tokens(["    return a+b"], Normalization.INDENTATION) == normalized_tokens(
            ["    return a + b"], Normalization.INDENTATION
        )

    def test_indentation_languages(self):
        assert rule_for_path("src/app.py").normalization == Normalization.INDENTATION
        assert rule_for_path("config/settings.yaml").normalization == Normalization.INDENTATION

    def test_reordered_lines_have_equal_multisets(self):
        a = normalized_tokens(["import os", "import sys"], Normalization.WHITESPACE)
        b = normalized_tokens(["import sys", "import os"], Normalization.WHITESPACE)
        assert a == b


# =============================================================================
# UNIT TESTS: Definition patterns
# =============================================================================

class TestDefinitionPatterns:
    """Tests for per-language definition and import detection."""

    @pytest.mark.parametrize("language,line,expected", [
        ("python", "def top():", (ConstructKind.FUNCTION, "top")),
        ("python", "    async def fetch(self):", (ConstructKind.METHOD, "fetch")),
        ("python", "class Service(Base):", (ConstructKind.CLASS, "Service")),
        ("javascript", "export async function load(id) {", (ConstructKind.FUNCTION, "load")),
        ("javascript", "const handler = async (req) => {", (ConstructKind.FUNCTION, "handler")),
        ("javascript", "  render() {", (ConstructKind.METHOD, "render")),
        ("typescript", "export interface User {", (ConstructKind.DECLARATION, "User")),
        ("typescript", "export abstract class Repo {", (ConstructKind.CLASS, "Repo")),
        ("go", "func (s *Server) Start() error {", (ConstructKind.METHOD, "Start")),
        ("go", "func main() {", (ConstructKind.FUNCTION, "main")),
        ("go", "type Config struct {", (ConstructKind.CLASS, "Config")),
        ("rust", "pub async fn run(cfg: Config) {", (ConstructKind.FUNCTION, "run")),
        ("rust", "    fn helper(&self) {", (ConstructKind.METHOD, "helper")),
        ("rust", "impl Server {", (ConstructKind.DECLARATION, "Server")),
        ("java", "public class Main {", (ConstructKind.CLASS, "Main")),
        ("java", "    public void run() {", (ConstructKind.METHOD, "run")),
    ])
    def test_match_definition(self, language, line, expected):
        assert LANGUAGE_RULES[language].match_definition(line) == expected

    @pytest.mark.parametrize("language,line", [
        ("javascript", "    if (ready) {"),
        ("javascript", "    return compute(x);"),
        ("python", "    value = define(x)"),
        ("java", "        while (true) {"),
    ])
    def test_control_flow_is_not_a_definition(self, language, line):
        assert LANGUAGE_RULES[language].match_definition(line) is None

    @pytest.mark.parametrize("language,line", [
        ("python", "from os import path"),
        ("python", "import sys"),
        ("javascript", "const fs = require('fs');"),
        ("typescript", "import { x } from './x';"),
        ("rust", "use std::io;"),
    ])
    def test_imports(self, language, line):
        assert LANGUAGE_RULES[language].is_import(line)


# =============================================================================
# UNIT TESTS: Heuristic structural analyzer
# =============================================================================

CLASS_METHODS_PATCH = """\
@@ -1,2 +1,6 @@
 class Service:
     def start(self):
+        pass
+
+    def stop(self):
+        pass"""

SEPARATED_FUNCTIONS_PATCH = """\
@@ -1,2 +1,7 @@
 def existing():
     return 1
+
+
+# Added for the nightly job
+def added():
+    return 2"""

MOVED_FUNCTION_PATCH = """\
@@ -1,3 +1,1 @@
 import os
-def helper():
-    return 1
@@ -20,1 +18,3 @@
 x = 1
+def helper():
+    return 1"""


class TestHeuristicAnalyzer:
    """Tests for constructs derived from hunk lines."""

    @pytest.fixture
    def analyzer(self):
        return HeuristicStructuralAnalyzer()

    def _by_name(self, match_set: StructuralMatchSet):
        return {c.name: c for c in match_set.constructs}

    def test_spans_end_at_last_code_line_before_sibling(self, analyzer):
        file_change = DiffParser().parse_patch("src/service.py", CLASS_METHODS_PATCH)
        constructs = self._by_name(analyzer.analyze_sync(file_change))

        assert constructs["Service"].kind == ConstructKind.CLASS
        assert not constructs["Service"].is_new
        assert constructs["start"].kind == ConstructKind.METHOD
        assert constructs["start"].new_span == LineSpan(2, 3)
        assert constructs["stop"].is_new
        assert constructs["stop"].new_span == LineSpan(5, 6)
        assert constructs["stop"].old_span is None

    def test_separator_lines_belong_to_no_construct(self, analyzer):
        file_change = DiffParser().parse_patch("src/jobs.py", SEPARATED_FUNCTIONS_PATCH)
        match_set = analyzer.analyze_sync(file_change)
        constructs = self._by_name(match_set)

        assert constructs["existing"].new_span == LineSpan(1, 2)
        assert constructs["added"].new_span == LineSpan(6, 7)
        assert [c.name for c in match_set.touching(file_change.hunks[0])] == ["added"]

    def test_presence_is_file_wide(self, analyzer):
        """A function moved between hunks exists on both sides."""
        file_change = DiffParser().parse_patch("src/util.py", MOVED_FUNCTION_PATCH)
        helpers = [c for c in analyzer.analyze_sync(file_change).constructs if c.name == "helper"]

        assert len(helpers) == 2
        assert all(c.old_present and c.new_present for c in helpers)

    def test_touching_filters_by_changed_lines(self, analyzer):
        file_change = DiffParser().parse_patch("src/service.py", CLASS_METHODS_PATCH)
        match_set = analyzer.analyze_sync(file_change)

        names = {c.name for c in match_set.touching(file_change.hunks[0])}
        assert names == {"Service", "start", "stop"}

    def test_unknown_language_has_no_constructs(self, analyzer):
        file_change = DiffParser().parse_patch("Makefile", "@@ -1 +1 @@\n-all:\n+all: build")
        assert analyzer.analyze_sync(file_change).constructs == ()

    def test_line_span_contains(self):
        span = LineSpan(3, 5)

        assert span.contains(3)
        assert span.contains(5)
        assert not span.contains(6)
        assert not span.contains(None)

    @pytest.mark.asyncio
    async def test_async_analyze_matches_sync(self, analyzer):
        file_change = DiffParser().parse_patch("src/service.py", CLASS_METHODS_PATCH)
        assert await analyzer.analyze(file_change) == analyzer.analyze_sync(file_change)


class TestStaticAnalyzer:
    """Tests for serving precomputed match sets."""

    @pytest.mark.asyncio
    async def test_returns_match_set_for_path(self):
        match_set = StructuralMatchSet(path="a.py")
        file_change = DiffParser().parse_patch("a.py", "@@ -1 +1 @@\n-a\n+b")

        assert await StaticStructuralAnalyzer({"a.py": match_set}).analyze(file_change) is match_set

    @pytest.mark.asyncio
    async def test_missing_path_raises(self):
        file_change = DiffParser().parse_patch("b.py", "@@ -1 +1 @@\n-a\n+b")

        with pytest.raises(StructuralAnalysisUnavailable):
            await StaticStructuralAnalyzer({}).analyze(file_change)
