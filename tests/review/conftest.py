"""
Shared fixtures for review pipeline tests.

Diff fixtures are hand-written unified diffs whose hunk headers agree with
their bodies, so every fixture parses cleanly unless a test says otherwise.
"""

import pytest

from diffscout.config import DiffScoutConfig
from diffscout.review.classifier import ChangeClassifier
from diffscout.review.diff_parser import DiffParser
from diffscout.review.errors import RateLimitedError
from diffscout.review.models import FileChange
from diffscout.review.structure import StructuralMatchSet


# =============================================================================
# DIFF FIXTURES
# =============================================================================

MIXED_PR_DIFF = """\
diff --git a/package-lock.json b/package-lock.json
index 1111111..2222222 100644
--- a/package-lock.json
+++ b/package-lock.json
@@ -1,2 +1,2 @@
 {
-  "version": "1.0.0"
+  "version": "1.0.1"
diff --git a/src/format_me.py b/src/format_me.py
index 3333333..4444444 100644
--- a/src/format_me.py
+++ b/src/format_me.py
@@ -1,2 +1,2 @@
-def add(a,b):
-    return a+b
+def add(a, b):
+    return a + b
diff --git a/src/billing.py b/src/billing.py
index 5555555..6666666 100644
--- a/src/billing.py
+++ b/src/billing.py
@@ -1,2 +1,2 @@
 def total(items):
-    return sum(items)
+    return sum(items) * 1.2
diff --git a/src/reports.py b/src/reports.py
new file mode 100644
index 0000000..7777777
--- /dev/null
+++ b/src/reports.py
@@ -0,0 +1,2 @@
+def build_report(rows):
+    return [r for r in rows if r]
"""


# =============================================================================
# COLLABORATOR DOUBLES
# =============================================================================

class FailingAnalyzer:
    """Structural analyzer that always raises the given exception."""

    def __init__(self, exc: Exception):
        self.exc = exc
        self.calls: list[str] = []

    async def analyze(self, file_change: FileChange) -> StructuralMatchSet:
        self.calls.append(file_change.path)
        raise self.exc


class RecordingAnalyzer:
    """Returns an empty match set and records every path it was asked for."""

    def __init__(self):
        self.calls: list[str] = []

    async def analyze(self, file_change: FileChange) -> StructuralMatchSet:
        self.calls.append(file_change.path)
        return StructuralMatchSet(path=file_change.path)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def parser() -> DiffParser:
    return DiffParser()


@pytest.fixture
def classifier() -> ChangeClassifier:
    return ChangeClassifier()


@pytest.fixture
def config() -> DiffScoutConfig:
    return DiffScoutConfig(max_workers=2, analysis_concurrency=2, search_timeout=1.0)


@pytest.fixture
def mixed_model(parser):
    return parser.parse(MIXED_PR_DIFF)


@pytest.fixture
def rate_limited_analyzer() -> FailingAnalyzer:
    return FailingAnalyzer(RateLimitedError("secondary rate limit", retry_after=30))


@pytest.fixture
def failing_analyzer():
    """Factory for analyzers that raise the given exception."""
    return FailingAnalyzer


@pytest.fixture
def recording_analyzer() -> RecordingAnalyzer:
    return RecordingAnalyzer()


@pytest.fixture
def mixed_pr_diff() -> str:
    return MIXED_PR_DIFF
