"""
Change Classifier

Labels each hunk of a file change as mechanical, new logic or behavioral,
so a reviewer can skip regions that only move or reformat code.
"""

import structlog

from .errors import RateLimitedError
from .languages import LanguageRule, normalized_tokens, rule_for_path
from .models import (
    ChangeKind,
    ChangeLabel,
    ClassificationDegraded,
    FileChange,
    FileClassification,
    FileStatus,
    Hunk,
    LabelScope,
)
from .structure import StructuralAnalyzer, StructuralMatchSet

logger = structlog.get_logger(__name__)


class ChangeClassifier:
    """Classify file changes using token normalization and structural signals.

    Per hunk:
    1. MECHANICAL when removed and added lines carry the same normalized
       token multiset (formatting, import reordering).
    2. NEW_LOGIC when every construct the change touches is new.
    3. BEHAVIORAL otherwise.

    The file label is the most important hunk label. Classification is a
    pure function of the FileChange and its match set.
    """

    def classify(
        self,
        file_change: FileChange,
        structure: StructuralMatchSet | None = None,
        *,
        degraded_reason: str | None = None,
    ) -> FileClassification:
        """Classify one file.

        Args:
            file_change: Parsed file diff
            structure: Constructs touched by the change; None means the
                structural collaborator was unavailable
            degraded_reason: Why structure is missing, for the warning

        Returns:
            FileClassification with file and hunk labels
        """
        path = file_change.path

        if not file_change.hunks:
            return FileClassification(
                path=path,
                file_label=ChangeLabel(
                    kind=ChangeKind.MECHANICAL,
                    scope=LabelScope.FILE,
                    path=path,
                    reason=self._hunkless_reason(file_change),
                ),
            )

        rule = rule_for_path(path)
        hunk_labels: list[ChangeLabel] = []
        unresolved: list[int] = []

        for hunk in file_change.hunks:
            if self.is_mechanical(hunk, rule):
                hunk_labels.append(self._hunk_label(path, hunk, ChangeKind.MECHANICAL, "tokens unchanged"))
            elif structure is None:
                unresolved.append(hunk.index)
                hunk_labels.append(
                    self._hunk_label(path, hunk, ChangeKind.NEW_LOGIC, "structure unavailable")
                )
            else:
                kind, reason = self._structural_kind(hunk, structure)
                hunk_labels.append(self._hunk_label(path, hunk, kind, reason))

        warnings: list[ClassificationDegraded] = []
        if structure is None and unresolved:
            warnings.append(
                ClassificationDegraded(
                    path=path,
                    reason=degraded_reason or "structural analysis unavailable",
                    unresolved_hunks=tuple(unresolved),
                )
            )

        top = max(hunk_labels, key=lambda label: label.kind.rank)
        return FileClassification(
            path=path,
            file_label=ChangeLabel(kind=top.kind, scope=LabelScope.FILE, path=path, reason=top.reason),
            hunk_labels=hunk_labels,
            warnings=warnings,
        )

    async def classify_with(
        self, file_change: FileChange, analyzer: StructuralAnalyzer | None
    ) -> FileClassification:
        """Fetch structure from an analyzer, then classify.

        Analyzer failures degrade the classification instead of failing it;
        rate limiting is re-raised for the caller to back off.
        """
        structure, reason = await self.fetch_structure(file_change, analyzer)
        return self.classify(file_change, structure, degraded_reason=reason)

    async def fetch_structure(
        self, file_change: FileChange, analyzer: StructuralAnalyzer | None
    ) -> tuple[StructuralMatchSet | None, str | None]:
        """Return (match set, None) or (None, reason) when unavailable."""
        if analyzer is None:
            return None, "no structural analyzer configured"
        if not self.needs_structure(file_change):
            return StructuralMatchSet(path=file_change.path), None
        try:
            return await analyzer.analyze(file_change), None
        except RateLimitedError:
            raise
        except Exception as e:
            logger.warning(
                "Structural analysis failed, degrading",
                path=file_change.path,
                error=str(e),
            )
            return None, str(e) or type(e).__name__

    def needs_structure(self, file_change: FileChange) -> bool:
        """False when every hunk is already mechanical."""
        rule = rule_for_path(file_change.path)
        return any(not self.is_mechanical(h, rule) for h in file_change.hunks)

    def is_mechanical(self, hunk: Hunk, rule: LanguageRule | None = None) -> bool:
        """Removed and added lines normalize to the same token multiset."""
        if not hunk.has_changes:
            return True
        normalization = (rule or rule_for_path("")).normalization
        removed = normalized_tokens((ln.content for ln in hunk.removed_lines), normalization)
        added = normalized_tokens((ln.content for ln in hunk.added_lines), normalization)
        return removed == added

    def _structural_kind(self, hunk: Hunk, structure: StructuralMatchSet) -> tuple[ChangeKind, str]:
        touched = structure.touching(hunk)
        callables = [c for c in touched if c.is_callable]
        considered = callables or touched

        if considered and all(c.is_new for c in considered):
            names = ", ".join(sorted({c.name for c in considered}))
            return ChangeKind.NEW_LOGIC, f"new {names}"
        if considered:
            changed = sorted({c.name for c in considered if not c.is_new})
            return ChangeKind.BEHAVIORAL, f"changes {', '.join(changed)}"
        return ChangeKind.BEHAVIORAL, "no matching construct"

    def _hunk_label(self, path: str, hunk: Hunk, kind: ChangeKind, reason: str) -> ChangeLabel:
        return ChangeLabel(
            kind=kind,
            scope=LabelScope.HUNK,
            path=path,
            hunk_index=hunk.index,
            reason=reason,
        )

    def _hunkless_reason(self, file_change: FileChange) -> str:
        if file_change.is_binary:
            return "binary file"
        if file_change.status == FileStatus.RENAMED:
            return "renamed with identical content"
        return "no content change"
