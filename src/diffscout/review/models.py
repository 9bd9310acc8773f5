"""
Data models for the review pipeline.

Defines the parsed diff structure, classification labels and search hits
used throughout diffscout.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import DiffParseError, PartialSearchError


class FileStatus(str, Enum):
    """How a file changed in the pull request."""

    ADDED = "added"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


class LineKind(str, Enum):
    """Role of a line inside a hunk."""

    CONTEXT = "context"
    ADDED = "added"
    REMOVED = "removed"


class ChangeKind(str, Enum):
    """How much attention a changed region deserves."""

    MECHANICAL = "mechanical"  # Formatting, reordering, pure renames
    NEW_LOGIC = "new_logic"  # Code that did not exist before
    BEHAVIORAL = "behavioral"  # Existing code whose behavior changed

    @property
    def rank(self) -> int:
        """Importance order: BEHAVIORAL > NEW_LOGIC > MECHANICAL."""
        return _CHANGE_KIND_RANK[self]


_CHANGE_KIND_RANK = {
    ChangeKind.MECHANICAL: 0,
    ChangeKind.NEW_LOGIC: 1,
    ChangeKind.BEHAVIORAL: 2,
}


class LabelScope(str, Enum):
    """What a ChangeLabel applies to."""

    FILE = "file"
    HUNK = "hunk"


class HitSource(str, Enum):
    """Which search produced a hit."""

    PR_SCOPED = "pr_scoped"  # Files in the diff, at the PR head or base ref
    REPO_WIDE = "repo_wide"  # Provider code search, default branch
    BOTH = "both"  # Only used as a MergedHit origin


@dataclass(frozen=True)
class DiffLine:
    """A single physical line inside a hunk."""

    content: str
    kind: LineKind
    diff_position: int
    old_line_no: int | None = None
    new_line_no: int | None = None

    @property
    def commentable(self) -> bool:
        """Only lines present on the new side can carry a comment."""
        return self.new_line_no is not None


@dataclass(frozen=True)
class Hunk:
    """A contiguous region of a file diff."""

    old_start: int
    old_count: int
    new_start: int
    new_count: int
    lines: tuple[DiffLine, ...] = ()
    header: str = ""  # Section text after the closing @@
    index: int = 0  # Position of the hunk inside its file

    @property
    def added_lines(self) -> list[DiffLine]:
        return [ln for ln in self.lines if ln.kind == LineKind.ADDED]

    @property
    def removed_lines(self) -> list[DiffLine]:
        return [ln for ln in self.lines if ln.kind == LineKind.REMOVED]

    @property
    def has_changes(self) -> bool:
        return any(ln.kind != LineKind.CONTEXT for ln in self.lines)


@dataclass(frozen=True)
class FileChange:
    """One file's change in the pull request."""

    path: str
    status: FileStatus = FileStatus.MODIFIED
    previous_path: str | None = None  # For renames
    hunks: tuple[Hunk, ...] = ()
    is_binary: bool = False

    @property
    def lines_added(self) -> int:
        return sum(len(h.added_lines) for h in self.hunks)

    @property
    def lines_deleted(self) -> int:
        return sum(len(h.removed_lines) for h in self.hunks)

    @property
    def total_lines_changed(self) -> int:
        """Total lines affected."""
        return self.lines_added + self.lines_deleted

    def iter_lines(self):
        """Yield every DiffLine of the file in diff order."""
        for hunk in self.hunks:
            yield from hunk.lines

    def commentable_lines(self) -> list[tuple[int, int]]:
        """Ordered (new_line_no, diff_position) pairs that accept comments."""
        return [
            (ln.new_line_no, ln.diff_position)
            for ln in self.iter_lines()
            if ln.new_line_no is not None
        ]

    def find_line(self, new_line_no: int) -> DiffLine | None:
        """Return the commentable line with the given new-side number."""
        for ln in self.iter_lines():
            if ln.new_line_no == new_line_no:
                return ln
        return None

    def provider_position(self, new_line_no: int) -> int | None:
        """Position in the provider's legacy scheme for a commentable line.

        The provider counts the ``@@`` header of every hunk after the first
        as a line of the patch, so a line in hunk N sits N places after its
        diff_position.
        """
        for hunk in self.hunks:
            for ln in hunk.lines:
                if ln.new_line_no == new_line_no:
                    return ln.diff_position + hunk.index
        return None


@dataclass
class DiffStats:
    """Summary statistics for all changes."""

    files_changed: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    files: list[tuple[str, int, int]] = field(default_factory=list)  # (path, +, -)


@dataclass
class DiffModel:
    """Result of parsing a whole pull request diff."""

    files: list[FileChange] = field(default_factory=list)
    errors: list[DiffParseError] = field(default_factory=list)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def get(self, path: str) -> FileChange | None:
        for file_change in self.files:
            if file_change.path == path:
                return file_change
        return None

    def is_unparsable(self, path: str) -> bool:
        return any(err.path == path for err in self.errors)

    def commentable_lines(self) -> dict[str, list[tuple[int, int]]]:
        """Map of path to (new_line_no, diff_position) pairs."""
        return {f.path: f.commentable_lines() for f in self.files}

    def commentable_line_numbers(self) -> dict[str, list[int]]:
        """Map of path to commentable new-side line numbers."""
        return {
            f.path: [line_no for line_no, _ in f.commentable_lines()]
            for f in self.files
        }

    def stats(self) -> DiffStats:
        files = [(f.path, f.lines_added, f.lines_deleted) for f in self.files]
        return DiffStats(
            files_changed=len(files),
            total_additions=sum(f[1] for f in files),
            total_deletions=sum(f[2] for f in files),
            files=files,
        )


@dataclass(frozen=True)
class ChangeLabel:
    """Classification of one file or hunk."""

    kind: ChangeKind
    scope: LabelScope
    path: str
    hunk_index: int | None = None  # Set when scope is HUNK
    reason: str = ""

    @property
    def scope_id(self) -> str:
        if self.scope == LabelScope.HUNK:
            return f"{self.path}#{self.hunk_index}"
        return self.path


@dataclass(frozen=True)
class ClassificationDegraded:
    """Warning: structural signals were unavailable for a file."""

    path: str
    reason: str
    unresolved_hunks: tuple[int, ...] = ()

    def __str__(self) -> str:
        return f"{self.path}: classification degraded ({self.reason})"


@dataclass
class FileClassification:
    """Labels produced for one FileChange."""

    path: str
    file_label: ChangeLabel
    hunk_labels: list[ChangeLabel] = field(default_factory=list)
    warnings: list[ClassificationDegraded] = field(default_factory=list)

    @property
    def kind(self) -> ChangeKind:
        return self.file_label.kind

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.file_label.kind.value,
            "hunks": [
                {"index": h.hunk_index, "label": h.kind.value, "reason": h.reason}
                for h in self.hunk_labels
            ],
            "degraded": bool(self.warnings),
        }


@dataclass(frozen=True)
class SearchHit:
    """A single match from one search source."""

    path: str
    line: int  # 1-indexed
    text: str
    source: HitSource
    column: int = 1  # 1-indexed
    context_before: tuple[str, ...] = ()
    context_after: tuple[str, ...] = ()

    @property
    def key(self) -> tuple[str, int]:
        return (self.path, self.line)


@dataclass(frozen=True)
class MergedHit:
    """A deduplicated hit with the sources that reported it."""

    path: str
    line: int
    text: str
    origin: HitSource
    column: int = 1
    context_before: tuple[str, ...] = ()
    context_after: tuple[str, ...] = ()

    @classmethod
    def from_hit(cls, hit: SearchHit, origin: HitSource | None = None) -> "MergedHit":
        return cls(
            path=hit.path,
            line=hit.line,
            text=hit.text,
            origin=origin or hit.source,
            column=hit.column,
            context_before=hit.context_before,
            context_after=hit.context_after,
        )


@dataclass
class SearchResult:
    """Merged search output with any per-source failures."""

    hits: list[MergedHit] = field(default_factory=list)
    errors: list[PartialSearchError] = field(default_factory=list)
    partial: bool = False  # Set when a source was cancelled or failed

    @property
    def file_count(self) -> int:
        return len({h.path for h in self.hits})
