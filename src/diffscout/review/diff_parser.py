"""
Diff Parser

Parses unified diff text into a DiffModel with old/new line numbers and
per-file diff positions for review comments.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

import structlog

from .errors import (
    DiffParseError,
    InvalidDiffError,
    MalformedHunkHeaderError,
    TruncatedDiffError,
)
from .models import DiffLine, DiffModel, FileChange, FileStatus, Hunk, LineKind

logger = structlog.get_logger(__name__)

# Provider file-list statuses mapped onto the four statuses the model knows
PROVIDER_STATUS_MAP = {
    "added": FileStatus.ADDED,
    "copied": FileStatus.ADDED,
    "removed": FileStatus.REMOVED,
    "deleted": FileStatus.REMOVED,
    "modified": FileStatus.MODIFIED,
    "changed": FileStatus.MODIFIED,
    "unchanged": FileStatus.MODIFIED,
    "renamed": FileStatus.RENAMED,
}


def status_from_provider(value: str) -> FileStatus:
    """Map a provider status string (REST or GraphQL casing) to FileStatus."""
    return PROVIDER_STATUS_MAP.get(value.strip().lower(), FileStatus.MODIFIED)


@dataclass
class _FileBuilder:
    """Mutable accumulator for one file section while parsing."""

    path: str
    status: FileStatus = FileStatus.MODIFIED
    previous_path: str | None = None
    is_binary: bool = False
    hunks: list[Hunk] = field(default_factory=list)
    start_line: int = 0
    error: DiffParseError | None = None

    def build(self) -> FileChange:
        return FileChange(
            path=self.path,
            status=self.status,
            previous_path=self.previous_path,
            hunks=tuple(self.hunks),
            is_binary=self.is_binary,
        )


@dataclass
class _HunkBuilder:
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    header: str
    index: int
    lines: list[DiffLine] = field(default_factory=list)
    old_seen: int = 0
    new_seen: int = 0

    @property
    def complete(self) -> bool:
        return self.old_seen >= self.old_count and self.new_seen >= self.new_count

    def build(self) -> Hunk:
        return Hunk(
            old_start=self.old_start,
            old_count=self.old_count,
            new_start=self.new_start,
            new_count=self.new_count,
            lines=tuple(self.lines),
            header=self.header,
            index=self.index,
        )


class DiffParser:
    """Parse unified diff output into structured data."""

    # Regex patterns for parsing diff output
    FILE_HEADER = re.compile(r"^diff --git a/(.+) b/(.+)$")
    HUNK_HEADER = re.compile(r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@(.*)$")
    OLD_PATH = re.compile(r"^--- (?:a/)?([^\t]+)")
    NEW_PATH = re.compile(r"^\+\+\+ (?:b/)?([^\t]+)")
    RENAME_FROM = re.compile(r"^rename from (.+)$")
    RENAME_TO = re.compile(r"^rename to (.+)$")
    NEW_FILE = re.compile(r"^new file mode")
    DELETED_FILE = re.compile(r"^deleted file mode")
    BINARY_FILE = re.compile(r"^Binary files")
    DEV_NULL = "/dev/null"

    def parse(self, diff_text: str) -> DiffModel:
        """Parse a full multi-file diff.

        Files whose hunks cannot be parsed are left out of ``files`` and
        reported in ``errors``; the rest of the diff is still returned.

        Raises:
            InvalidDiffError: the input is empty or holds no diff content
        """
        if not diff_text or not diff_text.strip():
            raise InvalidDiffError("Diff input is empty")

        lines = diff_text.split("\n")
        model = DiffModel()
        saw_diff_content = False

        for builder in self._iter_sections(lines):
            saw_diff_content = True
            if builder.error is not None:
                logger.warning(
                    "Skipping unparsable file",
                    path=builder.path,
                    error=str(builder.error),
                )
                model.errors.append(builder.error)
                continue
            model.files.append(builder.build())

        if not saw_diff_content:
            raise InvalidDiffError("Input does not contain a unified diff")

        logger.debug(
            "Parsed diff",
            files=len(model.files),
            unparsable=len(model.errors),
        )
        return model

    def parse_patch(
        self,
        path: str,
        patch: str | None,
        status: FileStatus | str = FileStatus.MODIFIED,
        previous_path: str | None = None,
    ) -> FileChange:
        """Parse the per-file ``patch`` field of a provider file listing.

        The patch starts directly at the first hunk header. A missing patch
        (binary or oversized file) yields a FileChange without hunks.

        Raises:
            MalformedHunkHeaderError: a hunk header cannot be parsed
            TruncatedDiffError: a hunk body disagrees with its header
        """
        if isinstance(status, str) and not isinstance(status, FileStatus):
            status = status_from_provider(status)

        builder = _FileBuilder(path=path, status=status, previous_path=previous_path)
        if patch:
            self._parse_hunks(builder, patch.split("\n"), 0)
        else:
            builder.is_binary = status in (FileStatus.ADDED, FileStatus.MODIFIED)

        if builder.error is not None:
            raise builder.error
        return builder.build()

    def parse_files(self, entries: Iterable[dict]) -> DiffModel:
        """Build a DiffModel from provider file entries.

        Each entry needs ``filename`` and may carry ``status``, ``patch`` and
        ``previous_filename``, the shape of the provider's file listing.
        """
        model = DiffModel()
        for entry in entries:
            try:
                model.files.append(
                    self.parse_patch(
                        entry["filename"],
                        entry.get("patch"),
                        entry.get("status", "modified"),
                        entry.get("previous_filename"),
                    )
                )
            except DiffParseError as e:
                logger.warning("Skipping unparsable file", path=e.path, error=str(e))
                model.errors.append(e)
        return model

    # -------------------------------------------------------------------------
    # Section splitting
    # -------------------------------------------------------------------------

    def _iter_sections(self, lines: list[str]):
        """Split raw diff lines into per-file sections and parse each one."""
        starts: list[int] = []
        git_format = any(line.startswith("diff --git ") for line in lines)

        for i, line in enumerate(lines):
            if git_format:
                if line.startswith("diff --git "):
                    starts.append(i)
            elif (
                line.startswith("--- ")
                and i + 2 < len(lines)
                and lines[i + 1].startswith("+++ ")
                and lines[i + 2].startswith("@@")
            ):
                starts.append(i)

        for n, start in enumerate(starts):
            end = starts[n + 1] if n + 1 < len(starts) else len(lines)
            yield self._parse_section(lines[start:end], start)

    def _parse_section(self, section: list[str], offset: int) -> _FileBuilder:
        """Parse one file section: extended headers, then hunks."""
        builder = _FileBuilder(path="", start_line=offset + 1)
        old_path: str | None = None
        new_path: str | None = None

        header_match = self.FILE_HEADER.match(section[0])
        if header_match:
            old_path, new_path = header_match.groups()

        body_start = len(section)
        for i, line in enumerate(section):
            if line.startswith("@@"):
                body_start = i
                break

            if self.NEW_FILE.match(line):
                builder.status = FileStatus.ADDED
            elif self.DELETED_FILE.match(line):
                builder.status = FileStatus.REMOVED
            elif self.BINARY_FILE.match(line):
                builder.is_binary = True
            elif rename_from := self.RENAME_FROM.match(line):
                builder.status = FileStatus.RENAMED
                builder.previous_path = rename_from.group(1)
            elif rename_to := self.RENAME_TO.match(line):
                new_path = rename_to.group(1)
            elif line.startswith("--- "):
                match = self.OLD_PATH.match(line)
                if match and match.group(1) != self.DEV_NULL:
                    old_path = match.group(1)
                elif match:
                    builder.status = FileStatus.ADDED
            elif line.startswith("+++ "):
                match = self.NEW_PATH.match(line)
                if match and match.group(1) != self.DEV_NULL:
                    new_path = match.group(1)
                elif match:
                    builder.status = FileStatus.REMOVED

        if builder.status == FileStatus.REMOVED:
            builder.path = old_path or new_path or ""
        else:
            builder.path = new_path or old_path or ""
        if builder.status != FileStatus.RENAMED and old_path and old_path != builder.path:
            builder.status = FileStatus.RENAMED
            builder.previous_path = old_path

        self._parse_hunks(builder, section[body_start:], offset + body_start)
        return builder

    # -------------------------------------------------------------------------
    # Hunk parsing
    # -------------------------------------------------------------------------

    def _parse_hunks(self, builder: _FileBuilder, lines: list[str], offset: int) -> None:
        """Parse hunk headers and bodies, assigning line numbers and positions.

        ``offset`` is the index of ``lines[0]`` in the raw input, used only
        for error messages. Stops at the first error and records it on the
        builder.
        """
        position = 0
        current: _HunkBuilder | None = None
        old_no = new_no = 0

        def finish(at_line: int) -> bool:
            if current is None:
                return True
            if not current.complete:
                builder.error = TruncatedDiffError(
                    path=builder.path,
                    message=(
                        f"hunk {current.index} declares -{current.old_count} "
                        f"+{current.new_count} lines but has "
                        f"-{current.old_seen} +{current.new_seen}"
                    ),
                    line_number=at_line,
                )
                return False
            builder.hunks.append(current.build())
            return True

        for i, line in enumerate(lines):
            line_number = offset + i + 1

            if line.startswith("@@"):
                if not finish(line_number):
                    return
                match = self.HUNK_HEADER.match(line)
                if not match:
                    builder.error = MalformedHunkHeaderError(
                        path=builder.path,
                        message=f"malformed hunk header {line!r}",
                        line_number=line_number,
                    )
                    return
                current = _HunkBuilder(
                    old_start=int(match.group(1)),
                    old_count=int(match.group(2) or "1"),
                    new_start=int(match.group(3)),
                    new_count=int(match.group(4) or "1"),
                    header=match.group(5).strip(),
                    index=len(builder.hunks),
                )
                old_no = current.old_start
                new_no = current.new_start
                continue

            if current is None or line.startswith("\\"):
                # Extended headers before the first hunk, or newline markers
                continue

            if current.complete:
                if line == "":
                    # Blank separator between hunks or trailing newline
                    continue
                builder.error = TruncatedDiffError(
                    path=builder.path,
                    message=(
                        f"hunk {current.index} has more lines than its header "
                        f"declares (-{current.old_count} +{current.new_count})"
                    ),
                    line_number=line_number,
                )
                return

            if line == "" and i == len(lines) - 1:
                # Trailing newline of the section, not a stripped context line
                continue

            marker = line[:1]
            content = line[1:]
            if marker == "+":
                kind = LineKind.ADDED
            elif marker == "-":
                kind = LineKind.REMOVED
            elif marker in (" ", ""):
                kind = LineKind.CONTEXT
            else:
                builder.error = TruncatedDiffError(
                    path=builder.path,
                    message=f"unexpected line inside hunk {current.index}: {line!r}",
                    line_number=line_number,
                )
                return

            old_line = new_line = None
            if kind != LineKind.ADDED:
                old_line = old_no
                old_no += 1
                current.old_seen += 1
            if kind != LineKind.REMOVED:
                new_line = new_no
                new_no += 1
                current.new_seen += 1

            if current.old_seen > current.old_count or current.new_seen > current.new_count:
                builder.error = TruncatedDiffError(
                    path=builder.path,
                    message=(
                        f"hunk {current.index} line counts exceed its header "
                        f"(-{current.old_count} +{current.new_count})"
                    ),
                    line_number=line_number,
                )
                return

            position += 1
            current.lines.append(
                DiffLine(
                    content=content,
                    kind=kind,
                    diff_position=position,
                    old_line_no=old_line,
                    new_line_no=new_line,
                )
            )

        finish(offset + len(lines))
