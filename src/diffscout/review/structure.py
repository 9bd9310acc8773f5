"""
Structural Signals

Types describing the syntactic constructs a change touches, the analyzer
protocol that produces them, and two analyzers: one serving pre-computed
match sets and a heuristic one that reads definitions straight from the
diff hunks using the language rules.
"""

from dataclasses import dataclass, field
from typing import Mapping, Protocol

import structlog

from .errors import DiffScoutError
from .languages import CALLABLE_KINDS, ConstructKind, LanguageRule, rule_for_path
from .models import FileChange, FileStatus, Hunk, LineKind

logger = structlog.get_logger(__name__)


class StructuralAnalysisUnavailable(DiffScoutError):
    """The structural collaborator has nothing for a file."""


@dataclass(frozen=True)
class LineSpan:
    """Inclusive 1-indexed line range on one side of the diff."""

    start: int
    end: int

    def contains(self, line_no: int | None) -> bool:
        return line_no is not None and self.start <= line_no <= self.end


@dataclass(frozen=True)
class StructuralConstruct:
    """A named construct and whether it exists on each side of the change."""

    kind: ConstructKind
    name: str
    old_present: bool
    new_present: bool
    old_span: LineSpan | None = None
    new_span: LineSpan | None = None

    @property
    def is_new(self) -> bool:
        return self.new_present and not self.old_present

    @property
    def is_callable(self) -> bool:
        return self.kind in CALLABLE_KINDS

    def touches(self, hunk: Hunk) -> bool:
        """True when any non-blank changed line of the hunk falls inside the construct."""
        for line in hunk.lines:
            if not line.content.strip():
                continue
            if line.kind == LineKind.ADDED and self.new_span and self.new_span.contains(line.new_line_no):
                return True
            if line.kind == LineKind.REMOVED and self.old_span and self.old_span.contains(line.old_line_no):
                return True
        return False


@dataclass(frozen=True)
class StructuralMatchSet:
    """All constructs reported for one file."""

    path: str
    constructs: tuple[StructuralConstruct, ...] = ()

    def touching(self, hunk: Hunk) -> list[StructuralConstruct]:
        return [c for c in self.constructs if c.touches(hunk)]


class StructuralAnalyzer(Protocol):
    """Collaborator that reports the constructs a file change touches.

    Implementations may perform I/O. Raising any exception other than
    RateLimitedError marks the file as degraded; RateLimitedError is passed
    through to the caller.
    """

    async def analyze(self, file_change: FileChange) -> StructuralMatchSet:
        ...


class StaticStructuralAnalyzer:
    """Serves match sets computed elsewhere, keyed by file path."""

    def __init__(self, match_sets: Mapping[str, StructuralMatchSet]):
        self._match_sets = dict(match_sets)

    async def analyze(self, file_change: FileChange) -> StructuralMatchSet:
        try:
            return self._match_sets[file_change.path]
        except KeyError:
            raise StructuralAnalysisUnavailable(
                f"No structural matches for {file_change.path}"
            ) from None


@dataclass
class _Occurrence:
    kind: ConstructKind
    name: str
    on_old: bool
    on_new: bool
    old_span: LineSpan | None = None
    new_span: LineSpan | None = None


@dataclass
class _Side:
    """Lines of one hunk as seen from the old or the new file."""

    numbers: list[int] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)


class HeuristicStructuralAnalyzer:
    """Derive constructs from definition lines visible in the hunks.

    A definition seen on a context line exists on both sides; one seen only
    on added lines is new. The enclosing definition named in a hunk header
    existed before the change. Spans run from the definition line to the
    next definition at the same or a shallower indent within the hunk.
    """

    async def analyze(self, file_change: FileChange) -> StructuralMatchSet:
        return self.analyze_sync(file_change)

    def analyze_sync(self, file_change: FileChange) -> StructuralMatchSet:
        rule = rule_for_path(file_change.path)
        occurrences: list[_Occurrence] = []

        if file_change.status == FileStatus.ADDED and file_change.hunks:
            last = max(h.new_start + h.new_count - 1 for h in file_change.hunks)
            occurrences.append(
                _Occurrence(
                    kind=ConstructKind.MODULE,
                    name=file_change.path,
                    on_old=False,
                    on_new=True,
                    new_span=LineSpan(1, max(last, 1)),
                )
            )

        if rule.definitions or rule.imports:
            for hunk in file_change.hunks:
                occurrences.extend(self._hunk_occurrences(hunk, rule))

        # Presence is a file-wide property: a function moved between hunks
        # still exists on both sides.
        old_keys = {(o.kind, o.name) for o in occurrences if o.on_old}
        new_keys = {(o.kind, o.name) for o in occurrences if o.on_new}

        constructs = tuple(
            StructuralConstruct(
                kind=o.kind,
                name=o.name,
                old_present=(o.kind, o.name) in old_keys,
                new_present=(o.kind, o.name) in new_keys,
                old_span=o.old_span,
                new_span=o.new_span,
            )
            for o in occurrences
        )
        logger.debug(
            "Heuristic structure",
            path=file_change.path,
            language=rule.language,
            constructs=len(constructs),
        )
        return StructuralMatchSet(path=file_change.path, constructs=constructs)

    def _hunk_occurrences(self, hunk: Hunk, rule: LanguageRule) -> list[_Occurrence]:
        old_side, new_side = _Side(), _Side()
        for line in hunk.lines:
            if line.old_line_no is not None:
                old_side.numbers.append(line.old_line_no)
                old_side.texts.append(line.content)
            if line.new_line_no is not None:
                new_side.numbers.append(line.new_line_no)
                new_side.texts.append(line.content)

        found: dict[tuple[ConstructKind, str, int], _Occurrence] = {}
        for side_name, side in (("old", old_side), ("new", new_side)):
            for key, span in self._side_definitions(side, rule):
                occurrence = found.get(key)
                if occurrence is None:
                    occurrence = found[key] = _Occurrence(
                        kind=key[0], name=key[1], on_old=False, on_new=False
                    )
                if side_name == "old":
                    occurrence.on_old = True
                    occurrence.old_span = span
                else:
                    occurrence.on_new = True
                    occurrence.new_span = span

        occurrences = list(found.values())

        heading = rule.match_definition(hunk.header) if hunk.header else None
        if heading:
            kind, name = heading
            old_end = self._first_definition(old_side, rule)
            new_end = self._first_definition(new_side, rule)
            occurrences.append(
                _Occurrence(
                    kind=kind,
                    name=name,
                    on_old=True,
                    on_new=True,
                    old_span=LineSpan(
                        hunk.old_start,
                        hunk.old_start + hunk.old_count - 1 if old_end is None else old_end,
                    ),
                    new_span=LineSpan(
                        hunk.new_start,
                        hunk.new_start + hunk.new_count - 1 if new_end is None else new_end,
                    ),
                )
            )
        return occurrences

    def _side_definitions(self, side: _Side, rule: LanguageRule):
        """Yield ((kind, name, ordinal), span) for definitions on one side."""
        marks: list[tuple[int, ConstructKind, str, int]] = []
        for i, text in enumerate(side.texts):
            definition = rule.match_definition(text)
            if definition:
                marks.append((i, definition[0], definition[1], _indent(text)))
            elif rule.is_import(text):
                marks.append((i, ConstructKind.IMPORT, " ".join(text.split()), _indent(text)))

        seen: dict[tuple[ConstructKind, str], int] = {}
        for n, (i, kind, name, indent) in enumerate(marks):
            end = len(side.texts) - 1
            if kind == ConstructKind.IMPORT:
                end = i
            else:
                for j, _, _, other_indent in marks[n + 1 :]:
                    if other_indent <= indent:
                        end = _last_code_line(side.texts, i, j - 1)
                        break
            ordinal = seen.get((kind, name), 0)
            seen[(kind, name)] = ordinal + 1
            yield (kind, name, ordinal), LineSpan(side.numbers[i], side.numbers[end])

    def _first_definition(self, side: _Side, rule: LanguageRule) -> int | None:
        """Last code line number before the first definition on a side."""
        for i, text in enumerate(side.texts):
            if rule.match_definition(text):
                if i == 0:
                    return side.numbers[0] - 1
                last = _last_code_line(side.texts, 0, i - 1)
                if last == 0 and _is_filler(side.texts[0]):
                    return side.numbers[0] - 1
                return side.numbers[last]
        return None


def _indent(text: str) -> int:
    return len(text) - len(text.lstrip(" \t"))


def _is_filler(text: str) -> bool:
    stripped = text.strip()
    return not stripped or stripped.startswith(("#", "//"))


def _last_code_line(texts: list[str], start: int, end: int) -> int:
    """Step back from end past blank and comment-only lines, never before start."""
    while end > start and _is_filler(texts[end]):
        end -= 1
    return end
