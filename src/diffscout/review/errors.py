"""
Review Pipeline Errors

Exceptions raised or collected by the diff pipeline. Per-item failures
(one file, one comment, one search source) are collected next to the
successful results; only whole-input contract violations are raised.
"""

from dataclasses import dataclass


class DiffScoutError(Exception):
    """Base class for all diffscout errors."""


# =============================================================================
# DIFF PARSING
# =============================================================================


@dataclass
class DiffParseError(DiffScoutError):
    """A single file section could not be parsed."""

    path: str
    message: str
    line_number: int | None = None  # 1-indexed line in the raw diff

    def __str__(self) -> str:
        where = f" (diff line {self.line_number})" if self.line_number else ""
        return f"{self.path}: {self.message}{where}"


class MalformedHunkHeaderError(DiffParseError):
    """A line starting with @@ does not follow the hunk header grammar."""


class TruncatedDiffError(DiffParseError):
    """A hunk's body does not match the line counts in its header."""


@dataclass
class InvalidDiffError(DiffScoutError):
    """The input as a whole is not a unified diff."""

    message: str

    def __str__(self) -> str:
        return self.message


# =============================================================================
# REVIEW COMMENTS
# =============================================================================


@dataclass
class LineNotInDiffError(DiffScoutError):
    """A review comment targets a line that cannot be commented on."""

    path: str
    line: int
    reason: str = "line is not a commentable line in the diff"
    start_line: int | None = None

    def __str__(self) -> str:
        target = f"{self.path}:{self.line}"
        if self.start_line is not None:
            target = f"{self.path}:{self.start_line}-{self.line}"
        return f"{target}: {self.reason}"


class EmptyReviewError(DiffScoutError):
    """No comment survived validation, so there is nothing to submit."""


# =============================================================================
# COLLABORATORS
# =============================================================================


@dataclass
class RateLimitedError(DiffScoutError):
    """An upstream collaborator is throttling requests.

    Never degraded into a warning: the caller owns backoff and retry.
    """

    message: str
    retry_after: float | None = None  # seconds, when the provider says

    def __str__(self) -> str:
        if self.retry_after is not None:
            return f"{self.message} (retry after {self.retry_after:g}s)"
        return self.message


@dataclass
class PartialSearchError(DiffScoutError):
    """One search source failed or was cancelled.

    Attached to a search result as an annotation, not raised.
    """

    source: str
    message: str
    cancelled: bool = False

    def __str__(self) -> str:
        state = "cancelled" if self.cancelled else "failed"
        return f"{self.source} search {state}: {self.message}"
