"""
Review Mapper

Validates review comments against the parsed diff and resolves the diff
positions the provider needs. A comment is only accepted on a line that
exists on the new side of the diff.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

import structlog
from pydantic import BaseModel, Field, ValidationError, model_validator

from .errors import EmptyReviewError, LineNotInDiffError
from .models import DiffModel

logger = structlog.get_logger(__name__)

DEFAULT_REVIEW_BODY = "Review from diffscout"


class AddressingMode(str, Enum):
    """How comments are addressed in the submission payload."""

    LINE = "line"  # path + line (+ start_line)
    # Legacy path + position. Positions follow the provider, which also counts
    # the @@ header of each later hunk; see FileChange.provider_position.
    POSITION = "position"


class ReviewComment(BaseModel):
    """A comment a reviewer wants to post."""

    path: str
    line: int = Field(ge=1)
    body: str
    start_line: int | None = Field(default=None, ge=1)

    @classmethod
    def suggestion(
        cls, path: str, line_start: int, line_end: int, replacement: str
    ) -> "ReviewComment":
        """Build a suggestion comment replacing lines line_start..line_end."""
        return cls(
            path=path,
            line=line_end,
            body=f"```suggestion\n{replacement}\n```",
            start_line=None if line_start == line_end else line_start,
        )


class ReviewRequest(BaseModel):
    """Batch of comments as supplied in a comments file."""

    body: str = DEFAULT_REVIEW_BODY
    comments: list[ReviewComment] = Field(default_factory=list)


class PayloadComment(BaseModel):
    path: str
    body: str
    line: int | None = None
    start_line: int | None = None
    position: int | None = None


class ReviewPayload(BaseModel):
    """Body of the provider's create-review call."""

    body: str
    comments: list[PayloadComment]
    commit_id: str | None = None
    event: str | None = None

    @model_validator(mode="after")
    def _require_comments(self) -> "ReviewPayload":
        if not self.comments:
            raise ValueError("a review payload needs at least one comment")
        return self

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


@dataclass(frozen=True)
class MappedComment:
    """An accepted comment with its resolved diff positions."""

    comment: ReviewComment
    position: int
    start_position: int | None = None
    provider_position: int | None = None


@dataclass
class ReviewSubmission:
    """Accepted and rejected comments for one review batch."""

    body: str
    accepted: list[MappedComment] = field(default_factory=list)
    rejected: list[LineNotInDiffError] = field(default_factory=list)

    def payload(
        self,
        mode: AddressingMode = AddressingMode.LINE,
        commit_id: str | None = None,
        event: str | None = None,
    ) -> dict[str, Any]:
        """Build the create-review request body.

        Raises:
            EmptyReviewError: no comment survived validation
        """
        if not self.accepted:
            raise EmptyReviewError("No valid comments to post after validation")

        comments = []
        for mapped in self.accepted:
            c = mapped.comment
            if mode == AddressingMode.POSITION:
                comments.append(
                    PayloadComment(path=c.path, body=c.body, position=mapped.provider_position)
                )
            else:
                comments.append(
                    PayloadComment(path=c.path, body=c.body, line=c.line, start_line=c.start_line)
                )
        return ReviewPayload(
            body=self.body, comments=comments, commit_id=commit_id, event=event
        ).to_dict()

    def rejection_messages(self) -> list[str]:
        return [f"SKIP: {err}" for err in self.rejected]


class ReviewMapper:
    """Resolve review comments to commentable diff lines."""

    def map(
        self,
        comments: Iterable[ReviewComment | dict],
        model: DiffModel,
        body: str = DEFAULT_REVIEW_BODY,
    ) -> ReviewSubmission:
        """
        Validate every comment against the diff.

        Invalid comments are rejected with a LineNotInDiffError each; the
        rest of the batch is still mapped.

        Args:
            comments: Comments, as models or plain dicts
            model: Parsed diff of the pull request
            body: Top-level review body

        Returns:
            ReviewSubmission with accepted and rejected comments
        """
        submission = ReviewSubmission(body=body)

        for raw in comments:
            try:
                comment = raw if isinstance(raw, ReviewComment) else ReviewComment.model_validate(raw)
            except ValidationError as e:
                submission.rejected.append(_invalid_comment(raw, e))
                continue
            try:
                submission.accepted.append(self.map_one(comment, model))
            except LineNotInDiffError as e:
                submission.rejected.append(e)

        if submission.rejected:
            logger.warning(
                "Rejected review comments",
                rejected=len(submission.rejected),
                accepted=len(submission.accepted),
            )
        return submission

    def map_request(self, request: ReviewRequest, model: DiffModel) -> ReviewSubmission:
        return self.map(request.comments, model, body=request.body)

    def map_one(self, comment: ReviewComment, model: DiffModel) -> MappedComment:
        """Resolve one comment.

        Raises:
            LineNotInDiffError: the file, line or range is not commentable
        """
        file_change = model.get(comment.path)
        if file_change is None:
            reason = (
                "file could not be parsed"
                if model.is_unparsable(comment.path)
                else "file is not changed in this diff"
            )
            raise LineNotInDiffError(
                path=comment.path, line=comment.line, reason=reason, start_line=comment.start_line
            )

        target = file_change.find_line(comment.line)
        if target is None:
            raise LineNotInDiffError(
                path=comment.path,
                line=comment.line,
                reason="line is not a commentable line in the diff",
                start_line=comment.start_line,
            )

        start_position = None
        if comment.start_line is not None:
            if comment.start_line > comment.line:
                raise LineNotInDiffError(
                    path=comment.path,
                    line=comment.line,
                    reason="start_line is after line",
                    start_line=comment.start_line,
                )
            start = file_change.find_line(comment.start_line)
            if start is None:
                raise LineNotInDiffError(
                    path=comment.path,
                    line=comment.line,
                    reason="start_line is not a commentable line in the diff",
                    start_line=comment.start_line,
                )
            start_position = start.diff_position

        return MappedComment(
            comment=comment,
            position=target.diff_position,
            start_position=start_position,
            provider_position=file_change.provider_position(comment.line),
        )


def _invalid_comment(raw: Any, error: ValidationError) -> LineNotInDiffError:
    """Rejection for a comment that does not validate as a ReviewComment."""
    fields = raw if isinstance(raw, dict) else {}
    line = fields.get("line")
    first = error.errors()[0]
    detail = first["msg"]
    if first["loc"]:
        location = ".".join(str(part) for part in first["loc"])
        detail = f"{location}: {detail}"
    return LineNotInDiffError(
        path=str(fields.get("path", "")),
        line=line if isinstance(line, int) else 0,
        reason=f"invalid comment: {detail}",
    )
