"""
Search Sources

Produces SearchHit lists from content that has already been fetched:
text grep over PR files at a ref, and conversion of provider code-search
text-match fragments.
"""

from typing import Iterable

import structlog
from pydantic import BaseModel, Field

from .file_filter import ExclusionPolicy
from .models import HitSource, SearchHit

logger = structlog.get_logger(__name__)


class TextMatch(BaseModel):
    """A fragment of file content returned by provider code search."""

    fragment: str
    matches: list[dict] = Field(default_factory=list)


class CodeSearchItem(BaseModel):
    """One file returned by provider code search."""

    name: str = ""
    path: str
    html_url: str = ""
    text_matches: list[TextMatch] | None = None


def grep_files(
    files: Iterable[tuple[str, str]],
    pattern: str,
    case_sensitive: bool = False,
    context_lines: int = 0,
    source: HitSource = HitSource.PR_SCOPED,
) -> list[SearchHit]:
    """Substring search across (path, content) pairs.

    Args:
        files: File paths with their content at the searched ref
        pattern: Literal text to find
        case_sensitive: Match case exactly
        context_lines: Lines of context kept before and after each match
        source: Which search the hits are attributed to

    Returns:
        Hits in file order, then line order
    """
    needle = pattern if case_sensitive else pattern.lower()
    hits: list[SearchHit] = []

    for path, content in files:
        lines = content.splitlines()
        for i, line in enumerate(lines):
            haystack = line if case_sensitive else line.lower()
            column = haystack.find(needle)
            if column < 0:
                continue
            start = max(0, i - context_lines)
            end = min(len(lines), i + context_lines + 1)
            hits.append(
                SearchHit(
                    path=path,
                    line=i + 1,
                    text=line,
                    source=source,
                    column=column + 1,
                    context_before=tuple(lines[start:i]),
                    context_after=tuple(lines[i + 1 : end]),
                )
            )

    logger.debug("Grep complete", pattern=pattern, hits=len(hits))
    return hits


def hits_from_code_search(
    items: Iterable[CodeSearchItem | dict],
    pattern: str,
    case_sensitive: bool = False,
    policy: ExclusionPolicy | None = None,
) -> list[SearchHit]:
    """Turn code-search text-match fragments into repository-wide hits.

    Line numbers are relative to the fragment; the provider does not report
    absolute positions for text matches.
    """
    needle = pattern if case_sensitive else pattern.lower()
    hits: list[SearchHit] = []

    for raw in items:
        item = raw if isinstance(raw, CodeSearchItem) else CodeSearchItem.model_validate(raw)
        if policy is not None and policy.is_excluded(item.path):
            continue
        for text_match in item.text_matches or []:
            for i, line in enumerate(text_match.fragment.splitlines()):
                haystack = line if case_sensitive else line.lower()
                column = haystack.find(needle)
                if column < 0:
                    continue
                hits.append(
                    SearchHit(
                        path=item.path,
                        line=i + 1,
                        text=line,
                        source=HitSource.REPO_WIDE,
                        column=column + 1,
                    )
                )
    return hits


def extract_search_keyword(pattern: str) -> str:
    """Text keyword of a structural pattern, for pre-filtering code search.

    Takes everything before the first meta-variable, minus a trailing open
    parenthesis; falls back to the first word of the pattern.
    """
    end = pattern.find("$")
    keyword = (pattern if end < 0 else pattern[:end]).strip().rstrip("(")
    if keyword:
        return keyword
    words = pattern.split()
    return words[0] if words else pattern
