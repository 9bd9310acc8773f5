"""
Search Merger

Combines PR-scoped and repository-wide hits into one deduplicated list,
and runs both sources concurrently with timeout and abort handling.
"""

import asyncio
from dataclasses import replace
from typing import Awaitable, Callable, Iterable

import structlog

from .errors import PartialSearchError, RateLimitedError
from .file_filter import ExclusionPolicy
from .models import HitSource, MergedHit, SearchHit, SearchResult

logger = structlog.get_logger(__name__)

SearchSource = Callable[[], Awaitable[list[SearchHit]]]


class SearchMerger:
    """Merge two ranked hit lists; PR-scoped hits win on overlap and rank."""

    def __init__(self, policy: ExclusionPolicy | None = None):
        """
        Initialize merger.

        Args:
            policy: Noise policy applied to repository-wide hits. PR-scoped
                hits are assumed to be filtered by the caller already.
        """
        self.policy = policy

    def merge(
        self,
        pr_hits: Iterable[SearchHit],
        repo_hits: Iterable[SearchHit] = (),
        shadowed_paths: Iterable[str] | None = None,
    ) -> SearchResult:
        """
        Merge hit lists.

        Hits are keyed by (path, line). A key reported by both sources becomes
        one hit with origin BOTH and the PR-scoped snippet. PR-scoped hits come
        first, then repository-wide ones, each in its source order.

        Args:
            pr_hits: Hits from files in the diff, at the PR ref
            repo_hits: Hits from repository-wide code search
            shadowed_paths: Files whose repository-wide hits are stale (the
                PR changed them); their non-overlapping hits are dropped

        Returns:
            SearchResult with merged hits, uncapped
        """
        merged: dict[tuple[str, int], MergedHit] = {}
        for hit in pr_hits:
            if hit.key not in merged:
                merged[hit.key] = MergedHit.from_hit(hit, HitSource.PR_SCOPED)

        shadowed = set(shadowed_paths or ())
        seen_repo: set[tuple[str, int]] = set()
        repo_only: list[MergedHit] = []
        overlaps = 0

        for hit in repo_hits:
            if hit.key in seen_repo:
                continue
            seen_repo.add(hit.key)

            if hit.key in merged:
                merged[hit.key] = replace(merged[hit.key], origin=HitSource.BOTH)
                overlaps += 1
                continue
            if hit.path in shadowed:
                continue
            if self.policy is not None and self.policy.is_excluded(hit.path):
                continue
            repo_only.append(MergedHit.from_hit(hit, HitSource.REPO_WIDE))

        logger.debug(
            "Merged search hits",
            pr_scoped=len(merged),
            repo_wide=len(repo_only),
            overlaps=overlaps,
        )
        return SearchResult(hits=list(merged.values()) + repo_only)

    async def search(
        self,
        pr_source: SearchSource,
        repo_source: SearchSource | None = None,
        *,
        timeout: float | None = None,
        abort: asyncio.Event | None = None,
        shadowed_paths: Iterable[str] | None = None,
    ) -> SearchResult:
        """
        Run the sources concurrently and merge what completed.

        The PR-scoped source always runs; the repository-wide one only when
        given. A failed source is reported as a PartialSearchError and the
        other source's hits are still returned. On timeout or abort, pending
        sources are cancelled and the result is marked partial.

        Raises:
            RateLimitedError: a source was throttled
            Exception: the PR-scoped source's error, when every requested
                source failed
        """
        tasks: dict[HitSource, asyncio.Task] = {
            HitSource.PR_SCOPED: asyncio.create_task(pr_source()),
        }
        if repo_source is not None:
            tasks[HitSource.REPO_WIDE] = asyncio.create_task(repo_source())

        abort_task = asyncio.create_task(abort.wait()) if abort is not None else None
        interrupted: str | None = None

        try:
            interrupted = await self._wait(tasks, abort_task, timeout)
        finally:
            await self._cancel_pending(tasks.values(), abort_task)

        results: dict[HitSource, list[SearchHit]] = {}
        errors: list[PartialSearchError] = []
        failures: dict[HitSource, BaseException] = {}
        rate_limited: RateLimitedError | None = None

        for source, task in tasks.items():
            if task.cancelled():
                errors.append(
                    PartialSearchError(
                        source=source.value,
                        message=interrupted or "cancelled",
                        cancelled=True,
                    )
                )
                continue
            exc = task.exception()
            if isinstance(exc, RateLimitedError):
                rate_limited = exc
                continue
            if exc is not None:
                logger.warning("Search source failed", source=source.value, error=str(exc))
                failures[source] = exc
                errors.append(PartialSearchError(source=source.value, message=str(exc)))
                continue
            results[source] = task.result()

        if rate_limited is not None:
            raise rate_limited
        if failures and len(failures) == len(tasks):
            raise failures[HitSource.PR_SCOPED]

        result = self.merge(
            results.get(HitSource.PR_SCOPED, []),
            results.get(HitSource.REPO_WIDE, []),
            shadowed_paths=shadowed_paths,
        )
        result.errors = errors
        result.partial = bool(errors)
        return result

    async def _wait(
        self,
        tasks: dict[HitSource, asyncio.Task],
        abort_task: asyncio.Task | None,
        timeout: float | None,
    ) -> str | None:
        """Wait for all sources; return why waiting stopped early, if it did."""
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout

        while True:
            pending = {t for t in tasks.values() if not t.done()}
            if not pending:
                return None

            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                logger.info("Search timed out", timeout=timeout, pending=len(pending))
                return f"timed out after {timeout:g}s"

            waiters = pending | ({abort_task} if abort_task is not None else set())
            done, _ = await asyncio.wait(
                waiters, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
            )
            if abort_task is not None and abort_task in done:
                logger.info("Search aborted", pending=len(pending))
                return "aborted"

    async def _cancel_pending(
        self, tasks: Iterable[asyncio.Task], abort_task: asyncio.Task | None
    ) -> None:
        to_cancel = [t for t in tasks if not t.done()]
        if abort_task is not None and not abort_task.done():
            to_cancel.append(abort_task)
        for task in to_cancel:
            task.cancel()
        if to_cancel:
            await asyncio.gather(*to_cancel, return_exceptions=True)
