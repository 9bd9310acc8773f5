"""
Review Pipeline

Parses a pull request diff, classifies every file in parallel and selects
the files worth reading. Also exposes the review mapping and search merge
steps with the same configuration.
"""

import asyncio
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable

import structlog

from diffscout.config import DiffScoutConfig

from .classifier import ChangeClassifier
from .diff_parser import DiffParser
from .errors import DiffParseError
from .file_filter import ExclusionPolicy, SmartFileFilter
from .models import (
    ChangeKind,
    ClassificationDegraded,
    DiffModel,
    FileChange,
    FileClassification,
    SearchHit,
    SearchResult,
)
from .review_mapper import ReviewComment, ReviewMapper, ReviewSubmission
from .search import CodeSearchItem, grep_files, hits_from_code_search
from .search_merger import SearchMerger, SearchSource
from .structure import HeuristicStructuralAnalyzer, StructuralAnalyzer

logger = structlog.get_logger(__name__)


@dataclass
class PipelineReport:
    """Everything a reviewer needs before reading the diff."""

    model: DiffModel
    classifications: dict[str, FileClassification] = field(default_factory=dict)
    smart_files: list[FileChange] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def warnings(self) -> list[ClassificationDegraded]:
        return [w for c in self.classifications.values() for w in c.warnings]

    @property
    def errors(self) -> list[DiffParseError]:
        return self.model.errors

    def files_by_kind(self, kind: ChangeKind) -> list[str]:
        return [path for path, c in self.classifications.items() if c.kind == kind]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output."""
        return {
            "files": {path: c.to_dict() for path, c in self.classifications.items()},
            "smart_files": [f.path for f in self.smart_files],
            "commentable_lines": {
                path: [[line_no, position] for line_no, position in pairs]
                for path, pairs in self.model.commentable_lines().items()
            },
            "warnings": [str(w) for w in self.warnings],
            "unparsable": [{"path": e.path, "error": str(e)} for e in self.errors],
            "duration_ms": self.duration_ms,
        }


class ReviewPipeline:
    """
    Stateless pipeline over one pull request at a time.

    Stages:
    1. Parse: raw diff to DiffModel (per-file errors collected)
    2. Classify: structural analysis per file (bounded concurrency), then
       CPU-bound classification in a bounded worker pool
    3. Select: non-mechanical, non-noise files
    """

    def __init__(
        self,
        config: DiffScoutConfig | None = None,
        analyzer: StructuralAnalyzer | None = None,
        use_heuristics: bool = True,
    ):
        """
        Initialize the pipeline.

        Args:
            config: Pipeline configuration
            analyzer: Structural collaborator; defaults to the heuristic
                analyzer unless use_heuristics is False
            use_heuristics: Fall back to HeuristicStructuralAnalyzer when no
                analyzer is given
        """
        self.config = config or DiffScoutConfig()
        if analyzer is None and use_heuristics:
            analyzer = HeuristicStructuralAnalyzer()
        self.analyzer = analyzer

        self.policy = ExclusionPolicy(
            extra_globs=tuple(self.config.exclude_globs),
            include_all=self.config.include_all,
        )
        self.parser = DiffParser()
        self.classifier = ChangeClassifier()
        self.file_filter = SmartFileFilter(self.policy)
        self.mapper = ReviewMapper()
        self.merger = SearchMerger(self.policy)

    def parse(self, diff_text: str) -> DiffModel:
        return self.parser.parse(diff_text)

    async def analyze(self, diff_text: str) -> PipelineReport:
        """Parse, classify and select files for one diff."""
        start_time = time.time()

        model = self.parse(diff_text)
        classifications = await self.classify_all(model.files)
        smart_files = self.file_filter.select(model.files, classifications)

        report = PipelineReport(
            model=model,
            classifications=classifications,
            smart_files=smart_files,
            duration_ms=int((time.time() - start_time) * 1000),
        )
        logger.info(
            "Analyzed diff",
            files=len(model.files),
            unparsable=len(model.errors),
            smart_files=len(smart_files),
            degraded=len(report.warnings),
            duration_ms=report.duration_ms,
        )
        return report

    async def classify_all(self, files: Iterable[FileChange]) -> dict[str, FileClassification]:
        """Classify files concurrently, preserving input order in the result.

        Raises:
            RateLimitedError: the structural analyzer was throttled
        """
        files = list(files)
        if not files:
            return {}

        semaphore = asyncio.Semaphore(max(1, self.config.analysis_concurrency))
        loop = asyncio.get_running_loop()

        with ThreadPoolExecutor(max_workers=max(1, self.config.max_workers)) as pool:

            async def classify_one(file_change: FileChange) -> FileClassification:
                async with semaphore:
                    structure, reason = await self.classifier.fetch_structure(
                        file_change, self.analyzer
                    )
                return await loop.run_in_executor(
                    pool,
                    lambda: self.classifier.classify(
                        file_change, structure, degraded_reason=reason
                    ),
                )

            tasks = [asyncio.create_task(classify_one(f)) for f in files]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise

        return {result.path: result for result in results}

    def map_review(
        self,
        comments: Iterable[ReviewComment | dict],
        model: DiffModel,
        body: str | None = None,
    ) -> ReviewSubmission:
        return self.mapper.map(comments, model, body=body or self.config.review_body)

    async def search(
        self,
        pr_source: SearchSource,
        repo_source: SearchSource | None = None,
        *,
        model: DiffModel | None = None,
        abort: asyncio.Event | None = None,
    ) -> SearchResult:
        """Run both search sources and merge; PR files shadow repo-wide hits."""
        return await self.merger.search(
            pr_source,
            repo_source,
            timeout=self.config.search_timeout,
            abort=abort,
            shadowed_paths=model.paths if model is not None else None,
        )

    def pr_hits(
        self,
        files: Iterable[tuple[str, str]],
        pattern: str,
        case_sensitive: bool = False,
        context_lines: int = 0,
    ) -> list[SearchHit]:
        """Grep fetched head-revision contents of the PR's files."""
        return grep_files(files, pattern, case_sensitive=case_sensitive, context_lines=context_lines)

    def repo_hits(
        self,
        items: Iterable[CodeSearchItem | dict],
        pattern: str,
        case_sensitive: bool = False,
    ) -> list[SearchHit]:
        """Convert code-search results to hits, dropping noise paths."""
        return hits_from_code_search(items, pattern, case_sensitive=case_sensitive, policy=self.policy)
