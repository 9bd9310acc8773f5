"""
Review Pipeline Module

Diff parsing, change classification, smart file selection, search merging
and review comment mapping for pull requests.
"""

from .classifier import ChangeClassifier
from .diff_parser import DiffParser
from .errors import (
    DiffParseError,
    DiffScoutError,
    EmptyReviewError,
    InvalidDiffError,
    LineNotInDiffError,
    MalformedHunkHeaderError,
    PartialSearchError,
    RateLimitedError,
    TruncatedDiffError,
)
from .file_filter import ExclusionPolicy, SmartFileFilter, filter_paths
from .models import (
    ChangeKind,
    ChangeLabel,
    ClassificationDegraded,
    DiffLine,
    DiffModel,
    FileChange,
    FileClassification,
    FileStatus,
    HitSource,
    Hunk,
    LineKind,
    MergedHit,
    SearchHit,
    SearchResult,
)
from .pipeline import PipelineReport, ReviewPipeline
from .review_mapper import AddressingMode, ReviewComment, ReviewMapper, ReviewRequest
from .search import (
    CodeSearchItem,
    TextMatch,
    extract_search_keyword,
    grep_files,
    hits_from_code_search,
)
from .search_merger import SearchMerger
from .structure import HeuristicStructuralAnalyzer, StructuralAnalyzer, StructuralMatchSet

__all__ = [
    "AddressingMode",
    "ChangeClassifier",
    "ChangeKind",
    "ChangeLabel",
    "ClassificationDegraded",
    "CodeSearchItem",
    "DiffLine",
    "DiffModel",
    "DiffParseError",
    "DiffParser",
    "DiffScoutError",
    "EmptyReviewError",
    "ExclusionPolicy",
    "FileChange",
    "FileClassification",
    "FileStatus",
    "HeuristicStructuralAnalyzer",
    "HitSource",
    "Hunk",
    "InvalidDiffError",
    "LineKind",
    "LineNotInDiffError",
    "MalformedHunkHeaderError",
    "MergedHit",
    "PartialSearchError",
    "PipelineReport",
    "RateLimitedError",
    "ReviewComment",
    "ReviewMapper",
    "ReviewPipeline",
    "ReviewRequest",
    "SearchHit",
    "SearchMerger",
    "SearchResult",
    "SmartFileFilter",
    "StructuralAnalyzer",
    "StructuralMatchSet",
    "TextMatch",
    "TruncatedDiffError",
    "extract_search_keyword",
    "filter_paths",
    "grep_files",
    "hits_from_code_search",
]
