"""
Smart File Filter

Selects the files worth reading: not purely mechanical and not matching
the noise policy (lockfiles, generated output, minified bundles).
"""

from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Iterable, Mapping

import structlog

from .models import ChangeKind, FileChange, FileClassification

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExclusionPolicy:
    """Static rules for files that are never worth reading."""

    # Matched against the file name only
    NOISE_EXACT = (
        # JS/TS
        "pnpm-lock.yaml",
        "package-lock.json",
        "yarn.lock",
        "npm-shrinkwrap.json",
        "bun.lockb",
        # Rust
        "Cargo.lock",
        # Ruby
        "Gemfile.lock",
        # Python
        "poetry.lock",
        "Pipfile.lock",
        "uv.lock",
        # Go
        "go.sum",
        # PHP
        "composer.lock",
        # .NET
        "packages.lock.json",
        # Dart/Flutter
        "pubspec.lock",
        # Swift
        "Package.resolved",
        # Elixir
        "mix.lock",
        # Misc
        ".DS_Store",
    )

    NOISE_SUFFIXES = (
        ".min.js",
        ".min.css",
        ".map",  # Source maps
        ".chunk.js",
        ".bundle.js",
        ".pyc",
    )

    # Build output at the repository root; nested trees need extra_globs
    NOISE_PREFIXES = (
        "dist/",
        ".next/",
        "build/",
        "__generated__/",
        ".turbo/",
    )

    extra_globs: tuple[str, ...] = ()
    include_all: bool = False  # Disable the policy entirely

    def is_excluded(self, path: str) -> bool:
        """True when the path is lockfile, generated or minified noise."""
        if self.include_all:
            return False

        filename = path.rsplit("/", 1)[-1]
        if filename in self.NOISE_EXACT:
            return True
        if any(path.endswith(suffix) for suffix in self.NOISE_SUFFIXES):
            return True
        if path.startswith(self.NOISE_PREFIXES):
            return True
        return any(fnmatch(path, glob) or fnmatch(filename, glob) for glob in self.extra_globs)


def filter_paths(paths: Iterable[str], substrings: Iterable[str]) -> list[str]:
    """Keep paths containing any of the substrings; all paths when none given."""
    needles = [s for s in substrings if s]
    if not needles:
        return list(paths)
    return [p for p in paths if any(n in p for n in needles)]


class SmartFileFilter:
    """Pick the non-mechanical, non-noise files of a diff."""

    def __init__(self, policy: ExclusionPolicy | None = None):
        self.policy = policy or ExclusionPolicy()

    def select(
        self,
        files: Iterable[FileChange],
        labels: Mapping[str, FileClassification | ChangeKind],
    ) -> list[FileChange]:
        """Files worth reading, in their original diff order.

        The exclusion policy wins over labels. A file without a label is kept.
        """
        selected: list[FileChange] = []
        excluded = mechanical = 0

        for file_change in files:
            if self.policy.is_excluded(file_change.path):
                excluded += 1
                continue
            label = labels.get(file_change.path)
            kind = label.kind if isinstance(label, FileClassification) else label
            if kind == ChangeKind.MECHANICAL:
                mechanical += 1
                continue
            selected.append(file_change)

        logger.debug(
            "Smart file selection",
            selected=len(selected),
            excluded=excluded,
            mechanical=mechanical,
        )
        return selected

    def split_noise(self, files: Iterable[FileChange]) -> tuple[list[FileChange], list[FileChange]]:
        """Partition files into (kept, excluded) by policy alone."""
        kept: list[FileChange] = []
        noise: list[FileChange] = []
        for file_change in files:
            (noise if self.policy.is_excluded(file_change.path) else kept).append(file_change)
        return kept, noise
