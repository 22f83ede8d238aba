"""Diff metrics - insertions/deletions against the last commit.

Read-only: nothing here stages, commits or resets. Failures degrade to
zero-valued stats because the numbers only decorate commit messages and
the metrics report.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError

from ..errors import MetricsError
from .git_client import GitClient

__all__ = ["DiffStats", "DiffMetricsCollector", "parse_shortstat", "format_badge"]

logger = logging.getLogger(__name__)

_FILES = re.compile(r"(\d+) files? changed")
_INSERTIONS = re.compile(r"(\d+) insertions?\(\+\)")
_DELETIONS = re.compile(r"(\d+) deletions?\(-\)")


@dataclass(frozen=True)
class DiffStats:
    """Change volume of a working tree relative to HEAD."""

    added: int = 0
    removed: int = 0
    files_changed: int = 0

    @property
    def is_empty(self) -> bool:
        return self.added == 0 and self.removed == 0


def parse_shortstat(text: str) -> DiffStats:
    """Parse ``git diff --shortstat`` output.

    e.g. " 2 files changed, 10 insertions(+), 3 deletions(-)"; either count
    may be missing.
    """

    def _count(pattern: re.Pattern) -> int:
        match = pattern.search(text or "")
        return int(match.group(1)) if match else 0

    return DiffStats(
        added=_count(_INSERTIONS),
        removed=_count(_DELETIONS),
        files_changed=_count(_FILES),
    )


def format_badge(stats: DiffStats) -> str:
    """Commit-message prefix like "(+12/−5) ", or "" with no changes."""
    if stats.is_empty:
        return ""
    return f"(+{stats.added}/−{stats.removed}) "


def _enclosing_repository(path: Path) -> GitClient:
    # A workspace folder may sit anywhere inside its repository.
    return GitClient(path, search_parents=True)


class DiffMetricsCollector:
    """Computes diff stats for the tracking and workspace repositories."""

    def __init__(self, client_factory: Callable[[Path], GitClient] = _enclosing_repository):
        self._client_factory = client_factory

    def _shortstat(self, repo_path: Path) -> str:
        try:
            return self._client_factory(Path(repo_path)).shortstat("HEAD")
        except (GitCommandError, InvalidGitRepositoryError, NoSuchPathError, OSError) as e:
            raise MetricsError(f"git diff failed in {repo_path}: {e}") from e

    def diff_stats(self, repo_path: Path) -> DiffStats:
        try:
            return parse_shortstat(self._shortstat(repo_path))
        except MetricsError as e:
            logger.debug(f"{e}; reporting no changes")
            return DiffStats()

    def diff_badge(self, repo_path: Path) -> str:
        return format_badge(self.diff_stats(repo_path))
