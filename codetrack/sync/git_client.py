"""Version-control client for the tracking repository (GitPython)."""

import logging
import re
from pathlib import Path
from typing import Optional

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

__all__ = ["GitClient", "redact_url", "GitCommandError"]

logger = logging.getLogger(__name__)

_CREDENTIALS_IN_URL = re.compile(r"(https?://)([^/@:]+):([^/@]+)@")


def redact_url(url: str) -> str:
    """Hide the token embedded in a remote URL."""
    return _CREDENTIALS_IN_URL.sub(r"\1\2:***@", url)


class GitClient:
    """Git operations on one working copy.

    All methods raise ``GitCommandError`` on failure; callers translate it
    into the agent's own error types.
    """

    def __init__(self, path: Path, remote: str = "origin", search_parents: bool = False):
        self.path = Path(path)
        self.remote = remote
        self.search_parents = search_parents
        self._repo: Optional[Repo] = None

    @property
    def repo(self) -> Repo:
        if self._repo is None:
            self._repo = Repo(self.path, search_parent_directories=self.search_parents)
        return self._repo

    def is_repository(self) -> bool:
        """True if the path holds a working copy with git metadata."""
        if not (self.path / ".git").exists():
            return False
        try:
            Repo(self.path)
            return True
        except (InvalidGitRepositoryError, NoSuchPathError):
            return False

    def clone(self, url: str, branch: Optional[str] = None) -> None:
        logger.info(f"Cloning {redact_url(url)} into {self.path}")
        kwargs = {"branch": branch} if branch else {}
        self._repo = Repo.clone_from(url, str(self.path), **kwargs)

    def set_remote_url(self, url: str) -> None:
        self.repo.git.remote("set-url", self.remote, url)
        logger.debug(f"Remote {self.remote} set to {redact_url(url)}")

    def ensure_identity(self, name: str, email: str) -> None:
        """Set a repository-level author when git has none configured."""
        reader = self.repo.config_reader()
        if reader.has_option("user", "name") and reader.has_option("user", "email"):
            return
        with self.repo.config_writer() as writer:
            writer.set_value("user", "name", name)
            writer.set_value("user", "email", email)
        logger.info(f"Commit author set to {name} <{email}>")

    def fetch(self, branch: str) -> None:
        self.repo.git.fetch(self.remote, branch)

    def merge_remote_wins(self, branch: str) -> None:
        """Merge the remote branch, letting remote content win every conflict.

        Conflicting hunks take the remote side (``-X theirs``). If the merge
        still cannot complete (local uncommitted edits in the way, or a
        conflict the strategy cannot settle) the working copy is reset to the
        remote branch, discarding local unpushed content.
        """
        upstream = f"{self.remote}/{branch}"
        try:
            self.repo.git.merge(upstream, "-X", "theirs", "--no-edit")
        except GitCommandError as e:
            logger.warning(f"Merge of {upstream} failed ({e.status}), resetting to remote state")
            self.repo.git.reset("--hard", upstream)

    def add(self, filename: str) -> None:
        self.repo.git.add(filename)

    def commit(self, message: str) -> None:
        self.repo.git.commit("-m", message)

    def push(self, branch: str) -> None:
        self.repo.git.push(self.remote, f"HEAD:{branch}")

    def shortstat(self, against: str = "HEAD") -> str:
        """Raw ``git diff --shortstat`` output against a revision."""
        return self.repo.git.diff("--shortstat", against)
