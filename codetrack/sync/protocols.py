"""Protocol types for SyncEngine and scheduler dependencies.

Defines the interfaces the sync engine requires from its collaborators,
enabling easier testing and looser coupling.
"""

from pathlib import Path
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .metrics import DiffStats

if TYPE_CHECKING:
    from ..auth.keychain import Credentials


@runtime_checkable
class GitClientProtocol(Protocol):
    """Git operations on the tracking working copy."""

    def set_remote_url(self, url: str) -> None: ...

    def fetch(self, branch: str) -> None: ...

    def merge_remote_wins(self, branch: str) -> None: ...

    def add(self, filename: str) -> None: ...

    def commit(self, message: str) -> None: ...

    def push(self, branch: str) -> None: ...


@runtime_checkable
class CredentialSourceProtocol(Protocol):
    """Supplies the freshest credentials before each push."""

    def refresh(self) -> "Credentials": ...


@runtime_checkable
class MetricsProtocol(Protocol):
    """Read-only diff statistics."""

    def diff_stats(self, repo_path: Path) -> DiffStats: ...

    def diff_badge(self, repo_path: Path) -> str: ...


@runtime_checkable
class CommitCounterProtocol(Protocol):
    """Persisted commit counter."""

    def increment_commits(self) -> int: ...
