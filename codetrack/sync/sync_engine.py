"""Sync engine - appends buffered activity to the log and publishes it."""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

from ..activity.buffer import ActivityBuffer
from ..clock import line_timestamp, localized_now, message_timestamp
from ..errors import AuthenticationError, SyncError
from ..notifications import send_notification
from ..state import StateStore
from .git_client import GitCommandError, redact_url
from .protocols import CommitCounterProtocol, CredentialSourceProtocol, GitClientProtocol, MetricsProtocol
from .provisioner import remote_url

__all__ = ["SyncEngine", "SyncOutcome", "COMMIT_SUMMARY"]

logger = logging.getLogger(__name__)

COMMIT_SUMMARY = "Coding activity summary"


@dataclass
class SyncOutcome:
    """What a sync attempt did."""

    committed: bool = False
    skipped: bool = False  # another sync was already running
    lines: int = 0
    message: Optional[str] = None
    commit_count: Optional[int] = None
    milestone: bool = False


class SyncEngine:
    """Reconciles with the remote, appends the buffer, commits and pushes.

    Only one sync runs at a time; a call arriving while another is in
    flight returns immediately with ``skipped=True``.
    """

    def __init__(
        self,
        buffer: ActivityBuffer,
        git: GitClientProtocol,
        credentials: CredentialSourceProtocol,
        metrics: MetricsProtocol,
        counter: CommitCounterProtocol,
        repo_path: Path,
        repo_name: str,
        summary_filename: str,
        branch: str = "main",
        prefix: str = "",
        time_zone: Optional[str] = None,
        notify: Callable[[str, str], None] = send_notification,
        clock: Callable[[Optional[str]], object] = localized_now,
    ):
        self.buffer = buffer
        self.git = git
        self.credentials = credentials
        self.metrics = metrics
        self.counter = counter
        self.repo_path = Path(repo_path)
        self.repo_name = repo_name
        self.summary_filename = summary_filename
        self.branch = branch
        self.prefix = prefix
        self.time_zone = time_zone
        self._notify = notify
        self._clock = clock
        self._lock = threading.Lock()

    @property
    def summary_path(self) -> Path:
        return self.repo_path / self.summary_filename

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def update_settings(self, prefix: str, time_zone: Optional[str]) -> None:
        self.prefix = prefix
        self.time_zone = time_zone

    def build_message(self, badge: str) -> str:
        stamp = message_timestamp(self._clock(self.time_zone))
        return f"{self.prefix} {badge}{COMMIT_SUMMARY} - {stamp}".strip()

    def sync_once(self) -> SyncOutcome:
        """Run one sync cycle.

        The lines captured at the start are removed from the buffer whether
        the cycle succeeds or fails; a failed cycle's content is not retried.

        Raises:
            SyncError: If refreshing credentials or any git step fails
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Sync already in progress, skipping this request")
            return SyncOutcome(skipped=True)

        try:
            lines = self.buffer.snapshot()
            if not lines:
                logger.info("No coding activity to commit")
                return SyncOutcome()
            try:
                return self._publish(lines)
            finally:
                self.buffer.clear_through(len(lines))
        finally:
            self._lock.release()

    def _publish(self, lines: list[str]) -> SyncOutcome:
        try:
            credentials = self.credentials.refresh()
            self.git.set_remote_url(remote_url(credentials.username, credentials.token, self.repo_name))
            self.git.fetch(self.branch)
            self.git.merge_remote_wins(self.branch)
            self._append(lines)
            self.git.add(self.summary_filename)
            message = self.build_message(self.metrics.diff_badge(self.repo_path))
            self.git.commit(message)
            self.git.push(self.branch)
        except AuthenticationError as e:
            raise SyncError(f"Credential refresh failed: {e}") from e
        except GitCommandError as e:
            raise SyncError(f"Git operation failed: {redact_url(str(e))}") from e
        except OSError as e:
            raise SyncError(f"Could not write {self.summary_filename}: {e}") from e

        logger.info(f"Committed {len(lines)} activity lines: {message}")
        try:
            count = self.counter.increment_commits()
        except OSError as e:
            logger.warning(f"Commit pushed but the commit counter could not be saved: {e}")
            count = 0
        milestone = StateStore.is_milestone(count)
        if milestone:
            self._notify_safely("Coding milestone", f"You've made {count} activity commits. Keep it up!")
        self._notify_safely(
            "CodeTrack Sync",
            f"Committed coding summary at {line_timestamp(self._clock(self.time_zone))}",
        )
        return SyncOutcome(
            committed=True,
            lines=len(lines),
            message=message,
            commit_count=count,
            milestone=milestone,
        )

    def _append(self, lines: list[str]) -> None:
        """Append to the log file; existing content is never rewritten."""
        with open(self.summary_path, "a", encoding="utf-8") as f:
            f.write("".join(lines))

    def _notify_safely(self, title: str, message: str) -> None:
        try:
            self._notify(title, message)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")
