"""Synchronization scheduler - the recurring sync tick and the countdown."""

import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .activity.recorder import ActivityRecorder
from .editor import EditorEventSource
from .errors import SyncError
from .notifications import notify_error, send_notification
from .sync.metrics import DiffMetricsCollector, DiffStats
from .sync.sync_engine import SyncEngine, SyncOutcome

__all__ = ["SyncScheduler", "SchedulerState", "format_countdown"]

logger = logging.getLogger(__name__)

SYNC_JOB_ID = "sync_job"
COUNTDOWN_JOB_ID = "countdown_job"
MANUAL_JOB_ID = "manual_sync"


class SchedulerState(Enum):
    IDLE = "idle"
    EVALUATING = "evaluating"
    SYNCING = "syncing"


def format_countdown(seconds: Optional[float]) -> str:
    """Status text like "Next commit in 12m 5s"."""
    if seconds is None:
        return "Next commit: not scheduled"
    seconds = max(0, int(seconds))
    minutes, secs = divmod(seconds, 60)
    return f"Next commit in {minutes}m {secs}s"


class SyncScheduler:
    """Decides, every interval, what to record and hands off to the engine.

    Owns two APScheduler jobs: the sync tick and a one-second countdown
    that only refreshes the status text.
    """

    def __init__(
        self,
        engine: SyncEngine,
        recorder: ActivityRecorder,
        editor: EditorEventSource,
        metrics: DiffMetricsCollector,
        workspace_root: Optional[Path],
        interval_minutes: int,
        on_countdown: Optional[Callable[[str], None]] = None,
        on_state_change: Optional[Callable[[SchedulerState], None]] = None,
        on_outcome: Optional[Callable[[SyncOutcome], None]] = None,
        on_error: Callable[[str], None] = notify_error,
        notify: Callable[[str, str], None] = send_notification,
        scheduler: Optional[BackgroundScheduler] = None,
    ):
        self.engine = engine
        self.recorder = recorder
        self.editor = editor
        self.metrics = metrics
        self.workspace_root = workspace_root
        self.interval_minutes = interval_minutes
        self._on_countdown = on_countdown
        self._on_state_change = on_state_change
        self._on_outcome = on_outcome
        self._on_error = on_error
        self._notify = notify
        self.scheduler = scheduler or BackgroundScheduler()
        self.state = SchedulerState.IDLE
        self._last_workspace_stats: Optional[DiffStats] = None

    # -- Lifecycle --------------------------------------------------------

    def start(self) -> None:
        """Add both jobs and start the background scheduler."""
        self._add_jobs()
        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Sync loop started (interval: {self.interval_minutes} min)")

    def stop(self) -> None:
        """Shut down the scheduler; a sync already running is not interrupted."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def reconfigure(self, interval_minutes: int, prefix: str, time_zone: Optional[str]) -> None:
        """Recreate both timers with new settings, keeping buffered activity."""
        self.interval_minutes = interval_minutes
        self.engine.update_settings(prefix, time_zone)
        self.recorder.time_zone = time_zone
        self._remove_jobs()
        self._add_jobs()
        logger.info(
            f"Timers recreated (interval: {interval_minutes} min, "
            f"prefix: {prefix!r}, time zone: {time_zone or 'system'})"
        )

    def trigger_sync(self) -> None:
        """Run a manual sync on the scheduler's worker pool."""
        if self.scheduler.running:
            self.scheduler.add_job(self.sync_now, id=MANUAL_JOB_ID, replace_existing=True)
        else:
            self.sync_now()

    def _add_jobs(self) -> None:
        self.scheduler.add_job(
            self.evaluate,
            trigger=IntervalTrigger(minutes=self.interval_minutes),
            id=SYNC_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        self.scheduler.add_job(
            self.update_countdown,
            trigger=IntervalTrigger(seconds=1),
            id=COUNTDOWN_JOB_ID,
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    def _remove_jobs(self) -> None:
        for job_id in (SYNC_JOB_ID, COUNTDOWN_JOB_ID):
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass

    # -- Countdown --------------------------------------------------------

    def seconds_remaining(self) -> Optional[float]:
        job = self.scheduler.get_job(SYNC_JOB_ID)
        next_run = getattr(job, "next_run_time", None) if job else None
        if next_run is None:
            return None
        return max(0.0, (next_run - datetime.now(next_run.tzinfo)).total_seconds())

    def update_countdown(self) -> str:
        text = format_countdown(self.seconds_remaining())
        if self._on_countdown:
            self._on_countdown(text)
        return text

    # -- Sync tick --------------------------------------------------------

    def _set_state(self, state: SchedulerState) -> None:
        self.state = state
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception as e:
                logger.debug(f"State listener failed: {e}")

    def evaluate(self) -> Optional[SyncOutcome]:
        """One sync tick.

        1. Changed files but no explicit save: log an Auto-snapshot line per
           file and force-save dirty documents.
        2. Still nothing buffered: log a Workspace diff snapshot if the
           workspace repository diff moved since the last one.
        3. Hand off to the engine, which no-ops on an empty buffer.
        4. Always reset the interval's detection state.
        """
        outcome = None
        self._set_state(SchedulerState.EVALUATING)
        try:
            self._snapshot_unsaved_changes()
            if self.recorder.buffer.is_empty():
                self._snapshot_workspace_diff()
            self._set_state(SchedulerState.SYNCING)
            outcome = self._run_engine()
        except Exception:
            logger.exception("Sync tick failed")
        finally:
            self.recorder.reset_interval()
            self._set_state(SchedulerState.IDLE)
        return outcome

    def sync_now(self) -> Optional[SyncOutcome]:
        """Manual command: sync whatever is buffered right away."""
        logger.info("Manual sync triggered")
        self._set_state(SchedulerState.SYNCING)
        try:
            outcome = self._run_engine()
        finally:
            self._set_state(SchedulerState.IDLE)
        if outcome is None:
            return None
        if outcome.skipped:
            self._notify("CodeTrack Sync", "A sync is already running")
        else:
            self._notify("CodeTrack Sync", "Manual commit of coding summary executed")
        return outcome

    def _snapshot_unsaved_changes(self) -> None:
        changed = self.recorder.changed_files
        if not changed or self.recorder.explicit_save_seen:
            return

        for path, language_id in sorted(changed.items()):
            self.recorder.record_snapshot(path, language_id)
        logger.info(f"Auto-snapshot of {len(changed)} changed file(s)")

        dirty = self.editor.dirty_documents()
        if dirty:
            self.recorder.expect_forced_saves(dirty)
            self.editor.save_documents(dirty)
            logger.info(f"Saved {len(dirty)} dirty document(s)")

    def _snapshot_workspace_diff(self) -> None:
        if self.workspace_root is None:
            return
        stats = self.metrics.diff_stats(self.workspace_root)
        if stats.is_empty:
            self._last_workspace_stats = None
            return
        if stats == self._last_workspace_stats:
            return
        self._last_workspace_stats = stats
        self.recorder.record_workspace_snapshot(stats.added, stats.removed)
        logger.info(f"Workspace diff snapshot (+{stats.added}/-{stats.removed})")

    def _run_engine(self) -> Optional[SyncOutcome]:
        try:
            outcome = self.engine.sync_once()
        except SyncError as e:
            self._on_error(f"Error committing coding summary: {e}")
            return None
        if self._on_outcome:
            self._on_outcome(outcome)
        return outcome
