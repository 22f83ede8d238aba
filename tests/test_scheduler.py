"""Tests for the sync scheduler."""

from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from apscheduler.jobstores.base import JobLookupError
from git import GitCommandError

from codetrack.activity.recorder import ActivityRecorder
from codetrack.auth.keychain import Credentials
from codetrack.editor import Document
from codetrack.scheduler import (
    COUNTDOWN_JOB_ID,
    SYNC_JOB_ID,
    SchedulerState,
    SyncScheduler,
    format_countdown,
)
from codetrack.state import StateStore
from codetrack.sync.metrics import DiffStats
from codetrack.sync.sync_engine import SyncEngine

FIXED_NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


def fixed_clock(time_zone=None):
    return FIXED_NOW


class FakeEditor:
    """Editor with unsaved buffers; saving reports back to the recorder."""

    def __init__(self, recorder):
        self.recorder = recorder
        self.dirty = []
        self.saved = []

    def subscribe(self, listener):
        raise NotImplementedError

    def dirty_documents(self):
        return list(self.dirty)

    def save_documents(self, documents):
        self.saved.extend(documents)
        for document in documents:
            self.recorder.on_document_saved(document)
        self.dirty = []


class TestFormatCountdown:
    """Tests for format_countdown()."""

    def test_minutes_and_seconds(self):
        assert format_countdown(725) == "Next commit in 12m 5s"

    def test_negative_clamped(self):
        assert format_countdown(-3) == "Next commit in 0m 0s"

    def test_not_scheduled(self):
        assert format_countdown(None) == "Next commit: not scheduled"


class TestSyncScheduler:
    """Tests for SyncScheduler."""

    def setup_method(self):
        self.git = Mock()
        self.credentials = Mock()
        self.credentials.refresh.return_value = Credentials(token="tok", username="octo")
        self.metrics = Mock()
        self.metrics.diff_badge.return_value = ""
        self.metrics.diff_stats.return_value = DiffStats()
        self.notify = Mock()
        self.on_error = Mock()
        self.apscheduler = Mock()
        self.apscheduler.running = False

    def build(self, tmp_path, **kwargs):
        self.workspace = tmp_path / "ws"
        self.workspace.mkdir()
        self.repo = tmp_path / "repo"
        self.repo.mkdir()
        self.state = StateStore(tmp_path / "state.json")
        self.recorder = ActivityRecorder(self.state, workspace_root=self.workspace, clock=fixed_clock)
        self.editor = FakeEditor(self.recorder)
        self.engine = SyncEngine(
            buffer=self.recorder.buffer,
            git=self.git,
            credentials=self.credentials,
            metrics=self.metrics,
            counter=self.state,
            repo_path=self.repo,
            repo_name="code-tracking",
            summary_filename="coding_summary.txt",
            notify=self.notify,
            clock=fixed_clock,
        )
        return SyncScheduler(
            engine=self.engine,
            recorder=self.recorder,
            editor=self.editor,
            metrics=self.metrics,
            workspace_root=self.workspace,
            interval_minutes=30,
            on_error=self.on_error,
            notify=self.notify,
            scheduler=self.apscheduler,
            **kwargs,
        )

    def summary(self):
        return (self.repo / "coding_summary.txt").read_text()

    def test_unsaved_document_gets_auto_snapshot(self, tmp_path):
        scheduler = self.build(tmp_path)
        doc = Document.from_path(self.workspace / "bar.ts", is_dirty=True)
        self.recorder.on_document_changed(doc)
        self.editor.dirty = [doc]

        scheduler.evaluate()

        assert self.editor.saved == [doc]
        assert self.summary() == "[10:00:00]: Auto-snapshot bar.ts\n"
        self.git.commit.assert_called_once()
        assert self.state.language_counts == {"typescript": 1}

    def test_explicit_save_skips_auto_snapshot(self, tmp_path):
        scheduler = self.build(tmp_path)
        doc = Document.from_path(self.workspace / "bar.ts")
        self.recorder.on_document_changed(doc)
        self.recorder.on_document_saved(doc)

        scheduler.evaluate()

        assert self.summary() == "[10:00:00]: Saved bar.ts\n"

    def test_nothing_to_commit(self, tmp_path):
        scheduler = self.build(tmp_path)

        outcome = scheduler.evaluate()

        assert not outcome.committed
        self.git.commit.assert_not_called()
        self.git.push.assert_not_called()
        self.metrics.diff_stats.assert_called_once_with(self.workspace)

    def test_workspace_snapshot_recorded_once(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.metrics.diff_stats.return_value = DiffStats(added=5, removed=2, files_changed=1)

        scheduler.evaluate()
        scheduler.evaluate()

        assert self.summary() == "[10:00:00]: Workspace diff snapshot (+5/−2)\n"
        assert self.git.commit.call_count == 1

    def test_workspace_snapshot_recorded_when_diff_moves(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.metrics.diff_stats.side_effect = [
            DiffStats(added=5, removed=2, files_changed=1),
            DiffStats(added=8, removed=2, files_changed=1),
        ]

        scheduler.evaluate()
        scheduler.evaluate()

        assert self.git.commit.call_count == 2

    def test_workspace_snapshot_recorded_again_after_diff_clears(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.metrics.diff_stats.side_effect = [
            DiffStats(added=5, removed=2, files_changed=1),
            DiffStats(),
            DiffStats(added=5, removed=2, files_changed=1),
        ]

        scheduler.evaluate()
        scheduler.evaluate()
        scheduler.evaluate()

        assert self.git.commit.call_count == 2

    def test_tick_resets_interval_state(self, tmp_path):
        scheduler = self.build(tmp_path)
        doc = Document.from_path(self.workspace / "bar.ts")
        self.recorder.on_document_changed(doc)

        scheduler.evaluate()

        assert self.recorder.changed_files == {}
        assert scheduler.state is SchedulerState.IDLE

    def test_unexpected_error_is_contained(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.metrics.diff_stats.side_effect = RuntimeError("boom")
        self.recorder.on_document_changed(Document.from_path(self.workspace / "a.py"))
        self.recorder.on_document_saved(Document.from_path(self.workspace / "a.py"))
        self.recorder.buffer.clear()

        assert scheduler.evaluate() is None
        assert scheduler.state is SchedulerState.IDLE
        assert not self.recorder.explicit_save_seen

    def test_sync_failure_reported(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.git.push.side_effect = GitCommandError("push", 128)
        self.recorder.record("Saved", "a.py")

        outcome = scheduler.evaluate()

        assert outcome is None
        message = self.on_error.call_args[0][0]
        assert message.startswith("Error committing coding summary:")

    def test_state_changes_reported(self, tmp_path):
        states = []
        scheduler = self.build(tmp_path, on_state_change=states.append)

        scheduler.evaluate()

        assert states == [SchedulerState.EVALUATING, SchedulerState.SYNCING, SchedulerState.IDLE]

    def test_outcome_reported(self, tmp_path):
        on_outcome = Mock()
        scheduler = self.build(tmp_path, on_outcome=on_outcome)
        self.recorder.record("Saved", "a.py")

        scheduler.evaluate()

        assert on_outcome.call_args[0][0].committed

    def test_manual_sync(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.recorder.record("Saved", "a.py")

        scheduler.trigger_sync()

        self.git.push.assert_called_once()
        self.notify.assert_called_with("CodeTrack Sync", "Manual commit of coding summary executed")

    def test_manual_sync_while_busy(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.recorder.record("Saved", "a.py")
        self.engine._lock.acquire()
        try:
            outcome = scheduler.sync_now()
        finally:
            self.engine._lock.release()

        assert outcome.skipped
        self.notify.assert_called_with("CodeTrack Sync", "A sync is already running")

    def test_manual_sync_queued_when_running(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.apscheduler.running = True

        scheduler.trigger_sync()

        self.apscheduler.add_job.assert_called_once()
        self.git.push.assert_not_called()

    def test_start_adds_both_jobs(self, tmp_path):
        scheduler = self.build(tmp_path)

        scheduler.start()

        job_ids = [c[1]["id"] for c in self.apscheduler.add_job.call_args_list]
        assert job_ids == [SYNC_JOB_ID, COUNTDOWN_JOB_ID]
        self.apscheduler.start.assert_called_once()

    def test_reconfigure_keeps_buffer(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.apscheduler.remove_job.side_effect = JobLookupError(SYNC_JOB_ID)
        self.recorder.record("Saved", "a.py")

        scheduler.reconfigure(10, "[laptop]", "UTC")

        assert len(self.recorder.buffer) == 1
        assert scheduler.interval_minutes == 10
        assert self.engine.prefix == "[laptop]"
        assert self.engine.time_zone == "UTC"
        assert self.recorder.time_zone == "UTC"
        assert self.apscheduler.add_job.call_count == 2

    def test_countdown(self, tmp_path):
        on_countdown = Mock()
        scheduler = self.build(tmp_path, on_countdown=on_countdown)
        next_run = datetime.now(timezone.utc) + timedelta(seconds=90)
        self.apscheduler.get_job.return_value = Mock(next_run_time=next_run)

        text = scheduler.update_countdown()

        assert text.startswith("Next commit in 1m")
        on_countdown.assert_called_once_with(text)

    def test_countdown_without_job(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.apscheduler.get_job.return_value = None

        assert scheduler.update_countdown() == "Next commit: not scheduled"

    def test_stop(self, tmp_path):
        scheduler = self.build(tmp_path)
        self.apscheduler.running = True

        scheduler.stop()

        self.apscheduler.shutdown.assert_called_once_with(wait=False)
