"""Tests for the activity recorder."""

from datetime import datetime, timezone
from unittest.mock import Mock

from codetrack.activity.buffer import ActivityBuffer
from codetrack.activity.recorder import ActivityRecorder
from codetrack.editor import Document

FIXED_NOW = datetime(2024, 5, 1, 10, 0, 0, tzinfo=timezone.utc)


def fixed_clock(time_zone=None):
    return FIXED_NOW


class TestActivityRecorder:
    """Tests for ActivityRecorder."""

    def setup_method(self):
        self.state = Mock()
        self.buffer = ActivityBuffer()
        self.now = 100.0

    def make_recorder(self, workspace, track_opens=False):
        return ActivityRecorder(
            self.state,
            workspace_root=workspace,
            track_opens=track_opens,
            buffer=self.buffer,
            clock=fixed_clock,
            monotonic=lambda: self.now,
        )

    def test_save_logs_relative_path(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document.from_path(tmp_path / "src" / "foo.ts")

        recorder.on_document_saved(doc)

        assert self.buffer.snapshot() == ["[10:00:00]: Saved src/foo.ts\n"]
        assert recorder.explicit_save_seen
        self.state.increment_language.assert_called_once_with("typescript")

    def test_save_outside_workspace_logs_full_path(self, tmp_path):
        workspace = tmp_path / "ws"
        workspace.mkdir()
        recorder = self.make_recorder(workspace)
        outside = tmp_path / "elsewhere.py"

        recorder.on_document_saved(Document.from_path(outside))

        assert self.buffer.snapshot() == [f"[10:00:00]: Saved {outside}\n"]

    def test_non_file_documents_ignored(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document(uri="untitled:Untitled-1", scheme="untitled")

        recorder.on_document_saved(doc)
        recorder.on_document_changed(doc)
        recorder.on_document_opened(doc)

        assert self.buffer.is_empty()
        assert recorder.changed_files == {}
        assert recorder.open_sessions == set()
        self.state.increment_language.assert_not_called()

    def test_forced_save_not_logged(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document.from_path(tmp_path / "bar.ts", is_dirty=True)

        recorder.expect_forced_saves([doc])
        recorder.on_document_saved(doc)

        assert self.buffer.is_empty()
        assert not recorder.explicit_save_seen

        # Only the first save after forcing is swallowed.
        recorder.on_document_saved(doc)
        assert len(self.buffer) == 1

    def test_unreported_forced_save_expires_with_interval(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document.from_path(tmp_path / "bar.ts", is_dirty=True)

        recorder.expect_forced_saves([doc])
        recorder.reset_interval()
        recorder.on_document_saved(doc)

        assert self.buffer.snapshot() == ["[10:00:00]: Saved bar.ts\n"]
        assert recorder.explicit_save_seen
        self.state.increment_language.assert_called_once_with("typescript")

    def test_open_logged_only_when_tracking(self, tmp_path):
        quiet = self.make_recorder(tmp_path)
        quiet.on_document_opened(Document.from_path(tmp_path / "a.py"))
        assert self.buffer.is_empty()

        tracking = self.make_recorder(tmp_path, track_opens=True)
        tracking.on_document_opened(Document.from_path(tmp_path / "a.py"))
        assert self.buffer.snapshot() == ["[10:00:00]: Opened a.py\n"]

    def test_close_records_session_time(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document.from_path(tmp_path / "a.py")

        recorder.on_document_opened(doc)
        self.now = 145.0
        recorder.on_document_closed(doc)

        self.state.add_session_time.assert_called_once_with(doc.uri, 45.0)
        assert recorder.open_sessions == set()

    def test_close_without_open_is_ignored(self, tmp_path):
        recorder = self.make_recorder(tmp_path)

        recorder.on_document_closed(Document.from_path(tmp_path / "a.py"))

        self.state.add_session_time.assert_not_called()

    def test_changes_tracked_until_reset(self, tmp_path):
        recorder = self.make_recorder(tmp_path)
        doc = Document.from_path(tmp_path / "lib" / "x.rs")

        recorder.on_document_changed(doc)
        recorder.on_document_saved(doc)

        assert recorder.changed_files == {"lib/x.rs": "rust"}
        assert recorder.explicit_save_seen

        recorder.reset_interval()

        assert recorder.changed_files == {}
        assert not recorder.explicit_save_seen

    def test_record_snapshot(self, tmp_path):
        recorder = self.make_recorder(tmp_path)

        line = recorder.record_snapshot("bar.ts", "typescript")

        assert line == "[10:00:00]: Auto-snapshot bar.ts\n"
        self.state.increment_language.assert_called_once_with("typescript")

    def test_record_workspace_snapshot(self, tmp_path):
        recorder = self.make_recorder(tmp_path)

        recorder.record_workspace_snapshot(12, 5)

        assert self.buffer.snapshot() == ["[10:00:00]: Workspace diff snapshot (+12/−5)\n"]
