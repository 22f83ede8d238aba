"""Activity recorder - turns document events into timestamped log lines."""

import logging
import threading
import time
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..clock import line_timestamp, localized_now
from ..editor import Document
from ..state import StateStore
from .buffer import ActivityBuffer

__all__ = ["ActivityRecorder", "VERB_SAVED", "VERB_OPENED", "VERB_AUTO_SNAPSHOT", "VERB_WORKSPACE_SNAPSHOT"]

logger = logging.getLogger(__name__)

VERB_SAVED = "Saved"
VERB_OPENED = "Opened"
VERB_AUTO_SNAPSHOT = "Auto-snapshot"
VERB_WORKSPACE_SNAPSHOT = "Workspace diff snapshot"


class ActivityRecorder:
    """Receives editor document events and fills the activity buffer.

    Also owns the per-interval detection state (changed files, whether an
    explicit save was seen) and the open-document session map.
    """

    def __init__(
        self,
        state: StateStore,
        workspace_root: Optional[Path] = None,
        time_zone: Optional[str] = None,
        track_opens: bool = False,
        buffer: Optional[ActivityBuffer] = None,
        clock: Callable[[Optional[str]], object] = localized_now,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """Initialize the recorder.

        Args:
            state: Persisted counters (language saves, session totals)
            workspace_root: Paths are logged relative to this folder
            time_zone: IANA zone for line timestamps (None = system)
            track_opens: Log "Opened" lines; fixed for the recorder's lifetime
            buffer: Activity buffer (a fresh one if None)
            clock: Returns the current aware datetime for a zone name
            monotonic: Time source for session durations
        """
        self.state = state
        self.workspace_root = Path(workspace_root).resolve() if workspace_root else None
        self.time_zone = time_zone
        self.track_opens = track_opens
        self.buffer = buffer if buffer is not None else ActivityBuffer()
        self._clock = clock
        self._monotonic = monotonic

        self._lock = threading.Lock()
        self._changed: dict[str, str] = {}  # relative path -> language id
        self._explicit_save_seen = False
        self._forced_saves: set[str] = set()
        self._sessions: dict[str, float] = {}

    # -- Detection state --------------------------------------------------

    @property
    def changed_files(self) -> dict[str, str]:
        """Paths edited since the last tick, mapped to their language."""
        with self._lock:
            return dict(self._changed)

    @property
    def explicit_save_seen(self) -> bool:
        with self._lock:
            return self._explicit_save_seen

    @property
    def open_sessions(self) -> set[str]:
        with self._lock:
            return set(self._sessions)

    def reset_interval(self) -> None:
        """Start a fresh detection interval."""
        with self._lock:
            self._changed.clear()
            self._explicit_save_seen = False
            # Forced saves the editor never reported expire with the interval.
            self._forced_saves.clear()

    def expect_forced_saves(self, documents: Iterable[Document]) -> None:
        """Mark upcoming saves as forced so they are not logged twice."""
        with self._lock:
            self._forced_saves.update(doc.uri for doc in documents)

    # -- Formatting -------------------------------------------------------

    def relative_path(self, document: Document) -> str:
        """Workspace-relative POSIX path, else the absolute path or URI."""
        if document.path is None:
            return document.uri
        path = Path(document.path)
        if self.workspace_root is not None:
            try:
                return path.resolve().relative_to(self.workspace_root).as_posix()
            except ValueError:
                pass
        return str(path)

    def format_line(self, description: str) -> str:
        stamp = line_timestamp(self._clock(self.time_zone))
        return f"[{stamp}]: {description}\n"

    def record(self, verb: str, target: str) -> str:
        line = self.format_line(f"{verb} {target}")
        self.buffer.append(line)
        logger.debug(line.rstrip())
        return line

    # -- Document events --------------------------------------------------

    def on_document_saved(self, document: Document) -> None:
        if not document.is_local_file:
            return
        with self._lock:
            if document.uri in self._forced_saves:
                self._forced_saves.discard(document.uri)
                return
            self._explicit_save_seen = True
        self.record(VERB_SAVED, self.relative_path(document))
        self.state.increment_language(document.language_id)

    def on_document_opened(self, document: Document) -> None:
        if not document.is_local_file:
            return
        with self._lock:
            self._sessions[document.uri] = self._monotonic()
        if self.track_opens:
            self.record(VERB_OPENED, self.relative_path(document))

    def on_document_closed(self, document: Document) -> None:
        with self._lock:
            start = self._sessions.pop(document.uri, None)
        if start is None:
            return
        elapsed = max(0.0, self._monotonic() - start)
        self.state.add_session_time(document.uri, elapsed)

    def on_document_changed(self, document: Document) -> None:
        if not document.is_local_file:
            return
        with self._lock:
            self._changed[self.relative_path(document)] = document.language_id

    # -- Synthesized lines ------------------------------------------------

    def record_snapshot(self, path: str, language_id: str) -> str:
        """Log a changed file that was never explicitly saved."""
        line = self.record(VERB_AUTO_SNAPSHOT, path)
        self.state.increment_language(language_id)
        return line

    def record_workspace_snapshot(self, added: int, removed: int) -> str:
        line = self.format_line(f"{VERB_WORKSPACE_SNAPSHOT} (+{added}/−{removed})")
        self.buffer.append(line)
        return line
