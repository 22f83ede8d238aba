"""Counters persisted across restarts (language saves, commits, sessions)."""

import json
import logging
import threading
from pathlib import Path
from typing import Optional

from .config import Config

__all__ = ["StateStore", "MILESTONE_EVERY"]

logger = logging.getLogger(__name__)

MILESTONE_EVERY = 10


class StateStore:
    """JSON-file backed store, saved on every mutation."""

    def __init__(self, path: Optional[Path] = None):
        """Initialize the store.

        Args:
            path: JSON file location (defaults to the data dir)
        """
        if path is None:
            path = Config.get_data_dir() / "state.json"

        self.path = path
        self._lock = threading.Lock()
        self.language_counts: dict[str, int] = {}
        self.session_durations: dict[str, float] = {}
        self.commit_count = 0
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load state from {self.path}: {e}, starting fresh")
            return

        self.language_counts = {str(k): int(v) for k, v in data.get("language_counts", {}).items()}
        self.session_durations = {
            str(k): float(v) for k, v in data.get("session_durations", {}).items()
        }
        self.commit_count = int(data.get("commit_count", 0))

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "language_counts": self.language_counts,
            "session_durations": self.session_durations,
            "commit_count": self.commit_count,
        }
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        tmp.replace(self.path)

    def increment_language(self, language_id: str) -> int:
        with self._lock:
            count = self.language_counts.get(language_id, 0) + 1
            self.language_counts[language_id] = count
            self._save()
        return count

    def add_session_time(self, document_key: str, seconds: float) -> float:
        """Add elapsed seconds to a document's persisted total."""
        with self._lock:
            total = self.session_durations.get(document_key, 0.0) + seconds
            self.session_durations[document_key] = total
            self._save()
        return total

    def increment_commits(self) -> int:
        """Bump the commit counter and return its new value."""
        with self._lock:
            self.commit_count += 1
            self._save()
            return self.commit_count

    @staticmethod
    def is_milestone(count: int) -> bool:
        return count > 0 and count % MILESTONE_EVERY == 0
