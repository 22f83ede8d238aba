"""In-memory activity buffer for the current sync interval."""

import threading

__all__ = ["ActivityBuffer"]


class ActivityBuffer:
    """Ordered, append-only list of log lines.

    Lines arrive from watcher threads while a sync may be reading, so every
    access goes through a lock.
    """

    def __init__(self) -> None:
        self._lines: list[str] = []
        self._lock = threading.Lock()

    def append(self, line: str) -> None:
        if not line.endswith("\n"):
            line += "\n"
        with self._lock:
            self._lines.append(line)

    def snapshot(self) -> list[str]:
        """Copy of the buffered lines."""
        with self._lock:
            return list(self._lines)

    def text(self) -> str:
        with self._lock:
            return "".join(self._lines)

    def clear_through(self, count: int) -> None:
        """Drop the first ``count`` lines.

        Lines appended after a snapshot was taken survive.
        """
        with self._lock:
            del self._lines[:count]

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    def is_empty(self) -> bool:
        with self._lock:
            return not self._lines

    def __len__(self) -> int:
        with self._lock:
            return len(self._lines)
