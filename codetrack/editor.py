"""Editor event boundary.

Activity enters the agent as document lifecycle notifications (saved,
opened, closed, changed) delivered to ``DocumentListener`` objects.
Registrations return ``Disposable`` handles which the app collects in a
``DisposableStack`` and releases together at teardown.

``FileSystemEventSource`` is the stock source: it watches the workspace
folder with watchdog and reports every file written to disk. Editor
integrations provide the same ``EditorEventSource`` interface and can also
report open/close and unsaved (dirty) buffers.
"""

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol, runtime_checkable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .config import Config

__all__ = [
    "Document",
    "DocumentListener",
    "Disposable",
    "DisposableStack",
    "EditorEventSource",
    "FileSystemEventSource",
    "ConfigWatcher",
    "language_for_path",
]

logger = logging.getLogger(__name__)

DEFAULT_IGNORED_DIRS = frozenset(
    {".git", ".hg", ".svn", "node_modules", "__pycache__", ".venv", "venv", ".idea", ".mypy_cache", ".pytest_cache"}
)
IGNORED_SUFFIXES = (".swp", ".swx", ".tmp", "~", ".pyc")

LANGUAGE_BY_SUFFIX = {
    ".py": "python",
    ".pyi": "python",
    ".ts": "typescript",
    ".tsx": "typescriptreact",
    ".js": "javascript",
    ".jsx": "javascriptreact",
    ".mjs": "javascript",
    ".json": "json",
    ".md": "markdown",
    ".rs": "rust",
    ".go": "go",
    ".java": "java",
    ".kt": "kotlin",
    ".c": "c",
    ".h": "c",
    ".cpp": "cpp",
    ".hpp": "cpp",
    ".cs": "csharp",
    ".rb": "ruby",
    ".php": "php",
    ".swift": "swift",
    ".sh": "shellscript",
    ".html": "html",
    ".css": "css",
    ".scss": "scss",
    ".yml": "yaml",
    ".yaml": "yaml",
    ".toml": "toml",
    ".sql": "sql",
}


def language_for_path(path: Path) -> str:
    """Guess an editor language identifier from a file suffix."""
    return LANGUAGE_BY_SUFFIX.get(path.suffix.lower(), "plaintext")


@dataclass(frozen=True)
class Document:
    """Identity of an editor document."""

    uri: str
    language_id: str = "plaintext"
    path: Optional[Path] = None
    is_dirty: bool = False
    scheme: str = "file"

    @classmethod
    def from_path(cls, path: Path, is_dirty: bool = False) -> "Document":
        path = Path(path)
        return cls(
            uri=path.as_uri() if path.is_absolute() else str(path),
            language_id=language_for_path(path),
            path=path,
            is_dirty=is_dirty,
        )

    @property
    def is_local_file(self) -> bool:
        return self.scheme == "file" and self.path is not None


@runtime_checkable
class DocumentListener(Protocol):
    """Receiver of document lifecycle notifications."""

    def on_document_saved(self, document: Document) -> None: ...

    def on_document_opened(self, document: Document) -> None: ...

    def on_document_closed(self, document: Document) -> None: ...

    def on_document_changed(self, document: Document) -> None: ...


class Disposable:
    """Handle that undoes a registration exactly once."""

    def __init__(self, on_dispose: Callable[[], None]):
        self._on_dispose: Optional[Callable[[], None]] = on_dispose

    def dispose(self) -> None:
        callback, self._on_dispose = self._on_dispose, None
        if callback is not None:
            callback()

    @property
    def disposed(self) -> bool:
        return self._on_dispose is None


class DisposableStack:
    """Collects handles and releases them in reverse order."""

    def __init__(self) -> None:
        self._items: list[Disposable] = []

    def push(self, item: Disposable) -> Disposable:
        self._items.append(item)
        return item

    def dispose_all(self) -> None:
        while self._items:
            item = self._items.pop()
            try:
                item.dispose()
            except Exception as e:
                logger.warning(f"Failed to release registration: {e}")

    def __len__(self) -> int:
        return len(self._items)


@runtime_checkable
class EditorEventSource(Protocol):
    """What the agent needs from the host editor."""

    def subscribe(self, listener: DocumentListener) -> Disposable: ...

    def dirty_documents(self) -> list[Document]: ...

    def save_documents(self, documents: list[Document]) -> None: ...


class _DocumentEventHandler(FileSystemEventHandler):
    """Forwards watchdog file events to the owning source."""

    def __init__(self, source: "FileSystemEventSource"):
        self._source = source

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._source.dispatch_written(Path(str(event.src_path)))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._source.dispatch_written(Path(str(event.src_path)))

    def on_moved(self, event: FileSystemEvent) -> None:
        # Atomic-save editors write a temp file then rename it over the target.
        if not event.is_directory:
            self._source.dispatch_written(Path(str(event.dest_path)))


class FileSystemEventSource:
    """Reports files written under a workspace folder as saved documents.

    Everything this source sees is already on disk, so it never has dirty
    documents to force-save and every write is reported as changed then
    saved. It never reports opened or closed documents: "Opened" lines,
    per-file session times and auto-snapshots need an editor integration
    implementing ``EditorEventSource``.
    """

    def __init__(
        self,
        root: Path,
        ignored_paths: Iterable[Path] = (),
        ignored_dirs: Iterable[str] = DEFAULT_IGNORED_DIRS,
        debounce_seconds: float = 1.0,
        observer: Optional[Observer] = None,
    ):
        """Initialize the source.

        Args:
            root: Workspace folder to watch recursively
            ignored_paths: Extra directories to skip (e.g. the tracking clone)
            ignored_dirs: Directory names skipped anywhere in the tree
            debounce_seconds: Repeated writes of one file within this window
                are reported once
            observer: watchdog observer (injectable for tests)
        """
        self.root = Path(root)
        self._ignored_paths = [Path(p).resolve() for p in ignored_paths]
        self._ignored_dirs = frozenset(ignored_dirs)
        self._debounce = debounce_seconds
        self._observer = observer or Observer()
        self._listeners: list[DocumentListener] = []
        self._last_seen: dict[Path, float] = {}
        self._lock = threading.Lock()
        self._started = False

    def subscribe(self, listener: DocumentListener) -> Disposable:
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return Disposable(_remove)

    def start(self) -> Disposable:
        """Start watching; the returned handle stops the observer."""
        if not self._started:
            self._observer.schedule(_DocumentEventHandler(self), str(self.root), recursive=True)
            self._observer.start()
            self._started = True
            logger.info(f"Watching workspace: {self.root}")
        return Disposable(self.stop)

    def stop(self) -> None:
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._started = False
            logger.info("Workspace watcher stopped")

    def dirty_documents(self) -> list[Document]:
        return []

    def save_documents(self, documents: list[Document]) -> None:
        """Nothing to do: files seen on disk are already saved."""
        return None

    def is_ignored(self, path: Path) -> bool:
        if path.name.endswith(IGNORED_SUFFIXES):
            return True
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            relative = path
        if any(part in self._ignored_dirs for part in relative.parts[:-1]):
            return True
        resolved = path.resolve()
        for ignored in self._ignored_paths:
            if resolved == ignored or ignored in resolved.parents:
                return True
        return False

    def dispatch_written(self, path: Path) -> None:
        """Report a file write to every listener (debounced per path)."""
        if self.is_ignored(path):
            return

        now = time.monotonic()
        with self._lock:
            last = self._last_seen.get(path)
            if last is not None and now - last < self._debounce:
                return
            self._last_seen[path] = now
            listeners = list(self._listeners)

        document = Document.from_path(path)
        for listener in listeners:
            try:
                listener.on_document_changed(document)
                listener.on_document_saved(document)
            except Exception:
                logger.exception(f"Listener failed for {path}")


class _ConfigFileHandler(FileSystemEventHandler):
    def __init__(self, watcher: "ConfigWatcher"):
        self._watcher = watcher

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        paths = {str(event.src_path), str(getattr(event, "dest_path", "") or "")}
        if str(self._watcher.path) in paths:
            self._watcher.reload()


class ConfigWatcher:
    """Delivers a freshly loaded Config whenever the config file changes."""

    def __init__(
        self,
        path: Path,
        on_change: Callable[[Config], None],
        observer: Optional[Observer] = None,
    ):
        self.path = Path(path)
        self._on_change = on_change
        self._observer = observer or Observer()
        self._started = False

    def start(self) -> Disposable:
        if not self._started:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._observer.schedule(_ConfigFileHandler(self), str(self.path.parent), recursive=False)
            self._observer.start()
            self._started = True
        return Disposable(self.stop)

    def stop(self) -> None:
        if self._started:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._started = False

    def reload(self) -> None:
        config = Config.load(self.path)
        logger.info("Configuration file changed, reloading")
        try:
            self._on_change(config)
        except Exception:
            logger.exception("Failed to apply configuration change")
