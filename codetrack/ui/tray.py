"""System tray status item: countdown, state color and commands."""

import logging
import os
import platform
import subprocess
import threading
from enum import Enum
from typing import Callable, Optional

from PIL import Image, ImageDraw

try:
    import pystray
    from pystray import MenuItem as Item
except ImportError:
    pystray = None
    Item = None

__all__ = ["TrayIcon", "TrayState", "TrayModel", "STATE_COLORS", "create_icon_image"]

logger = logging.getLogger(__name__)

APP_TITLE = "CodeTrack Sync"


class TrayState(Enum):
    """Tray icon states."""

    STARTING = "starting"  # Blue - activation in progress
    IDLE = "idle"  # Green - waiting for the next tick
    SYNCING = "syncing"  # Purple - commit/push in flight
    ERROR = "error"  # Red - last sync or activation failed
    WAITING_AUTH = "waiting_auth"  # Amber - waiting for GitHub sign-in


STATE_COLORS = {
    TrayState.STARTING: "#3b82f6",
    TrayState.IDLE: "#22c55e",
    TrayState.SYNCING: "#8b5cf6",
    TrayState.ERROR: "#ef4444",
    TrayState.WAITING_AUTH: "#f59e0b",
}


def create_icon_image(color: str, size: int = 64) -> Image.Image:
    """Create a simple colored circle icon."""
    image = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    draw = ImageDraw.Draw(image)
    margin = size // 8
    draw.ellipse([margin, margin, size - margin, size - margin], fill=color)
    return image


def open_path(path: str) -> None:
    """Open a file with the platform's default application."""
    if platform.system() == "Windows":
        os.startfile(path)  # type: ignore[attr-defined]
    elif platform.system() == "Darwin":
        subprocess.Popen(["open", path])
    else:
        subprocess.Popen(["xdg-open", path])


class TrayModel:
    """Display state for the tray icon."""

    def __init__(self) -> None:
        self.state: TrayState = TrayState.STARTING
        self.status_text: str = "Starting..."
        self.countdown: str = ""
        self.username: Optional[str] = None
        self.last_commit: str = "Never"
        self.log_file_path: Optional[str] = None
        self.config_file_path: Optional[str] = None


class TrayIcon:
    """System tray icon with status indicator."""

    def __init__(
        self,
        on_sync_now: Optional[Callable[[], None]] = None,
        on_show_report: Optional[Callable[[], None]] = None,
        on_quit: Optional[Callable[[], None]] = None,
    ):
        """Initialize tray icon.

        Args:
            on_sync_now: Callback to commit the buffered activity immediately
            on_show_report: Callback to produce the metrics report
            on_quit: Callback when quit is clicked
        """
        if pystray is None:
            raise ImportError("pystray is required for system tray support")

        self._on_sync_now = on_sync_now
        self._on_show_report = on_show_report
        self._on_quit = on_quit
        self.model = TrayModel()
        self._icon: Optional[pystray.Icon] = None
        self._lock = threading.Lock()

    def _create_menu(self) -> "pystray.Menu":
        items = []
        if self.model.username:
            items.append(Item(f"GitHub: {self.model.username}", None, enabled=False))
        items.append(Item(f"Status: {self.model.status_text}", None, enabled=False))
        if self.model.countdown:
            items.append(Item(self.model.countdown, None, enabled=False))
        items.append(Item(f"Last commit: {self.model.last_commit}", None, enabled=False))
        items.append(pystray.Menu.SEPARATOR)
        items.append(Item("Commit now", self._handle_sync_now))
        items.append(Item("Show metrics report", self._handle_show_report))
        items.append(Item("Open log file", self._handle_open_log))
        items.append(Item("Open config file", self._handle_open_config))
        items.append(pystray.Menu.SEPARATOR)
        items.append(Item("Quit", self._handle_quit))
        return pystray.Menu(*items)

    # -- Menu action handlers ------------------------------------------------

    def _handle_sync_now(self, icon, item) -> None:
        if self._on_sync_now:
            self._on_sync_now()

    def _handle_show_report(self, icon, item) -> None:
        if self._on_show_report:
            self._on_show_report()

    def _handle_open_log(self, icon, item) -> None:
        if self.model.log_file_path:
            open_path(self.model.log_file_path)

    def _handle_open_config(self, icon, item) -> None:
        if self.model.config_file_path:
            open_path(self.model.config_file_path)

    def _handle_quit(self, icon, item) -> None:
        if self._on_quit:
            self._on_quit()
        self.stop()

    # -- State updates -------------------------------------------------------

    def set_paths(self, log_file: str, config_file: str) -> None:
        self.model.log_file_path = log_file
        self.model.config_file_path = config_file

    def set_state(self, state: TrayState, status_text: Optional[str] = None) -> None:
        self.model.state = state
        self.model.status_text = status_text or {
            TrayState.STARTING: "Starting...",
            TrayState.IDLE: "Tracking",
            TrayState.SYNCING: "Committing...",
            TrayState.ERROR: "Error",
            TrayState.WAITING_AUTH: "Waiting for GitHub sign-in...",
        }[state]
        self._update_icon()

    def set_user(self, username: Optional[str]) -> None:
        self.model.username = username
        self._update_menu()

    def set_last_commit(self, when: str) -> None:
        self.model.last_commit = when
        self._update_menu()

    def set_countdown(self, text: str) -> None:
        """Refresh the "Next commit in ..." text (called every second)."""
        self.model.countdown = text
        with self._lock:
            if self._icon:
                self._icon.title = f"{APP_TITLE} - {text}"
        self._update_menu()

    def _update_icon(self) -> None:
        with self._lock:
            if self._icon:
                color = STATE_COLORS.get(self.model.state, STATE_COLORS[TrayState.STARTING])
                self._icon.icon = create_icon_image(color)
                self._icon.menu = self._create_menu()

    def _update_menu(self) -> None:
        with self._lock:
            if self._icon:
                self._icon.menu = self._create_menu()

    def _build_icon(self) -> "pystray.Icon":
        return pystray.Icon(
            APP_TITLE,
            create_icon_image(STATE_COLORS[self.model.state]),
            APP_TITLE,
            self._create_menu(),
        )

    def stop(self) -> None:
        """Stop the tray icon."""
        with self._lock:
            icon, self._icon = self._icon, None
        if icon:
            icon.stop()
            logger.info("Tray icon stopped")

    def run_blocking(self) -> None:
        """Run the tray icon in the main thread (blocking)."""
        with self._lock:
            if self._icon is None:
                self._icon = self._build_icon()
            icon = self._icon
        icon.run()
