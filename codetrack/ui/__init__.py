"""UI module - system tray status item."""

from .tray import TrayIcon, TrayState

__all__ = ["TrayIcon", "TrayState"]
