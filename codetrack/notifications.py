"""Native OS notifications for CodeTrack Sync."""

import logging
import platform
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)

APP_TITLE = "CodeTrack Sync"

_TOAST_SCRIPT = """\
[Windows.UI.Notifications.ToastNotificationManager, Windows.UI.Notifications, ContentType = WindowsRuntime] > $null
$template = [Windows.UI.Notifications.ToastNotificationManager]::GetTemplateContent([Windows.UI.Notifications.ToastTemplateType]::ToastText02)
$lines = $template.GetElementsByTagName('text')
$lines.Item(0).AppendChild($template.CreateTextNode('{title}')) > $null
$lines.Item(1).AppendChild($template.CreateTextNode('{message}')) > $null
[Windows.UI.Notifications.ToastNotificationManager]::CreateToastNotifier('{app}').Show([Windows.UI.Notifications.ToastNotification]::new($template))
"""


def _applescript_string(text: str) -> str:
    return '"' + text.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _powershell_string(text: str) -> str:
    return text.replace("'", "''")


def notification_command(system: str, title: str, message: str, sound: bool = True) -> Optional[list[str]]:
    """Command line that shows a notification on ``system``, or None."""
    if system == "Darwin":
        script = f"display notification {_applescript_string(message)} with title {_applescript_string(title)}"
        if sound:
            script += ' sound name "default"'
        return ["osascript", "-e", script]
    if system == "Windows":
        script = _TOAST_SCRIPT.format(
            title=_powershell_string(title),
            message=_powershell_string(message),
            app=APP_TITLE,
        )
        return ["powershell", "-Command", script]
    if system == "Linux" and shutil.which("notify-send"):
        return ["notify-send", "--app-name", APP_TITLE, title, message]
    return None


def send_notification(title: str, message: str, sound: bool = True) -> None:
    """Send a native OS notification; failures are logged, never raised.

    Args:
        title: Notification title.
        message: Notification body text.
        sound: Whether to play a sound (macOS only).
    """
    system = platform.system()
    command = notification_command(system, title, message, sound)
    if command is None:
        logger.debug(f"No notification support on {system}")
        return
    try:
        subprocess.run(command, capture_output=True, timeout=10)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Failed to send notification: {e}")


def notify_error(message: str) -> None:
    """Error notification; the message also goes to the log."""
    logger.error(message)
    send_notification(f"{APP_TITLE} error", message)
