"""Desktop notifications for tracking events.

Each platform gets a one-shot notifier command; nothing is kept running.
"""

import logging
import platform
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)

APP_TITLE = "Code Tracking"

NOTIFY_TIMEOUT = 10  # seconds


def _applescript_string(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _powershell_string(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _toast_script(title: str, message: str) -> str:
    manager = "[Windows.UI.Notifications.ToastNotificationManager]"
    return "; ".join([
        f"{manager[:-1]}, Windows.UI.Notifications, ContentType = WindowsRuntime] > $null",
        f"$t = {manager}::GetTemplateContent("
        "[Windows.UI.Notifications.ToastTemplateType]::ToastText02)",
        "$n = $t.GetElementsByTagName('text')",
        f"$n.Item(0).AppendChild($t.CreateTextNode({_powershell_string(title)})) > $null",
        f"$n.Item(1).AppendChild($t.CreateTextNode({_powershell_string(message)})) > $null",
        f"{manager}::CreateToastNotifier({_powershell_string(APP_TITLE)})"
        ".Show([Windows.UI.Notifications.ToastNotification]::new($t))",
    ])


def notification_command(
    title: str, message: str, system: Optional[str] = None
) -> Optional[list]:
    """Build the notifier command line for ``system``, or None if unsupported."""
    system = system or platform.system()
    if system == "Darwin":
        script = (
            f"display notification {_applescript_string(message)} "
            f"with title {_applescript_string(title)}"
        )
        return ["osascript", "-e", script]
    if system == "Windows":
        return ["powershell", "-Command", _toast_script(title, message)]
    if system == "Linux" and shutil.which("notify-send"):
        return ["notify-send", "--app-name", APP_TITLE, title, message]
    return None


def send_notification(title: str, message: str) -> None:
    """Show a desktop notification.

    Failures are logged and never raised, so a missing notifier cannot
    interrupt tracking.
    """
    command = notification_command(title, message)
    if command is None:
        logger.debug(f"No notifier available; dropped: {title}: {message}")
        return
    try:
        subprocess.run(command, capture_output=True, timeout=NOTIFY_TIMEOUT)
    except (OSError, subprocess.SubprocessError) as e:
        logger.debug(f"Failed to send notification: {e}")
