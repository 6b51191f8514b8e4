"""
Terminal rendition of the page's toast notifications.
"""

import logging

from rich.console import Console

logger = logging.getLogger(__name__)

SEVERITY_STYLES = {
    "success": ("green", "✓"),
    "info": ("cyan", "ℹ"),
    "warning": ("yellow", "⚠"),
    "danger": ("bold red", "✗"),
}

SEVERITY_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "danger": logging.ERROR,
}


class ConsoleNotificationSink:
    """Prints toasts to a Rich console; never raises back into the caller."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def show_toast(self, message: str, severity: str = "info") -> None:
        style, icon = SEVERITY_STYLES.get(severity, SEVERITY_STYLES["info"])
        logger.log(SEVERITY_LOG_LEVELS.get(severity, logging.INFO), "Toast (%s): %s", severity, message)
        self.console.print(f"[{style}]{icon} {message}[/{style}]")
