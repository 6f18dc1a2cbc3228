"""User-facing notifications, written to the application log."""

import logging
from collections import deque
from enum import Enum

from callsim.config.constants import LOGGER_NAME

logger = logging.getLogger(LOGGER_NAME)

HISTORY_SIZE = 50


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


_LEVELS = {
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class LoggingNotifier:
    """Logs each notification and keeps the most recent ones for display."""

    def __init__(self, history_size: int = HISTORY_SIZE):
        self.history = deque(maxlen=history_size)

    def notify(self, message: str, severity: Severity = Severity.INFO) -> None:
        self.history.append((message, severity))
        logger.log(_LEVELS[severity], f"[notify] {message}")
