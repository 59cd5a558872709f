"""Callback definitions for status and progress reporting."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .models import BatchRun, Severity

logger = logging.getLogger(__name__)


def _ignore(*args) -> None:
    return None


@dataclass
class ProcessingCallbacks:
    """Callbacks the batch processor calls to report status and progress"""

    on_status: Callable[[str, Severity], None] = _ignore
    on_progress: Callable[[float], None] = _ignore


class StatusReporter:
    """
    Fire-and-forget bridge between the processor and its UI listener.

    Keeps the BatchRun state current, logs every status message and never
    lets a listener exception reach the pipeline. Progress never goes
    backwards within one run.
    """

    def __init__(
        self,
        callbacks: Optional[ProcessingCallbacks] = None,
        run: Optional[BatchRun] = None,
    ):
        self.callbacks = callbacks or ProcessingCallbacks()
        self.run = run or BatchRun()

    def status(self, message: str, severity: Severity = Severity.INFO):
        self.run.status_message = message
        self.run.severity = severity
        self.notify(message, severity)

    def notify(self, message: str, severity: Severity = Severity.INFO):
        """Log and forward a message without touching the run state."""
        if severity == Severity.ERROR:
            logger.error(message)
        else:
            logger.info(message)

        try:
            self.callbacks.on_status(message, severity)
        except Exception as e:
            logger.warning(f"Status listener failed: {e}")

    def progress(self, percent: float):
        percent = max(self.run.progress, min(100.0, float(percent)))
        self.run.progress = percent

        try:
            self.callbacks.on_progress(percent)
        except Exception as e:
            logger.warning(f"Progress listener failed: {e}")

    def reset_progress(self):
        """Start a new run at 0%."""
        self.run.progress = 0.0
        try:
            self.callbacks.on_progress(0.0)
        except Exception as e:
            logger.warning(f"Progress listener failed: {e}")
