"""
Progress Display Module

Report each provisioning step with a stage marker and elapsed time.

Every create/delete call blocks for seconds to minutes, so each step is
announced when it starts and again, with its duration, when it finishes.
Updates are also recorded so callers (and tests) can inspect the run.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger(__name__)


class ProgressStage(Enum):
    """Progress stage indicators."""

    STARTED = "started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    WARNING = "warning"


@dataclass
class ProgressUpdate:
    """Progress update information."""

    stage: ProgressStage
    message: str
    timestamp: float
    operation: str
    elapsed: float | None = None


class ProgressDisplay:
    """
    Step-by-step progress reporting for a provisioning run.

    Features:
    - Stage-based updates
    - Time tracking per operation
    - Log output (INFO, WARNING for warnings and failures)
    """

    SYMBOLS = {
        ProgressStage.STARTED: "►",
        ProgressStage.IN_PROGRESS: "...",
        ProgressStage.COMPLETED: "✓",
        ProgressStage.FAILED: "✗",
        ProgressStage.WARNING: "⚠",
    }

    ASCII_SYMBOLS = {
        ProgressStage.STARTED: ">",
        ProgressStage.IN_PROGRESS: "...",
        ProgressStage.COMPLETED: "OK",
        ProgressStage.FAILED: "FAIL",
        ProgressStage.WARNING: "WARN",
    }

    def __init__(self, use_unicode: bool = True, clock=time.monotonic):
        """
        Initialize progress display.

        Args:
            use_unicode: Use Unicode symbols (True) or ASCII (False)
            clock: Monotonic time source, injectable for tests
        """
        self.use_unicode = use_unicode
        self._clock = clock
        self.current_operation: str | None = None
        self.start_time: float | None = None
        self.updates: list[ProgressUpdate] = []

    def start_operation(self, name: str) -> None:
        """Begin an operation, e.g. "Creating virtual network vnet1"."""
        self.current_operation = name
        self.start_time = self._clock()
        self.update(name, ProgressStage.STARTED)

    def update(
        self,
        message: str,
        stage: ProgressStage = ProgressStage.IN_PROGRESS,
        elapsed: float | None = None,
    ) -> None:
        """Record and log a progress update."""
        update = ProgressUpdate(
            stage=stage,
            message=message,
            timestamp=self._clock(),
            operation=self.current_operation or "unknown",
            elapsed=elapsed,
        )
        self.updates.append(update)

        level = (
            logging.WARNING
            if stage in (ProgressStage.FAILED, ProgressStage.WARNING)
            else logging.INFO
        )
        logger.log(level, self._format_update(update))

    def warn(self, message: str) -> None:
        """Record a warning that does not end the current operation."""
        self.update(message, ProgressStage.WARNING)

    def complete(self, success: bool = True, message: str | None = None) -> float:
        """
        Mark the current operation complete.

        Args:
            success: Whether the operation succeeded
            message: Optional completion message

        Returns:
            Elapsed seconds for the operation
        """
        if success:
            stage = ProgressStage.COMPLETED
            default_message = f"{self.current_operation} completed"
        else:
            stage = ProgressStage.FAILED
            default_message = f"{self.current_operation} failed"

        elapsed = self._clock() - self.start_time if self.start_time is not None else 0.0
        final_message = f"{message or default_message} ({self._format_duration(elapsed)})"
        self.update(final_message, stage, elapsed=elapsed)

        self.current_operation = None
        self.start_time = None
        return elapsed

    def _format_update(self, update: ProgressUpdate) -> str:
        symbols = self.SYMBOLS if self.use_unicode else self.ASCII_SYMBOLS
        return f"{symbols.get(update.stage, '')} {update.message}"

    def _format_duration(self, seconds: float) -> str:
        """Format duration, e.g. "12.3s", "2m 30s" or "1h 5m"."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        if seconds < 3600:
            minutes = int(seconds // 60)
            secs = int(seconds % 60)
            return f"{minutes}m {secs}s"
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        return f"{hours}h {minutes}m"

    def get_updates(self) -> list[ProgressUpdate]:
        """Return a copy of all recorded updates."""
        return self.updates.copy()


__all__ = ["ProgressDisplay", "ProgressStage", "ProgressUpdate"]
