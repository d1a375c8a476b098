"""
Rotation coordination.

logrotate renames the output files and sends SIGHUP. The signal handler
only sets an event; a worker thread then opens fresh files at the same
paths and publishes them through the OutputRouter. Requests that arrive
while a reopen is in progress coalesce into a single follow-up reopen.
"""

import signal
import threading
from enum import Enum
from typing import Any, Callable, Optional

import structlog

from .exceptions import OutputTargetError
from .metrics import MetricsCollector
from .output import OutputRouter, OutputTarget

logger = structlog.get_logger(__name__)


class RotationState(str, Enum):
    """Coordinator states."""

    STABLE = "stable"
    REOPENING = "reopening"


class RotationCoordinator:
    """
    Reopens the output target on request.

    States:
    - STABLE: the published handles point at the live files
    - REOPENING: a reopen is running, or the last one failed; the previous
      handles stay in place and the next request retries
    """

    def __init__(
        self,
        router: OutputRouter,
        opener: Callable[[], OutputTarget],
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.router = router
        self.metrics = metrics
        self._opener = opener
        self._state = RotationState.STABLE
        self._reopen_lock = threading.Lock()
        self._requested = threading.Event()
        self._stopping = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.completed_rotations = 0
        self.failed_rotations = 0

    @property
    def state(self) -> RotationState:
        return self._state

    def request_rotation(self) -> None:
        """Ask for a reopen. Safe to call from a signal handler."""
        self._requested.set()

    def handle_signal(self, signum: int, frame: Any) -> None:
        # No logging here: the interrupted thread may hold the logging lock
        self.request_rotation()

    def install_signal_handler(self, signal_name: str = "SIGHUP") -> None:
        """Route the named signal to request_rotation. Main thread only."""
        signum = getattr(signal, signal_name)
        signal.signal(signum, self.handle_signal)
        logger.info("Rotation signal handler installed", signal=signal_name)

    def start(self) -> None:
        """Start the worker thread that services rotation requests."""
        if self._thread is not None:
            return

        self._stopping.clear()
        # stop() sets the request flag to wake the worker; drop that stale wakeup
        self._requested.clear()
        self._thread = threading.Thread(target=self._run, name="logveil-rotation", daemon=True)
        self._thread.start()
        logger.info("Rotation coordinator started")

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the worker thread. Pending requests are dropped."""
        if self._thread is None:
            return

        self._stopping.set()
        self._requested.set()
        self._thread.join(timeout)
        self._thread = None
        logger.info("Rotation coordinator stopped")

    def _run(self) -> None:
        while True:
            self._requested.wait()
            if self._stopping.is_set():
                break
            # Clear before reopening so a request arriving mid-reopen is kept
            self._requested.clear()
            try:
                self.rotate_now()
            except Exception as e:
                logger.error("Rotation worker error", error=str(e), error_type=type(e).__name__)

    def rotate_now(self) -> bool:
        """
        Reopen both outputs and publish them.

        Returns:
            True if the new target was published, False if opening failed
        """
        with self._reopen_lock:
            self._state = RotationState.REOPENING
            logger.info("Reopening output files")

            try:
                new_target = self._opener()
            except OutputTargetError as e:
                self.failed_rotations += 1
                logger.error(
                    "Reopen failed, keeping previous handles until next request",
                    error=str(e),
                    details=e.details,
                )
                if self.metrics:
                    self.metrics.record_rotation(success=False)
                return False

            previous = self.router.swap(new_target)
            if previous is not None:
                previous.close()

            self._state = RotationState.STABLE
            self.completed_rotations += 1
            logger.info("Output files reopened", rotations=self.completed_rotations)
            if self.metrics:
                self.metrics.record_rotation(success=True)
            return True
