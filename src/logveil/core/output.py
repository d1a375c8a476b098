"""
Output routing with atomically swappable file handles.

The tracked and untracked handles live together in one immutable
OutputTarget. OutputRouter holds the current target behind a single lock:
a write takes the lock for exactly one write+flush+fsync, and a rotation
takes it only to replace the reference. A line therefore lands entirely in
the old file or entirely in the new one.
"""

import os
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, TextIO

import structlog

from .exceptions import OutputTargetError, OutputWriteError

logger = structlog.get_logger(__name__)

OPEN_FLAGS = os.O_CREAT | os.O_WRONLY | os.O_APPEND


class Sink(str, Enum):
    """Output destinations."""

    TRACKED = "tracked"
    UNTRACKED = "untracked"


@dataclass(frozen=True)
class OutputTarget:
    """The pair of currently open sinks."""
    tracked: TextIO
    untracked: TextIO

    def handle(self, sink: Sink) -> TextIO:
        return self.tracked if sink is Sink.TRACKED else self.untracked

    def close(self) -> None:
        """Close both handles, logging rather than raising on failure."""
        for sink in Sink:
            handle = self.handle(sink)
            try:
                handle.close()
            except OSError as e:
                # logrotate already moved the file away; nothing left to save
                logger.warning("Error closing output handle", sink=sink.value, error=str(e))


def _open_append(path: Path, file_mode: int) -> TextIO:
    fd = os.open(path, OPEN_FLAGS, file_mode)
    return os.fdopen(fd, "a", encoding="utf-8", errors="surrogateescape", newline="\n")


def open_output_target(tracked_path: Path, untracked_path: Path, file_mode: int = 0o644) -> OutputTarget:
    """
    Open both sinks in append mode, creating them if needed.

    Raises:
        OutputTargetError: if either file cannot be opened; nothing is left open
    """
    try:
        tracked = _open_append(tracked_path, file_mode)
    except OSError as e:
        raise OutputTargetError(
            "Cannot open tracked output",
            details={"path": str(tracked_path), "error": str(e)},
        ) from e

    try:
        untracked = _open_append(untracked_path, file_mode)
    except OSError as e:
        tracked.close()
        raise OutputTargetError(
            "Cannot open untracked output",
            details={"path": str(untracked_path), "error": str(e)},
        ) from e

    return OutputTarget(tracked=tracked, untracked=untracked)


class OutputRouter:
    """
    Owns the current OutputTarget and serializes access to it.

    Writers and the rotation coordinator agree on this one lock; nothing
    else ever touches the handles.
    """

    def __init__(self, target: OutputTarget) -> None:
        self._target = target
        self._lock = threading.Lock()
        self._closed = False

    @property
    def current(self) -> OutputTarget:
        with self._lock:
            return self._target

    def write(self, sink: Sink, line: str) -> None:
        """
        Append one line to a sink and force it to disk.

        Raises:
            OutputWriteError: if the write, flush or fsync fails
        """
        with self._lock:
            if self._closed:
                raise OutputWriteError("Output router is closed", details={"sink": sink.value})

            handle = self._target.handle(sink)
            try:
                handle.write(line + "\n")
                handle.flush()
                os.fsync(handle.fileno())
            except (OSError, ValueError) as e:
                # ValueError: handle already closed
                raise OutputWriteError(
                    "Write to output failed",
                    details={"sink": sink.value, "error": str(e)},
                ) from e

    def swap(self, new_target: OutputTarget) -> Optional[OutputTarget]:
        """
        Publish a new target and return the previous one for the caller to close.

        Returns None (and closes new_target) if the router was already closed.
        """
        with self._lock:
            if self._closed:
                previous = None
            else:
                previous = self._target
                self._target = new_target

        if previous is None:
            new_target.close()
        return previous

    def close(self) -> None:
        """Close the current target; later writes fail with OutputWriteError."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            target = self._target
        target.close()
        logger.info("Output router closed")
