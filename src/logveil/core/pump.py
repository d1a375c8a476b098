"""
Main relay loop.

Pulls lines from the input stream and pushes each one through:
1. Parsing (malformed lines are skipped)
2. Classification (loopback traffic is internal)
3. Referrer sanitization and tokenization (external traffic only)
4. Formatting
5. A durable write through the OutputRouter
"""

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Iterable, Optional, TextIO

import structlog

from .classifier import TrafficClass, classify
from .exceptions import InputStreamError, OutputWriteError, ParseError
from .formatter import format_tracked_line
from .metrics import MetricsCollector
from .output import OutputRouter, Sink
from .parser import parse_line
from .referrer import sanitize_referrer
from .salt import SaltProvider
from .tokenizer import tokenize

logger = structlog.get_logger(__name__)


@dataclass
class PumpStats:
    """Counters for one pump run."""
    lines_read: int = 0
    skipped: int = 0
    internal: int = 0
    external: int = 0
    write_errors: int = 0

    @property
    def accepted(self) -> int:
        return self.internal + self.external

    @property
    def written(self) -> int:
        return self.accepted - self.write_errors


def open_input(path: Path) -> TextIO:
    """
    Open the input stream for line reading.

    Opening a named pipe blocks until nginx opens the write end. Lines
    split on "\n" only, and non-UTF-8 bytes are kept as-is.

    Raises:
        InputStreamError: if the path cannot be opened
    """
    try:
        return open(path, "r", encoding="utf-8", errors="surrogateescape", newline="\n")
    except OSError as e:
        raise InputStreamError(
            "Cannot open input stream",
            details={"path": str(path), "error": str(e)},
        ) from e


def _strip_terminator(line: str) -> str:
    line = line.removesuffix("\n")
    return line.removesuffix("\r")


class StreamPump:
    """
    Reads, transforms and writes access events until the input ends.

    Never waits on rotation: every write goes to whatever target the
    router currently publishes.
    """

    def __init__(
        self,
        source: Iterable[str],
        router: OutputRouter,
        salt_provider: SaltProvider,
        metrics: Optional[MetricsCollector] = None,
    ) -> None:
        self.source = source
        self.router = router
        self.salt_provider = salt_provider
        self.metrics = metrics
        self.stats = PumpStats()

    def process_line(self, line: str) -> Optional[TrafficClass]:
        """
        Handle one input line.

        Returns:
            The traffic class of the line, or None if it was skipped
        """
        line = _strip_terminator(line)

        try:
            record = parse_line(line)
        except ParseError as e:
            self.stats.skipped += 1
            logger.debug("Skipping malformed line", **e.details)
            if self.metrics:
                self.metrics.record_line("skipped")
            return None

        traffic = classify(record)
        if traffic is TrafficClass.INTERNAL:
            # Verbatim copy for operational debugging, never analyzed
            sink = Sink.UNTRACKED
            output_line = record.raw
            self.stats.internal += 1
        else:
            referrer = sanitize_referrer(record.referrer)
            token = tokenize(self.salt_provider.current_salt(), record.source_addr, record.user_agent)
            sink = Sink.TRACKED
            output_line = format_tracked_line(token, record, referrer)
            self.stats.external += 1

        if self.metrics:
            self.metrics.record_line(traffic.value)

        try:
            self.router.write(sink, output_line)
        except OutputWriteError as e:
            self.stats.write_errors += 1
            logger.error("Dropping line after write failure", reason=str(e), **e.details)
            if self.metrics:
                self.metrics.record_write_error(sink.value)

        return traffic

    def run(self) -> PumpStats:
        """Process lines until end of input or a read error."""
        logger.info("Stream pump started")
        lines = iter(self.source)

        while True:
            try:
                line = next(lines)
            except StopIteration:
                break
            except (OSError, UnicodeError) as e:
                logger.error("Error reading from input, stopping", error=str(e), error_type=type(e).__name__)
                if self.metrics:
                    self.metrics.record_read_error()
                break

            self.stats.lines_read += 1
            self.process_line(line)
            if self.metrics:
                self.metrics.update_system_metrics()

        logger.info("Stream pump finished", **asdict(self.stats))
        return self.stats
