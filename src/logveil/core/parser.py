"""
Input line parsing.

nginx writes one event per line as:
ip|user_agent|timestamp|request|status|bytes|referrer
"""

from dataclasses import dataclass

from .exceptions import ParseError

FIELD_DELIMITER = "|"
FIELD_COUNT = 7


@dataclass(frozen=True)
class LogRecord:
    """One parsed access event."""
    source_addr: str
    user_agent: str
    timestamp: str
    request: str
    status: str
    byte_count: str
    referrer: str
    raw: str


def parse_line(line: str) -> LogRecord:
    """
    Split a raw line into a LogRecord.

    Segments past the seventh are ignored, so trailing delimiters are harmless.

    Raises:
        ParseError: if the line has fewer than seven fields
    """
    parts = line.split(FIELD_DELIMITER)
    if len(parts) < FIELD_COUNT:
        raise ParseError(field_count=len(parts))

    source_addr, user_agent, timestamp, request, status, byte_count, referrer = parts[:FIELD_COUNT]
    return LogRecord(
        source_addr=source_addr,
        user_agent=user_agent,
        timestamp=timestamp,
        request=request,
        status=status,
        byte_count=byte_count,
        referrer=referrer,
        raw=line,
    )
