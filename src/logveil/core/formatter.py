"""
Tracked-sink line formatting.

The layout matches the GoAccess log-format
``%h %^[%d:%t %^] %r %s %b "%R" "%u"``; both referrer and user agent are
quoted. Changing it breaks the downstream parser.
"""

from .parser import LogRecord

TRACKED_LINE_FORMAT = '{token} - - [{timestamp}] {request} {status} {byte_count} "{referrer}" "{user_agent}"'


def format_tracked_line(token: str, record: LogRecord, referrer: str) -> str:
    """Render one external record with its token and sanitized referrer."""
    return TRACKED_LINE_FORMAT.format(
        token=token,
        timestamp=record.timestamp,
        request=record.request,
        status=record.status,
        byte_count=record.byte_count,
        referrer=referrer,
        user_agent=record.user_agent,
    )
