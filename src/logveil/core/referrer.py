"""
Referrer sanitization.

Referrers are cut down to ``scheme://host`` so analytics can see which
site sent traffic without learning which page, query or fragment.
"""

from urllib.parse import urlsplit

import structlog

logger = structlog.get_logger(__name__)

NO_REFERRER = "-"


def _strip_one_quote_layer(value: str) -> str:
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value


def sanitize_referrer(raw: str) -> str:
    """
    Reduce a raw referrer to its origin.

    Returns an empty string for "-", for anything that does not parse as a
    URL, and for URLs without a scheme or host. Never raises.
    """
    ref = _strip_one_quote_layer(raw.strip())

    if ref == NO_REFERRER:
        return ""

    try:
        parts = urlsplit(ref)
    except ValueError:
        logger.debug("Malformed referrer dropped", referrer=ref)
        return ""

    # netloc may carry user:password@ which must not leak
    host = parts.netloc.rpartition("@")[2]
    if not parts.scheme or not host or any(c.isspace() for c in host):
        logger.debug("Malformed referrer dropped", referrer=ref)
        return ""

    return f"{parts.scheme}://{host}"
