"""Internal versus external traffic classification."""

from enum import Enum

from .parser import LogRecord

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})


class TrafficClass(str, Enum):
    """Where a record is routed."""

    INTERNAL = "internal"
    EXTERNAL = "external"


def classify(record: LogRecord) -> TrafficClass:
    """Loopback traffic (health checks, local monitoring) is internal."""
    if record.source_addr in LOOPBACK_ADDRESSES:
        return TrafficClass.INTERNAL
    return TrafficClass.EXTERNAL
