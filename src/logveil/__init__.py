"""
LogVeil - Privacy-preserving access-log relay → GoAccess

Reads nginx access events from a named pipe, pseudonymizes client
identifiers with a daily salted token, strips referrers to their origin
and keeps internal traffic out of analytics. Output files are reopened
on logrotate's SIGHUP without losing in-flight records.
"""

__version__ = "0.1.0"

from .core.pump import PumpStats, StreamPump

__all__ = ["PumpStats", "StreamPump", "__version__"]
