"""
Daily salt derivation.

The salt mixes a process-wide secret with today's date so that tokens
correlate within a calendar day and cannot be joined across days.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

import structlog

from .exceptions import MissingSecretError

logger = structlog.get_logger(__name__)

# Well-known fallback for low assurance mode. Tokens built on it are only
# as private as this string is secret, which is not at all.
FALLBACK_SECRET = "fallback-salt"

DATE_BUCKET_FORMAT = "%Y-%m-%d"


@dataclass(frozen=True)
class Salt:
    """Time-bucketed secret used to key the token hash."""
    date_bucket: str
    secret: str

    @property
    def value(self) -> str:
        """Rendered salt string fed into the digest."""
        return f"{self.date_bucket}{self.secret}"


class SaltProvider:
    """
    Derives the salt for the current calendar day.

    Nothing is cached: every call reads the clock, so the salt rolls over
    at midnight without any timer.
    """

    def __init__(
        self,
        secret: Optional[str],
        fallback_salt_allowed: bool = False,
        clock: Optional[Callable[[], date]] = None,
    ) -> None:
        self.using_fallback = not secret
        if not secret:
            if not fallback_salt_allowed:
                raise MissingSecretError()
            logger.warning(
                "Secret is not set, using the well-known fallback salt; "
                "tokens are NOT private in this mode",
                assurance_mode="low",
            )
            secret = FALLBACK_SECRET

        self._secret = secret
        self._clock = clock or (lambda: datetime.now().date())

    def current_salt(self) -> Salt:
        """Return the salt for today."""
        today = self._clock()
        return Salt(date_bucket=today.strftime(DATE_BUCKET_FORMAT), secret=self._secret)
