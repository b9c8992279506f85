"""
TimeSource — timestamps in the service's civil timezone (Africa/Kampala).

Requests carry ``YYYY-MM-DD hh:mm:ss``; responses use ``DD/MM/YYYY hh:mm:ss``.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, Optional
from zoneinfo import ZoneInfo

SERVICE_TZ = ZoneInfo("Africa/Kampala")

REQUEST_FORMAT = "%Y-%m-%d %H:%M:%S"
RESPONSE_FORMAT = "%d/%m/%Y %H:%M:%S"
COMPACT_DATE_FORMAT = "%Y%m%d"

_PARSE_FORMATS = (REQUEST_FORMAT, RESPONSE_FORMAT)


class TimeSource:
    """
    Produces present-moment timestamps in the service timezone.

    Args:
        now: Optional zero-argument callable returning an aware ``datetime``;
             used by tests to pin the clock.
    """

    def __init__(self, now: Optional[Callable[[], datetime]] = None) -> None:
        self._now = now or (lambda: datetime.now(SERVICE_TZ))

    def now(self) -> datetime:
        return self._now().astimezone(SERVICE_TZ)

    def now_request_format(self) -> str:
        return self.now().strftime(REQUEST_FORMAT)

    def now_response_format(self) -> str:
        return self.now().strftime(RESPONSE_FORMAT)

    def now_compact_date(self) -> str:
        return self.now().strftime(COMPACT_DATE_FORMAT)

    @staticmethod
    def is_synchronized(local: str, remote: str, tolerance_minutes: float = 10) -> bool:
        """
        True iff both timestamps parse and differ by at most ``tolerance_minutes``.

        Unparseable input yields ``False``; this never raises.
        """
        local_dt = _parse_timestamp(local)
        remote_dt = _parse_timestamp(remote)
        if local_dt is None or remote_dt is None:
            return False
        diff_s = abs((remote_dt - local_dt).total_seconds())
        return diff_s <= tolerance_minutes * 60


def _parse_timestamp(value: object) -> Optional[datetime]:
    """Try each known pattern; accept only an exact round-trip match."""
    if not isinstance(value, str):
        return None
    for fmt in _PARSE_FORMATS:
        try:
            parsed = datetime.strptime(value, fmt)
        except ValueError:
            continue
        if parsed.strftime(fmt) == value:
            return parsed
    return None
