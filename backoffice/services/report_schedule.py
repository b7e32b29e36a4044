"""Next-send computation for periodic owner report dispatch."""
from datetime import datetime, time
from typing import Optional
import re

import pytz

from backoffice.models.recurrence_rule import Frequency
from backoffice.services.recurrence_calculator import next_occurrence

REPORT_FREQUENCIES = (Frequency.DAILY, Frequency.WEEKLY)
_TIME_PATTERN = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")


def parse_preferred_time(preferred_time: str) -> time:
    """Parse an HH:MM string."""
    match = _TIME_PATTERN.match(preferred_time.strip()) if preferred_time else None
    if not match:
        raise ValueError(f"Preferred time must be HH:MM, got {preferred_time!r}")
    return time(int(match.group(1)), int(match.group(2)))


def next_send_time(
    frequency: str,
    preferred_time: str,
    now: datetime,
    tz: Optional[str] = None,
) -> Optional[datetime]:
    """
    Next time a daily or weekly report should go out.

    Today's ``preferred_time`` is used while it is still ahead of ``now``;
    otherwise the send moves forward one day (daily) or one week (weekly).
    With ``tz`` the preferred time is read in that pytz zone and the result is
    timezone-aware. A frequency of "none" disables sending and returns None.
    """
    if isinstance(frequency, Frequency):
        frequency = frequency.value
    if frequency is None or frequency.lower() == "none":
        return None
    cadence = Frequency(frequency.upper())
    if cadence not in REPORT_FREQUENCIES:
        raise ValueError(f"Report frequency must be daily, weekly or none, got {frequency!r}")
    send_at = parse_preferred_time(preferred_time)

    zone = pytz.timezone(tz) if tz else None
    if zone is not None:
        local_now = now.astimezone(zone) if now.tzinfo else zone.localize(now)
    else:
        local_now = now

    naive_now = local_now.replace(tzinfo=None)
    candidate = datetime.combine(naive_now.date(), send_at)
    if candidate <= naive_now:
        send_day = next_occurrence(cadence, 1, None, None, candidate.date())
        candidate = datetime.combine(send_day, send_at)

    if zone is not None:
        return zone.localize(candidate)
    if now.tzinfo is not None:
        return candidate.replace(tzinfo=now.tzinfo)
    return candidate
