"""Injectable time source. Everything that reads "now" takes one of these."""

from datetime import date, datetime, timezone
from typing import Callable


Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def current_month(clock: Clock = utc_now) -> date:
    """First day of the current month on the UTC calendar."""
    now = clock()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return date(now.year, now.month, 1)
