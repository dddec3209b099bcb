"""
Trigger calculation for scheduled system notifications.

A trigger is the target instant minus a lead time, moved to a fixed local
hour on that calendar date so that pushes never fire at arbitrary minutes.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Optional

import pytz

logger = logging.getLogger(__name__)

DEFAULT_TRIGGER_HOUR = 9


def as_aware(dt: datetime) -> datetime:
    # Naive datetimes are treated as UTC
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def compute_trigger(
    target: datetime,
    lead: timedelta,
    now: datetime,
    *,
    tz: pytz.BaseTzInfo = pytz.utc,
    hour: int = DEFAULT_TRIGGER_HOUR,
) -> Optional[datetime]:
    """
    Return the fire instant for a notification `lead` ahead of `target`.

    Returns None when `target - lead` is not strictly after `now`, or when the
    calendar arithmetic cannot be carried out. The result is `hour`:00:00 in
    `tz` on the local calendar date of `target - lead`. Pure: reads no clock.
    """
    try:
        candidate = as_aware(target) - lead
    except OverflowError:
        logger.debug("Trigger out of range for target=%s lead=%s", target, lead)
        return None

    if candidate <= as_aware(now):
        return None

    try:
        local_date = candidate.astimezone(tz).date()
        return tz.localize(datetime.combine(local_date, time(hour=hour)))
    except (OverflowError, ValueError) as exc:
        logger.debug("Cannot place trigger at %02d:00 on %s: %s", hour, candidate, exc)
        return None
