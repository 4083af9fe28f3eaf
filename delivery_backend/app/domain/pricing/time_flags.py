"""
Time-of-request surcharge flags.

Derived outside the pricing engine so the engine stays pure.
"""

from datetime import datetime, timedelta, timezone

from delivery_backend.app.core.config import settings


def local_timezone() -> timezone:
    return timezone(timedelta(hours=settings.local_utc_offset_hours))


def to_local(moment: datetime) -> datetime:
    # Naive datetimes are treated as UTC
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(local_timezone())


def is_after_hours(moment: datetime) -> bool:
    """True from 19:00 until 06:00 local time."""
    hour = to_local(moment).hour
    return hour >= settings.after_hours_start_hour or hour < settings.after_hours_end_hour


def is_weekend(moment: datetime) -> bool:
    """True on Saturday and Sunday, local time."""
    return to_local(moment).weekday() >= 5
