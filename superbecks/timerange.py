"""Business-day date handling.

Dates picked on screen are calendar days in the business timezone (UTC+8),
whatever timezone the machine running the app is set to. Queries filter on
UTC instants with ``created_at >= start`` and ``created_at < end``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone

from superbecks.config import BUSINESS_UTC_OFFSET_HOURS
from superbecks.errors import ValidationError

BUSINESS_TZ = timezone(timedelta(hours=BUSINESS_UTC_OFFSET_HOURS))


@dataclass(frozen=True)
class UtcRange:
    """Half-open UTC interval ``[start_utc, end_utc)``."""

    start_utc: datetime
    end_utc: datetime

    @property
    def start_iso(self) -> str:
        return to_utc_iso(self.start_utc)

    @property
    def end_iso(self) -> str:
        return to_utc_iso(self.end_utc)


def to_utc_iso(moment: datetime) -> str:
    """Format an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    utc = moment.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def business_midnight(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=BUSINESS_TZ)


def business_day_range_to_utc(start: date, end_inclusive: date) -> UtcRange:
    """Convert an inclusive business-day range into an exclusive UTC interval."""
    if end_inclusive < start:
        raise ValidationError(f"End date {end_inclusive.isoformat()} is before start date {start.isoformat()}")
    start_utc = business_midnight(start).astimezone(timezone.utc)
    end_utc = business_midnight(end_inclusive + timedelta(days=1)).astimezone(timezone.utc)
    return UtcRange(start_utc=start_utc, end_utc=end_utc)


def business_today(now: datetime | None = None) -> date:
    """Today's date in the business timezone."""
    moment = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    return moment.astimezone(BUSINESS_TZ).date()


def start_of_week(day: date) -> date:
    """Monday of the week containing ``day``."""
    return day - timedelta(days=day.weekday())


def start_of_month(day: date) -> date:
    return day.replace(day=1)


def parse_ymd(text: str) -> date:
    """Parse ``YYYY-MM-DD``."""
    raw = text.strip()
    try:
        return datetime.strptime(raw, "%Y-%m-%d").date()
    except ValueError:
        raise ValidationError(f"Invalid date {raw!r}, expected YYYY-MM-DD") from None
