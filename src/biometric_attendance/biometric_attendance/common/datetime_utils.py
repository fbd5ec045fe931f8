from __future__ import annotations

from datetime import date, datetime, timedelta
from functools import partial
from typing import Callable, Optional
from zoneinfo import ZoneInfo

from ..core.constants import VENDOR_DATE_FORMAT
from ..core.exceptions import ValidationError


def parse_iso_date(value: str) -> date:
    """Parse YYYY-MM-DD string into date."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_optional_date(value: Optional[str], field_name: str) -> Optional[date]:
    """Parse an optional request date, raising ValidationError on bad input."""
    if value is None or not str(value).strip():
        return None
    try:
        return parse_iso_date(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field_name} must be in YYYY-MM-DD format")


def to_vendor_date(value: date | datetime) -> str:
    return value.strftime(VENDOR_DATE_FORMAT)


def days_back(end: date, days: int) -> date:
    return end - timedelta(days=int(days))


def now_local(timezone: Optional[str] = None) -> datetime:
    """Current wall-clock time as a naive datetime.

    With a timezone name the time is taken in that zone, so it lines up with
    punch times normalized to the same zone. Without one it is the host's local
    time.

    Note: Wrapped so tests can patch/mocked easier.
    """
    if timezone:
        return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None)
    return datetime.now()


def local_clock(timezone: str) -> Callable[[], datetime]:
    return partial(now_local, timezone)
