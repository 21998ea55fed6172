"""Calendar-year mutability policy for action records.

A record may be updated or deleted only while the current calendar year equals
the calendar year it was created in. Years are computed in the configured
timezone (``ACTION_TIMEZONE``, UTC by default) so every process agrees on when
the year rolls over.

Timestamps are stored as aware UTC values. Backends without timezone support
hand them back naive, so any naive datetime handed to this module is
interpreted as UTC.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Callable, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from . import config
from .errors import ForbiddenError

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    """Return the current instant as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def get_clock() -> Clock:
    """Request dependency; tests override it with a fake clock."""
    return system_clock


def resolve_timezone(name: str) -> tzinfo:
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"Unknown ACTION_TIMEZONE: {name!r}") from exc


def policy_timezone() -> tzinfo:
    return resolve_timezone(config.ACTION_TIMEZONE)


def as_utc(instant: datetime) -> datetime:
    """Return ``instant`` as an aware UTC datetime."""
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_storage(instant: datetime) -> datetime:
    """Normalize an instant to the aware UTC form written to the database."""
    return as_utc(instant)


def to_wire(instant: datetime | None) -> str | None:
    """ISO-8601 UTC string used in API responses."""
    if instant is None:
        return None
    return as_utc(instant).isoformat().replace("+00:00", "Z")


def year_of(instant: datetime, tz: tzinfo | None = None) -> int:
    return as_utc(instant).astimezone(tz or policy_timezone()).year


def year_bounds(year: int, tz: tzinfo | None = None) -> Tuple[datetime, datetime]:
    """Half-open ``[start, end)`` storage-form bounds of a calendar year."""
    zone = tz or policy_timezone()
    start = datetime(year, 1, 1, tzinfo=zone)
    end = datetime(year + 1, 1, 1, tzinfo=zone)
    return to_storage(start), to_storage(end)


@dataclass(frozen=True)
class YearWindow:
    creation_year: int
    current_year: int

    @property
    def can_modify(self) -> bool:
        return self.creation_year == self.current_year

    @property
    def is_historical(self) -> bool:
        return self.creation_year < self.current_year

    @property
    def is_future(self) -> bool:
        return self.creation_year > self.current_year


def evaluate(created_at: datetime, now: datetime, tz: tzinfo | None = None) -> YearWindow:
    zone = tz or policy_timezone()
    return YearWindow(creation_year=year_of(created_at, zone), current_year=year_of(now, zone))


def can_modify(created_at: datetime, now: datetime, tz: tzinfo | None = None) -> bool:
    return evaluate(created_at, now, tz).can_modify


def rejection_message(operation: str, window: YearWindow) -> str:
    if window.is_historical:
        return (
            f"Cannot {operation} data from {window.creation_year}: historical data is read-only. "
            f"Only current year ({window.current_year}) data can be modified."
        )
    if window.is_future:
        return "Invalid date detected. Future dates are not allowed."
    return f"Action not allowed for {operation}."


def ensure_modifiable(operation: str, created_at: datetime, now: datetime, tz: tzinfo | None = None) -> YearWindow:
    """Raise ForbiddenError unless the record is still in its creation year."""
    window = evaluate(created_at, now, tz)
    if not window.can_modify:
        raise ForbiddenError(rejection_message(operation, window), code="year_locked")
    return window
