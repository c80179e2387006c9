"""Calendar helpers: day boundaries, ages and zodiac signs."""

from __future__ import annotations

from datetime import date, datetime, timezone, tzinfo

# Month -> first day of the *next* sign within that month.
_ZODIAC_CUTOFFS: list[int] = [20, 19, 21, 20, 21, 21, 23, 23, 23, 23, 22, 22]
_ZODIAC_SIGNS: list[str] = [
    "capricorn", "aquarius", "pisces", "aries", "taurus", "gemini", "cancer",
    "leo", "virgo", "libra", "scorpio", "sagittarius", "capricorn",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes (SQLite drops the offset on read)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_same_calendar_day(
    a: datetime | None,
    b: datetime | None,
    tz: tzinfo = timezone.utc,
) -> bool:
    """Return True when *a* and *b* fall on the same calendar day in *tz*.

    ``None`` on either side is never the same day, so a mission that was
    never claimed is never "claimed today".  Naive datetimes are read as UTC.
    """
    if a is None or b is None:
        return False
    return as_utc(a).astimezone(tz).date() == as_utc(b).astimezone(tz).date()


def calculate_age(birth_date: date | None, today: date) -> int | None:
    if birth_date is None:
        return None
    before_birthday = (today.month, today.day) < (birth_date.month, birth_date.day)
    return today.year - birth_date.year - int(before_birthday)


def years_ago(today: date, years: int) -> date:
    """Same month/day *years* earlier; Feb 29 falls back to Feb 28."""
    try:
        return today.replace(year=today.year - years)
    except ValueError:
        return today.replace(year=today.year - years, day=28)


def zodiac_sign(birth_date: date | None) -> str | None:
    if birth_date is None:
        return None
    month_index = birth_date.month - 1
    if birth_date.day < _ZODIAC_CUTOFFS[month_index]:
        return _ZODIAC_SIGNS[month_index]
    return _ZODIAC_SIGNS[month_index + 1]
