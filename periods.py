from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from config import get_settings


def local_today() -> date:
    settings = get_settings()
    tz = ZoneInfo(settings.timezone)
    return datetime.now(tz).date()


def utc_to_local(when: datetime) -> datetime:
    """Convert a naive UTC timestamp to naive local time in the configured zone."""
    tz = ZoneInfo(get_settings().timezone)
    return when.replace(tzinfo=timezone.utc).astimezone(tz).replace(tzinfo=None)


def month_index(year: int, month: int) -> int:
    return year * 12 + (month - 1)


def from_month_index(index: int) -> tuple[int, int]:
    return index // 12, index % 12 + 1


def days_in_month(year: int, month: int) -> int:
    next_year, next_month = from_month_index(month_index(year, month) + 1)
    return (date(next_year, next_month, 1) - date(year, month, 1)).days


@dataclass(frozen=True)
class Scope:
    slug: str
    year: Optional[int] = None
    month: Optional[int] = None

    @property
    def is_all(self) -> bool:
        return self.slug == "all"

    def contains(self, when: datetime) -> bool:
        if self.is_all:
            return True
        return when.year == self.year and when.month == self.month

    def label(self) -> str:
        if self.is_all:
            return "all"
        return f"{self.year:04d}-{self.month:02d}"


ALL = Scope("all")


def month_scope(year: int, month: int) -> Scope:
    if not 1 <= month <= 12:
        raise ValueError("Month must be between 1 and 12")
    return Scope("month", year, month)


def resolve_scope(value: Optional[str], *, today: Optional[date] = None) -> Scope:
    """Parse ``"all"``, ``"this_month"`` or ``"YYYY-MM"`` into a scope."""
    if not value or value == "all":
        return ALL
    if value == "this_month":
        today = today or local_today()
        return month_scope(today.year, today.month)
    try:
        year_raw, month_raw = value.split("-", 1)
        year, month = int(year_raw), int(month_raw)
    except ValueError as exc:
        raise ValueError(f"Invalid month scope: {value!r}") from exc
    return month_scope(year, month)
