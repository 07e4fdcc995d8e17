import re
from datetime import date, datetime, timedelta
from typing import Optional

from errors import ValidationFailure

DATE_FORMAT = "%Y-%m-%d"

_DAY = re.compile(r"\d{4}-\d{2}-\d{2}")


def parse_day(value: Optional[str], field: str = "date") -> Optional[date]:
    """Parse a zero-padded `yyyy-MM-dd` query value. Blank means absent.

    Raises `ValidationFailure` for anything else, including unpadded
    forms like `2024-1-5`.
    """

    if value is None or not value.strip():
        return None
    text = value.strip()
    if not _DAY.fullmatch(text):
        raise ValidationFailure(f"Invalid {field} format. Use yyyy-MM-dd")
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError as e:
        raise ValidationFailure(f"Invalid {field} format. Use yyyy-MM-dd") from e


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, datetime.min.time())


def end_of_day_exclusive(day: date) -> datetime:
    """Midnight after `day`, so a range ending on `day` covers all of it."""

    return start_of_day(day + timedelta(days=1))
