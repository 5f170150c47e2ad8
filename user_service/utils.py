"""Utility functions for common operations across the application."""

from datetime import date, datetime


class InvalidDateError(ValueError):
    """Raised when a birth date cannot be parsed as a calendar date."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"'{value}' is not a valid date (expected YYYY-MM-DD)")


class FutureDateError(ValueError):
    """Raised when a birth date lies after the reference day."""

    def __init__(self, value: date):
        self.value = value
        super().__init__(f"Birth date {value.isoformat()} cannot be in the future")


def normalize_email(email: str) -> str:
    """Convert email to lowercase and strip whitespace."""
    return email.strip().lower()


def compose_full_name(first_name: str | None, last_name: str | None) -> str:
    """Join name parts with a single space, trimming the result."""
    return f"{first_name or ''} {last_name or ''}".strip()


def parse_date(value: date | datetime | str) -> date:
    """Parse an ISO calendar date. Raises InvalidDateError."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise InvalidDateError(value) from e


def calculate_age(birth_date: date | datetime | str | None, today: date | None = None) -> int:
    """Whole years elapsed between ``birth_date`` and ``today``.

    An absent birth date means "unknown" and yields 0.

    Raises:
        InvalidDateError: the value is not a calendar date
        FutureDateError: the date is after ``today``
    """
    if not birth_date:
        return 0

    birth = parse_date(birth_date)
    today = today or date.today()

    if birth > today:
        raise FutureDateError(birth)

    age = today.year - birth.year
    # Birthday not reached yet this year
    if (today.month, today.day) < (birth.month, birth.day):
        age -= 1
    return age
