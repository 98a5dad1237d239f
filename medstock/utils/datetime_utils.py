"""
Common date/time helpers.

Storage: timestamps are stored in UTC; business dates (movement date,
birth date, expiration date) are plain calendar dates in ISO format
(YYYY-MM-DD), the format used by the import spreadsheets.
"""

from datetime import date, datetime, timezone


def utc_now() -> datetime:
    """Current UTC datetime."""
    return datetime.now(timezone.utc)


def today() -> date:
    return utc_now().date()


def parse_iso_date(value: str) -> date:
    """
    Parse a strict YYYY-MM-DD calendar date.

    Impossible dates (2024-02-30) and other layouts raise ValueError.
    """
    value = (value or "").strip()
    if len(value) != 10:
        raise ValueError(f"Data inválida ('{value}'). Use AAAA-MM-DD.")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValueError(f"Data inválida ('{value}'). Use AAAA-MM-DD.") from None


def days_until(target: date, reference: date | None = None) -> int:
    """Signed number of days from reference (default today) to target."""
    reference = reference or today()
    return (target - reference).days
