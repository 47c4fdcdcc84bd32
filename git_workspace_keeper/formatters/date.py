"""Date and time formatting utilities."""

from datetime import datetime, timezone
from typing import Any, Optional


def format_date(date: Any) -> str:
    """
    Format a date object or ISO 8601 string to YYYY-MM-DD.

    Args:
        date: Date object (datetime or string)

    Returns:
        Formatted date string, empty when no date is known
    """
    if date is None:
        return ""
    if hasattr(date, "strftime"):
        return date.strftime("%Y-%m-%d")
    parsed = _parse_iso(str(date))
    return parsed.strftime("%Y-%m-%d") if parsed else str(date)


def format_age(date: Any, now: Optional[datetime] = None) -> str:
    """
    Format the age of a commit date in days.

    Args:
        date: Date object or ISO 8601 string
        now: Reference time (defaults to the current time)

    Returns:
        Formatted age string like "12d", empty when the date is unknown
    """
    parsed = date if isinstance(date, datetime) else _parse_iso(str(date)) if date else None
    if parsed is None:
        return ""
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return f"{max(0, (now - parsed).days)}d"


def _parse_iso(text: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
