"""
Utility functions for the application.
"""
from typing import Any, Dict, Optional, Tuple
from datetime import date, datetime, time, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the storage convention)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the first and last instant of a calendar day."""
    return datetime.combine(day, time.min), datetime.combine(day, time.max)


def as_start_bound(value: Optional[date]) -> Optional[datetime]:
    """Normalize an inclusive lower bound; bare dates start at midnight."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def as_end_bound(value: Optional[date]) -> Optional[datetime]:
    """Normalize an inclusive upper bound; bare dates cover the whole day."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.max)



def format_error(message: str, code: str = None, retryable: bool = False, details: Any = None) -> Dict[str, Any]:
    """Format error response."""
    response = {"error": message, "code": code, "retryable": retryable}
    if details:
        response["details"] = details
    return response
