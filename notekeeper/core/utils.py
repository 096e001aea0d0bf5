"""
Core Utilities.

Shared utility functions used across the package.
All modules should import utilities from this module.
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values in the application should be timezone-naive
    and assumed to be UTC. This ensures consistent behavior across
    the codebase and simplifies database storage.

    Returns:
        Current UTC time with tzinfo stripped
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def retention_cutoff(now: datetime, retention_days: int) -> datetime:
    """Oldest `deleted_at` still inside the retention window."""
    return now - timedelta(days=retention_days)
