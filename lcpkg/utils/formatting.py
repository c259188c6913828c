"""
Helper functions for formatting data into human-readable strings.
"""

from datetime import datetime, timezone


def format_size(bytes_size: int | None) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size is None:
        return "-"
    if bytes_size <= 0:
        return "0 B"
    units = ["B", "KB", "MB", "GB", "TB"]
    i = 0
    while bytes_size >= 1024 and i < len(units) - 1:
        bytes_size /= 1024
        i += 1
    return f"{bytes_size:.1f} {units[i]}"


def format_age(moment: datetime | None, now: datetime | None = None) -> str:
    """
    Formats how long ago a moment was (e.g., '3m ago'). Returns 'never' for None.
    """
    if moment is None:
        return "never"
    now = now or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    s = max(int((now - moment).total_seconds()), 0)
    if s < 60:
        return f"{s}s ago"
    if s < 3600:
        return f"{s // 60}m ago"
    if s < 86400:
        return f"{s // 3600}h ago"
    return f"{s // 86400}d ago"
