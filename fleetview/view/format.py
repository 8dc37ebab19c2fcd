"""Display formatting for durations, percentages, latencies and timestamps."""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from fleetview.models import as_number, parse_timestamp


def format_duration(seconds: Any) -> str:
    """Format seconds as the two most significant units, e.g. ``2d 3h``."""
    value = as_number(seconds)
    if value is None:
        return "-"
    total = max(0, math.floor(value))
    days, rem = divmod(total, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days > 0:
        return f"{days}d {hours}h"
    if hours > 0:
        return f"{hours}h {minutes}m"
    if minutes > 0:
        return f"{minutes}m"
    return f"{total}s"


def format_percentage(value: Any) -> str:
    number = as_number(value)
    if number is None:
        return "-"
    return f"{number:.1f}%"


def format_average(value: Any) -> str:
    """Format a latency in ms, switching to seconds from 1000 ms."""
    number = as_number(value)
    if number is None:
        return "-"
    if number >= 1000:
        return f"{number / 1000:.2f} s"
    return f"{number:.0f} ms"


def format_date(date: datetime | None) -> str:
    if date is None:
        return "-"
    if date.tzinfo is not None:
        date = date.astimezone()
    return date.strftime("%Y-%m-%d %H:%M:%S")


def format_timestamp(value: str | None) -> str:
    if not value:
        return "-"
    return format_date(parse_timestamp(value))


def format_clock(value: str | datetime | None, *, seconds: bool = True) -> str:
    date = parse_timestamp(value) if isinstance(value, str) else value
    if date is None:
        return "-"
    if date.tzinfo is not None:
        date = date.astimezone()
    return date.strftime("%H:%M:%S" if seconds else "%H:%M")


def format_log_timestamp(value: str | None) -> str:
    """``HH:MM:SS.mmm``; unparseable values are shown verbatim."""
    if not value:
        return "-"
    date = parse_timestamp(value)
    if date is None:
        return value
    if date.tzinfo is not None:
        date = date.astimezone()
    return f"{date:%H:%M:%S}.{date.microsecond // 1000:03d}"
