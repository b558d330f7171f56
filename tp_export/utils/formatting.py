"""Formatting helpers used by the text renderer and console output."""

from __future__ import annotations

from typing import Optional, Union

from tp_export.core.constants import DISTANCE_UNIT_LABELS
from tp_export.core.models import Length

Number = Union[int, float]


def format_duration(seconds: Number) -> str:
    """Format a second count as ``Nm`` for whole minutes, otherwise ``Ns``.

    Mixed forms such as ``1m30s`` are never produced: 90 seconds is ``90s``.
    """
    total = int(round(seconds))
    if total > 0 and total % 60 == 0:
        return f"{total // 60}m"
    return f"{total}s"


def format_number(value: Number) -> str:
    """Render a number without a trailing ``.0`` for integral values."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def format_range(min_value: Number, max_value: Number, suffix: str = "") -> str:
    if min_value == max_value:
        return f"{format_number(min_value)}{suffix}"
    return f"{format_number(min_value)}-{format_number(max_value)}{suffix}"


def format_length(length: Length) -> Optional[str]:
    """Format a normalized step length for interval text."""
    if length.unit == "lapButton":
        return "lap"
    if length.is_time:
        return format_duration(length.value)
    label = DISTANCE_UNIT_LABELS.get(length.unit)
    if label is None:
        return None
    return f"{format_number(length.value)}{label}"


def format_hours(hours: Optional[float]) -> str:
    """Format planned hours as H:MM:SS or M:SS for tables."""
    if not hours:
        return "N/A"
    total_seconds = int(round(float(hours) * 3600))
    h, rem = divmod(total_seconds, 3600)
    m, s = divmod(rem, 60)
    if h:
        return f"{h}:{m:02d}:{s:02d}"
    return f"{m}:{s:02d}"
