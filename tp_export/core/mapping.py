"""TrainingPeaks workout type mapping for destination platforms."""

from __future__ import annotations

from typing import Any, Optional

from tp_export.core.constants import (
    FALLBACK_ACTIVITY_TYPE,
    TP_TO_INTERVALS_WORKOUT_TYPE,
    TP_TO_PLANMYPEAK_SPORT,
)


def _as_type_id(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def map_tp_workout_type_to_intervals_type(workout_type_id: Any) -> str:
    """Map a TrainingPeaks workout type id to an Intervals.icu activity type.

    Total: ids missing from the table (or unparsable) map to ``Other``.
    """
    type_id = _as_type_id(workout_type_id)
    if type_id is None:
        return FALLBACK_ACTIVITY_TYPE
    return TP_TO_INTERVALS_WORKOUT_TYPE.get(type_id, FALLBACK_ACTIVITY_TYPE)


def is_mapped_intervals_type(workout_type_id: Any) -> bool:
    type_id = _as_type_id(workout_type_id)
    return type_id is not None and type_id in TP_TO_INTERVALS_WORKOUT_TYPE


def map_tp_workout_type_to_planmypeak_sport(workout_type_id: Any) -> Optional[str]:
    """Return the PlanMyPeak sport, or None when the sport is unsupported."""
    type_id = _as_type_id(workout_type_id)
    if type_id is None:
        return None
    return TP_TO_PLANMYPEAK_SPORT.get(type_id)
