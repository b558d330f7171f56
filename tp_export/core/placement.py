"""Calendar placement of whole training plans by day offset.

Every plan item gets a zero-based ``day`` relative to the plan start date.
The start date is the earliest dated item unless the caller pins one.
Items dated before the start are rejected with a warning, never clamped.
"""

from __future__ import annotations

import logging
import re
from dataclasses import replace
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from tp_export.core.constants import EVENT_TYPE_KEYWORDS, FALLBACK_ACTIVITY_TYPE, PLAN_EVENT_CATEGORY
from tp_export.core.models import (
    PlanEventItem,
    PlanItem,
    PlanNoteItem,
    PlanPlacement,
    PlanWorkoutItem,
    ValidationMessage,
)
from tp_export.utils.text import name_key

logger = logging.getLogger(__name__)

_DATE_PREFIX = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")

WorkoutBuilder = Callable[[Dict[str, Any], str], Tuple[Dict[str, Any], List[ValidationMessage]]]


class PlacementError(ValueError):
    """Raised when a plan cannot be anchored to a start date."""


def parse_item_date(value: Any) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (optionally followed by a time) into a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    match = _DATE_PREFIX.match(value.strip())
    if not match:
        return None
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return None


def resolve_plan_start_date(dates: Iterable[Optional[date]], override: Optional[date] = None) -> date:
    if override is not None:
        return override
    valid = [value for value in dates if value is not None]
    if not valid:
        raise PlacementError("Plan has no scheduled items with a valid date; cannot determine a start date")
    return min(valid)


def compute_day_offset(item_date: date, start_date: date) -> int:
    return (item_date - start_date).days


def week_number(item_date: date, start_date: date) -> int:
    """One-based calendar week of ``item_date``; weeks start on Monday.

    Dates in a week before the start week give zero or less.
    """
    item_monday = item_date - timedelta(days=item_date.weekday())
    start_monday = start_date - timedelta(days=start_date.weekday())
    return (item_monday - start_monday).days // 7 + 1


def day_of_week(item_date: date) -> int:
    """Monday is 0, Sunday is 6."""
    return item_date.weekday()


def duration_weeks(last_day: int) -> int:
    """Whole weeks needed to hold days ``0..last_day``."""
    return max(0, last_day) // 7 + 1


def map_event_type(event_type: Any) -> Optional[str]:
    """Map a TrainingPeaks event type string to an activity type, or None."""
    if not isinstance(event_type, str):
        return None
    lowered = event_type.lower()
    for keyword, activity_type in EVENT_TYPE_KEYWORDS:
        if keyword in lowered:
            return activity_type
    return None


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _source_id(record: Dict[str, Any], *keys: str) -> str:
    for key in keys:
        if record.get(key) is not None:
            return str(record[key])
    return ""


class _Placer:
    def __init__(self, start_date: date) -> None:
        self.start_date = start_date
        self.warnings: List[ValidationMessage] = []

    def day_for(self, raw_date: Any, field: str, label: str) -> Optional[int]:
        item_date = parse_item_date(raw_date)
        if item_date is None:
            self.warnings.append(
                ValidationMessage(field=field, message=f'Skipped "{label}": missing or invalid date {raw_date!r}')
            )
            return None
        day = compute_day_offset(item_date, self.start_date)
        if day < 0:
            self.warnings.append(
                ValidationMessage(
                    field=field,
                    message=(
                        f'Skipped "{label}": {item_date.isoformat()} is before plan start '
                        f"{self.start_date.isoformat()}"
                    ),
                )
            )
            return None
        return day


def place_plan_items(
    workouts: Sequence[Dict[str, Any]],
    notes: Sequence[Dict[str, Any]],
    events: Sequence[Dict[str, Any]],
    build_workout: WorkoutBuilder,
    start_date: Optional[date] = None,
    note_color: str = "blue",
) -> PlanPlacement:
    """Place plan workouts, notes and events on day offsets from the plan start."""
    all_dates = (
        [parse_item_date(item.get("workoutDay")) for item in workouts]
        + [parse_item_date(item.get("noteDate")) for item in notes]
        + [parse_item_date(item.get("eventDate")) for item in events]
    )
    anchor = resolve_plan_start_date(all_dates, override=start_date)
    placer = _Placer(anchor)
    items: List[PlanItem] = []

    for index, workout in enumerate(workouts):
        field = f"workouts[{index}]"
        name = _text(workout.get("title")) or _text(workout.get("itemName")) or "Workout"
        day = placer.day_for(workout.get("workoutDay"), field, name)
        if day is None:
            continue
        payload, workout_warnings = build_workout(workout, field)
        placer.warnings.extend(workout_warnings)
        items.append(
            PlanWorkoutItem(
                day=day,
                source_id=_source_id(workout, "workoutId", "exerciseLibraryItemId"),
                name=payload.get("name") or name,
                payload=payload,
            )
        )

    for index, note in enumerate(notes):
        field = f"notes[{index}]"
        name = _text(note.get("title")) or "Note"
        day = placer.day_for(note.get("noteDate"), field, name)
        if day is None:
            continue
        items.append(
            PlanNoteItem(
                day=day,
                source_id=_source_id(note, "id"),
                name=name,
                description=_text(note.get("description")),
                color=note_color,
            )
        )

    for index, event in enumerate(events):
        field = f"events[{index}]"
        name = _text(event.get("name")) or "Event"
        day = placer.day_for(event.get("eventDate"), field, name)
        if day is None:
            continue
        activity_type = map_event_type(event.get("eventType"))
        if activity_type is None:
            placer.warnings.append(
                ValidationMessage(
                    field=f"{field}.type",
                    message=f'Unmapped event type {event.get("eventType")!r} for "{name}"; using Other',
                )
            )
            activity_type = FALLBACK_ACTIVITY_TYPE
        description_parts = [part for part in (_text(event.get("description")), _text(event.get("comment"))) if part]
        items.append(
            PlanEventItem(
                day=day,
                source_id=_source_id(event, "id"),
                name=name,
                description="\n\n".join(description_parts),
                activity_type=activity_type,
                category=PLAN_EVENT_CATEGORY,
            )
        )

    items.sort(key=lambda item: item.day)
    logger.debug("Placed %d plan item(s) from %s", len(items), anchor.isoformat())
    return PlanPlacement(start_date=anchor, items=items, warnings=placer.warnings)


def build_plan_folder_payload(
    name: str,
    placement: PlanPlacement,
    visibility: str = "PRIVATE",
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """PLAN folder payload with metadata derived from the placement."""
    workouts = placement.workouts
    activity_types: List[str] = []
    for workout in workouts:
        activity_type = workout.payload.get("type")
        if activity_type and activity_type not in activity_types:
            activity_types.append(activity_type)

    payload: Dict[str, Any] = {
        "type": "PLAN",
        "name": name,
        "start_date_local": placement.start_date_local,
        "visibility": visibility,
        "duration_weeks": duration_weeks(placement.last_day),
        "num_workouts": len(workouts),
        "activity_types": activity_types,
        "workout_targets": ["AUTO"],
    }
    if description:
        payload["description"] = description
    return payload


def rebase_placement(placement: PlanPlacement, new_start: date) -> PlanPlacement:
    """Shift items onto another start date, rejecting those that fall before it.

    The returned placement only carries warnings for items rejected by the shift.
    """
    shift = compute_day_offset(placement.start_date, new_start)
    if shift == 0:
        return PlanPlacement(start_date=new_start, items=list(placement.items))

    kept: List[PlanItem] = []
    warnings: List[ValidationMessage] = []
    for item in placement.items:
        item = replace(item, day=item.day + shift)
        if item.day < 0:
            warnings.append(
                ValidationMessage(
                    field=item.external_id,
                    message=f'Skipped "{item.name}": falls before existing plan start {new_start.isoformat()}',
                )
            )
            continue
        kept.append(item)
    return PlanPlacement(start_date=new_start, items=kept, warnings=warnings)


def dedupe_against_existing(
    items: Sequence[PlanItem],
    existing: Sequence[Dict[str, Any]],
) -> Tuple[List[PlanItem], List[ValidationMessage]]:
    """Drop items already present in a folder.

    Matches on ``external_id``; falls back to the (name, day) pair for
    existing entries that carry no external id.
    """
    external_ids: Set[str] = set()
    name_days: Set[Tuple[str, int]] = set()
    for entry in existing:
        external_id = entry.get("external_id")
        if external_id:
            external_ids.add(str(external_id))
            continue
        day = entry.get("day")
        if isinstance(day, int):
            name_days.add((name_key(entry.get("name")), day))

    kept: List[PlanItem] = []
    skipped: List[ValidationMessage] = []
    for item in items:
        if item.external_id in external_ids or (name_key(item.name), item.day) in name_days:
            skipped.append(
                ValidationMessage(
                    field=item.external_id,
                    message=f'Skipped "{item.name}" on day {item.day}: already in plan folder',
                )
            )
            continue
        kept.append(item)
    return kept, skipped
