"""Whole training plan export into a PlanMyPeak training plan.

Plan workouts are deduplicated by structure into one shared PlanMyPeak
library, then scheduled into Monday-based weeks that reference those
library workouts. Calendar notes become plan notes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Set, Tuple

from tp_export.adapters.base import ExportAdapter, error, warning
from tp_export.adapters.planmypeak import validate_planmypeak_workouts
from tp_export.core.api import APIError, PlanMyPeakAPI
from tp_export.core.errors import is_expected_auth_error
from tp_export.core.models import (
    ExportResult,
    PlanMyPeakPlanExportConfig,
    TransformOutput,
    ValidationMessage,
    ValidationResult,
)
from tp_export.core.placement import day_of_week, parse_item_date, week_number
from tp_export.exporters.planmypeak import build_planmypeak_workout

logger = logging.getLogger(__name__)

SHARED_LIBRARY_SOURCE_ID = "TP:PLAN_WORKOUTS_V1"
DAY_KEYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")
NO_WORKOUTS_MESSAGE = "No classic plan workouts were available to export"


def normalize_plan_workout(workout: Dict[str, Any], plan_id: Any = 0) -> Dict[str, Any]:
    """Reshape a plan workout into the library item form the workout builder reads."""
    title = workout.get("title")
    name = title if isinstance(title, str) and title.strip() else f"Workout {workout.get('workoutId')}"
    item: Dict[str, Any] = {
        "exerciseLibraryId": plan_id or 0,
        "exerciseLibraryItemId": workout.get("workoutId"),
        "exerciseLibraryItemType": "Workout",
        "itemName": name,
        "workoutTypeId": workout.get("workoutTypeValueId"),
    }
    for key in (
        "distancePlanned",
        "totalTimePlanned",
        "caloriesPlanned",
        "tssPlanned",
        "ifPlanned",
        "velocityPlanned",
        "energyPlanned",
        "elevationGainPlanned",
        "description",
        "coachComments",
        "structure",
    ):
        if workout.get(key) is not None:
            item[key] = workout[key]
    return item


def infer_week_phase(week: int, total_weeks: int) -> str:
    if total_weeks <= 1:
        return "Base"
    if week == total_weeks:
        return "Recovery"
    progress = week / total_weeks
    if progress <= 0.5:
        return "Base"
    if progress >= 0.85:
        return "Peak"
    return "Build"


def _order_on_day(workout: Dict[str, Any]) -> Optional[int]:
    value = workout.get("orderOnDay")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(0, int(round(value)))


@dataclass
class ScheduledWorkout:
    """One plan workout placed on a week and weekday."""

    tp_workout_id: Any
    source_id: str
    week_number: int
    day_index: int
    order: int

    @property
    def entry_id(self) -> str:
        return f"tp-{self.tp_workout_id}-{self.week_number}-{self.day_index}-{self.order}"

    @property
    def day_key(self) -> str:
        return DAY_KEYS[self.day_index]


@dataclass
class PlanMyPeakPlanTransformOutput(TransformOutput):
    metadata: Dict[str, Any] = field(default_factory=dict)
    library_name: str = ""
    start_date: Optional[date] = None
    schedule: List[ScheduledWorkout] = field(default_factory=list)
    notes: List[Dict[str, Any]] = field(default_factory=list)
    total_weeks: int = 1
    publish: bool = True


def build_weeks(
    schedule: List[ScheduledWorkout],
    workouts: List[Dict[str, Any]],
    workout_keys: Dict[str, str],
    total_weeks: int,
) -> List[Dict[str, Any]]:
    """Build every plan week from 1 to ``total_weeks``, empty weeks included."""
    by_source = {workout["source_id"]: workout for workout in workouts}
    days: Dict[Tuple[int, str], List[Dict[str, Any]]] = {}
    weekly_tss: Dict[int, int] = {}

    for entry in schedule:
        workout = by_source.get(entry.source_id)
        key = workout_keys.get(entry.source_id)
        if workout is None or key is None:
            continue
        tss = max(0, int(round(workout.get("base_tss") or 0)))
        days.setdefault((entry.week_number, entry.day_key), []).append(
            {
                "id": entry.entry_id,
                "order": entry.order,
                "workoutKey": key,
                "workout": {
                    "name": workout.get("name"),
                    "type": workout.get("type"),
                    "sport_type": workout.get("sport_type"),
                    "base_duration_min": max(1, int(round(workout.get("base_duration_min") or 1))),
                    "base_tss": tss,
                },
            }
        )
        weekly_tss[entry.week_number] = weekly_tss.get(entry.week_number, 0) + tss

    weeks: List[Dict[str, Any]] = []
    for number in range(1, total_weeks + 1):
        week_workouts = {
            day_key: sorted(days.get((number, day_key), []), key=lambda scheduled: scheduled["order"])
            for day_key in DAY_KEYS
        }
        weeks.append(
            {
                "weekNumber": number,
                "phase": infer_week_phase(number, total_weeks),
                "weeklyTss": weekly_tss.get(number, 0),
                "notes": None,
                "workouts": week_workouts,
            }
        )
    return weeks


class PlanMyPeakPlanAdapter(ExportAdapter):
    """Export one TrainingPeaks plan bundle as a PlanMyPeak training plan."""

    id = "planmypeak-plan"
    name = "PlanMyPeak plan"
    format = "api"

    def __init__(self, client: PlanMyPeakAPI) -> None:
        self.client = client

    def transform(
        self, items: List[Dict[str, Any]], config: PlanMyPeakPlanExportConfig
    ) -> PlanMyPeakPlanTransformOutput:
        if len(items) != 1:
            raise ValueError(f"Plan export expects exactly one plan bundle, got {len(items)}")
        bundle = items[0]
        plan = bundle.get("plan") or {}
        plan_id = plan.get("planId")
        title = plan.get("title")
        plan_name = config.plan_name or (title.strip() if isinstance(title, str) else "")
        plan_name = plan_name or f"Training Plan {plan_id}"
        raw_workouts = bundle.get("workouts") or []
        raw_notes = bundle.get("notes") or []

        warnings: List[ValidationMessage] = []
        library_workouts: List[Dict[str, Any]] = []
        source_by_tp_id: Dict[str, str] = {}
        seen: Set[str] = set()
        for index, raw in enumerate(raw_workouts):
            field_name = f"workouts[{index}]"
            item = normalize_plan_workout(raw, plan_id)
            try:
                workout, item_warnings = build_planmypeak_workout(item, field_name)
            except ValueError as exc:
                logger.warning('Skipping plan workout "%s" for PlanMyPeak: %s', item["itemName"], exc)
                warnings.append(warning(field_name, f'Skipped "{item["itemName"]}": {exc}'))
                continue
            warnings.extend(item_warnings)
            source_by_tp_id[str(raw.get("workoutId"))] = workout["source_id"]
            if workout["source_id"] not in seen:
                seen.add(workout["source_id"])
                library_workouts.append(workout)

        start_date = config.start_date or parse_item_date(plan.get("startDate"))
        if start_date is None:
            dated = [parse_item_date(raw.get("workoutDay")) for raw in raw_workouts] + [
                parse_item_date(note.get("noteDate")) for note in raw_notes
            ]
            valid = [value for value in dated if value is not None]
            start_date = min(valid) if valid else None

        schedule = self._schedule(raw_workouts, source_by_tp_id, start_date, warnings)
        notes = self._notes(raw_notes, start_date, warnings)
        max_week = max((entry.week_number for entry in schedule), default=0)
        total_weeks = max(int(plan.get("weekCount") or 0), max_week, 1)

        logger.info(
            "Scheduled %d workout(s) from %d library workout(s) over %d week(s) for plan %s",
            len(schedule),
            len(library_workouts),
            total_weeks,
            plan_name,
        )
        return PlanMyPeakPlanTransformOutput(
            items=library_workouts,
            warnings=warnings,
            metadata={
                "name": plan_name,
                "description": plan.get("description"),
                "goal": f"Imported from TrainingPeaks plan {plan_id}",
                "source_id": f"TP:{plan_id}",
            },
            library_name=(config.library_name or f"{plan_name} - Workouts").strip(),
            start_date=start_date,
            schedule=schedule,
            notes=notes,
            total_weeks=total_weeks,
            publish=config.publish,
        )

    @staticmethod
    def _schedule(
        raw_workouts: List[Dict[str, Any]],
        source_by_tp_id: Dict[str, str],
        start_date: Optional[date],
        warnings: List[ValidationMessage],
    ) -> List[ScheduledWorkout]:
        if start_date is None:
            return []

        def sort_key(raw: Dict[str, Any]) -> Tuple[str, float]:
            order = _order_on_day(raw)
            return str(raw.get("workoutDay") or ""), float("inf") if order is None else order

        schedule: List[ScheduledWorkout] = []
        per_day: Dict[Tuple[int, int], int] = {}
        for raw in sorted(raw_workouts, key=sort_key):
            tp_id = raw.get("workoutId")
            source_id = source_by_tp_id.get(str(tp_id))
            if source_id is None:
                # Already reported when the workout could not be built.
                continue
            label = raw.get("title") or f"Workout {tp_id}"
            field_name = f"workouts:{tp_id}"
            workout_date = parse_item_date(raw.get("workoutDay"))
            if workout_date is None:
                warnings.append(
                    warning(field_name, f'Skipped "{label}": invalid date {raw.get("workoutDay")!r}')
                )
                continue
            week = week_number(workout_date, start_date)
            if week < 1:
                warnings.append(warning(field_name, f'Skipped "{label}": it occurs before the plan start'))
                continue
            day_index = day_of_week(workout_date)
            slot = (week, day_index)
            order = _order_on_day(raw)
            schedule.append(
                ScheduledWorkout(
                    tp_workout_id=tp_id,
                    source_id=source_id,
                    week_number=week,
                    day_index=day_index,
                    order=per_day.get(slot, 0) if order is None else order,
                )
            )
            per_day[slot] = per_day.get(slot, 0) + 1
        return schedule

    @staticmethod
    def _notes(
        raw_notes: List[Dict[str, Any]],
        start_date: Optional[date],
        warnings: List[ValidationMessage],
    ) -> List[Dict[str, Any]]:
        notes: List[Dict[str, Any]] = []
        for raw in raw_notes:
            title = raw.get("title")
            title = title.strip() if isinstance(title, str) and title.strip() else f"Note {raw.get('id')}"
            field_name = f"notes:{raw.get('id')}"
            note_date = parse_item_date(raw.get("noteDate"))
            if note_date is None:
                warnings.append(warning(field_name, f'Skipped note "{title}": invalid date {raw.get("noteDate")!r}'))
                continue
            week = week_number(note_date, start_date) if start_date is not None else 0
            if week < 1:
                warnings.append(warning(field_name, f'Skipped note "{title}": it occurs before the plan start'))
                continue
            description = raw.get("description")
            description = description.strip() if isinstance(description, str) else ""
            notes.append(
                {
                    "week_number": week,
                    "day_of_week": day_of_week(note_date),
                    "title": title,
                    "description": description or None,
                }
            )
        return notes

    def validate(self, output: TransformOutput) -> ValidationResult:
        result = validate_planmypeak_workouts(output.items, empty_message=NO_WORKOUTS_MESSAGE)
        if output.items and not getattr(output, "schedule", None):
            result.errors.append(error("schedule", "Plan has no workouts that can be scheduled"))
            result.is_valid = False
        return result

    def plan_payload(self, output: PlanMyPeakPlanTransformOutput, workout_keys: Dict[str, str]) -> Dict[str, Any]:
        return {
            "metadata": dict(output.metadata),
            "weeks": build_weeks(output.schedule, output.items, workout_keys, output.total_weeks),
            "publish": output.publish,
        }

    def preview(self, output: TransformOutput) -> Any:
        plan_output: PlanMyPeakPlanTransformOutput = output  # type: ignore[assignment]
        source_keys = {workout["source_id"]: workout["source_id"] for workout in plan_output.items}
        return {
            "library": {"name": plan_output.library_name, "source_id": SHARED_LIBRARY_SOURCE_ID},
            "workouts": plan_output.items,
            "plan": self.plan_payload(plan_output, source_keys),
            "notes": plan_output.notes,
            "start_date": plan_output.start_date.isoformat() if plan_output.start_date else None,
        }

    def resolve_shared_library(self, name: str) -> Dict[str, Any]:
        for library in self.client.list_libraries():
            if library.get("source_id") == SHARED_LIBRARY_SOURCE_ID:
                logger.info("Reusing shared plan workout library %s", library.get("id"))
                return library
        return self.client.create_library(name, source_id=SHARED_LIBRARY_SOURCE_ID)

    def export(self, output: TransformOutput, config: PlanMyPeakPlanExportConfig) -> ExportResult:
        plan_output: PlanMyPeakPlanTransformOutput = output  # type: ignore[assignment]
        library = self.resolve_shared_library(plan_output.library_name)
        library_id = str(library.get("id"))

        workout_keys: Dict[str, str] = {}
        created = 0
        for workout in plan_output.items:
            source_id = workout["source_id"]
            existing = self.client.find_workout_by_source_id(source_id, library_id)
            if existing is not None:
                workout_keys[source_id] = str(existing.get("id"))
                continue
            uploaded = self.client.upload_workout(workout, library_id)
            workout_keys[source_id] = str(uploaded.get("id") or workout["id"])
            created += 1
        logger.info(
            "Resolved %d plan workout(s) in library %s (%d new)", len(workout_keys), library_id, created
        )

        payload = self.plan_payload(plan_output, workout_keys)
        saved = self.client.save_training_plan(payload)
        plan_id = str(saved.get("planId") or saved.get("id") or "")

        warnings: List[ValidationMessage] = []
        notes_created: List[Dict[str, Any]] = []
        for note in plan_output.notes:
            try:
                notes_created.append(self.client.create_training_plan_note(plan_id, note))
            except APIError as exc:
                if is_expected_auth_error(exc):
                    raise
                logger.warning('Failed to create plan note "%s": %s', note["title"], exc)
                warnings.append(
                    warning(
                        "notes",
                        f'Failed to create note "{note["title"]}" for week {note["week_number"]}, '
                        f'day {note["day_of_week"]}: {exc}',
                    )
                )

        scheduled = sum(len(day) for week in payload["weeks"] for day in week["workouts"].values())
        return ExportResult(
            success=True,
            file_name=plan_output.metadata.get("name") or self.default_file_name(config),
            format=self.format,
            items_exported=scheduled,
            warnings=warnings,
            payload={
                "library": library,
                "planId": plan_id,
                "savedAt": saved.get("savedAt"),
                "plan": payload,
                "notes": notes_created,
            },
        )
