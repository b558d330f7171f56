"""Whole training plan export into an Intervals.icu PLAN folder."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tp_export.adapters.base import ExportAdapter, error, warning
from tp_export.adapters.intervals import build_intervals_workout_payload
from tp_export.core.api import APIError, IntervalsAPI
from tp_export.core.constants import CONFLICT_REPLACE
from tp_export.core.errors import is_expected_auth_error
from tp_export.core.models import (
    ExportResult,
    IntervalsExportConfig,
    PlanPlacement,
    PlanWorkoutItem,
    TransformOutput,
    ValidationMessage,
    ValidationResult,
)
from tp_export.core.placement import (
    build_plan_folder_payload,
    dedupe_against_existing,
    parse_item_date,
    place_plan_items,
    rebase_placement,
)

logger = logging.getLogger(__name__)

DEFAULT_PLAN_NAME = "TrainingPeaks Plan"


@dataclass
class PlanTransformOutput(TransformOutput):
    placement: Optional[PlanPlacement] = None
    folder_payload: Dict[str, Any] = field(default_factory=dict)


def plan_bundle(
    plan: Dict[str, Any],
    workouts: List[Dict[str, Any]],
    notes: Optional[List[Dict[str, Any]]] = None,
    events: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Group a plan record with its workouts, notes and events."""
    return {"plan": plan, "workouts": workouts, "notes": notes or [], "events": events or []}


class IntervalsPlanAdapter(ExportAdapter):
    """Export one TrainingPeaks plan bundle as an Intervals.icu PLAN folder."""

    id = "intervalsicu-plan"
    name = "Intervals.icu plan"
    format = "api"

    def __init__(self, client: IntervalsAPI) -> None:
        self.client = client

    def transform(self, items: List[Dict[str, Any]], config: IntervalsExportConfig) -> PlanTransformOutput:
        if len(items) != 1:
            raise ValueError(f"Plan export expects exactly one plan bundle, got {len(items)}")
        bundle = items[0]
        plan = bundle.get("plan") or {}

        placement = place_plan_items(
            workouts=bundle.get("workouts") or [],
            notes=bundle.get("notes") or [],
            events=bundle.get("events") or [],
            build_workout=build_intervals_workout_payload,
            start_date=config.start_date,
            note_color=config.note_color,
        )
        name = (config.folder_name or plan.get("title") or DEFAULT_PLAN_NAME).strip()
        folder_payload = build_plan_folder_payload(
            name,
            placement,
            visibility=config.visibility,
            description=config.description or plan.get("description"),
        )
        logger.info(
            "Placed %d item(s) for plan %s starting %s",
            len(placement.items),
            name,
            placement.start_date.isoformat(),
        )
        return PlanTransformOutput(
            items=list(placement.items),
            warnings=list(placement.warnings),
            placement=placement,
            folder_payload=folder_payload,
        )

    def validate(self, output: TransformOutput) -> ValidationResult:
        errors: List[ValidationMessage] = []
        warnings: List[ValidationMessage] = []
        folder_payload = getattr(output, "folder_payload", {}) or {}

        if not str(folder_payload.get("name", "")).strip():
            errors.append(error("folder.name", "Plan name is required"))
        if not output.items:
            errors.append(error("items", "Plan has no items that can be placed"))

        for item in output.items:
            if item.day < 0:
                errors.append(error(item.external_id, f'"{item.name}" has negative day offset {item.day}'))
            if not item.name.strip():
                errors.append(error(item.external_id, "Item name is required"))
            if isinstance(item, PlanWorkoutItem) and "workout_doc" not in item.payload:
                warnings.append(
                    warning(item.external_id, f'"{item.name}" has no structured steps; exported with description only')
                )

        return ValidationResult(is_valid=not errors, warnings=warnings, errors=errors)

    def preview(self, output: TransformOutput) -> Any:
        folder_payload = getattr(output, "folder_payload", {})
        return {
            "folder": folder_payload,
            "items": [item.to_payload() for item in output.items],
            "start_date_local": folder_payload.get("start_date_local"),
        }

    def export(self, output: TransformOutput, config: IntervalsExportConfig) -> ExportResult:
        placement: PlanPlacement = getattr(output, "placement")
        folder_payload: Dict[str, Any] = getattr(output, "folder_payload")
        warnings: List[ValidationMessage] = []
        items = list(output.items)

        existing = self.client.find_folder_by_name(folder_payload["name"], folder_type="PLAN")
        if existing is not None and config.conflict_action == CONFLICT_REPLACE:
            logger.info("Replacing Intervals.icu plan %s (%s)", existing.get("id"), existing.get("name"))
            self.client.delete_folder(existing["id"])
            existing = None

        if existing is not None:
            folder = existing
            existing_start = parse_item_date(existing.get("start_date_local"))
            if existing_start is not None and existing_start != placement.start_date:
                rebased = rebase_placement(PlanPlacement(start_date=placement.start_date, items=items), existing_start)
                items = rebased.items
                warnings.extend(rebased.warnings)
                placement = PlanPlacement(start_date=existing_start, items=items)
            items, skipped = dedupe_against_existing(items, self.client.list_folder_workouts(folder["id"]))
            warnings.extend(skipped)
            logger.info("Appending %d item(s) to Intervals.icu plan %s", len(items), folder.get("id"))
        else:
            folder = self.client.create_folder(folder_payload)

        folder_id = folder.get("id")
        created: List[Dict[str, Any]] = []
        for item in items:
            try:
                created.append(self.client.create_workout(item.to_payload(folder_id)))
            except APIError as exc:
                if is_expected_auth_error(exc):
                    raise
                logger.warning('Failed to add "%s" to plan: %s', item.name, exc)
                warnings.append(warning(item.external_id, f'Failed to add "{item.name}" on day {item.day}: {exc}'))

        success = bool(created) or not items
        return ExportResult(
            success=success,
            file_name=folder.get("name") or folder_payload["name"],
            format=self.format,
            items_exported=len(created) if success else 0,
            warnings=warnings,
            errors=[] if success else ["No plan items were exported to Intervals.icu"],
            payload={
                "folder": folder,
                "workouts": created,
                "start_date_local": placement.start_date_local,
            },
        )
