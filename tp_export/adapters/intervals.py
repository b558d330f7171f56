"""Intervals.icu library export adapter."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from tp_export.adapters.base import ExportAdapter, error, warning
from tp_export.core.api import APIError, IntervalsAPI
from tp_export.core.constants import CONFLICT_REPLACE
from tp_export.core.errors import is_expected_auth_error
from tp_export.core.mapping import is_mapped_intervals_type, map_tp_workout_type_to_intervals_type
from tp_export.core.models import (
    ExportResult,
    IntervalsExportConfig,
    TransformOutput,
    ValidationMessage,
    ValidationResult,
)
from tp_export.core.structure import parse_structure
from tp_export.exporters.description import build_intervals_description
from tp_export.exporters.intervals_text import render_intervals_text
from tp_export.exporters.workout_doc import build_workout_doc

logger = logging.getLogger(__name__)


def item_name(item: Dict[str, Any]) -> str:
    """Display name of a library item (``itemName``) or plan workout (``title``)."""
    for key in ("itemName", "title", "name"):
        value = item.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return ""


def item_type_id(item: Dict[str, Any]) -> Any:
    return item.get("workoutTypeId", item.get("workoutTypeValueId"))


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value > 0 else None


def build_intervals_workout_payload(
    item: Dict[str, Any],
    field_prefix: str,
) -> Tuple[Dict[str, Any], List[ValidationMessage]]:
    """Map one TrainingPeaks workout to an Intervals.icu workout payload."""
    warnings: List[ValidationMessage] = []
    name = item_name(item)
    type_id = item_type_id(item)
    activity_type = map_tp_workout_type_to_intervals_type(type_id)
    if not is_mapped_intervals_type(type_id):
        warnings.append(
            warning(f"{field_prefix}.type", f'Unmapped TrainingPeaks workout type {type_id!r} for "{name}"; using Other')
        )

    structure = parse_structure(item.get("structure"))
    text = render_intervals_text(structure) if structure else None
    if structure and structure.dropped:
        warnings.append(
            warning(
                f"{field_prefix}.structure",
                f'{len(structure.dropped)} unsupported step(s) in "{name}" were not converted',
            )
        )

    payload: Dict[str, Any] = {
        "category": "WORKOUT",
        "type": activity_type,
        "name": name,
        "description": build_intervals_description(item, structure_text=text),
    }

    document = build_workout_doc(structure, sport_hint=activity_type) if structure else None
    if document is not None:
        payload["workout_doc"] = document.to_dict()

    hours = _positive_number(item.get("totalTimePlanned"))
    if hours:
        payload["moving_time"] = int(round(hours * 3600))

    tss = _positive_number(item.get("tssPlanned"))
    if tss:
        payload["icu_training_load"] = tss

    return payload, warnings


class IntervalsIcuAdapter(ExportAdapter):
    """Export TrainingPeaks library items as Intervals.icu library workouts."""

    id = "intervalsicu"
    name = "Intervals.icu"
    format = "api"

    def __init__(self, client: IntervalsAPI) -> None:
        self.client = client

    def transform(self, items: List[Dict[str, Any]], config: IntervalsExportConfig) -> TransformOutput:
        payloads: List[Dict[str, Any]] = []
        warnings: List[ValidationMessage] = []
        for index, item in enumerate(items):
            payload, item_warnings = build_intervals_workout_payload(item, f"workouts[{index}]")
            payloads.append(payload)
            warnings.extend(item_warnings)
        logger.info("Transformed %d workout(s) for Intervals.icu", len(payloads))
        return TransformOutput(items=payloads, warnings=warnings)

    def validate(self, output: TransformOutput) -> ValidationResult:
        errors: List[ValidationMessage] = []
        warnings: List[ValidationMessage] = []

        if not output.items:
            errors.append(error("workouts", "No workouts to export"))

        for index, payload in enumerate(output.items):
            if not str(payload.get("name", "")).strip():
                errors.append(error(f"workouts[{index}].name", "Workout name is required"))
            if "workout_doc" not in payload:
                warnings.append(
                    warning(
                        f"workouts[{index}].structure",
                        f'"{payload.get("name", "")}" has no structured steps; exported with description only',
                    )
                )

        return ValidationResult(is_valid=not errors, warnings=warnings, errors=errors)

    def _resolve_folder(self, config: IntervalsExportConfig) -> Optional[Dict[str, Any]]:
        if not config.folder_name:
            return None

        existing = self.client.find_folder_by_name(config.folder_name, folder_type="FOLDER")
        if existing is not None:
            if config.conflict_action == CONFLICT_REPLACE:
                logger.info("Replacing Intervals.icu folder %s (%s)", existing.get("id"), config.folder_name)
                self.client.delete_folder(existing["id"])
            else:
                logger.info("Reusing Intervals.icu folder %s (%s)", existing.get("id"), config.folder_name)
                return existing

        payload: Dict[str, Any] = {"name": config.folder_name}
        if config.description:
            payload["description"] = config.description
        return self.client.create_folder(payload)

    def export(self, output: TransformOutput, config: IntervalsExportConfig) -> ExportResult:
        folder = self._resolve_folder(config)
        folder_id = folder.get("id") if folder else None

        created: List[Dict[str, Any]] = []
        warnings: List[ValidationMessage] = []
        for index, payload in enumerate(output.items):
            body = dict(payload)
            if folder_id is not None:
                body["folder_id"] = folder_id
            try:
                created.append(self.client.create_workout(body))
            except APIError as exc:
                if is_expected_auth_error(exc):
                    raise
                logger.warning('Failed to export workout "%s": %s', payload.get("name"), exc)
                warnings.append(
                    warning(f"workouts[{index}]", f'Failed to export workout "{payload.get("name")}": {exc}')
                )

        success = bool(created) or not output.items
        return ExportResult(
            success=success,
            file_name=(folder or {}).get("name") or self.default_file_name(config),
            format=self.format,
            items_exported=len(created) if success else 0,
            warnings=warnings,
            errors=[] if success else ["No workouts were exported to Intervals.icu"],
            payload={"folder": folder, "workouts": created},
        )
