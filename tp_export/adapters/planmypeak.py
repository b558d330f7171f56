"""PlanMyPeak workout library export adapter."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from tp_export.adapters.base import ExportAdapter, error, warning
from tp_export.core.api import APIError, PlanMyPeakAPI
from tp_export.core.constants import CONFLICT_REPLACE, DEFAULT_LIBRARY_NAME
from tp_export.core.errors import is_expected_auth_error
from tp_export.core.models import (
    ExportResult,
    PlanMyPeakExportConfig,
    TransformOutput,
    ValidationMessage,
    ValidationResult,
)
from tp_export.exporters.planmypeak import build_planmypeak_workout
from tp_export.utils.text import name_key

logger = logging.getLogger(__name__)


def _match_library(libraries: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    target = name_key(name)
    for library in libraries:
        if library.get("is_system"):
            continue
        if name_key(library.get("name")) == target:
            return library
    return None


def validate_planmypeak_workouts(
    workouts: List[Dict[str, Any]],
    empty_message: str = "No workouts to export",
) -> ValidationResult:
    errors: List[ValidationMessage] = []
    warnings: List[ValidationMessage] = []

    if not workouts:
        errors.append(error("workouts", empty_message))

    for index, workout in enumerate(workouts):
        field = f"workouts[{index}]"
        if not str(workout.get("name", "")).strip():
            errors.append(error(f"{field}.name", "Workout name is required"))
        if not (workout.get("structure") or {}).get("structure"):
            errors.append(error(f"{field}.structure", "Workout structure is required"))
        if workout.get("base_duration_min", 0) <= 0:
            warnings.append(warning(f"{field}.base_duration_min", "Duration should be greater than 0"))
        if workout.get("base_tss", 0) < 0:
            warnings.append(warning(f"{field}.base_tss", "TSS should not be negative"))

    return ValidationResult(is_valid=not errors, warnings=warnings, errors=errors)


class PlanMyPeakAdapter(ExportAdapter):
    """Export TrainingPeaks library items into a PlanMyPeak workout library."""

    id = "planmypeak"
    name = "PlanMyPeak"
    format = "api"

    def __init__(self, client: PlanMyPeakAPI) -> None:
        self.client = client

    def transform(self, items: List[Dict[str, Any]], config: PlanMyPeakExportConfig) -> TransformOutput:
        workouts: List[Dict[str, Any]] = []
        warnings: List[ValidationMessage] = []
        for index, item in enumerate(items):
            field = f"workouts[{index}]"
            try:
                workout, item_warnings = build_planmypeak_workout(item, field)
            except ValueError as exc:
                logger.warning('Skipping "%s" for PlanMyPeak: %s', item.get("itemName"), exc)
                warnings.append(warning(field, f'Skipped "{item.get("itemName") or "Unnamed"}": {exc}'))
                continue
            workouts.append(workout)
            warnings.extend(item_warnings)
        logger.info("Transformed %d of %d workout(s) for PlanMyPeak", len(workouts), len(items))
        return TransformOutput(items=workouts, warnings=warnings)

    def validate(self, output: TransformOutput) -> ValidationResult:
        return validate_planmypeak_workouts(output.items)

    def resolve_library(self, config: PlanMyPeakExportConfig) -> Dict[str, Any]:
        """Find or create the target library according to the conflict action."""
        libraries = self.client.list_libraries()

        if config.library_id:
            for library in libraries:
                if str(library.get("id")) == str(config.library_id):
                    return library
            raise APIError(f"PlanMyPeak library {config.library_id} not found", code="NOT_FOUND")

        name = (config.library_name or DEFAULT_LIBRARY_NAME).strip()
        existing = _match_library(libraries, name)
        if existing is not None:
            if config.conflict_action != CONFLICT_REPLACE:
                logger.info("Appending to PlanMyPeak library %s (%s)", existing.get("id"), name)
                return existing
            logger.info("Replacing PlanMyPeak library %s (%s)", existing.get("id"), name)
            self.client.delete_library(existing["id"])

        try:
            return self.client.create_library(name)
        except APIError as exc:
            if is_expected_auth_error(exc):
                raise
            # Another client may have created it between list and create.
            retry = _match_library(self.client.list_libraries(), name)
            if retry is None:
                raise
            logger.info("Library %s appeared after create failed; reusing %s", name, retry.get("id"))
            return retry

    def export(self, output: TransformOutput, config: PlanMyPeakExportConfig) -> ExportResult:
        library = self.resolve_library(config)
        library_id = str(library.get("id"))

        uploaded: List[Dict[str, Any]] = []
        warnings: List[ValidationMessage] = []
        for index, workout in enumerate(output.items):
            try:
                uploaded.append(self.client.upload_workout(workout, library_id))
            except APIError as exc:
                if is_expected_auth_error(exc):
                    raise
                logger.warning('Failed to upload workout "%s": %s', workout.get("name"), exc)
                warnings.append(
                    warning(f"workouts[{index}]", f'Failed to upload workout "{workout.get("name")}": {exc}')
                )

        success = bool(uploaded) or not output.items
        return ExportResult(
            success=success,
            file_name=library.get("name") or self.default_file_name(config),
            format=self.format,
            items_exported=len(uploaded) if success else 0,
            warnings=warnings,
            errors=[] if success else ["No workouts were uploaded to PlanMyPeak"],
            payload={"library": library, "workouts": uploaded},
        )
