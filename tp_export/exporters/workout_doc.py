"""Build typed Workout Builder Documents from normalized structures."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Union

from tp_export.core.constants import INTENSITY_METRIC_TARGET_KIND
from tp_export.core.models import (
    RepetitionGroup,
    Section,
    Step,
    Target,
    TargetKind,
    WorkoutBuilderDocument,
    WorkoutItem,
    WorkoutStructure,
)
from tp_export.core.structure import parse_structure
from tp_export.exporters.intervals_text import is_redundant_name

logger = logging.getLogger(__name__)

METERS_PER_UNIT = {
    "meter": 1.0,
    "kilometer": 1000.0,
    "mile": 1609.344,
}


def _target(kind: TargetKind, low: float, high: float) -> Target:
    if low == high:
        return Target(kind=kind, value=low)
    return Target(kind=kind, min=low, max=high)


def step_targets(step: Step, intensity_metric: str) -> List[Target]:
    """Translate a step's intensity range and cadence into typed targets."""
    targets: List[Target] = []
    kind_name = INTENSITY_METRIC_TARGET_KIND.get(intensity_metric)
    if step.target is not None and kind_name is not None:
        targets.append(_target(TargetKind(kind_name), step.target.min_value, step.target.max_value))
    if step.cadence is not None:
        targets.append(_target(TargetKind.CADENCE_RPM, step.cadence.min_rpm, step.cadence.max_rpm))
    return targets


def build_item(step: Step, intensity_metric: str) -> WorkoutItem:
    distance = None
    if step.length.unit in METERS_PER_UNIT:
        distance = round(step.length.value * METERS_PER_UNIT[step.length.unit], 3)
    label = "" if is_redundant_name(step.name, step.intensity_class) else step.name
    return WorkoutItem(
        label=label,
        duration_seconds=step.length.seconds,
        targets=step_targets(step, intensity_metric),
        intensity=step.intensity_class,
        distance_meters=distance,
    )


def validate_workout_doc(document: WorkoutBuilderDocument) -> List[str]:
    """Return a list of problems; empty when the document is well formed."""
    problems: List[str] = []
    if not document.sections:
        problems.append("document has no sections")
    for index, section in enumerate(document.sections):
        if not section.items:
            problems.append(f"section {index} has no items")
        if section.repeat_count is not None and section.repeat_count < 1:
            problems.append(f"section {index} has repeat count {section.repeat_count}")
        for item in section.items:
            if item.duration_seconds is not None and item.duration_seconds < 0:
                problems.append(f"section {index} item {item.label!r} has a negative duration")
            for target in item.targets:
                if target.is_range and (target.min is None or target.max is None or target.min > target.max):
                    problems.append(f"section {index} item {item.label!r} has an invalid {target.kind.value} range")
    return problems


def build_workout_doc(
    structure: Union[WorkoutStructure, Any],
    sport_hint: str = "",
) -> Optional[WorkoutBuilderDocument]:
    """Build the builder document; None for unparsable or invalid input.

    ``sport_hint`` is supplied by the caller (the mapped activity type).
    """
    parsed = structure if isinstance(structure, WorkoutStructure) else parse_structure(structure)
    if parsed is None:
        return None

    metric = parsed.primary_intensity_metric
    sections: List[Section] = []
    for node in parsed.nodes:
        items = [build_item(step, metric) for step in node.steps]
        repeat_count = node.count if isinstance(node, RepetitionGroup) else None
        sections.append(Section(items=items, repeat_count=repeat_count))

    document = WorkoutBuilderDocument(sport_hint=sport_hint, sections=sections)
    problems = validate_workout_doc(document)
    if problems:
        logger.debug("Discarding invalid workout document: %s", "; ".join(problems))
        return None
    return document
