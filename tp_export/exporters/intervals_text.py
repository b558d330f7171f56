"""Render normalized workout structures as Intervals.icu interval text."""

from __future__ import annotations

import re
from typing import Any, List, Optional, Union

from tp_export.core.constants import INTENSITY_UNIT_SUFFIX
from tp_export.core.models import RepetitionGroup, Step, WorkoutStructure
from tp_export.core.structure import parse_structure
from tp_export.utils.formatting import format_length, format_range

_NON_LETTERS = re.compile(r"[^a-z]")


def target_unit_suffix(intensity_metric: str) -> str:
    if not intensity_metric:
        return ""
    if intensity_metric in INTENSITY_UNIT_SUFFIX:
        return INTENSITY_UNIT_SUFFIX[intensity_metric]
    return "%" if intensity_metric.startswith("percent") else ""


def is_redundant_name(name: str, intensity_class: str) -> bool:
    """True when the step name only repeats its intensity class (``Warm up``)."""
    if not intensity_class:
        return False
    return _NON_LETTERS.sub("", name.lower()) == _NON_LETTERS.sub("", intensity_class.lower())


def render_step(step: Step, intensity_metric: str = "") -> str:
    tokens = ["-"]
    if step.name and not is_redundant_name(step.name, step.intensity_class):
        tokens.append(step.name)

    length = format_length(step.length)
    if length:
        tokens.append(length)

    if step.target is not None:
        tokens.append(
            format_range(step.target.min_value, step.target.max_value, target_unit_suffix(intensity_metric))
        )

    if step.cadence is not None:
        tokens.append(f"{format_range(step.cadence.min_rpm, step.cadence.max_rpm)} rpm")

    if step.intensity_class and step.intensity_class != "active":
        tokens.append(f"intensity={step.intensity_class}")

    return " ".join(tokens)


def render_lines(structure: WorkoutStructure) -> List[str]:
    """Render a normalized structure into lines, blank lines included."""
    lines: List[str] = []
    previous_was_repetition: Optional[bool] = None
    metric = structure.primary_intensity_metric

    for node in structure.nodes:
        is_repetition = isinstance(node, RepetitionGroup)
        if previous_was_repetition is not None and (is_repetition or previous_was_repetition):
            lines.append("")

        if isinstance(node, RepetitionGroup):
            lines.append(f"{node.count}x")
        lines.extend(render_step(step, metric) for step in node.steps)
        previous_was_repetition = is_repetition

    return lines


def render_intervals_text(structure: Union[WorkoutStructure, Any]) -> Optional[str]:
    """Render a raw or normalized structure; None when it cannot be parsed."""
    parsed = structure if isinstance(structure, WorkoutStructure) else parse_structure(structure)
    if parsed is None or not parsed.nodes:
        return None
    return "\n".join(render_lines(parsed))


render_intervals_text_from_tp_structure = render_intervals_text
