"""Normalize raw TrainingPeaks workout structure payloads.

TrainingPeaks returns a loosely shaped ``structure`` document: a list of
wrapper blocks (``type: step``, ``set`` or ``rampUp``) and ``repetition``
blocks, each holding ``steps``. Wrappers can be nested. This module turns that
into a small typed tree of :class:`StepBlock` and :class:`RepetitionGroup`
nodes and never raises on shape mismatch: malformed input yields ``None`` and
unrecognized inner steps are dropped and recorded on the result.
"""

from __future__ import annotations

import json
import logging
import math
from typing import Any, Dict, List, Optional

from tp_export.core.constants import DISTANCE_UNITS, INTENSITY_CLASS_ALIASES, TIME_UNIT_SECONDS
from tp_export.core.models import (
    Cadence,
    Length,
    RepetitionGroup,
    Step,
    StepBlock,
    StructureNode,
    TargetRange,
    WorkoutStructure,
)

logger = logging.getLogger(__name__)

CADENCE_KEYS = ("cadenceRpm", "cadenceTargetRpm", "targetCadenceRpm")


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if not math.isfinite(value):
        return None
    return value


def normalize_intensity_class(value: Any) -> Optional[str]:
    """Map TrainingPeaks intensity classes to lower-case tags."""
    if not isinstance(value, str) or not value.strip():
        return None
    if value in INTENSITY_CLASS_ALIASES:
        return INTENSITY_CLASS_ALIASES[value]
    return value.strip().lower()


def parse_length(raw: Any) -> Optional[Length]:
    if not isinstance(raw, dict):
        return None
    unit = raw.get("unit")
    if not isinstance(unit, str):
        return None
    if unit == "lapButton":
        return Length(unit="lapButton", value=0)

    value = _number(raw.get("value"))
    if value is None or value <= 0:
        return None

    if unit in TIME_UNIT_SECONDS:
        return Length(unit="second", value=int(round(value * TIME_UNIT_SECONDS[unit])))
    if unit in DISTANCE_UNITS:
        return Length(unit=DISTANCE_UNITS[unit], value=value)
    return None


def repetition_count(raw: Any) -> int:
    """Return the repeat count of a repetition block, defaulting to 1."""
    if not isinstance(raw, dict) or raw.get("unit") != "repetition":
        return 1
    value = _number(raw.get("value"))
    if value is None:
        return 1
    return max(1, int(round(value)))


def first_target_range(targets: Any) -> Optional[TargetRange]:
    """Return the first numeric target as an ordered range."""
    if not isinstance(targets, list):
        return None
    first = next((target for target in targets if isinstance(target, dict)), None)
    if first is None:
        return None

    low = _number(first.get("minValue"))
    if low is None:
        low = _number(first.get("value"))
    high = _number(first.get("maxValue"))
    if high is None:
        high = low
    if low is None:
        low = high
    if low is None or high is None:
        return None
    unit = first.get("unit")
    return TargetRange(
        min_value=min(low, high),
        max_value=max(low, high),
        unit=unit.strip() if isinstance(unit, str) and unit.strip() else None,
    )


def _cadence_from_mapping(record: Any) -> Optional[Cadence]:
    if not isinstance(record, dict):
        return None

    type_text = " ".join(
        str(record.get(key)) for key in ("type", "metric", "unit", "name") if isinstance(record.get(key), str)
    ).lower()
    looks_like_cadence = (
        "cadence" in type_text
        or "rpm" in type_text
        or any(key in record for key in ("cadenceRpm", "minRpm", "maxRpm", "rpm"))
    )
    if not looks_like_cadence:
        return None

    def first_of(*keys: str) -> Optional[float]:
        for key in keys:
            value = _number(record.get(key))
            if value is not None:
                return value
        return None

    exact = first_of("rpm", "cadenceRpm", "value")
    low = first_of("minRpm", "min", "minValue")
    high = first_of("maxRpm", "max", "maxValue")

    if low is not None or high is not None:
        low = low if low is not None else high
        high = high if high is not None else low
        return Cadence(min_rpm=int(round(min(low, high))), max_rpm=int(round(max(low, high))))
    if exact is not None:
        rpm = int(round(exact))
        return Cadence(min_rpm=rpm, max_rpm=rpm)
    return None


def extract_cadence(step: Dict[str, Any]) -> Optional[Cadence]:
    """Read a cadence target from any of the shapes TrainingPeaks uses."""
    cadence = _cadence_from_mapping(step.get("cadence"))
    if cadence:
        return cadence

    for key in CADENCE_KEYS:
        value = _number(step.get(key))
        if value is not None:
            rpm = int(round(value))
            return Cadence(min_rpm=rpm, max_rpm=rpm)

    secondary: List[Any] = []
    for key in ("secondaryTargets", "secondary_targets"):
        if isinstance(step.get(key), list):
            secondary.extend(step[key])
    for target in secondary:
        cadence = _cadence_from_mapping(target)
        if cadence:
            return cadence
    return None


def parse_step(raw: Any, path: str, dropped: List[str]) -> Optional[Step]:
    if not isinstance(raw, dict):
        dropped.append(f"{path}: step is not an object")
        return None

    length = parse_length(raw.get("length"))
    if length is None:
        dropped.append(f"{path}: unsupported or missing length {raw.get('length')!r}")
        return None

    name = raw.get("name")
    return Step(
        name=name.strip() if isinstance(name, str) else "",
        intensity_class=normalize_intensity_class(raw.get("intensityClass")) or "active",
        length=length,
        open_duration=bool(raw.get("openDuration", False)),
        target=first_target_range(raw.get("targets")),
        cadence=extract_cadence(raw),
    )


def _flatten_steps(items: List[Any], path: str, dropped: List[str]) -> List[Step]:
    steps: List[Step] = []
    for index, child in enumerate(items):
        child_path = f"{path}.steps[{index}]"
        if isinstance(child, dict) and isinstance(child.get("steps"), list):
            steps.extend(_flatten_steps(child["steps"], child_path, dropped))
            continue
        step = parse_step(child, child_path, dropped)
        if step is not None:
            steps.append(step)
    return steps


def _parse_node(raw: Any, path: str, dropped: List[str]) -> List[StructureNode]:
    if not isinstance(raw, dict):
        dropped.append(f"{path}: node is not an object")
        return []

    children = raw.get("steps")

    if raw.get("type") == "repetition":
        if not isinstance(children, list):
            dropped.append(f"{path}: repetition without steps")
            return []
        steps = _flatten_steps(children, path, dropped)
        if not steps:
            return []
        return [RepetitionGroup(count=repetition_count(raw.get("length")), steps=steps)]

    if not isinstance(children, list):
        step = parse_step(raw, path, dropped)
        return [StepBlock(steps=[step])] if step else []

    # Wrapper: adjacent non-repeating children merge into one block, nested
    # repetitions keep their own group boundary.
    nodes: List[StructureNode] = []
    buffer: List[Step] = []
    for index, child in enumerate(children):
        child_path = f"{path}.steps[{index}]"
        if isinstance(child, dict) and child.get("type") == "repetition":
            if buffer:
                nodes.append(StepBlock(steps=buffer))
                buffer = []
            nodes.extend(_parse_node(child, child_path, dropped))
        elif isinstance(child, dict) and isinstance(child.get("steps"), list):
            for nested in _parse_node(child, child_path, dropped):
                if isinstance(nested, RepetitionGroup):
                    if buffer:
                        nodes.append(StepBlock(steps=buffer))
                        buffer = []
                    nodes.append(nested)
                else:
                    buffer.extend(nested.steps)
        else:
            step = parse_step(child, child_path, dropped)
            if step is not None:
                buffer.append(step)
    if buffer:
        nodes.append(StepBlock(steps=buffer))
    return nodes


def parse_structure(raw: Any) -> Optional[WorkoutStructure]:
    """Parse a raw structure object (or its JSON text) into a WorkoutStructure.

    Returns None when the input is not an object, has no ``structure`` list,
    the list is empty, or nothing in it could be understood.
    """
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return None
    if not isinstance(raw, dict):
        return None

    entries = raw.get("structure")
    if not isinstance(entries, list) or not entries:
        return None

    dropped: List[str] = []
    nodes: List[StructureNode] = []
    for index, entry in enumerate(entries):
        nodes.extend(_parse_node(entry, f"structure[{index}]", dropped))

    if dropped:
        logger.debug("Dropped %d unrecognized structure node(s): %s", len(dropped), "; ".join(dropped))
    if not nodes:
        return None

    metric = raw.get("primaryIntensityMetric")
    length_metric = raw.get("primaryLengthMetric")
    return WorkoutStructure(
        nodes=nodes,
        primary_intensity_metric=metric if isinstance(metric, str) else "",
        primary_length_metric=length_metric if isinstance(length_metric, str) else "",
        dropped=dropped,
    )


def normalize_structure(raw: Any) -> Optional[List[StructureNode]]:
    parsed = parse_structure(raw)
    return parsed.nodes if parsed else None


def total_duration_seconds(structure: WorkoutStructure) -> int:
    """Sum of time-based step lengths, repetitions included."""
    total = 0
    for node in structure.nodes:
        multiplier = node.count if isinstance(node, RepetitionGroup) else 1
        total += multiplier * sum(step.length.seconds or 0 for step in node.steps)
    return total
