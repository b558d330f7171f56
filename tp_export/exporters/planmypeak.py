"""Map TrainingPeaks library items to PlanMyPeak workout payloads.

Unlike the Intervals.icu path, PlanMyPeak stores the structure itself, so the
raw TrainingPeaks block tree is rewritten block by block instead of being
rendered to text. Every step must carry at least one target PlanMyPeak
understands; anything it cannot express raises ``ValueError`` so the caller
can skip the item with a warning.
"""

from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

from tp_export.core.constants import PLANMYPEAK_INTENSITY_CLASS, PLANMYPEAK_PRIMARY_METRIC
from tp_export.core.mapping import map_tp_workout_type_to_planmypeak_sport
from tp_export.core.models import ValidationMessage
from tp_export.core.structure import (
    normalize_intensity_class,
    parse_length,
    parse_structure,
    repetition_count,
    total_duration_seconds,
)

logger = logging.getLogger(__name__)

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"

PACE_UNITS = ("secondsPerKilometer", "secondsPerMile", "secondsPer100Meters", "secondsPer100Yards")
SPEED_UNITS = ("kilometersPerHour", "milesPerHour")
HEART_RATE_UNITS = ("bpm", "beatsPerMinute", "beatPerMinute")
CADENCE_UNITS = ("rpm", "roundOrStridePerMinute")

PHASES_BY_TYPE = {
    "vo2max": ["Build", "Peak"],
    "threshold": ["Build", "Peak"],
    "interval": ["Build", "Peak"],
    "hill_repeats": ["Build", "Peak"],
    "sprint": ["Build", "Peak"],
    "sweet_spot": ["Base", "Build"],
    "tempo": ["Base", "Build"],
    "fartlek": ["Base", "Build"],
    "progression": ["Base", "Build"],
    "endurance": ["Foundation", "Base", "Build"],
    "easy": ["Foundation", "Base", "Build"],
    "long_run": ["Foundation", "Base", "Build"],
    "recovery": ["Recovery", "Taper"],
    "technique": ["Foundation", "Base"],
}
DEFAULT_PHASES = ["Base", "Build"]


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def to_base36(value: Any) -> str:
    """Render an integer id in lower-case base 36."""
    number = int(value)
    if number == 0:
        return "0"
    sign = "-" if number < 0 else ""
    number = abs(number)
    digits: List[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return sign + "".join(reversed(digits))


def structure_source_id(structure: Any) -> str:
    """Stable content id: ``TP:`` plus the SHA-256 of the canonical structure JSON."""
    canonical = json.dumps(structure, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return "TP:" + hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def map_target(target: Dict[str, Any], primary_metric: str) -> Optional[Dict[str, Any]]:
    """Map one TrainingPeaks target to a PlanMyPeak target, or None."""
    unit = target.get("unit")
    unit = unit.strip() if isinstance(unit, str) else ""
    metric = primary_metric.strip().lower()

    low = _number(target.get("minValue"))
    high = _number(target.get("maxValue"))
    min_value = low if low is not None else (high if high is not None else 0)
    max_value = high if high is not None else (low if low is not None else 0)

    def build(kind: str, target_unit: Optional[str] = None) -> Dict[str, Any]:
        mapped: Dict[str, Any] = {"type": kind, "minValue": min_value, "maxValue": max_value}
        if target_unit:
            mapped["unit"] = target_unit
        return mapped

    if unit in CADENCE_UNITS:
        return build("cadence", unit)
    if unit in HEART_RATE_UNITS:
        return build("heartRate", "bpm")
    if unit in PACE_UNITS:
        return build("pace", unit)
    if unit in SPEED_UNITS:
        return build("speed", unit)
    if unit:
        return None

    if metric == "percentofftp":
        return build("power", "percentOfFtp")
    if metric == "percentofmaxhr":
        return build("heartRate", "percentOfMaxHr")
    if metric == "percentofthresholdhr":
        return build("heartRate", "percentOfThresholdHr")
    if metric in ("percentofthresholdpace", "pace"):
        return build("pace")
    return None


def map_step_intensity(intensity_class: Any, name: str) -> str:
    normalized = normalize_intensity_class(intensity_class)
    if normalized in PLANMYPEAK_INTENSITY_CLASS:
        return PLANMYPEAK_INTENSITY_CLASS[normalized]

    label = name.lower()
    if "warm" in label:
        return "warmUp"
    if "cool" in label:
        return "coolDown"
    if "recover" in label:
        return "recovery"
    if "rest" in label or "easy" in label:
        return "rest"
    return "active"


def map_length(raw: Any) -> Dict[str, Any]:
    if not isinstance(raw, dict) or "unit" not in raw:
        return {"unit": "second", "value": 0}
    if raw.get("unit") == "repetition":
        return {"unit": "repetition", "value": repetition_count(raw)}
    length = parse_length(raw)
    if length is None or length.unit == "lapButton":
        raise ValueError(f"Unsupported length for PlanMyPeak: {raw!r}")
    return {"unit": length.unit, "value": length.value}


def map_step(raw: Any, primary_metric: str) -> Dict[str, Any]:
    if not isinstance(raw, dict):
        raise ValueError("Invalid step in structure")

    if isinstance(raw.get("steps"), list):
        return map_block(raw, primary_metric)

    name = raw.get("name") if isinstance(raw.get("name"), str) else ""
    targets = [
        mapped
        for mapped in (
            map_target(target, primary_metric) for target in raw.get("targets") or [] if isinstance(target, dict)
        )
        if mapped is not None
    ]
    if not targets:
        raise ValueError(f'Unsupported or missing step targets for step "{name or "Unnamed"}"')

    return {
        "name": name,
        "intensityClass": map_step_intensity(raw.get("intensityClass"), name),
        "length": map_length(raw.get("length")),
        "openDuration": True if raw.get("openDuration") else None,
        "targets": targets,
    }


def map_block(raw: Any, primary_metric: str) -> Dict[str, Any]:
    if not isinstance(raw, dict) or not isinstance(raw.get("steps"), list):
        raise ValueError("Invalid block in structure")
    return {
        "type": "repetition" if raw.get("type") == "repetition" else "step",
        "length": {"unit": "repetition", "value": repetition_count(raw.get("length"))},
        "steps": [map_step(step, primary_metric) for step in raw["steps"]],
    }


def map_structure(raw: Any) -> Dict[str, Any]:
    """Rewrite a TrainingPeaks structure document for PlanMyPeak."""
    if isinstance(raw, str):
        raw = json.loads(raw)
    if not isinstance(raw, dict) or not isinstance(raw.get("structure"), list) or not raw["structure"]:
        raise ValueError("Workout has no structure")

    length_metric = raw.get("primaryLengthMetric") or "duration"
    if length_metric not in ("duration", "distance"):
        raise ValueError(f"Unsupported primaryLengthMetric for PlanMyPeak: {length_metric}")

    metric = raw.get("primaryIntensityMetric")
    metric = metric if isinstance(metric, str) else ""
    primary = PLANMYPEAK_PRIMARY_METRIC.get(metric.strip().lower())
    if primary is None:
        raise ValueError(f"Unsupported primaryIntensityMetric for PlanMyPeak: {metric or 'unknown'}")

    return {
        "primaryIntensityMetric": primary,
        "primaryLengthMetric": length_metric,
        "structure": [map_block(block, metric) for block in raw["structure"]],
    }


def _intensity_factor(item: Dict[str, Any]) -> float:
    value = _number(item.get("ifPlanned"))
    return value if value is not None else 0.0


def infer_workout_type(item: Dict[str, Any], sport: str, primary_metric: str = "") -> str:
    name = str(item.get("itemName") or "").lower()
    factor = _intensity_factor(item)
    metric = primary_metric.lower()

    if sport == "running":
        if "hill" in name:
            return "hill_repeats"
        if "fartlek" in name:
            return "fartlek"
        if "long" in name:
            return "long_run"
        if "pace" in metric:
            if factor >= 0.95:
                return "interval"
            if factor >= 0.8:
                return "tempo"
        elif "hr" in metric:
            if factor >= 0.9:
                return "interval"
            if factor >= 0.75:
                return "tempo"
        if factor >= 0.9:
            return "interval"
        if factor >= 0.78:
            return "tempo"
        if factor >= 0.65:
            return "easy"
        return "recovery"

    if sport == "swimming":
        if "drill" in name or "technique" in name:
            return "technique"
        if "sprint" in name:
            return "sprint"
        if "threshold" in name:
            return "threshold"
        if "pace" in metric:
            if factor >= 0.9:
                return "interval"
            if factor >= 0.8:
                return "threshold"
        if factor >= 0.9:
            return "interval"
        if factor >= 0.75:
            return "endurance"
        return "recovery"

    if factor >= 1.05:
        return "vo2max"
    if factor >= 0.95:
        return "threshold"
    if factor >= 0.88:
        return "sweet_spot"
    if factor >= 0.75:
        return "tempo"
    if factor >= 0.7:
        return "endurance"
    return "recovery"


def infer_intensity(item: Dict[str, Any]) -> str:
    factor = _intensity_factor(item)
    if factor >= 1.05:
        return "very_hard"
    if factor >= 0.95:
        return "hard"
    if factor >= 0.85:
        return "moderate"
    return "easy"


def suitable_phases(workout_type: str) -> List[str]:
    return list(PHASES_BY_TYPE.get(workout_type, DEFAULT_PHASES))


def _narrative(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    trimmed = value.strip()
    return trimmed or None


def detailed_description(item: Dict[str, Any]) -> Optional[str]:
    description = _narrative(item.get("description"))
    comments = _narrative(item.get("coachComments"))
    if description and comments:
        return f"{description}\n\nPre workout comments:\n{comments}"
    return description or comments


def base_duration_minutes(item: Dict[str, Any]) -> float:
    hours = _number(item.get("totalTimePlanned"))
    if hours is not None:
        return hours * 60
    structure = parse_structure(item.get("structure"))
    if structure is None:
        return 0
    return total_duration_seconds(structure) / 60


def build_planmypeak_workout(
    item: Dict[str, Any],
    field_prefix: str = "workout",
) -> Tuple[Dict[str, Any], List[ValidationMessage]]:
    """Build the PlanMyPeak workout payload for one library item.

    Raises ``ValueError`` for unsupported sports or structures.
    """
    warnings: List[ValidationMessage] = []
    name = str(item.get("itemName") or "").strip()

    sport = map_tp_workout_type_to_planmypeak_sport(item.get("workoutTypeId"))
    if sport is None:
        raise ValueError(f"Unsupported TrainingPeaks workoutTypeId for PlanMyPeak: {item.get('workoutTypeId')!r}")

    raw_structure = item.get("structure")
    if isinstance(raw_structure, str):
        raw_structure = json.loads(raw_structure)
    structure = map_structure(raw_structure)
    metric = str(raw_structure.get("primaryIntensityMetric") or "")

    duration = base_duration_minutes(item)
    if duration <= 0:
        logger.warning('Using fallback base_duration_min=1 for "%s": no usable duration', name)
        warnings.append(
            ValidationMessage(
                field=f"{field_prefix}.base_duration_min",
                message=f'No usable duration for "{name}"; using 1 minute',
            )
        )
        duration = 1

    tss = _number(item.get("tssPlanned"))
    workout_type = infer_workout_type(item, sport, metric)
    workout: Dict[str, Any] = {
        "id": to_base36(item.get("exerciseLibraryItemId") or 0),
        "name": name,
        "detailed_description": detailed_description(item),
        "sport_type": sport,
        "type": workout_type,
        "intensity": infer_intensity(item),
        "suitable_phases": suitable_phases(workout_type),
        "structure": structure,
        "base_duration_min": max(1, int(round(duration))),
        "base_tss": max(0, int(round(tss or 0))),
        "is_public": False,
        "source_id": structure_source_id(raw_structure),
    }
    logger.debug("Mapped %s to PlanMyPeak workout %s (%s)", name, workout["id"], workout_type)
    return workout, warnings
