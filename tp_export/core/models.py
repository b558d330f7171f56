"""Data models shared by the transcoder, adapters and commands."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional, Union


@dataclass(frozen=True)
class Length:
    """Normalized step length.

    Time based lengths are always stored as whole seconds (``unit="second"``).
    Distance lengths keep their unit (``meter``, ``kilometer``, ``mile``) and
    ``lapButton`` marks an open step ended by the lap button.
    """

    unit: str
    value: float

    @property
    def is_time(self) -> bool:
        return self.unit == "second"

    @property
    def seconds(self) -> Optional[int]:
        return int(self.value) if self.is_time else None


@dataclass(frozen=True)
class Cadence:
    min_rpm: int
    max_rpm: int


@dataclass(frozen=True)
class TargetRange:
    min_value: float
    max_value: float
    unit: Optional[str] = None


@dataclass(frozen=True)
class Step:
    name: str
    intensity_class: str
    length: Length
    open_duration: bool = False
    target: Optional[TargetRange] = None
    cadence: Optional[Cadence] = None


@dataclass(frozen=True)
class StepBlock:
    """Non-repeating top-level wrapper (``type: step | set | rampUp``)."""

    steps: List[Step]


@dataclass(frozen=True)
class RepetitionGroup:
    count: int
    steps: List[Step]


StructureNode = Union[StepBlock, RepetitionGroup]


@dataclass
class WorkoutStructure:
    """Normalized TrainingPeaks workout structure."""

    nodes: List[StructureNode]
    primary_intensity_metric: str = ""
    primary_length_metric: str = ""
    dropped: List[str] = field(default_factory=list)


class TargetKind(str, Enum):
    POWER_PCT_FTP = "power_pct_ftp"
    HEART_RATE = "heart_rate"
    PACE = "pace"
    CADENCE_RPM = "cadence_rpm"


@dataclass(frozen=True)
class Target:
    """Typed target: a single ``value`` or a ``min``/``max`` range."""

    kind: TargetKind
    value: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_range(self) -> bool:
        return self.value is None

    def to_dict(self) -> Dict[str, Any]:
        if self.is_range:
            return {"type": self.kind.value, "min": self.min, "max": self.max}
        return {"type": self.kind.value, "value": self.value}


@dataclass
class WorkoutItem:
    label: str
    duration_seconds: Optional[int]
    targets: List[Target] = field(default_factory=list)
    intensity: str = "active"
    distance_meters: Optional[float] = None
    kind: str = "step"

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "label": self.label}
        if self.duration_seconds is not None:
            payload["duration_seconds"] = self.duration_seconds
        if self.distance_meters is not None:
            payload["distance_meters"] = self.distance_meters
        payload["targets"] = [target.to_dict() for target in self.targets]
        payload["intensity"] = self.intensity
        return payload


@dataclass
class Section:
    items: List[WorkoutItem]
    repeat_count: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.repeat_count is not None:
            payload["repeat_count"] = self.repeat_count
        payload["items"] = [item.to_dict() for item in self.items]
        return payload


@dataclass
class WorkoutBuilderDocument:
    sport_hint: str
    sections: List[Section]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "sport_hint": self.sport_hint,
            "sections": [section.to_dict() for section in self.sections],
        }


@dataclass(frozen=True)
class ValidationMessage:
    field: str
    message: str
    severity: str = "warning"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "severity": self.severity}


@dataclass
class ValidationResult:
    is_valid: bool
    warnings: List[ValidationMessage] = field(default_factory=list)
    errors: List[ValidationMessage] = field(default_factory=list)


@dataclass
class TransformOutput:
    """Transformed payloads plus warnings produced while building them."""

    items: List[Any]
    warnings: List[ValidationMessage] = field(default_factory=list)


@dataclass
class ExportResult:
    success: bool
    file_name: str
    format: str
    items_exported: int = 0
    warnings: List[ValidationMessage] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    payload: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "fileName": self.file_name,
            "format": self.format,
            "itemsExported": self.items_exported,
            "warnings": [warning.to_dict() for warning in self.warnings],
            "errors": list(self.errors),
            "payload": self.payload,
        }


@dataclass
class IntervalsExportConfig:
    folder_name: Optional[str] = None
    conflict_action: str = "append"
    file_name: str = "intervals-export"
    start_date: Optional[date] = None
    visibility: str = "PRIVATE"
    note_color: str = "blue"
    description: Optional[str] = None
    destination: str = field(default="intervalsicu", init=False)


@dataclass
class PlanMyPeakExportConfig:
    library_id: Optional[str] = None
    library_name: Optional[str] = None
    conflict_action: str = "append"
    file_name: str = "planmypeak-export"
    destination: str = field(default="planmypeak", init=False)


@dataclass
class PlanMyPeakPlanExportConfig:
    plan_name: Optional[str] = None
    library_name: Optional[str] = None
    start_date: Optional[date] = None
    file_name: str = "planmypeak-plan-export"
    publish: bool = True
    destination: str = field(default="planmypeak", init=False)


ExportConfig = Union[IntervalsExportConfig, PlanMyPeakExportConfig, PlanMyPeakPlanExportConfig]


@dataclass
class PlanWorkoutItem:
    day: int
    source_id: str
    name: str
    payload: Dict[str, Any]
    folder_id: Optional[Any] = None

    @property
    def external_id(self) -> str:
        return f"tp-workout-{self.source_id}"

    def to_payload(self, folder_id: Optional[Any] = None) -> Dict[str, Any]:
        body = dict(self.payload)
        body.update(
            {
                "name": self.name,
                "day": self.day,
                "for_week": False,
                "external_id": self.external_id,
            }
        )
        owner = folder_id if folder_id is not None else self.folder_id
        if owner is not None:
            body["folder_id"] = owner
        return body


@dataclass
class PlanNoteItem:
    day: int
    source_id: str
    name: str
    description: str
    color: str = "blue"
    folder_id: Optional[Any] = None

    @property
    def external_id(self) -> str:
        return f"tp-note-{self.source_id}"

    def to_payload(self, folder_id: Optional[Any] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": "NOTE",
            "color": self.color,
            "day": self.day,
            "external_id": self.external_id,
        }
        owner = folder_id if folder_id is not None else self.folder_id
        if owner is not None:
            body["folder_id"] = owner
        return body


@dataclass
class PlanEventItem:
    day: int
    source_id: str
    name: str
    description: str
    activity_type: str = "Other"
    category: str = "RACE_A"
    folder_id: Optional[Any] = None

    @property
    def external_id(self) -> str:
        return f"tp-event-{self.source_id}"

    def to_payload(self, folder_id: Optional[Any] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "name": self.name,
            "description": self.description,
            "type": self.activity_type,
            "category": self.category,
            "day": self.day,
            "external_id": self.external_id,
        }
        owner = folder_id if folder_id is not None else self.folder_id
        if owner is not None:
            body["folder_id"] = owner
        return body


PlanItem = Union[PlanWorkoutItem, PlanNoteItem, PlanEventItem]


@dataclass
class PlanPlacement:
    """Day-offset placement of a whole plan relative to ``start_date``."""

    start_date: date
    items: List[PlanItem] = field(default_factory=list)
    warnings: List[ValidationMessage] = field(default_factory=list)

    @property
    def workouts(self) -> List[PlanWorkoutItem]:
        return [item for item in self.items if isinstance(item, PlanWorkoutItem)]

    @property
    def last_day(self) -> int:
        return max((item.day for item in self.items), default=0)

    @property
    def start_date_local(self) -> str:
        return f"{self.start_date.isoformat()}T00:00:00"
