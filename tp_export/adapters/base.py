"""Export adapter contract shared by all destinations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List

from tp_export.core.models import ExportResult, TransformOutput, ValidationMessage, ValidationResult


def warning(field: str, message: str) -> ValidationMessage:
    return ValidationMessage(field=field, message=message, severity="warning")


def error(field: str, message: str) -> ValidationMessage:
    return ValidationMessage(field=field, message=message, severity="error")


class ExportAdapter(ABC):
    """Transform, validate and export TrainingPeaks items to one destination.

    ``transform`` must not call the destination: remote writes happen only in
    ``export`` so a failed validation never leaves partial data behind.
    """

    id: str = ""
    name: str = ""
    format: str = "api"

    @abstractmethod
    def transform(self, items: List[Any], config: Any) -> TransformOutput:
        """Build destination payloads from source items."""

    @abstractmethod
    def validate(self, output: TransformOutput) -> ValidationResult:
        """Check payloads against destination rules."""

    @abstractmethod
    def export(self, output: TransformOutput, config: Any) -> ExportResult:
        """Write validated payloads to the destination."""

    def preview(self, output: TransformOutput) -> Any:
        return output.items

    def default_file_name(self, config: Any) -> str:
        return getattr(config, "file_name", None) or f"{self.id}-export"
