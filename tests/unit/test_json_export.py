import json
from datetime import date
from pathlib import Path

from tp_export.core.models import ExportResult, ValidationMessage
from tp_export.exporters.json_export import save_export_result, write_json


def _result() -> ExportResult:
    return ExportResult(
        success=True,
        file_name="Spring Build",
        format="api",
        items_exported=2,
        warnings=[ValidationMessage(field="notes[0]", message="Skipped")],
        payload={"start": date(2026, 3, 2)},
    )


def test_write_json_creates_parents_and_serializes_dates(tmp_path: Path) -> None:
    path = write_json(tmp_path / "a" / "b.json", {"day": date(2026, 3, 2)})
    assert json.loads(path.read_text()) == {"day": "2026-03-02"}


def test_save_export_result_into_directory(tmp_path: Path) -> None:
    path = save_export_result(_result(), tmp_path / "exports")

    assert path == tmp_path / "exports" / "spring-build.json"
    data = json.loads(path.read_text())
    assert data["fileName"] == "Spring Build"
    assert data["itemsExported"] == 2
    assert data["warnings"] == [{"field": "notes[0]", "message": "Skipped", "severity": "warning"}]
    assert data["payload"] == {"start": "2026-03-02"}


def test_save_export_result_to_explicit_file(tmp_path: Path) -> None:
    target = tmp_path / "result.json"
    assert save_export_result(_result(), target) == target
    assert target.exists()
