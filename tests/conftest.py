from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest
from typer.testing import CliRunner

from tp_export.core.api import APIError


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TP_EXPORT_CONFIG_FILE", str(tmp_path / "config.toml"))
    monkeypatch.setenv("TP_EXPORT_DATA_DIR", str(tmp_path / "data"))
    for name in ("INTERVALS_API_KEY", "PLANMYPEAK_TOKEN", "TP_ACCESS_TOKEN", "TP_USERNAME", "TP_PASSWORD"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def sample_tp_structure() -> Dict[str, Any]:
    return {
        "primaryIntensityMetric": "percentOfThresholdPace",
        "primaryLengthMetric": "duration",
        "structure": [
            {
                "type": "rampUp",
                "length": {"value": 1, "unit": "repetition"},
                "steps": [
                    {
                        "name": "Warmup",
                        "length": {"value": 600, "unit": "second"},
                        "targets": [{"minValue": 70}],
                        "intensityClass": "warmUp",
                        "openDuration": False,
                    }
                ],
            },
            {
                "type": "repetition",
                "length": {"value": 4, "unit": "repetition"},
                "steps": [
                    {
                        "name": "On",
                        "length": {"value": 300, "unit": "second"},
                        "targets": [{"minValue": 94, "maxValue": 100}],
                        "intensityClass": "active",
                        "openDuration": False,
                    },
                    {
                        "name": "Off",
                        "length": {"value": 120, "unit": "second"},
                        "targets": [{"minValue": 70}],
                        "intensityClass": "rest",
                        "openDuration": False,
                    },
                ],
            },
        ],
    }


@pytest.fixture()
def bike_structure() -> Dict[str, Any]:
    """Warm-up, 3x threshold reps and cool-down in percent of FTP."""

    def step(name: str, seconds: int, low: float, high: float, intensity: str) -> Dict[str, Any]:
        return {
            "name": name,
            "length": {"value": seconds, "unit": "second"},
            "targets": [{"minValue": low, "maxValue": high}],
            "intensityClass": intensity,
            "openDuration": False,
        }

    return {
        "primaryIntensityMetric": "percentOfFtp",
        "primaryLengthMetric": "duration",
        "structure": [
            {
                "type": "step",
                "length": {"value": 1, "unit": "repetition"},
                "steps": [step("Warm up", 600, 50, 65, "warmUp")],
            },
            {
                "type": "repetition",
                "length": {"value": 3, "unit": "repetition"},
                "steps": [
                    step("Threshold", 480, 95, 100, "active"),
                    step("Recover", 240, 50, 55, "rest"),
                ],
            },
            {
                "type": "step",
                "length": {"value": 1, "unit": "repetition"},
                "steps": [step("Cool down", 300, 40, 50, "coolDown")],
            },
        ],
    }


@pytest.fixture()
def sample_library_item(bike_structure: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "exerciseLibraryItemId": 123456,
        "itemName": "Threshold 3x8",
        "workoutTypeId": 2,
        "totalTimePlanned": 1.0,
        "tssPlanned": 72,
        "ifPlanned": 0.85,
        "description": "Main set focus on smooth cadence",
        "coachComments": "Keep breathing controlled",
        "structure": bike_structure,
    }


@pytest.fixture()
def sample_plan_bundle(sample_library_item: Dict[str, Any]) -> Dict[str, Any]:
    workout = dict(sample_library_item)
    workout.pop("itemName")
    workout.pop("exerciseLibraryItemId")
    workout.pop("workoutTypeId")
    return {
        "plan": {"planId": 77, "title": "Spring Build", "description": "Eight weeks to race day"},
        "workouts": [
            dict(workout, workoutId=1, title="Threshold 3x8", workoutTypeValueId=2, workoutDay="2026-03-04T00:00:00"),
            dict(workout, workoutId=2, title="Long Ride", workoutTypeValueId=2, workoutDay="2026-03-08T00:00:00"),
        ],
        "notes": [
            {"id": 10, "title": "Welcome", "description": "Read the plan notes", "noteDate": "2026-03-02T00:00:00"},
        ],
        "events": [
            {
                "id": 20,
                "name": "Spring Sprint Tri",
                "eventType": "Triathlon",
                "description": "A race",
                "eventDate": "2026-04-26T00:00:00",
            },
        ],
    }


class FakeIntervalsAPI:
    def __init__(self, folders: Optional[List[Dict[str, Any]]] = None) -> None:
        self.api_key = "key"
        self.athlete_id = "i1"
        self.folders: List[Dict[str, Any]] = list(folders or [])
        self.workouts: List[Dict[str, Any]] = []
        self.deleted: List[Any] = []
        self.fail_names: List[str] = []
        self.calls: List[str] = []

    def find_folder_by_name(self, name: str, folder_type: Optional[str] = None) -> Optional[Dict[str, Any]]:
        self.calls.append("find_folder_by_name")
        for folder in self.folders:
            if folder["name"].lower() == name.strip().lower() and (
                folder_type is None or folder.get("type", "FOLDER") == folder_type
            ):
                return folder
        return None

    def create_folder(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append("create_folder")
        folder = dict(payload, id=100 + len(self.folders))
        self.folders.append(folder)
        return folder

    def delete_folder(self, folder_id: Any) -> None:
        self.calls.append("delete_folder")
        self.deleted.append(folder_id)
        self.folders = [folder for folder in self.folders if folder["id"] != folder_id]

    def create_workout(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self.calls.append("create_workout")
        if payload.get("name") in self.fail_names:
            raise APIError("Intervals.icu request failed: HTTP 422 bad workout", status_code=422)
        workout = dict(payload, id=1000 + len(self.workouts))
        self.workouts.append(workout)
        return workout

    def list_folder_workouts(self, folder_id: Any) -> List[Dict[str, Any]]:
        return [workout for workout in self.workouts if workout.get("folder_id") == folder_id]


class FakePlanMyPeakAPI:
    def __init__(self, libraries: Optional[List[Dict[str, Any]]] = None) -> None:
        self.libraries: List[Dict[str, Any]] = list(libraries or [])
        self.uploaded: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.create_error: Optional[APIError] = None
        self.created_during_failure: Optional[Dict[str, Any]] = None
        self.workouts: List[Dict[str, Any]] = []
        self.plans: List[Dict[str, Any]] = []
        self.notes: List[Dict[str, Any]] = []
        self.note_error: Optional[APIError] = None

    def list_libraries(self) -> List[Dict[str, Any]]:
        return list(self.libraries)

    def create_library(self, name: str, source_id: Optional[str] = None) -> Dict[str, Any]:
        if self.create_error is not None:
            if self.created_during_failure is not None:
                self.libraries.append(self.created_during_failure)
            raise self.create_error
        library = {
            "id": f"lib-{len(self.libraries) + 1}",
            "name": name,
            "source_id": source_id,
            "is_system": False,
            "is_default": False,
        }
        self.libraries.append(library)
        return library

    def delete_library(self, library_id: str) -> None:
        self.deleted.append(library_id)
        self.libraries = [library for library in self.libraries if library["id"] != library_id]

    def upload_workout(self, workout: Dict[str, Any], library_id: str) -> Dict[str, Any]:
        body = dict(workout, library_id=library_id)
        self.uploaded.append(body)
        return body

    def find_workout_by_source_id(
        self, source_id: str, library_id: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        for workout in self.workouts + self.uploaded:
            in_library = library_id is None or workout.get("library_id") == library_id
            if workout.get("source_id") == source_id and in_library:
                return workout
        return None

    def save_training_plan(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        source_id = payload["metadata"].get("source_id")
        for plan in self.plans:
            if plan["source_id"] == source_id:
                plan["payload"] = payload
                return {"success": True, "planId": plan["id"], "savedAt": "2026-03-01T00:00:00Z"}
        plan_id = f"plan-{len(self.plans) + 1}"
        self.plans.append({"id": plan_id, "source_id": source_id, "payload": payload})
        return {"success": True, "planId": plan_id, "savedAt": "2026-03-01T00:00:00Z"}

    def create_training_plan_note(self, plan_id: str, note: Dict[str, Any]) -> Dict[str, Any]:
        if self.note_error is not None:
            raise self.note_error
        created = dict(note, id=f"note-{len(self.notes) + 1}", plan_id=plan_id)
        self.notes.append(created)
        return created


@pytest.fixture()
def fake_intervals() -> FakeIntervalsAPI:
    return FakeIntervalsAPI()


@pytest.fixture()
def fake_planmypeak() -> FakePlanMyPeakAPI:
    return FakePlanMyPeakAPI()


@pytest.fixture()
def write_temp_json(tmp_path: Path):
    def _write(name: str, payload: Any) -> Path:
        path = tmp_path / name
        path.write_text(json.dumps(payload, indent=2) + "\n")
        return path

    return _write


@pytest.fixture()
def write_temp_toml(tmp_path: Path):
    def _write(name: str, content: str) -> Path:
        path = tmp_path / name
        path.write_text(content.strip() + "\n")
        return path

    return _write
