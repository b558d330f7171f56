from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

from tp_export.adapters.planmypeak import PlanMyPeakAdapter
from tp_export.core.api import APIError
from tp_export.core.models import PlanMyPeakExportConfig
from tp_export.core.pipeline import ExportPipeline
from tp_export.exporters.planmypeak import (
    build_planmypeak_workout,
    detailed_description,
    infer_intensity,
    infer_workout_type,
    map_length,
    map_step_intensity,
    map_structure,
    map_target,
    structure_source_id,
    suitable_phases,
    to_base36,
)


def test_to_base36() -> None:
    assert to_base36(123456) == "2n9c"
    assert to_base36(0) == "0"
    assert to_base36(35) == "z"
    assert to_base36("36") == "10"


def test_structure_source_id_ignores_key_order() -> None:
    first = structure_source_id({"a": 1, "b": [1, 2]})
    second = structure_source_id({"b": [1, 2], "a": 1})
    assert first == second
    assert first.startswith("TP:")
    assert len(first) == len("TP:") + 64


@pytest.mark.parametrize(
    ("target", "metric", "expected"),
    [
        (
            {"minValue": 90, "maxValue": 100},
            "percentOfFtp",
            {"type": "power", "minValue": 90, "maxValue": 100, "unit": "percentOfFtp"},
        ),
        (
            {"minValue": 80},
            "percentOfThresholdHr",
            {"type": "heartRate", "minValue": 80, "maxValue": 80, "unit": "percentOfThresholdHr"},
        ),
        (
            {"minValue": 70, "maxValue": 75},
            "percentOfMaxHr",
            {"type": "heartRate", "minValue": 70, "maxValue": 75, "unit": "percentOfMaxHr"},
        ),
        ({"minValue": 95, "maxValue": 100}, "percentOfThresholdPace", {"type": "pace", "minValue": 95, "maxValue": 100}),
        (
            {"minValue": 85, "maxValue": 95, "unit": "rpm"},
            "percentOfFtp",
            {"type": "cadence", "minValue": 85, "maxValue": 95, "unit": "rpm"},
        ),
        (
            {"minValue": 140, "maxValue": 150, "unit": "beatsPerMinute"},
            "percentOfFtp",
            {"type": "heartRate", "minValue": 140, "maxValue": 150, "unit": "bpm"},
        ),
        (
            {"maxValue": 240, "unit": "secondsPerKilometer"},
            "pace",
            {"type": "pace", "minValue": 240, "maxValue": 240, "unit": "secondsPerKilometer"},
        ),
        (
            {"minValue": 30, "unit": "kilometersPerHour"},
            "speed",
            {"type": "speed", "minValue": 30, "maxValue": 30, "unit": "kilometersPerHour"},
        ),
    ],
)
def test_map_target(target: Dict[str, Any], metric: str, expected: Dict[str, Any]) -> None:
    assert map_target(target, metric) == expected


def test_map_target_rejects_unknown_units_and_metrics() -> None:
    assert map_target({"minValue": 200, "unit": "watts"}, "percentOfFtp") is None
    assert map_target({"minValue": 200}, "watts") is None


def test_map_step_intensity_prefers_class_then_name() -> None:
    assert map_step_intensity("warmUp", "Anything") == "warmUp"
    assert map_step_intensity("coolDown", "") == "coolDown"
    assert map_step_intensity(None, "Easy spin") == "rest"
    assert map_step_intensity("", "Recovery jog") == "recovery"
    assert map_step_intensity("other", "Main set") == "active"


def test_map_length() -> None:
    assert map_length({"value": 4, "unit": "repetition"}) == {"unit": "repetition", "value": 4}
    assert map_length({"value": 5, "unit": "minute"}) == {"unit": "second", "value": 300}
    assert map_length(None) == {"unit": "second", "value": 0}
    with pytest.raises(ValueError):
        map_length({"value": 1, "unit": "lapButton"})
    with pytest.raises(ValueError):
        map_length({"value": 1, "unit": "fortnight"})


def test_map_structure_rewrites_blocks(bike_structure: Dict[str, Any]) -> None:
    mapped = map_structure(bike_structure)

    assert mapped["primaryIntensityMetric"] == "percentOfFtp"
    assert mapped["primaryLengthMetric"] == "duration"
    assert [block["type"] for block in mapped["structure"]] == ["step", "repetition", "step"]
    repetition = mapped["structure"][1]
    assert repetition["length"] == {"unit": "repetition", "value": 3}
    assert repetition["steps"][1] == {
        "name": "Recover",
        "intensityClass": "rest",
        "length": {"unit": "second", "value": 240},
        "openDuration": None,
        "targets": [{"type": "power", "minValue": 50, "maxValue": 55, "unit": "percentOfFtp"}],
    }


def test_map_structure_defaults_length_metric(bike_structure) -> None:
    bike_structure.pop("primaryLengthMetric")
    assert map_structure(bike_structure)["primaryLengthMetric"] == "duration"


@pytest.mark.parametrize(
    "change",
    [
        {"structure": []},
        {"primaryLengthMetric": "energy"},
        {"primaryIntensityMetric": "rpe"},
    ],
)
def test_map_structure_rejects_unsupported_documents(bike_structure, change: Dict[str, Any]) -> None:
    bike_structure.update(change)
    with pytest.raises(ValueError):
        map_structure(bike_structure)


def test_map_structure_rejects_steps_without_targets(bike_structure) -> None:
    bike_structure["structure"][0]["steps"][0]["targets"] = []
    with pytest.raises(ValueError, match="Warm up"):
        map_structure(bike_structure)


@pytest.mark.parametrize(
    ("item", "sport", "metric", "expected"),
    [
        ({"ifPlanned": 1.1}, "cycling", "percentOfFtp", "vo2max"),
        ({"ifPlanned": 0.9}, "cycling", "percentOfFtp", "sweet_spot"),
        ({"ifPlanned": 0.5}, "cycling", "percentOfFtp", "recovery"),
        ({"itemName": "Hill Repeats", "ifPlanned": 0.9}, "running", "percentOfThresholdPace", "hill_repeats"),
        ({"itemName": "Sunday long run", "ifPlanned": 0.7}, "running", "percentOfThresholdPace", "long_run"),
        ({"itemName": "Cruise", "ifPlanned": 0.85}, "running", "percentOfThresholdPace", "tempo"),
        ({"itemName": "Drills", "ifPlanned": 0.7}, "swimming", "percentOfThresholdPace", "technique"),
        ({"itemName": "Main", "ifPlanned": 0.92}, "swimming", "percentOfThresholdPace", "interval"),
    ],
)
def test_infer_workout_type(item: Dict[str, Any], sport: str, metric: str, expected: str) -> None:
    assert infer_workout_type(item, sport, metric) == expected


def test_infer_intensity_and_phases() -> None:
    assert infer_intensity({"ifPlanned": 1.1}) == "very_hard"
    assert infer_intensity({"ifPlanned": 0.96}) == "hard"
    assert infer_intensity({"ifPlanned": 0.85}) == "moderate"
    assert infer_intensity({}) == "easy"
    assert suitable_phases("threshold") == ["Build", "Peak"]
    assert suitable_phases("unknown") == ["Base", "Build"]


def test_detailed_description_joins_comments() -> None:
    assert detailed_description({"description": " Notes ", "coachComments": "Go"}) == (
        "Notes\n\nPre workout comments:\nGo"
    )
    assert detailed_description({"coachComments": "Go"}) == "Go"
    assert detailed_description({"description": "  "}) is None


def test_build_planmypeak_workout(sample_library_item: Dict[str, Any]) -> None:
    workout, warnings = build_planmypeak_workout(sample_library_item)

    assert warnings == []
    assert workout["id"] == "2n9c"
    assert workout["name"] == "Threshold 3x8"
    assert workout["sport_type"] == "cycling"
    assert workout["type"] == "tempo"
    assert workout["intensity"] == "moderate"
    assert workout["suitable_phases"] == ["Base", "Build"]
    assert workout["base_duration_min"] == 60
    assert workout["base_tss"] == 72
    assert workout["is_public"] is False
    assert workout["source_id"] == structure_source_id(sample_library_item["structure"])
    assert workout["detailed_description"] == (
        "Main set focus on smooth cadence\n\nPre workout comments:\nKeep breathing controlled"
    )


def test_build_planmypeak_workout_derives_duration_from_structure(sample_library_item) -> None:
    sample_library_item.pop("totalTimePlanned")
    workout, warnings = build_planmypeak_workout(sample_library_item)
    assert workout["base_duration_min"] == 51
    assert warnings == []


def test_build_planmypeak_workout_falls_back_to_one_minute(sample_library_item) -> None:
    sample_library_item["totalTimePlanned"] = 0
    workout, warnings = build_planmypeak_workout(sample_library_item, "workouts[2]")
    assert workout["base_duration_min"] == 1
    assert [warning.field for warning in warnings] == ["workouts[2].base_duration_min"]


def test_build_planmypeak_workout_rejects_unsupported_sport(sample_library_item) -> None:
    sample_library_item["workoutTypeId"] = 9
    with pytest.raises(ValueError, match="workoutTypeId"):
        build_planmypeak_workout(sample_library_item)


def _config(**kwargs: Any) -> PlanMyPeakExportConfig:
    return PlanMyPeakExportConfig(**kwargs)


def test_adapter_transform_skips_unsupported_items(fake_planmypeak, sample_library_item) -> None:
    strength = dict(sample_library_item, itemName="Gym", workoutTypeId=9)
    adapter = PlanMyPeakAdapter(fake_planmypeak)
    output = adapter.transform([sample_library_item, strength], _config())

    assert [workout["name"] for workout in output.items] == ["Threshold 3x8"]
    assert [warning.field for warning in output.warnings] == ["workouts[1]"]
    assert "Gym" in output.warnings[0].message


def test_adapter_validate_requires_structure(fake_planmypeak, sample_library_item) -> None:
    adapter = PlanMyPeakAdapter(fake_planmypeak)
    output = adapter.transform([sample_library_item], _config())
    output.items[0]["structure"] = {"structure": []}
    output.items[0]["base_tss"] = -1

    result = adapter.validate(output)
    assert result.is_valid is False
    assert [message.field for message in result.errors] == ["workouts[0].structure"]
    assert [message.field for message in result.warnings] == ["workouts[0].base_tss"]


def test_export_creates_default_library(fake_planmypeak, sample_library_item) -> None:
    adapter = PlanMyPeakAdapter(fake_planmypeak)
    result = ExportPipeline(adapter).run([sample_library_item], _config())

    assert result.success is True
    assert result.file_name == "TrainingPeaks Library"
    assert fake_planmypeak.uploaded[0]["library_id"] == "lib-1"
    assert result.payload["library"]["id"] == "lib-1"


def test_resolve_library_appends_to_matching_user_library(fake_planmypeak) -> None:
    fake_planmypeak.libraries = [
        {"id": "sys", "name": "Mine", "is_system": True},
        {"id": "abc", "name": "mine ", "is_system": False},
    ]
    library = PlanMyPeakAdapter(fake_planmypeak).resolve_library(_config(library_name="Mine"))

    assert library["id"] == "abc"
    assert fake_planmypeak.deleted == []


def test_resolve_library_replace_deletes_then_creates(fake_planmypeak) -> None:
    fake_planmypeak.libraries = [{"id": "abc", "name": "Mine", "is_system": False}]
    library = PlanMyPeakAdapter(fake_planmypeak).resolve_library(
        _config(library_name="Mine", conflict_action="replace")
    )

    assert fake_planmypeak.deleted == ["abc"]
    assert library["id"] != "abc"
    assert library["name"] == "Mine"


def test_resolve_library_by_explicit_id(fake_planmypeak) -> None:
    fake_planmypeak.libraries = [{"id": 42, "name": "Other", "is_system": False}]
    adapter = PlanMyPeakAdapter(fake_planmypeak)

    assert adapter.resolve_library(_config(library_id="42"))["name"] == "Other"
    with pytest.raises(APIError) as excinfo:
        adapter.resolve_library(_config(library_id="missing"))
    assert excinfo.value.code == "NOT_FOUND"


def test_resolve_library_reuses_library_created_concurrently(fake_planmypeak) -> None:
    fake_planmypeak.create_error = APIError("PlanMyPeak request failed: HTTP 409 exists", status_code=409)
    fake_planmypeak.created_during_failure = {"id": "race", "name": "Mine", "is_system": False}

    library = PlanMyPeakAdapter(fake_planmypeak).resolve_library(_config(library_name="Mine"))
    assert library["id"] == "race"


def test_resolve_library_reraises_when_create_fails(fake_planmypeak) -> None:
    fake_planmypeak.create_error = APIError("PlanMyPeak request failed: HTTP 409 exists", status_code=409)
    with pytest.raises(APIError):
        PlanMyPeakAdapter(fake_planmypeak).resolve_library(_config(library_name="Mine"))


def test_export_upload_failure_becomes_warning(fake_planmypeak, sample_library_item) -> None:
    def failing_upload(workout: Dict[str, Any], library_id: str) -> Dict[str, Any]:
        if workout["name"] == "Broken":
            raise APIError("PlanMyPeak request failed: HTTP 422 invalid", status_code=422)
        return dict(workout, library_id=library_id)

    fake_planmypeak.upload_workout = failing_upload
    second = copy.deepcopy(sample_library_item)
    second["itemName"] = "Broken"
    adapter = PlanMyPeakAdapter(fake_planmypeak)
    config = _config()
    result = adapter.export(adapter.transform([sample_library_item, second], config), config)

    assert result.success is True
    assert result.items_exported == 1
    assert [warning.field for warning in result.warnings] == ["workouts[1]"]


def test_export_auth_failure_propagates(fake_planmypeak, sample_library_item) -> None:
    fake_planmypeak.create_error = APIError("PlanMyPeak authentication required", code="NO_TOKEN")
    adapter = PlanMyPeakAdapter(fake_planmypeak)
    output = adapter.transform([sample_library_item], _config())
    with pytest.raises(APIError):
        adapter.export(output, _config())
