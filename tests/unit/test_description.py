from tp_export.exporters.description import (
    build_intervals_description,
    compose_description,
    escape_non_script_text,
)
from tp_export.exporters.intervals_text import render_intervals_text


def test_composes_structure_notes_and_coach_comments(sample_library_item) -> None:  # type: ignore[no-untyped-def]
    description = build_intervals_description(sample_library_item)
    structure_text = render_intervals_text(sample_library_item["structure"])

    assert description == (
        f"{structure_text}\n\n"
        "Main set focus on smooth cadence\n\n"
        "- - - -\n"
        "Coach Notes:\n"
        "Keep breathing controlled"
    )
    assert description.index(structure_text) < description.index("Main set") < description.index("- - - -")


def test_planned_metrics_are_not_repeated(sample_library_item) -> None:  # type: ignore[no-untyped-def]
    description = build_intervals_description(sample_library_item)

    assert "TSS" not in description
    assert "IF" not in description
    assert "72" not in description


def test_fallback_when_nothing_to_say() -> None:
    assert compose_description(None, None, None) == "Workout from TrainingPeaks"
    assert compose_description("", "   ", "") == "Workout from TrainingPeaks"


def test_notes_only() -> None:
    assert compose_description(None, "Just ride", None) == "Just ride"


def test_comments_without_structure() -> None:
    assert compose_description(None, None, "Hydrate") == "- - - -\nCoach Notes:\nHydrate"


def test_leading_markers_are_escaped() -> None:
    assert escape_non_script_text("- not a step\n* nor this\nplain") == "`- not a step\n`* nor this\nplain"
    assert compose_description("- 5m", "- easy spin", None) == "- 5m\n\n`- easy spin"


def test_precomputed_structure_text_is_used() -> None:
    item = {"structure": None, "description": "Notes"}
    assert build_intervals_description(item, structure_text="- 1m") == "- 1m\n\nNotes"
