"""Offline rendering of library items and structures."""

from __future__ import annotations

from pathlib import Path

import typer

from tp_export.commands.common import get_state, print_json_payload
from tp_export.core.mapping import map_tp_workout_type_to_intervals_type
from tp_export.core.structure import parse_structure
from tp_export.exporters.description import build_intervals_description
from tp_export.exporters.intervals_text import render_intervals_text
from tp_export.exporters.workout_doc import build_workout_doc
from tp_export.utils.parsing import as_library_item, load_item_input


def render_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON or YAML library item or structure"),
    doc: bool = typer.Option(False, "--doc", help="Print the workout builder document"),
    description: bool = typer.Option(False, "--description", help="Print the composed Intervals.icu description"),
) -> None:
    """Render a workout structure as Intervals.icu interval text."""
    state = get_state(ctx)
    if doc and description:
        raise typer.BadParameter("--doc and --description are mutually exclusive")

    records = [as_library_item(record) for record in load_item_input(file)]
    if not records:
        state.console.print(f"No workout found in {file}")
        raise typer.Exit(code=1)

    outputs = []
    for item in records:
        structure = parse_structure(item.get("structure"))
        text = render_intervals_text(structure) if structure else None
        entry = {"name": item.get("itemName") or item.get("title") or "", "text": text}
        if doc:
            document = build_workout_doc(structure, map_tp_workout_type_to_intervals_type(item.get("workoutTypeId")))
            entry["doc"] = document.to_dict() if document else None
        if description:
            entry["description"] = build_intervals_description(item, structure_text=text)
        outputs.append(entry)

    if state.json_output or doc:
        print_json_payload(state, outputs[0] if len(outputs) == 1 else outputs)
    else:
        for entry in outputs:
            body = entry["description"] if description else entry["text"]
            if len(outputs) > 1:
                typer.echo(f"# {entry['name']}")
            typer.echo(body if body is not None else "(no structure)")

    if not description and not any(entry["text"] for entry in outputs):
        raise typer.Exit(code=1)
