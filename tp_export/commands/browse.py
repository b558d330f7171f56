"""Browse TrainingPeaks workout libraries and training plans."""

from __future__ import annotations

from typing import Any, Dict, List

import typer
from rich.table import Table

from tp_export.commands.common import authenticate, get_state, print_json_payload, status
from tp_export.core.mapping import map_tp_workout_type_to_intervals_type
from tp_export.exporters.intervals_text import render_intervals_text
from tp_export.utils.formatting import format_hours


def _item_row(item: Dict[str, Any]) -> List[str]:
    tss = item.get("tssPlanned")
    return [
        str(item.get("exerciseLibraryItemId", "")),
        str(item.get("itemName") or "Untitled"),
        map_tp_workout_type_to_intervals_type(item.get("workoutTypeId")),
        format_hours(item.get("totalTimePlanned")),
        f"{float(tss):.0f}" if tss is not None else "-",
    ]


def libraries_command(ctx: typer.Context) -> None:
    """List TrainingPeaks workout libraries."""
    state = get_state(ctx)
    _, api = authenticate(state)
    with status(state, "Fetching libraries..."):
        libraries = api.get_libraries()

    if state.json_output:
        print_json_payload(state, {"libraries": libraries})
        return

    if state.plain_output:
        typer.echo("id\tname")
        for library in libraries:
            typer.echo(f"{library.get('exerciseLibraryId')}\t{library.get('libraryName')}")
        return

    table = Table(title=f"Workout libraries ({len(libraries)})")
    table.add_column("ID")
    table.add_column("Name")
    for library in libraries:
        table.add_row(str(library.get("exerciseLibraryId", "")), str(library.get("libraryName") or ""))
    state.console.print(table)


def items_command(
    ctx: typer.Context,
    library_id: str = typer.Argument(..., help="TrainingPeaks library id"),
    render: bool = typer.Option(False, "--render", help="Print interval text for each item"),
) -> None:
    """List the items of a TrainingPeaks workout library."""
    state = get_state(ctx)
    _, api = authenticate(state)
    with status(state, f"Fetching library {library_id}..."):
        items = api.get_library_items(library_id)

    if state.json_output:
        payload = []
        for item in items:
            entry = dict(item)
            if render:
                entry["intervalsText"] = render_intervals_text(item.get("structure"))
            payload.append(entry)
        print_json_payload(state, {"items": payload})
        return

    if state.plain_output:
        typer.echo("id\tname\tsport\tduration\ttss")
        for item in items:
            typer.echo("\t".join(_item_row(item)))
            if render:
                typer.echo(render_intervals_text(item.get("structure")) or "(no structure)")
        return

    table = Table(title=f"Library {library_id} ({len(items)} items)")
    for column in ("ID", "Name", "Sport", "Duration", "TSS"):
        table.add_column(column)
    for item in items:
        table.add_row(*_item_row(item))
    state.console.print(table)

    if render:
        for item in items:
            state.console.rule(str(item.get("itemName") or "Untitled"))
            state.console.print(render_intervals_text(item.get("structure")) or "(no structure)", markup=False)


def plans_command(ctx: typer.Context) -> None:
    """List TrainingPeaks training plans."""
    state = get_state(ctx)
    _, api = authenticate(state)
    with status(state, "Fetching training plans..."):
        plans = api.get_training_plans()

    if state.json_output:
        print_json_payload(state, {"plans": plans})
        return

    if state.plain_output:
        typer.echo("id\ttitle\tstart\tend")
        for plan in plans:
            typer.echo(
                f"{plan.get('planId')}\t{plan.get('title')}\t"
                f"{str(plan.get('startDate') or '')[:10]}\t{str(plan.get('endDate') or '')[:10]}"
            )
        return

    table = Table(title=f"Training plans ({len(plans)})")
    for column in ("ID", "Title", "Start", "End"):
        table.add_column(column)
    for plan in plans:
        table.add_row(
            str(plan.get("planId", "")),
            str(plan.get("title") or ""),
            str(plan.get("startDate") or "")[:10],
            str(plan.get("endDate") or "")[:10],
        )
    state.console.print(table)
