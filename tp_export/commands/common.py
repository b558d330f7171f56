"""Shared command helpers."""

from __future__ import annotations

import json
from contextlib import nullcontext
from typing import Any, Dict, List, Tuple

import typer
from rich.markup import escape

from tp_export.adapters.intervals_plan import plan_bundle
from tp_export.core.api import IntervalsAPI, PlanMyPeakAPI, TrainingPeaksAPI
from tp_export.core.auth import TrainingPeaksAuth
from tp_export.core.config import api_client_kwargs, resolve_intervals_api_key, resolve_planmypeak_token
from tp_export.core.constants import INTERVALS_API_BASE
from tp_export.core.models import ExportResult
from tp_export.core.state import CLIState
from tp_export.utils.dates import chunk_date_range, plan_date_range


def get_state(ctx: typer.Context) -> CLIState:
    """Extract validated CLI state from Typer context."""
    state = ctx.obj
    if not isinstance(state, CLIState):
        raise typer.Exit(code=2)
    return state


def authenticate(state: CLIState, force: bool = False) -> Tuple[str, TrainingPeaksAPI]:
    """Login and return (token, api_client)."""
    base_url = state.trainingpeaks_base_url
    auth = TrainingPeaksAuth(config=state.config, base_url=base_url)
    token, _ = auth.login(force=force)
    api = TrainingPeaksAPI(token=token, base_url=base_url, **api_client_kwargs(state.config))
    return token, api


def intervals_client(state: CLIState, required: bool = True) -> IntervalsAPI:
    api_key = resolve_intervals_api_key(state.config)
    if required and not api_key:
        state.console.print(
            "Intervals.icu API key missing: set INTERVALS_API_KEY or intervals.api_key in the config file"
        )
        raise typer.Exit(code=2)
    intervals_cfg = state.section("intervals")
    return IntervalsAPI(
        api_key=api_key,
        athlete_id=str(intervals_cfg.get("athlete_id") or "0"),
        base_url=intervals_cfg.get("base_url") or INTERVALS_API_BASE,
        **api_client_kwargs(state.config),
    )


def planmypeak_client(state: CLIState, required: bool = True) -> PlanMyPeakAPI:
    token = resolve_planmypeak_token(state.config)
    if required and not token:
        state.console.print(
            "PlanMyPeak token missing: set PLANMYPEAK_TOKEN or planmypeak.token in the config file"
        )
        raise typer.Exit(code=2)
    pmp_cfg = state.section("planmypeak")
    kwargs = api_client_kwargs(state.config)
    if pmp_cfg.get("base_url"):
        kwargs["base_url"] = pmp_cfg["base_url"]
    return PlanMyPeakAPI(token=token, **kwargs)


def status(state: CLIState, message: str) -> Any:
    """Rich spinner, or a no-op context in plain/quiet mode."""
    if not state.show_progress:
        return nullcontext()
    return state.console.status(message)


def print_json_payload(state: CLIState, payload: Any) -> None:
    """Print JSON payload with plain-mode fallback for piping."""
    if state.plain_output:
        typer.echo(json.dumps(payload, separators=(",", ":"), default=str))
        return
    state.console.print_json(data=payload, default=str)


def fetch_plan_bundle(api: TrainingPeaksAPI, plan: Dict[str, Any]) -> Dict[str, Any]:
    """Fetch workouts, notes and events for a plan over its whole date window."""
    plan_id = plan.get("planId")
    start, end = plan_date_range(plan)
    workouts: List[Dict[str, Any]] = []
    notes: List[Dict[str, Any]] = []
    events: List[Dict[str, Any]] = []

    for chunk_start, chunk_end in chunk_date_range(start, end, chunk_days=90):
        first = chunk_start.strftime("%Y-%m-%d")
        last = chunk_end.strftime("%Y-%m-%d")
        workouts.extend(api.get_plan_workouts(plan_id, first, last))
        notes.extend(api.get_plan_notes(plan_id, first, last))
        events.extend(api.get_plan_events(plan_id, first, last))

    return plan_bundle(plan, workouts, notes, events)


def print_export_result(state: CLIState, result: ExportResult) -> None:
    """Render an ExportResult in the active output mode."""
    if state.json_output:
        print_json_payload(state, result.to_dict())
        return

    if state.plain_output:
        typer.echo(f"success\t{str(result.success).lower()}")
        typer.echo(f"name\t{result.file_name}")
        typer.echo(f"items_exported\t{result.items_exported}")
        for warning in result.warnings:
            typer.echo(f"warning\t{warning.field}\t{warning.message}")
        for message in result.errors:
            typer.echo(f"error\t{message}")
        return

    headline = "Export complete" if result.success else "Export failed"
    state.console.print(f"{headline}: {escape(result.file_name)} ({result.items_exported} item(s) exported)")
    for warning in result.warnings:
        state.console.print(f"[yellow]warning[/yellow] {escape(warning.field)}: {escape(warning.message)}")
    for message in result.errors:
        state.console.print(f"[red]error[/red] {escape(message)}")


def print_export_results(state: CLIState, results: List[ExportResult]) -> None:
    """Render one or several ExportResults; a single result prints as before."""
    if len(results) == 1:
        print_export_result(state, results[0])
        return

    if state.json_output:
        print_json_payload(
            state,
            {
                "success": all(result.success for result in results),
                "itemsExported": sum(result.items_exported for result in results),
                "results": [result.to_dict() for result in results],
            },
        )
        return

    for result in results:
        print_export_result(state, result)
