"""Export TrainingPeaks libraries and plans to Intervals.icu or PlanMyPeak."""

from __future__ import annotations

from contextlib import nullcontext
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import typer

from tp_export.adapters.base import ExportAdapter
from tp_export.adapters.intervals import IntervalsIcuAdapter
from tp_export.adapters.intervals_plan import IntervalsPlanAdapter
from tp_export.adapters.planmypeak import PlanMyPeakAdapter
from tp_export.adapters.planmypeak_plan import PlanMyPeakPlanAdapter
from tp_export.commands.common import (
    authenticate,
    fetch_plan_bundle,
    get_state,
    intervals_client,
    planmypeak_client,
    print_export_results,
    status,
)
from tp_export.core.batch import STRATEGY_SEPARATE, ItemLoader, LibrarySource, export_libraries, validate_strategy
from tp_export.core.config import ConfigError, resolve_output_dir, validate_conflict_action
from tp_export.core.constants import DESTINATION_INTERVALS, DESTINATION_PLANMYPEAK, DESTINATIONS
from tp_export.core.models import (
    ExportResult,
    IntervalsExportConfig,
    PlanMyPeakExportConfig,
    PlanMyPeakPlanExportConfig,
)
from tp_export.core.pipeline import ExportPipeline, ExportProgress
from tp_export.core.state import CLIState
from tp_export.exporters.json_export import save_export_result
from tp_export.utils.dates import parse_date, validate_date
from tp_export.utils.parsing import load_item_input

app = typer.Typer(help="Export TrainingPeaks workouts to another platform", no_args_is_help=True)


def _conflict(state: CLIState, conflict: Optional[str]) -> str:
    try:
        return validate_conflict_action(conflict or state.section("export").get("conflict_action"))
    except ConfigError as exc:
        raise typer.BadParameter(str(exc))


def _progress_pipeline(adapter: ExportAdapter, spinner: Any) -> ExportPipeline:
    def on_progress(progress: ExportProgress) -> None:
        if not isinstance(spinner, nullcontext):
            spinner.update(f"[{progress.phase.value}] {progress.message}")

    return ExportPipeline(adapter, progress=on_progress)


def _run_pipeline(
    state: CLIState,
    adapter: ExportAdapter,
    items: List[Any],
    config: Any,
    dry_run: bool,
) -> ExportResult:
    spinner = status(state, f"Exporting to {adapter.name}...")
    with spinner:
        return _progress_pipeline(adapter, spinner).run(items, config, dry_run=dry_run)


def _finish(state: CLIState, results: List[ExportResult], save: bool, output: Optional[Path]) -> None:
    print_export_results(state, results)
    if save:
        target = resolve_output_dir(state.config, explicit=output)
        if len(results) > 1 and target.suffix:
            target = target.parent
        for result in results:
            path = save_export_result(result, target)
            if not state.json_output and not state.quiet:
                state.console.print(f"Saved result to {path}")
    if not all(result.success for result in results):
        raise typer.Exit(code=1)


def _library_sources(
    state: CLIState,
    library_ids: List[str],
    input_files: List[Path],
) -> Tuple[List[LibrarySource], ItemLoader]:
    """Resolve sources and a loader reading input files or TrainingPeaks libraries."""
    sources = [LibrarySource(key=str(path), name=path.stem, path=path) for path in input_files]
    if not library_ids:
        return sources, lambda source: load_item_input(source.path)

    _, api = authenticate(state)

    def load_items(source: LibrarySource) -> List[Dict[str, Any]]:
        if source.path is not None:
            return load_item_input(source.path)
        return api.get_library_items(source.key)

    names: Dict[str, str] = {}
    if len(library_ids) + len(input_files) > 1:
        with status(state, "Fetching library names..."):
            for library in api.get_libraries():
                names[str(library.get("exerciseLibraryId"))] = str(library.get("libraryName") or "")
    id_sources = [
        LibrarySource(key=str(library_id), name=names.get(str(library_id)) or f"Library {library_id}")
        for library_id in library_ids
    ]
    return id_sources + sources, load_items


@app.command("library")
def export_library_command(
    ctx: typer.Context,
    library_ids: Optional[List[str]] = typer.Argument(None, help="TrainingPeaks library id(s)"),
    destination: str = typer.Option(DESTINATION_INTERVALS, "--to", help="Destination: intervalsicu|planmypeak"),
    name: Optional[str] = typer.Option(None, "--name", help="Destination folder or library name"),
    target_library_id: Optional[str] = typer.Option(
        None, "--library-id", help="Existing PlanMyPeak library id to export into"
    ),
    conflict: Optional[str] = typer.Option(None, "--conflict", help="Existing folder/library: append|replace"),
    strategy: str = typer.Option(
        STRATEGY_SEPARATE, "--strategy", help="Several libraries: separate|combined"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Transform and validate only"),
    save: bool = typer.Option(False, "--save", help="Save the export result(s) as JSON"),
    output: Optional[Path] = typer.Option(None, "--output", help="Directory or file for --save"),
    input_files: Optional[List[Path]] = typer.Option(
        None, "--input", exists=True, dir_okay=False, help="Read library items from a JSON/YAML file (repeatable)"
    ),
) -> None:
    """Export one or more TrainingPeaks workout libraries."""
    state = get_state(ctx)
    if destination not in DESTINATIONS:
        raise typer.BadParameter(f"--to must be one of: {', '.join(DESTINATIONS)}")
    if not library_ids and not input_files:
        raise typer.BadParameter("Provide a LIBRARY_ID or --input FILE")
    try:
        strategy = validate_strategy(strategy)
    except ValueError as exc:
        raise typer.BadParameter(str(exc))
    conflict_action = _conflict(state, conflict)

    sources, load_items = _library_sources(state, list(library_ids or []), list(input_files or []))
    per_library = strategy == STRATEGY_SEPARATE and len(sources) > 1

    adapter: ExportAdapter
    if destination == DESTINATION_PLANMYPEAK:
        adapter = PlanMyPeakAdapter(planmypeak_client(state, required=not dry_run))
    else:
        adapter = IntervalsIcuAdapter(intervals_client(state, required=not dry_run))
    default_library_name = name or state.section("export").get("library_name")

    def config_for(source: Optional[LibrarySource]) -> Any:
        # Separate runs over several libraries are named after each library.
        own_name = source.name if per_library and source is not None else None
        if destination == DESTINATION_PLANMYPEAK:
            if own_name:
                return PlanMyPeakExportConfig(
                    library_id=target_library_id,
                    library_name=own_name,
                    conflict_action=conflict_action,
                    file_name=own_name,
                )
            return PlanMyPeakExportConfig(
                library_id=target_library_id,
                library_name=default_library_name,
                conflict_action=conflict_action,
            )
        if own_name:
            return IntervalsExportConfig(folder_name=own_name, conflict_action=conflict_action, file_name=own_name)
        return IntervalsExportConfig(folder_name=name, conflict_action=conflict_action)

    spinner = status(state, f"Exporting to {adapter.name}...")
    with spinner:
        results = export_libraries(
            _progress_pipeline(adapter, spinner),
            sources,
            load_items,
            config_for,
            strategy=strategy,
            dry_run=dry_run,
        )
    _finish(state, results, save, output)


@app.command("plan")
def export_plan_command(
    ctx: typer.Context,
    plan_id: Optional[str] = typer.Argument(None, help="TrainingPeaks training plan id"),
    destination: str = typer.Option(DESTINATION_INTERVALS, "--to", help="Destination: intervalsicu|planmypeak"),
    name: Optional[str] = typer.Option(None, "--name", help="Plan folder or training plan name"),
    library_name: Optional[str] = typer.Option(
        None, "--library-name", help="PlanMyPeak library for the plan's workouts, when first created"
    ),
    conflict: Optional[str] = typer.Option(
        None, "--conflict", help="Existing Intervals.icu plan folder: append|replace"
    ),
    start: Optional[str] = typer.Option(
        None, "--start", help="Pin the plan start date (YYYY-MM-DD)", callback=validate_date
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Transform and validate only"),
    save: bool = typer.Option(False, "--save", help="Save the export result as JSON"),
    output: Optional[Path] = typer.Option(None, "--output", help="Directory or file for --save"),
    input_file: Optional[Path] = typer.Option(
        None, "--input", exists=True, dir_okay=False, help="Read a plan bundle from a JSON/YAML file"
    ),
) -> None:
    """Export a whole TrainingPeaks plan as an Intervals.icu PLAN folder or a PlanMyPeak training plan."""
    state = get_state(ctx)
    if destination not in DESTINATIONS:
        raise typer.BadParameter(f"--to must be one of: {', '.join(DESTINATIONS)}")
    if plan_id is None and input_file is None:
        raise typer.BadParameter("Provide a PLAN_ID or --input FILE")
    conflict_action = _conflict(state, conflict)

    if input_file is not None:
        bundles = load_item_input(input_file)
        if not bundles:
            state.console.print(f"No plan bundle found in {input_file}")
            raise typer.Exit(code=1)
        bundle = bundles[0]
    else:
        _, api = authenticate(state)
        with status(state, f"Fetching plan {plan_id}..."):
            plan = next(
                (entry for entry in api.get_training_plans() if str(entry.get("planId")) == str(plan_id)),
                None,
            )
            if plan is None:
                state.console.print(f"Training plan {plan_id} not found")
                raise typer.Exit(code=1)
            bundle = fetch_plan_bundle(api, plan)

    start_date = parse_date(start) if start else None
    adapter: ExportAdapter
    config: Any
    if destination == DESTINATION_PLANMYPEAK:
        adapter = PlanMyPeakPlanAdapter(planmypeak_client(state, required=not dry_run))
        config = PlanMyPeakPlanExportConfig(plan_name=name, library_name=library_name, start_date=start_date)
    else:
        export_cfg = state.section("export")
        adapter = IntervalsPlanAdapter(intervals_client(state, required=not dry_run))
        config = IntervalsExportConfig(
            folder_name=name,
            conflict_action=conflict_action,
            file_name="intervals-plan-export",
            start_date=start_date,
            visibility=str(export_cfg.get("plan_visibility") or "PRIVATE"),
            note_color=str(export_cfg.get("note_color") or "blue"),
        )

    result = _run_pipeline(state, adapter, [bundle], config, dry_run)
    _finish(state, [result], save, output)
