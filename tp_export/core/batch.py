"""Export several TrainingPeaks libraries in one run.

``separate`` runs the pipeline once per library and yields one result each.
``combined`` merges every library's items into a single pipeline run; a
library that cannot be fetched is logged and reported as a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from tp_export.core.api import APIError
from tp_export.core.errors import log_error_with_auth_downgrade
from tp_export.core.models import ExportResult, ValidationMessage
from tp_export.core.pipeline import ExportPipeline

logger = logging.getLogger(__name__)

STRATEGY_SEPARATE = "separate"
STRATEGY_COMBINED = "combined"
STRATEGIES = (STRATEGY_SEPARATE, STRATEGY_COMBINED)

FETCH_ERRORS = (APIError, ValueError, OSError)


@dataclass(frozen=True)
class LibrarySource:
    """A TrainingPeaks library id, or an input file standing in for one."""

    key: str
    name: str
    path: Optional[Path] = None


ItemLoader = Callable[[LibrarySource], List[Dict[str, Any]]]
ConfigFactory = Callable[[Optional[LibrarySource]], Any]


def validate_strategy(value: Optional[str]) -> str:
    normalized = (value or STRATEGY_SEPARATE).strip().lower()
    if normalized not in STRATEGIES:
        raise ValueError(f"strategy must be one of: {', '.join(STRATEGIES)} (got {value!r})")
    return normalized


def export_libraries(
    pipeline: ExportPipeline,
    sources: Sequence[LibrarySource],
    load_items: ItemLoader,
    config_for: ConfigFactory,
    strategy: str = STRATEGY_SEPARATE,
    dry_run: bool = False,
) -> List[ExportResult]:
    """Export ``sources`` with ``strategy``; never raises for a single bad library.

    ``config_for`` gets the source for separate runs and None for the
    combined run.
    """
    if strategy == STRATEGY_COMBINED:
        return [_export_combined(pipeline, sources, load_items, config_for, dry_run)]
    return [_export_separate(pipeline, source, load_items, config_for, dry_run) for source in sources]


def _export_separate(
    pipeline: ExportPipeline,
    source: LibrarySource,
    load_items: ItemLoader,
    config_for: ConfigFactory,
    dry_run: bool,
) -> ExportResult:
    try:
        items = load_items(source)
    except FETCH_ERRORS as exc:
        log_error_with_auth_downgrade(logger, f"Failed to fetch library {source.name}:", exc)
        return ExportResult(
            success=False,
            file_name=source.name,
            format=pipeline.adapter.format,
            items_exported=0,
            errors=[str(exc) or exc.__class__.__name__],
        )
    logger.info("Exporting %d item(s) from library %s", len(items), source.name)
    return pipeline.run(items, config_for(source), dry_run=dry_run)


def _export_combined(
    pipeline: ExportPipeline,
    sources: Sequence[LibrarySource],
    load_items: ItemLoader,
    config_for: ConfigFactory,
    dry_run: bool,
) -> ExportResult:
    items: List[Dict[str, Any]] = []
    skipped: List[ValidationMessage] = []
    for source in sources:
        try:
            items.extend(load_items(source))
        except FETCH_ERRORS as exc:
            log_error_with_auth_downgrade(logger, f"Failed to fetch library {source.name}:", exc)
            skipped.append(
                ValidationMessage(field=f"libraries:{source.key}", message=f'Skipped library "{source.name}": {exc}')
            )

    logger.info("Exporting %d item(s) combined from %d library(ies)", len(items), len(sources))
    result = pipeline.run(items, config_for(None), dry_run=dry_run)
    result.warnings = skipped + list(result.warnings)
    return result
