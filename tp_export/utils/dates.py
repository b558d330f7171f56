"""Date parsing and plan date-range helpers."""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta
from typing import Any, Dict, Generator, Optional, Tuple

import typer

from tp_export.core.placement import parse_item_date

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_PLAN_WEEKS = 52


def validate_date(value: Optional[str]) -> Optional[str]:
    """Typer callback that validates YYYY-MM-DD format for date options."""
    if value is None:
        return value
    if not _DATE_RE.match(value):
        raise typer.BadParameter(f"Invalid date '{value}'. Expected format: YYYY-MM-DD (e.g. 2026-01-15)")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise typer.BadParameter(f"Invalid date '{value}'. Expected format: YYYY-MM-DD (e.g. 2026-01-15)")
    return value


def parse_date(value: str) -> date:
    """Parse YYYY-MM-DD date string."""
    return datetime.strptime(value, "%Y-%m-%d").date()


def plan_date_range(plan: Dict[str, Any], today: Optional[date] = None) -> Tuple[date, date]:
    """Inclusive date window that holds every item of a training plan.

    Uses the plan's ``startDate``/``endDate``; a missing end spans a year from
    the start and a missing start falls back to ``today``.
    """
    start = parse_item_date(plan.get("startDate")) or today or date.today()
    end = parse_item_date(plan.get("endDate"))
    if end is None or end < start:
        end = start + timedelta(weeks=DEFAULT_PLAN_WEEKS) - timedelta(days=1)
    return start, end


def chunk_date_range(
    start: date,
    end: date,
    chunk_days: int = 90,
) -> Generator[Tuple[date, date], None, None]:
    """Yield inclusive date chunks from start..end."""
    cursor = start
    while cursor <= end:
        chunk_end = min(cursor + timedelta(days=chunk_days - 1), end)
        yield cursor, chunk_end
        cursor = chunk_end + timedelta(days=1)
