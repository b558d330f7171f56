"""Compose Intervals.icu workout descriptions."""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional

from tp_export.core.constants import COACH_NOTES_HEADER, DEFAULT_DESCRIPTION, DESCRIPTION_SEPARATOR
from tp_export.exporters.intervals_text import render_intervals_text

_LEADING_MARKER = re.compile(r"^([-*])", re.MULTILINE)


def escape_non_script_text(text: str) -> str:
    """Escape leading ``-``/``*`` so Intervals does not parse notes as steps."""
    return _LEADING_MARKER.sub(r"`\1", text)


def _clean(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def compose_description(
    structure_text: Optional[str],
    description: Optional[str] = None,
    coach_comments: Optional[str] = None,
) -> str:
    """Assemble structure text, notes and coach comments.

    Planned metrics (IF, TSS, elevation) are never repeated here because the
    destination stores them as fields.
    """
    parts: List[str] = []
    if structure_text:
        parts.append(structure_text)
    notes = _clean(description)
    if notes:
        parts.append(escape_non_script_text(notes))

    comments = _clean(coach_comments)
    if comments:
        parts.append(f"{DESCRIPTION_SEPARATOR}\n{COACH_NOTES_HEADER}\n{escape_non_script_text(comments)}")

    if not parts:
        return DEFAULT_DESCRIPTION
    return "\n\n".join(parts)


def build_intervals_description(item: Dict[str, Any], structure_text: Optional[str] = None) -> str:
    """Build the description for a TrainingPeaks library item or plan workout."""
    rendered = structure_text if structure_text is not None else render_intervals_text(item.get("structure"))
    return compose_description(rendered, item.get("description"), item.get("coachComments"))
