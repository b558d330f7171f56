"""Persist export results as JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from tp_export.core.models import ExportResult
from tp_export.utils.text import slugify


def write_json(path: Path, payload: Any) -> Path:
    """Write payload as pretty JSON and return path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, default=str) + "\n")
    return path


def save_export_result(result: ExportResult, path: Path) -> Path:
    """Write an ExportResult; a directory path gets a file named after the result."""
    if path.is_dir() or not path.suffix:
        path = path / f"{slugify(result.file_name)}.json"
    return write_json(path, result.to_dict())
