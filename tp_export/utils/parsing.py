"""Loading library items and structures from JSON or YAML input."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


def _parse_text(text: str, suffix: str = "") -> Any:
    if suffix in {".yaml", ".yml"}:
        return yaml.safe_load(text)
    if suffix == ".json":
        return json.loads(text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return yaml.safe_load(text)


def load_item_input(file_path: Optional[Path], read_stdin: bool = False, stdin_text: str = "") -> List[Dict[str, Any]]:
    """Load library item object(s) from a file or stdin text."""
    if file_path:
        raw_data = _parse_text(file_path.read_text(), file_path.suffix.lower())
    elif read_stdin:
        text = stdin_text.strip()
        if not text:
            return []
        raw_data = _parse_text(text)
    else:
        return []

    if isinstance(raw_data, dict):
        return [raw_data]
    if isinstance(raw_data, list):
        return [item for item in raw_data if isinstance(item, dict)]
    return []


def as_library_item(record: Dict[str, Any]) -> Dict[str, Any]:
    """Wrap a bare structure document as a library item.

    A record with a top-level ``structure`` list is the structure itself;
    anything else is assumed to already be a library item.
    """
    if isinstance(record.get("structure"), list):
        return {"itemName": record.get("name", ""), "structure": record}
    return record
