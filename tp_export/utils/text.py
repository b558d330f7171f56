"""Name handling shared by exporters and destination lookups."""

from __future__ import annotations

import re
from typing import Any


def name_key(value: Any) -> str:
    """Case- and whitespace-insensitive key for matching folders, libraries and items by name."""
    return " ".join(str(value or "").split()).lower()


def slugify(value: str, max_len: int = 50) -> str:
    """File name for a saved export result."""
    slug = re.sub(r"[^a-z0-9]+", "-", name_key(value)).strip("-")
    return slug[:max_len] or "export"
