"""Per-invocation CLI state: output mode, loaded config and console."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from rich.console import Console

from tp_export.core.constants import TP_API_BASE


@dataclass
class CLIState:
    json_output: bool
    plain_output: bool
    verbose: bool
    quiet: bool
    config_path: Path
    config: Dict[str, Any]
    console: Console

    def section(self, name: str) -> Dict[str, Any]:
        """Return one config table, empty when absent or malformed."""
        value = self.config.get(name)
        return value if isinstance(value, dict) else {}

    @property
    def show_progress(self) -> bool:
        return not (self.plain_output or self.json_output or self.quiet)

    @property
    def trainingpeaks_base_url(self) -> str:
        return str(self.section("trainingpeaks").get("base_url") or TP_API_BASE)
