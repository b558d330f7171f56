"""Configuration loading."""

from __future__ import annotations

import copy
import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

try:  # Python 3.11+
    import tomllib  # type: ignore[attr-defined]
except ModuleNotFoundError:  # Python 3.9-3.10
    import tomli as tomllib  # type: ignore[no-redef]

from tp_export.core.constants import (
    CONFLICT_ACTIONS,
    DEFAULT_LIBRARY_NAME,
    INTERVALS_API_BASE,
    PLAN_FOLDER_VISIBILITY,
    PLAN_NOTE_DEFAULT_COLOR,
    PLANMYPEAK_API_BASE,
    TP_API_BASE,
)


class ConfigError(RuntimeError):
    """Raised when config file parsing or validation fails."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def expand_path(path_str: str) -> Path:
    """Expand user/env vars and return absolute path."""
    return Path(os.path.expandvars(path_str)).expanduser().resolve()


def default_data_dir() -> Path:
    raw = os.getenv("TP_EXPORT_DATA_DIR", "~/.local/share/tp-export")
    return expand_path(raw)


def default_config_path() -> Path:
    raw = os.getenv("TP_EXPORT_CONFIG_FILE", "~/.config/tp-export/config.toml")
    return expand_path(raw)


def _default_config() -> Dict[str, Any]:
    data_dir = default_data_dir()
    return {
        "auth": {
            "username": None,
            "cookie_store": str(data_dir / "cookies.json"),
        },
        "trainingpeaks": {
            "base_url": TP_API_BASE,
        },
        "intervals": {
            "api_key": "",
            "athlete_id": "0",
            "base_url": INTERVALS_API_BASE,
        },
        "planmypeak": {
            "token": "",
            "base_url": PLANMYPEAK_API_BASE,
        },
        "export": {
            "library_name": DEFAULT_LIBRARY_NAME,
            "conflict_action": "append",
            "plan_visibility": PLAN_FOLDER_VISIBILITY,
            "note_color": PLAN_NOTE_DEFAULT_COLOR,
            "output_directory": "./exports",
        },
        "api": {
            "rate_limit_delay": 1.0,
            "max_retries": 3,
            "timeout_seconds": 30,
        },
    }


DEFAULT_CONFIG: Dict[str, Any] = _default_config()


def _read_config(path: Path) -> Dict[str, Any]:
    suffix = path.suffix.lower()
    try:
        text = path.read_text()
    except OSError as exc:
        raise ConfigError(f"Cannot read config file {path}: {exc}") from exc

    if suffix == ".json":
        try:
            loaded = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in config file {path}: {exc}") from exc
    else:
        try:
            loaded = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain an object/table at the root")
    return loaded


def validate_conflict_action(value: Any) -> str:
    action = str(value or "").strip().lower()
    if action not in CONFLICT_ACTIONS:
        raise ConfigError(f"Invalid conflict_action {value!r}; expected one of: {', '.join(CONFLICT_ACTIONS)}")
    return action


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from disk, merged with defaults."""
    cfg_path = path or default_config_path()
    cfg = _default_config()

    if cfg_path.exists():
        cfg = _deep_merge(cfg, _read_config(cfg_path))

    cfg["export"]["conflict_action"] = validate_conflict_action(cfg["export"].get("conflict_action"))
    return cfg


def resolve_cookie_store(config: Dict[str, Any]) -> Path:
    """Resolve cookie file path from env/config."""
    raw = os.getenv("TP_EXPORT_COOKIE_STORE") or config.get("auth", {}).get("cookie_store")
    if not raw:
        raw = str(default_data_dir() / "cookies.json")
    return expand_path(raw)


def resolve_output_dir(config: Dict[str, Any], explicit: Optional[Path] = None) -> Path:
    """Resolve the directory for saved export results, CLI override first."""
    if explicit is not None:
        return explicit.expanduser().resolve()
    raw = os.getenv("TP_EXPORT_OUTPUT_DIR") or config.get("export", {}).get("output_directory", "./exports")
    return expand_path(raw)


def resolve_intervals_api_key(config: Dict[str, Any]) -> str:
    return os.getenv("INTERVALS_API_KEY") or str(config.get("intervals", {}).get("api_key") or "")


def resolve_planmypeak_token(config: Dict[str, Any]) -> str:
    return os.getenv("PLANMYPEAK_TOKEN") or str(config.get("planmypeak", {}).get("token") or "")


def api_client_kwargs(config: Dict[str, Any]) -> Dict[str, Any]:
    """Retry and timeout settings shared by every HTTP client."""
    api_cfg = config.get("api", {})
    return {
        "rate_limit_delay": float(api_cfg.get("rate_limit_delay", 1.0)),
        "max_retries": int(api_cfg.get("max_retries", 3)),
        "timeout_seconds": int(api_cfg.get("timeout_seconds", 30)),
    }
