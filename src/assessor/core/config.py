"""3-layer configuration system for Policy Assessor.

Loads and merges configuration from:
1. Default settings (built-in)
2. Project config (.assessor/config.yaml)
3. CLI parameters (override)
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Optional

import yaml
from rich.console import Console

console = Console()

CONFIG_DIR = ".assessor"

DEFAULT_CONFIG: dict = {
    "project": {
        "name": "",
    },
    "sources": {
        "frameworks_dir": "frameworks",
        "mappings_dir": "mappings",
    },
    "storage": {
        "analyses_dir": f"{CONFIG_DIR}/analyses",
    },
    "analysis": {
        "workers": 2,
        "max_recommendations": 10,
        "error_message_max_length": 500,
        "stale_after_minutes": 30,
    },
    "notifications": {
        "provider": "console",
        "webhook_url": "",
        "timeout_seconds": 5,
    },
}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dicts. Arrays are replaced, not merged."""
    result = {}
    for key in base:
        result[key] = base[key]
    for key, value in override.items():
        base_value = result.get(key)
        if isinstance(base_value, dict) and isinstance(value, dict):
            result[key] = deep_merge(base_value, value)
        else:
            result[key] = value
    return result


def load_project_config(project_path: Path) -> dict:
    """Load project configuration from .assessor/config.yaml."""
    config_path = project_path / CONFIG_DIR / "config.yaml"
    if not config_path.exists():
        return {}
    try:
        content = config_path.read_text(encoding="utf-8-sig")  # utf-8-sig strips BOM
        return yaml.safe_load(content) or {}
    except (OSError, yaml.YAMLError) as e:
        console.print(f"  [yellow]WARN[/yellow] Ignoring unreadable {config_path}: {e}")
        return {}


def resolve_path(config: dict, section: str, key: str) -> Path:
    """Resolve a configured directory relative to the project root."""
    value = Path(config.get(section, {}).get(key) or DEFAULT_CONFIG[section][key])
    if value.is_absolute():
        return value
    return Path(config.get("_project_path", ".")) / value


def get_effective_config(
    project_path: Path,
    cli_overrides: Optional[dict] = None,
) -> dict:
    """Get the fully resolved configuration for a project."""
    config = copy.deepcopy(DEFAULT_CONFIG)

    project_config = load_project_config(project_path)
    if project_config:
        config = deep_merge(config, project_config)

    if cli_overrides:
        config = deep_merge(config, cli_overrides)

    config["_project_path"] = str(project_path)

    return config
