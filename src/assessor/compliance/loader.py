"""Framework and mapping YAML loading.

Framework files describe categories either nested::

    categories:
      - code: AC
        name: Access Control
        controls: [...]
        categories: [...]      # sub-categories

or flat, with ``parent`` naming another category id. Category and control
ids default to their codes; sort order defaults to declaration order.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import ValidationError
from rich.console import Console

from ..core.errors import InvalidFrameworkError
from ..models.framework import Category, Control, Framework, PolicyControlMapping
from .framework import validate_hierarchy

console = Console()


def _read_yaml(path: Path) -> Any:
    return yaml.safe_load(path.read_text(encoding="utf-8-sig"))


def get_available_frameworks(frameworks_dir: Path) -> list[dict]:
    """Get list of all framework definitions in a directory."""
    frameworks: list[dict] = []

    if not frameworks_dir.exists():
        return frameworks

    for yaml_file in sorted(frameworks_dir.rglob("*.yaml")):
        try:
            content = _read_yaml(yaml_file)
        except (OSError, yaml.YAMLError) as e:
            console.print(f"  [yellow]WARN[/yellow] Skipping {yaml_file.name}: {e}")
            continue
        if isinstance(content, dict) and content.get("id"):
            frameworks.append({
                "id": str(content["id"]),
                "code": str(content.get("code") or content["id"]),
                "name": content.get("name", ""),
                "version": str(content.get("version", "")),
                "description": content.get("description", ""),
                "path": str(yaml_file),
            })

    return frameworks


def get_framework_by_id(framework_id: str, frameworks_dir: Path) -> Optional[Framework]:
    """Load a specific framework by ID."""
    frameworks = get_available_frameworks(frameworks_dir)
    match = next((f for f in frameworks if f["id"] == framework_id), None)

    if not match:
        return None

    return build_framework(_read_yaml(Path(match["path"])))


def _collect_categories(
    entries: list[dict],
    parent_id: Optional[str],
    out: list[tuple[dict, Optional[str], int]],
) -> None:
    for position, entry in enumerate(entries or []):
        out.append((entry, parent_id, position))
        entry_id = str(entry.get("id") or entry["code"])
        _collect_categories(entry.get("categories") or [], entry_id, out)


def _build_controls(entries: list[dict], category_id: str) -> tuple[Control, ...]:
    controls: list[Control] = []
    for position, ctrl in enumerate(entries or []):
        code = str(ctrl["code"])
        controls.append(Control(
            id=str(ctrl.get("id") or code),
            code=code,
            title=ctrl.get("title", ""),
            description=ctrl.get("description") or "",
            sort_order=int(ctrl.get("sort_order", position)),
            category_id=category_id,
            policy_type=ctrl.get("policy_type"),
        ))
    return tuple(controls)


def build_framework(data: Any) -> Framework:
    """Build and validate a Framework from a parsed YAML document."""
    if not isinstance(data, dict) or not data.get("id"):
        raise InvalidFrameworkError("Framework definition must be a mapping with an 'id'")

    flat: list[tuple[dict, Optional[str], int]] = []
    try:
        _collect_categories(data.get("categories") or [], None, flat)

        categories: list[Category] = []
        for entry, nested_parent, position in flat:
            code = str(entry["code"])
            category_id = str(entry.get("id") or code)
            parent = entry.get("parent")
            categories.append(Category(
                id=category_id,
                code=code,
                name=entry.get("name", code),
                sort_order=int(entry.get("sort_order", position)),
                parent_id=str(parent) if parent is not None else nested_parent,
                high_priority=bool(entry.get("high_priority", False)),
                policy_type=entry.get("policy_type"),
                controls=_build_controls(entry.get("controls") or [], category_id),
            ))

        framework = Framework(
            id=str(data["id"]),
            code=str(data.get("code") or data["id"]),
            name=data.get("name", ""),
            version=str(data.get("version", "")),
            description=data.get("description") or "",
            categories=tuple(categories),
        )
    except (KeyError, TypeError, ValueError, ValidationError) as e:
        raise InvalidFrameworkError(f"Malformed framework {data.get('id')}: {e}") from e

    validate_hierarchy(framework)
    return framework


def build_mappings(entries: Any) -> list[PolicyControlMapping]:
    """Build mapping records from a parsed YAML list."""
    mappings: list[PolicyControlMapping] = []
    for position, entry in enumerate(entries or []):
        mappings.append(PolicyControlMapping(
            id=str(entry.get("id") or f"mapping-{position + 1}"),
            policy_id=str(entry["policy_id"]),
            control_id=str(entry["control_id"]),
            coverage=entry.get("coverage", "none"),
            verified=bool(entry.get("verified", False)),
            notes=entry.get("notes"),
        ))
    return mappings


def get_mappings_for_framework(framework_id: str, mappings_dir: Path) -> list[PolicyControlMapping]:
    """Collect the mappings declared for a framework across all mapping files."""
    mappings: list[PolicyControlMapping] = []

    if not mappings_dir.exists():
        return mappings

    for yaml_file in sorted(mappings_dir.rglob("*.yaml")):
        content = _read_yaml(yaml_file)
        if not isinstance(content, dict):
            continue
        if str(content.get("framework_id", "")) != framework_id:
            continue
        mappings.extend(build_mappings(content.get("mappings")))

    return mappings
