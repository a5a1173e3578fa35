"""
Settings bootstrap for SoilPH.

Every CLI command and pipeline run reads configuration through `load_settings()`
first: `config/default.yaml` merged with `config/scenarios/<scenario>.yaml`.
A scenario picks one profile dataset (`subsoil`, `topsoil`, `ncss_subsoil`) and
the output names that go with it; it usually overrides only a handful of keys
under `inputs`, `outputs` and `sampling`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from soilph.log import configure_logging

logger = logging.getLogger(__name__)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    # `sampling: {n: 500}` in a scenario keeps the base length_scale_km and seed.
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        if isinstance(merged.get(key), dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> dict[str, Any] | None:
    """Mapping from `path`, or None when the file does not exist."""
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML must be a mapping: {path}")
    return data


def _resolve_project_root(config_path: Path) -> Path:
    # Inputs and outputs in the config are relative to the directory holding `config/`.
    config_dir = config_path.resolve().parent
    return config_dir.parent if config_dir.name == "config" else config_dir


def _ensure_dirs(paths: dict[str, Path]) -> None:
    # Create runtime directories up-front so pipeline stages can write without checks.
    for p in paths.values():
        p.mkdir(parents=True, exist_ok=True)


def resolve_path(settings: dict[str, Any], value: str | Path) -> Path:
    """
    Resolve a path from config relative to the project root.
    Absolute paths are returned unchanged.
    """
    p = Path(value)
    if p.is_absolute():
        return p
    return Path(settings["paths"]["root"]) / p


def load_settings(config_path: Path, scenario: str) -> dict[str, Any]:
    """
    Load the base config and merge the scenario override file if present.
    Also creates the runtime directories and configures logging.
    """
    config_path = config_path.resolve()
    root = _resolve_project_root(config_path)

    base = _load_yaml(config_path)
    if base is None:
        raise FileNotFoundError(f"Config file not found: {config_path}")
    scenario_path = root / "config" / "scenarios" / f"{scenario}.yaml"
    override = _load_yaml(scenario_path)
    settings = _deep_merge(base, override or {})

    project = settings.setdefault("project", {})
    paths = {
        "root": root,
        # Profile tables, grid metadata and climate arrays prepared upstream.
        "raw_dir": root / project.get("raw_dir", "data/raw"),
        # Resampled tables, PET arrays, buffer summaries; safe to regenerate.
        "processed_dir": root / project.get("processed_dir", "data/processed"),
        "logs_dir": root / project.get("logs_dir", "logs"),
        "reports_dir": root / project.get("reports_dir", "reports"),
    }
    _ensure_dirs(paths)

    configure_logging(paths["logs_dir"], level=project.get("log_level", "INFO"), scenario=scenario)
    if override is None:
        logger.warning("No scenario file %s; using base settings only", scenario_path)

    settings["_meta"] = {
        "config_path": str(config_path),
        "scenario": scenario,
        "scenario_path": str(scenario_path),
        "scenario_found": override is not None,
    }
    # Strings keep settings JSON-serializable for run metadata.
    settings["paths"] = {k: str(v) for k, v in paths.items()}
    logger.info("Loaded settings: config=%s scenario=%s", config_path, scenario)
    return settings
