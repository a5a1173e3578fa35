from __future__ import annotations

import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from soilph.chemistry.buffers import PCO2_LAB, summarize_buffers
from soilph.climate.pet import ClimateInputs, PETResult, compute_annual_pet
from soilph.data.outputs_schema import SCHEMA_VERSION, validate_sample_output
from soilph.run_meta import build_run_meta, file_meta, new_run_id, utc_now_iso, write_json
from soilph.sampling.model import build_sampling_config
from soilph.sampling.resample import bootstrap_sample, spatial_sample
from soilph.settings import resolve_path
from soilph.tables.load import load_grid, load_profiles
from soilph.tables.validators import (
    TableValidationResult,
    format_validation_summary,
    validate_grid,
    validate_profile_cells,
    validate_profiles,
)

logger = logging.getLogger(__name__)


def _input_path(settings: dict[str, Any], key: str) -> Path:
    return resolve_path(settings, settings["inputs"][key])


def _output_path(settings: dict[str, Any], key: str) -> Path:
    path = resolve_path(settings, settings["outputs"][key])
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def _meta_path(output: Path) -> Path:
    return output.with_name(f"{output.stem}.run_meta.json")


def _write_run_meta(
    settings: dict[str, Any],
    *,
    step: str,
    inputs: list[Path],
    outputs: list[Path],
    details: dict[str, Any] | None = None,
) -> None:
    meta = build_run_meta(
        run_id=new_run_id(),
        generated_at=utc_now_iso(),
        settings=settings,
        step=step,
        input_sources=[file_meta(p) for p in inputs],
        outputs=[file_meta(p) for p in outputs],
        details=details,
    )
    write_json(_meta_path(outputs[0]), meta)


def validate_inputs(
    settings: dict[str, Any],
    *,
    profiles: pd.DataFrame | None = None,
    grid: pd.DataFrame | None = None,
    write_report: bool = True,
    raise_on_error: bool = True,
) -> dict[str, TableValidationResult]:
    if profiles is None:
        profiles = load_profiles(_input_path(settings, "profiles"))
    if grid is None:
        grid = load_grid(_input_path(settings, "grid"))
    resolution = float(settings.get("sampling", {}).get("resolution_deg", 1))

    results = {
        "profiles": validate_profiles(profiles),
        "grid": validate_grid(grid, resolution=resolution),
    }
    # Cross-table checks only make sense once both tables pass their own schema checks.
    if results["profiles"].ok and results["grid"].ok:
        results["profile_cells"] = validate_profile_cells(profiles, grid)

    summary = format_validation_summary(results)
    if write_report:
        reports_dir = Path(settings["paths"]["reports_dir"])
        reports_dir.mkdir(parents=True, exist_ok=True)
        write_json(
            reports_dir / "input_validation.json",
            {name: {"ok": r.ok, **asdict(r)} for name, r in results.items()},
        )
        (reports_dir / "input_validation.md").write_text(
            "# Input validation\n\n```\n" + summary + "\n```\n", encoding="utf-8"
        )

    for line in summary.splitlines():
        logger.info(line)
    if raise_on_error and not all(r.ok for r in results.values()):
        raise ValueError("Input tables failed validation. See reports/input_validation.md")
    return results


def run_spatial_sample(settings: dict[str, Any]) -> pd.DataFrame:
    config = build_sampling_config(settings)
    profiles_path = _input_path(settings, "profiles")
    grid_path = _input_path(settings, "grid")
    profiles = load_profiles(profiles_path)
    grid = load_grid(grid_path)
    validate_inputs(settings, profiles=profiles, grid=grid)

    sampled = spatial_sample(
        profiles,
        grid,
        config.length_scale_km,
        config.n,
        resolution=config.resolution_deg,
        seed=config.seed,
        progress_every=config.progress_every,
        chunk_size=config.chunk_size,
    )

    report = validate_sample_output(sampled, profiles, n=config.n)
    for w in report.warnings:
        logger.warning(w)
    if not report.ok:
        raise ValueError(f"Spatial sample failed schema validation: {report.errors}")

    out_path = _output_path(settings, "sample")
    sampled.to_csv(out_path, index=False)
    _write_run_meta(
        settings,
        step="spatial_sample",
        inputs=[profiles_path, grid_path],
        outputs=[out_path],
        details={"schema_version": SCHEMA_VERSION, "schema_report": report.to_dict(), "sampling": asdict(config)},
    )
    logger.info("Wrote spatial sample: %s (%d rows)", out_path, len(sampled))
    return sampled


def run_bootstrap_sample(settings: dict[str, Any]) -> pd.DataFrame:
    config = build_sampling_config(settings)
    profiles_path = _input_path(settings, "profiles")
    profiles = load_profiles(profiles_path)
    result = validate_profiles(profiles)
    if not result.ok:
        raise ValueError(f"Profile table failed validation: {result.errors}")

    sampled = bootstrap_sample(profiles, config.n, seed=config.seed)
    out_path = _output_path(settings, "bootstrap")
    sampled.to_csv(out_path, index=False)
    _write_run_meta(
        settings,
        step="bootstrap_sample",
        inputs=[profiles_path],
        outputs=[out_path],
        details={"n": config.n, "seed": config.seed},
    )
    logger.info("Wrote bootstrap sample: %s (%d rows)", out_path, len(sampled))
    return sampled


def run_buffer_analysis(settings: dict[str, Any]) -> dict[str, Any]:
    table_path = _input_path(settings, "buffer_profiles")
    table = load_profiles(table_path)
    pco2 = float(settings.get("chemistry", {}).get("pco2_lab_atm", PCO2_LAB))

    summary = summarize_buffers(table, pco2=pco2)
    out_path = _output_path(settings, "buffers")
    write_json(out_path, summary)
    _write_run_meta(settings, step="buffers", inputs=[table_path], outputs=[out_path])
    logger.info(
        "Buffers: calcite pH %.1f, aluminium pH %.1f (%d rows)",
        summary["calcite"]["ph"],
        summary["aluminum"]["ph_al"],
        summary["aluminum"]["n_rows"],
    )
    return summary


def load_climate_inputs(path: Path) -> ClimateInputs:
    if not path.exists():
        raise FileNotFoundError(path)
    with np.load(path) as archive:
        arrays = {k: archive[k] for k in archive.files}
    return ClimateInputs.from_mapping(arrays)


def run_pet(settings: dict[str, Any]) -> PETResult:
    climate_path = _input_path(settings, "climate")
    inputs = load_climate_inputs(climate_path)
    result = compute_annual_pet(inputs)

    out_path = _output_path(settings, "pet")
    np.savez_compressed(out_path, **result.as_arrays())
    _write_run_meta(
        settings,
        step="pet",
        inputs=[climate_path],
        outputs=[out_path],
        details={"shape": list(np.shape(inputs.tmp)), "arrays": sorted(result.as_arrays())},
    )
    logger.info("Wrote annual PET: %s", out_path)
    return result


def dump_summary(data: dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False, indent=2)
