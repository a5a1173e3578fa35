"""
Input table validation.

Checks that the profile table and the grid metadata are usable for resampling:
- schema checks (required columns exist),
- data quality checks (IDs unique, coordinates numeric and in range, land flag is 0/1),
- grid indexing checks against `global_grid` (warnings only),
- cross-table checks (each profile's cell exists in the grid and the profile's
  coordinates equal that cell's centre).

Validators return a structured result instead of raising; the pipeline
decides whether errors block a run. The resampling core itself does not
re-check geographic plausibility.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

import numpy as np
import pandas as pd

from soilph.errors import InvalidParameterError
from soilph.spatial.grid import global_grid

PROFILE_REQUIRED = ["MID", "cellindex", "cclon", "cclat"]
GRID_REQUIRED = ["cellindex", "cclon", "cclat", "SEA"]


@dataclass(frozen=True)
class TableValidationResult:
    # Messages that should block the pipeline.
    errors: list[str]
    # Suspicious but not always fatal.
    warnings: list[str]
    # Small summaries for reports.
    stats: dict[str, Any]

    @property
    def ok(self) -> bool:
        return len(self.errors) == 0


def _require_columns(df: pd.DataFrame, required: Iterable[str], *, label: str) -> list[str]:
    missing = [c for c in required if c not in df.columns]
    return [f"{label}: missing required column '{c}'" for c in missing]


def _validate_unique_id(df: pd.DataFrame, *, id_col: str, label: str) -> list[str]:
    errors: list[str] = []
    ids = pd.to_numeric(df[id_col], errors="coerce")
    if ids.isna().any():
        errors.append(f"{label}: '{id_col}' contains missing or non-numeric values")
    dup = ids[ids.notna() & ids.duplicated(keep=False)]
    if not dup.empty:
        # A few examples so the offending rows are easy to find.
        examples = ", ".join(str(int(x)) for x in sorted(set(dup.tolist()))[:5])
        errors.append(f"{label}: '{id_col}' contains duplicates (e.g., {examples})")
    return errors


def _validate_lon_lat(df: pd.DataFrame, *, label: str) -> list[str]:
    errors: list[str] = []
    lon = pd.to_numeric(df["cclon"], errors="coerce")
    lat = pd.to_numeric(df["cclat"], errors="coerce")
    if lat.isna().any() or lon.isna().any():
        errors.append(f"{label}: invalid cclon/cclat (non-numeric or missing)")
    # Haversine accepts anything numeric, so out-of-range values must be stopped here.
    if (lat < -90).any() or (lat > 90).any() or (lon < -180).any() or (lon > 180).any():
        errors.append(f"{label}: cclon/cclat out of valid world bounds")
    return errors


def validate_profiles(profiles: pd.DataFrame) -> TableValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(_require_columns(profiles, PROFILE_REQUIRED, label="profiles"))
    if errors:
        return TableValidationResult(errors=errors, warnings=warnings, stats={})
    if profiles.empty:
        errors.append("profiles: table is empty")
        return TableValidationResult(errors=errors, warnings=warnings, stats={"rows": 0})

    errors.extend(_validate_unique_id(profiles, id_col="MID", label="profiles"))
    errors.extend(_validate_lon_lat(profiles, label="profiles"))
    cells = pd.to_numeric(profiles["cellindex"], errors="coerce")
    if cells.isna().any():
        errors.append("profiles: 'cellindex' contains missing or non-numeric values")

    # Profiles sharing a cell must share its centre; otherwise the "first profile
    # supplies the cell coordinate" rule becomes order dependent.
    coords_per_cell = profiles.groupby("cellindex")[["cclon", "cclat"]].nunique()
    inconsistent = coords_per_cell[(coords_per_cell["cclon"] > 1) | (coords_per_cell["cclat"] > 1)]
    if not inconsistent.empty:
        examples = ", ".join(str(x) for x in inconsistent.index[:5])
        errors.append(f"profiles: cells with more than one centre coordinate (e.g., {examples})")

    if "pH" in profiles.columns:
        ph = pd.to_numeric(profiles["pH"], errors="coerce")
        if ph.isna().any():
            warnings.append(f"profiles: {int(ph.isna().sum())} rows with missing pH")
        if ((ph < 0) | (ph > 14)).any():
            warnings.append("profiles: pH values outside 0..14 detected")

    stats = {
        "rows": int(len(profiles)),
        "occupied_cells": int(cells.nunique()),
        "max_profiles_per_cell": int(cells.value_counts().max()) if cells.notna().any() else 0,
    }
    return TableValidationResult(errors=errors, warnings=warnings, stats=stats)


def _check_global_indexing(grid: pd.DataFrame, resolution: float) -> list[str]:
    """Compare each row with the centre `global_grid` assigns to its `cellindex`."""
    reference = global_grid(resolution).set_index("cellindex")
    idx = pd.to_numeric(grid["cellindex"], errors="coerce")
    known = idx.isin(reference.index)

    warnings: list[str] = []
    outside = int((~known).sum())
    if outside:
        warnings.append(f"grid: {outside} 'cellindex' values fall outside the global {resolution} degree grid")
    if known.any():
        expected = reference.loc[idx[known].astype(int)]
        lon = pd.to_numeric(grid.loc[known, "cclon"], errors="coerce").to_numpy(dtype=float)
        lat = pd.to_numeric(grid.loc[known, "cclat"], errors="coerce").to_numpy(dtype=float)
        same = np.isclose(lon, expected["cclon"].to_numpy(), atol=1e-6) & np.isclose(
            lat, expected["cclat"].to_numpy(), atol=1e-6
        )
        if not same.all():
            warnings.append(
                f"grid: {int((~same).sum())} cells do not sit where the global {resolution} degree indexing puts them"
                " (cellindex counts down each column from the north-west corner)"
            )
    return warnings


def validate_grid(grid: pd.DataFrame, *, resolution: float | None = None) -> TableValidationResult:
    errors: list[str] = []
    warnings: list[str] = []

    errors.extend(_require_columns(grid, GRID_REQUIRED, label="grid"))
    if errors:
        return TableValidationResult(errors=errors, warnings=warnings, stats={})

    errors.extend(_validate_unique_id(grid, id_col="cellindex", label="grid"))
    errors.extend(_validate_lon_lat(grid, label="grid"))

    sea = pd.to_numeric(grid["SEA"], errors="coerce")
    if not sea.isin([0, 1]).all():
        errors.append("grid: 'SEA' must be 1 (land) or 0 (water)")
    if not (sea == 1).any():
        errors.append("grid: no land cells (SEA == 1)")

    # Cell centres on a regular grid sit at odd multiples of resolution / 2.
    if resolution is not None and not grid.empty:
        half = float(resolution) / 2.0
        for col in ["cclon", "cclat"]:
            v = pd.to_numeric(grid[col], errors="coerce").to_numpy(dtype=float)
            steps = (v - half) / float(resolution)
            off = ~np.isclose(steps, np.round(steps), atol=1e-6)
            if np.any(off):
                warnings.append(f"grid: {int(off.sum())} '{col}' values are not centres of a {resolution} degree grid")
        try:
            warnings.extend(_check_global_indexing(grid, float(resolution)))
        except InvalidParameterError as exc:
            errors.append(f"grid: {exc}")

    stats = {
        "rows": int(len(grid)),
        "land_cells": int((sea == 1).sum()),
    }
    return TableValidationResult(errors=errors, warnings=warnings, stats=stats)


def validate_profile_cells(profiles: pd.DataFrame, grid: pd.DataFrame) -> TableValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    errors.extend(_require_columns(profiles, ["cellindex", "cclon", "cclat"], label="profiles"))
    errors.extend(_require_columns(grid, GRID_REQUIRED, label="grid"))
    if errors:
        return TableValidationResult(errors=errors, warnings=warnings, stats={})

    cells = grid[["cellindex", "cclon", "cclat", "SEA"]].drop_duplicates(subset="cellindex")
    joined = profiles[["cellindex", "cclon", "cclat"]].merge(
        cells, on="cellindex", how="left", suffixes=("", "_grid"), indicator=True
    )
    unknown = joined[joined["_merge"] == "left_only"]
    if not unknown.empty:
        examples = ", ".join(str(x) for x in sorted(unknown["cellindex"].unique())[:5])
        errors.append(f"profiles: {len(unknown)} rows reference cells absent from the grid (e.g., {examples})")

    known = joined[joined["_merge"] == "both"]
    mismatch = ~(
        np.isclose(known["cclon"].astype(float), known["cclon_grid"].astype(float))
        & np.isclose(known["cclat"].astype(float), known["cclat_grid"].astype(float))
    )
    if mismatch.any():
        errors.append(f"profiles: {int(mismatch.sum())} rows whose coordinates differ from their cell centre")

    # Profiles in water cells never join the search area themselves, but still act as nearest cells.
    in_water = int((pd.to_numeric(known["SEA"], errors="coerce") != 1).sum())
    if in_water:
        warnings.append(f"profiles: {in_water} rows fall in cells flagged as water")

    stats = {"rows_checked": int(len(joined)), "rows_in_water": in_water}
    return TableValidationResult(errors=errors, warnings=warnings, stats=stats)


def format_validation_summary(results: dict[str, TableValidationResult]) -> str:
    lines: list[str] = []
    for name, result in results.items():
        status = "OK" if result.ok else "FAILED"
        lines.append(f"{name}: {status} ({len(result.errors)} errors, {len(result.warnings)} warnings)")
        lines.extend(f"  error: {e}" for e in result.errors)
        lines.extend(f"  warning: {w}" for w in result.warnings)
    return "\n".join(lines)
