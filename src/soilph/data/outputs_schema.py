from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

import pandas as pd


@dataclass(frozen=True)
class SchemaReport:
    ok: bool
    errors: list[str]
    warnings: list[str]
    stats: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


SCHEMA_VERSION = "sample-v1"


def validate_sample_output(sampled: pd.DataFrame, profiles: pd.DataFrame, *, n: int) -> SchemaReport:
    """
    Check a resampled table against its source: exactly `n` rows, the same
    columns in the same order, every row a copy of an input row, and only
    cells that hold input profiles.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if len(sampled) != int(n):
        errors.append(f"sample: expected {int(n)} rows, got {len(sampled)}")
    if list(sampled.columns) != list(profiles.columns):
        errors.append("sample: columns differ from the input profile table")
    elif not sampled.empty:
        distinct = sampled.drop_duplicates()
        matched = distinct.merge(profiles.drop_duplicates(), on=list(profiles.columns), how="left", indicator=True)
        unmatched = int((matched["_merge"] == "left_only").sum())
        if unmatched:
            errors.append(f"sample: {unmatched} distinct rows do not appear in the input profile table")

    stats: dict[str, Any] = {"rows": int(len(sampled))}
    if "cellindex" in sampled.columns and "cellindex" in profiles.columns:
        foreign = set(sampled["cellindex"].unique()) - set(profiles["cellindex"].unique())
        if foreign:
            errors.append(f"sample: {len(foreign)} cells not present in the input profiles")
        stats["distinct_cells"] = int(sampled["cellindex"].nunique())
        stats["input_cells"] = int(profiles["cellindex"].nunique())
        if stats["distinct_cells"] < stats["input_cells"] / 10:
            warnings.append("sample: covers fewer than 10% of occupied cells; check length_scale and n")

    if "MID" in sampled.columns:
        stats["distinct_profiles"] = int(sampled["MID"].nunique())
    if "pH" in sampled.columns:
        ph = pd.to_numeric(sampled["pH"], errors="coerce")
        stats["ph_mean"] = float(ph.mean()) if ph.notna().any() else None
        stats["ph_median"] = float(ph.median()) if ph.notna().any() else None

    return SchemaReport(ok=len(errors) == 0, errors=errors, warnings=warnings, stats=stats)
