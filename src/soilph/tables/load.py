"""
Loading and normalization of the input tables.

Two tables feed the resampler:
- profiles: one row per soil profile (`MID`, `cellindex`, `cclon`, `cclat`,
  measured properties such as `pH`, `ECEC`, `EXAL`), and
- grid metadata: one row per global grid cell (`cellindex`, `cclon`, `cclat`,
  `SEA`, environmental columns).

Both are prepared upstream and stored as CSV. This module only reads them,
renames common column aliases and coerces types; schema rules live in
`soilph.tables.validators` so "load" and "validate" stay decoupled.
"""

from __future__ import annotations

# `Path` keeps file path handling cross-platform.
from pathlib import Path

# pandas is the table engine for CSV I/O and column normalization.
import pandas as pd

# Alias -> canonical column name.
_COORD_ALIASES = {
    "lon": "cclon",
    "longitude": "cclon",
    "lng": "cclon",
    "lat": "cclat",
    "latitude": "cclat",
}
_GRID_ALIASES = {
    "land": "SEA",
    "is_land": "SEA",
    "sea": "SEA",
}


def _rename_aliases(df: pd.DataFrame, aliases: dict[str, str]) -> pd.DataFrame:
    rename: dict[str, str] = {}
    for alias, canonical in aliases.items():
        # Only rename when the canonical column is absent, so explicit names always win.
        if alias in df.columns and canonical not in df.columns and canonical not in rename.values():
            rename[alias] = canonical
    return df.rename(columns=rename) if rename else df


def _coerce_numeric(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    for c in columns:
        # Optional columns may be absent; the validator reports missing required ones.
        if c not in df.columns:
            continue
        # Bad entries become NaN so validation can report them instead of crashing here.
        df[c] = pd.to_numeric(df[c], errors="coerce")
    return df


def _coerce_integer(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    for c in columns:
        if c not in df.columns:
            continue
        values = pd.to_numeric(df[c], errors="coerce")
        # Whole numbers become int64; columns with gaps or fractions stay float for the validator to flag.
        if values.notna().all() and (values == values.round()).all():
            df[c] = values.astype("int64")
        else:
            df[c] = values
    return df


def normalize_profiles(df: pd.DataFrame) -> pd.DataFrame:
    df = _rename_aliases(df.copy(), _COORD_ALIASES)
    df = _coerce_numeric(df, ["cclon", "cclat", "pH", "ECEC", "EXAL"])
    df = _coerce_integer(df, ["MID", "cellindex"])
    return df


def normalize_grid(df: pd.DataFrame) -> pd.DataFrame:
    df = _rename_aliases(df.copy(), _COORD_ALIASES)
    df = _rename_aliases(df, _GRID_ALIASES)
    # Boolean land masks (True/False) become 1/0 like the rest of the grid metadata.
    if "SEA" in df.columns and df["SEA"].dtype == bool:
        df["SEA"] = df["SEA"].astype(int)
    df = _coerce_numeric(df, ["cclon", "cclat"])
    df = _coerce_integer(df, ["cellindex", "SEA"])
    return df


def load_profiles(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    return normalize_profiles(pd.read_csv(path))


def load_grid(path: str | Path) -> pd.DataFrame:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(path)
    return normalize_grid(pd.read_csv(path))
