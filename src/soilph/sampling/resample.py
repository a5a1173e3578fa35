"""
Spatial bootstrap resampling of soil profiles.

Profile datasets are spatially clustered (dense in a few countries, sparse
elsewhere), so a plain bootstrap over rows over-represents the clusters. The
spatial sample instead draws *places* and then the nearest profile to each
place:

1) Search area: land cells within `length_scale` km of any cell that holds a
   profile. This keeps sample nodes away from regions with no data nearby.
2) Sample nodes: `n` cell centres drawn from the search area with replacement,
   weighted by true cell area (equal-angle cells shrink toward the poles).
3) For each node, find the nearest cell holding profiles and draw one of its
   profiles uniformly at random.

The search area is built once per call from all occupied cells and reused for
every draw.

Nearest-cell ties resolve to the lowest `cellindex`: occupied cells are sorted
by index and `argmin` returns the first minimum.
"""

from __future__ import annotations

import logging
import math
from typing import Iterable

import numpy as np
import pandas as pd
from scipy.spatial import cKDTree

from soilph.errors import EmptyDomainError, InputShapeError, InvalidParameterError
from soilph.spatial.grid import grid_cell_areas
from soilph.spatial.geodist import chord_for_distance_km, geodist, lonlat_to_unit_xyz, pairwise_geodist

logger = logging.getLogger(__name__)

PROFILE_COLUMNS = ("cellindex", "cclon", "cclat")
GRID_COLUMNS = ("cellindex", "cclon", "cclat", "SEA")

# Relative slack on the KD-tree radius; membership is decided by haversine afterwards.
_CHORD_SLACK = 1e-9


def _require_columns(df: pd.DataFrame, required: Iterable[str], *, label: str) -> None:
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise InputShapeError(f"{label} missing required columns: {missing}")
    has_na = [c for c in required if df[c].isna().any()]
    if has_na:
        raise InputShapeError(f"{label} has missing values in required columns: {has_na}")


def _check_positive(name: str, value: float) -> float:
    v = float(value)
    if math.isnan(v) or v <= 0:
        raise InvalidParameterError(f"{name} must be a positive number, got {value!r}")
    return v


def _check_n(n: int) -> int:
    if isinstance(n, bool) or int(n) != n or int(n) <= 0:
        raise InvalidParameterError(f"n must be a positive integer, got {n!r}")
    return int(n)


def _make_rng(seed: int | None, rng: np.random.Generator | None) -> np.random.Generator:
    if rng is not None:
        return rng
    return np.random.default_rng(seed)


def occupied_cells(profiles: pd.DataFrame) -> pd.DataFrame:
    """
    One row per distinct cell holding profiles, sorted by `cellindex`.
    The first profile of each cell supplies the cell-centre coordinates.
    """
    _require_columns(profiles, PROFILE_COLUMNS, label="profiles")
    cells = profiles.drop_duplicates(subset="cellindex", keep="first")[list(PROFILE_COLUMNS)]
    # mergesort is stable, so the ordering is reproducible across runs.
    return cells.sort_values("cellindex", kind="mergesort").reset_index(drop=True)


def search_area_mask(
    occupied: pd.DataFrame,
    land_cells: pd.DataFrame,
    *,
    length_scale: float,
    progress_every: int = 500,
) -> np.ndarray:
    """
    Boolean mask over `land_cells`: True where the cell centre lies within
    `length_scale` km of at least one occupied cell.
    """
    length_scale = _check_positive("length_scale", length_scale)
    mask = np.zeros(len(land_cells), dtype=bool)
    if land_cells.empty or occupied.empty:
        return mask

    land_lon = land_cells["cclon"].astype(float).to_numpy()
    land_lat = land_cells["cclat"].astype(float).to_numpy()
    occ_lon = occupied["cclon"].astype(float).to_numpy()
    occ_lat = occupied["cclat"].astype(float).to_numpy()

    # Shortlist with a KD-tree over unit-sphere vectors, then confirm with haversine.
    tree = cKDTree(lonlat_to_unit_xyz(land_lon, land_lat))
    radius = chord_for_distance_km(length_scale) * (1.0 + _CHORD_SLACK) + _CHORD_SLACK
    occ_xyz = lonlat_to_unit_xyz(occ_lon, occ_lat)

    total = len(occupied)
    logger.info("Retrieving search area: %d occupied cells, %d land cells", total, len(land_cells))
    for i in range(total):
        idxs = np.asarray(tree.query_ball_point(occ_xyz[i], radius), dtype=int)
        if idxs.size:
            d = geodist(occ_lon[i], occ_lat[i], land_lon[idxs], land_lat[idxs])
            # OR into the running mask: one nearby occupied cell is enough.
            mask[idxs[d <= length_scale]] = True
        if progress_every > 0 and (i + 1) % progress_every == 0:
            logger.info("%d%% retrieved...", round(100 * (i + 1) / total))
    logger.info("100%% retrieved. Search area holds %d cells", int(mask.sum()))
    return mask


def draw_sample_nodes(
    search_cells: pd.DataFrame,
    n: int,
    *,
    resolution: float,
    rng: np.random.Generator,
) -> pd.DataFrame:
    """Draw `n` cell centres with replacement, with probability proportional to cell area."""
    if search_cells.empty:
        raise EmptyDomainError("Search area is empty: no land cells within length_scale of any profile")
    areas = grid_cell_areas(search_cells, resolution).to_numpy()
    total_area = float(areas.sum())
    if not np.isfinite(total_area) or total_area <= 0:
        raise EmptyDomainError("Search area has no positive area to sample from")
    picks = rng.choice(len(search_cells), size=n, replace=True, p=areas / total_area)
    return search_cells.iloc[picks][["cclon", "cclat"]].reset_index(drop=True)


def nearest_occupied_cells(
    nodes: pd.DataFrame,
    occupied: pd.DataFrame,
    *,
    chunk_size: int = 1000,
) -> np.ndarray:
    """
    Position (row in `occupied`) of the nearest occupied cell for every node.
    Ties go to the first minimum, i.e. the lowest `cellindex`.
    """
    node_lon = nodes["cclon"].astype(float).to_numpy()
    node_lat = nodes["cclat"].astype(float).to_numpy()
    occ_lon = occupied["cclon"].astype(float).to_numpy()
    occ_lat = occupied["cclat"].astype(float).to_numpy()

    n = len(nodes)
    step = max(int(chunk_size), 1)
    closest = np.empty(n, dtype=int)
    for start in range(0, n, step):
        stop = min(start + step, n)
        d = pairwise_geodist(node_lon[start:stop], node_lat[start:stop], occ_lon, occ_lat)
        closest[start:stop] = np.argmin(d, axis=1)
        logger.info("%d%% sampled...", round(100 * stop / n))
    return closest


def spatial_sample(
    profiles: pd.DataFrame,
    grid: pd.DataFrame,
    length_scale: float,
    n: int,
    *,
    resolution: float = 1.0,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
    progress_every: int = 500,
    chunk_size: int = 1000,
) -> pd.DataFrame:
    """
    Spatially resample `profiles` to `n` rows.

    `profiles` needs `cellindex`, `cclon`, `cclat`; `grid` needs those plus
    `SEA` (1 = land). Returns a new table with the columns of `profiles`, in
    the order sample nodes were drawn. Rows repeat when a profile is drawn
    more than once.
    """
    n = _check_n(n)
    length_scale = _check_positive("length_scale", length_scale)
    resolution = _check_positive("resolution", resolution)
    if profiles.empty:
        raise EmptyDomainError("Profile table is empty: no occupied cells to sample from")
    _require_columns(profiles, PROFILE_COLUMNS, label="profiles")
    _require_columns(grid, GRID_COLUMNS, label="grid")

    generator = _make_rng(seed, rng)
    logger.info("Running spatial sampling: %d profiles, length_scale=%.1f km, n=%d", len(profiles), length_scale, n)

    occupied = occupied_cells(profiles)
    land_cells = grid[grid["SEA"] == 1]
    mask = search_area_mask(occupied, land_cells, length_scale=length_scale, progress_every=progress_every)
    search_cells = land_cells[mask]

    nodes = draw_sample_nodes(search_cells, n, resolution=resolution, rng=generator)

    logger.info("Sampling profiles for %d nodes", n)
    closest = nearest_occupied_cells(nodes, occupied, chunk_size=chunk_size)

    # Group profile rows by occupied cell (input order within a cell).
    cell_pos = pd.Index(occupied["cellindex"]).get_indexer(profiles["cellindex"])
    order = np.argsort(cell_pos, kind="stable")
    counts = np.bincount(cell_pos, minlength=len(occupied))
    starts = np.cumsum(counts) - counts

    # Uniform draw, with replacement, among the profiles of each node's nearest cell.
    offsets = generator.integers(0, counts[closest])
    rows = order[starts[closest] + offsets]
    return profiles.iloc[rows].reset_index(drop=True)


def bootstrap_sample(
    profiles: pd.DataFrame,
    n: int,
    *,
    seed: int | None = None,
    rng: np.random.Generator | None = None,
) -> pd.DataFrame:
    """Non-spatial baseline: `n` rows drawn uniformly with replacement."""
    n = _check_n(n)
    if profiles.empty:
        raise EmptyDomainError("Profile table is empty: nothing to resample")
    generator = _make_rng(seed, rng)
    rows = generator.choice(len(profiles), size=n, replace=True)
    return profiles.iloc[rows].reset_index(drop=True)
