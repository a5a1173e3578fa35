"""
Global equal-angle grid metadata.

The analysis grid is 360 x 180 one-degree cells. Cell indices count down each
longitude column starting at the north-west corner, so at 1 degree
`cellindex == 1` is (-179.5, 89.5) and `cellindex == 2` is (-179.5, 88.5).
The land/water mask (`SEA`) and environmental columns come from external data
and are joined onto this table by `cellindex`.
"""

from __future__ import annotations

import numpy as np
import pandas as pd

from soilph.errors import InputShapeError, InvalidParameterError
from soilph.spatial.cellarea import cellarea, check_resolution


def global_grid(resolution: float = 1.0) -> pd.DataFrame:
    resolution = check_resolution(resolution)
    n_lon = int(round(360.0 / resolution))
    n_lat = int(round(180.0 / resolution))
    if not np.isclose(n_lon * resolution, 360.0) or not np.isclose(n_lat * resolution, 180.0):
        raise InvalidParameterError(f"resolution must divide 180 degrees evenly, got {resolution}")

    lons = -180.0 + resolution / 2.0 + resolution * np.arange(n_lon)
    # North to south within each column.
    lats = 90.0 - resolution / 2.0 - resolution * np.arange(n_lat)
    # Column-major: latitude varies fastest.
    cclon = np.repeat(lons, n_lat)
    cclat = np.tile(lats, n_lon)
    return pd.DataFrame(
        {
            "cellindex": np.arange(1, n_lon * n_lat + 1, dtype=int),
            "cclon": cclon,
            "cclat": cclat,
        }
    )


def grid_cell_areas(grid: pd.DataFrame, resolution: float = 1.0, *, lat_col: str = "cclat") -> pd.Series:
    if lat_col not in grid.columns:
        raise InputShapeError(f"Missing grid column: {lat_col}")
    areas = cellarea(grid[lat_col].astype(float).to_numpy(), resolution)
    return pd.Series(np.atleast_1d(areas), index=grid.index, name="area_km2")
