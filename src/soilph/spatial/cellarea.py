"""
Surface area of equal-angle grid cells on a spherical Earth.

A cell's area is its share of the latitude band it sits in: the difference of
two spherical caps (pole down to each cell edge), scaled by the fraction of
360 degrees of longitude the cell spans. Equal-angle cells shrink toward the
poles, which is why the resampler weights its draws by this area.
"""

from __future__ import annotations

import math

import numpy as np

from soilph.errors import InvalidParameterError
from soilph.spatial.geodist import EARTH_RADIUS_KM


def check_resolution(resolution: float) -> float:
    r = float(resolution)
    if math.isnan(r) or r <= 0:
        raise InvalidParameterError(f"resolution must be a positive number of degrees, got {resolution!r}")
    return r


def cellarea(lat, resolution: float):
    """
    Area (km^2) of a cell centred at `lat` with angular width `resolution` degrees.

    Accepts a scalar or an array of latitudes. Edges are not clamped to
    [-90, 90]; a resolution that pushes an edge past a pole gives a degenerate
    result.
    """
    resolution = check_resolution(resolution)
    lat_arr = np.asarray(lat, dtype=float)

    # Lower and upper latitude bounds of the cell.
    lat1 = lat_arr - resolution / 2.0
    lat2 = lat_arr + resolution / 2.0

    re = EARTH_RADIUS_KM
    # Height of the spherical cap from each bound up to the north pole.
    h1 = re - np.sin(np.deg2rad(lat1)) * re
    h2 = re - np.sin(np.deg2rad(lat2)) * re

    # Cap areas, their difference is the whole latitude band.
    band = 2.0 * math.pi * re * h1 - 2.0 * math.pi * re * h2
    area = band * (resolution / 360.0)

    if area.ndim == 0:
        return float(area)
    return area
