"""
Great-circle distances on a spherical Earth (haversine formula).

The resampler needs "distance from one point to many points" in kilometres,
both to build the search area and to find the nearest cell with profiles.
All inputs are decimal degrees.

Known limitation: coordinates are not range-checked. Latitudes outside
[-90, 90] still produce a number, just not a geographically meaningful one;
callers validate coordinates upstream (see `soilph.tables.validators`).
"""

from __future__ import annotations

# NumPy keeps the one-to-many computation vectorized.
import numpy as np

from soilph.errors import InputShapeError

# Equatorial radius in km, the value the published analysis used.
EARTH_RADIUS_KM = 6378.1


def _as_1d(values) -> np.ndarray:
    # `atleast_1d` lets callers pass a scalar candidate and still get an array back.
    return np.atleast_1d(np.asarray(values, dtype=float))


def geodist(target_lon: float, target_lat: float, search_lon, search_lat) -> np.ndarray:
    """
    Distance (km) from one target point to each of a set of candidate points.
    Output order matches the candidate order.
    """
    search_lon = _as_1d(search_lon)
    search_lat = _as_1d(search_lat)
    # Parallel sequences must pair up one-to-one; fail before doing any math.
    if search_lon.shape != search_lat.shape:
        raise InputShapeError(
            f"search_lon and search_lat must have the same length ({search_lon.size} != {search_lat.size})"
        )

    # Degrees -> radians for the trigonometric functions.
    t_lat = np.deg2rad(float(target_lat))
    t_lon = np.deg2rad(float(target_lon))
    s_lat = np.deg2rad(search_lat)
    s_lon = np.deg2rad(search_lon)

    # Haversine: a = sin^2(dlat/2) + cos(lat1) cos(lat2) sin^2(dlon/2)
    t1 = np.sin((t_lat - s_lat) / 2.0) ** 2
    t2 = np.cos(t_lat) * np.cos(s_lat) * np.sin((t_lon - s_lon) / 2.0) ** 2
    # Clip guards asin against a > 1 from floating-point rounding at antipodes.
    a = np.clip(t1 + t2, 0.0, 1.0)
    return 2.0 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(a))


def pairwise_geodist(lon_a, lat_a, lon_b, lat_b) -> np.ndarray:
    """
    Distance matrix (km) of shape (len(a), len(b)).

    Same formula as `geodist`, broadcast over a block of targets so nearest-cell
    search can process sample nodes in chunks instead of one at a time.
    """
    lon_a = _as_1d(lon_a)
    lat_a = _as_1d(lat_a)
    lon_b = _as_1d(lon_b)
    lat_b = _as_1d(lat_b)
    if lon_a.shape != lat_a.shape:
        raise InputShapeError(f"lon_a and lat_a differ in length ({lon_a.size} != {lat_a.size})")
    if lon_b.shape != lat_b.shape:
        raise InputShapeError(f"lon_b and lat_b differ in length ({lon_b.size} != {lat_b.size})")

    a_lat = np.deg2rad(lat_a)[:, None]
    a_lon = np.deg2rad(lon_a)[:, None]
    b_lat = np.deg2rad(lat_b)[None, :]
    b_lon = np.deg2rad(lon_b)[None, :]

    t1 = np.sin((a_lat - b_lat) / 2.0) ** 2
    t2 = np.cos(a_lat) * np.cos(b_lat) * np.sin((a_lon - b_lon) / 2.0) ** 2
    return 2.0 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(t1 + t2, 0.0, 1.0)))


def lonlat_to_unit_xyz(lon_deg, lat_deg) -> np.ndarray:
    """
    Project lon/lat onto the unit sphere as (N, 3) Cartesian coordinates.

    Straight-line (chord) distance between unit vectors is monotonic in
    great-circle distance, so a Euclidean KD-tree over these points can
    shortlist neighbours on the sphere.
    """
    lon = np.deg2rad(_as_1d(lon_deg))
    lat = np.deg2rad(_as_1d(lat_deg))
    if lon.shape != lat.shape:
        raise InputShapeError(f"lon and lat differ in length ({lon.size} != {lat.size})")
    return np.column_stack([np.cos(lat) * np.cos(lon), np.cos(lat) * np.sin(lon), np.sin(lat)])


def chord_for_distance_km(distance_km: float) -> float:
    # Chord length on the unit sphere subtending the given arc length.
    angle = min(float(distance_km) / EARTH_RADIUS_KM, np.pi)
    return float(2.0 * np.sin(angle / 2.0))
