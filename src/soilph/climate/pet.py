"""
Potential evapotranspiration (PET) from gridded monthly climatologies.

Two estimates are produced:
- Priestley-Taylor PET from net radiation (run for two radiation products,
  CERES and GEWEX).
- A modified Penman-Monteith-Leuning (PML) PET: canopy evaporation from the
  Penman-Monteith equation with a Leuning canopy conductance, plus soil
  evaporation from Priestley-Taylor.

Inputs are arrays of monthly means with the month on the LAST axis, e.g.
(360, 180, 12) for the one-degree global grid. Static layers (elevation, land
cover) may be passed either with the month axis or without it; they broadcast.
Outputs are in mm per month; `annual_total` sums the month axis to mm per year.

References:
Allen, R.G. et al. Crop evapotranspiration. FAO Irrigation and Drainage Paper 56 (1998).
Kelliher, F.M. et al. Agric. For. Meteorol. 73, 1-16 (1995).
Leuning, R. et al. Water Resour. Res. 44 (2008).
Zhang, Y.Q. et al. Water Resour. Res. 44 (2008).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

import numpy as np

from soilph.errors import InputShapeError

# General parameters (Allen et al. 1998).
LATENT_HEAT = 2.45  # MJ kg-1
SPECIFIC_HEAT = 0.001013  # MJ kg-1 C-1
EPSILON = 0.622  # molecular weight ratio, water vapour / dry air
GAS_CONSTANT = 0.287058  # kJ kg-1 K-1
PT_ALPHA = 1.26  # Priestley-Taylor constant
STD_ATM = 101.3  # kPa
ABS_ZERO = -273.16  # degrees C

# PML parameters.
GS_MAX = 0.006  # maximum stomatal conductance, m s-1 (Kelliher et al. 1995)
KA = 0.6  # extinction coefficient for radiation (Zhang et al. 2008)
Q50 = 2.6  # half-saturation light, MJ m-2 d-1 (Zhang et al. 2008)
D50 = 0.8  # half-saturation vapour pressure deficit, kPa (Zhang et al. 2008)

DAYS_PER_MONTH = 30.41667
SECONDS_PER_DAY = 60 * 60 * 24

# MODIS land cover code -> aerodynamic conductance Ga (m s-1). NaN: no PET computed.
BIOME_GA_TABLE: dict[int, float] = {
    0: np.nan,  # water
    1: 0.033,  # evergreen needleleaf forest
    2: 0.033,  # evergreen broadleaf forest
    3: 0.033,  # deciduous needleleaf forest
    4: 0.033,  # deciduous broadleaf forest
    5: 0.033,  # mixed forest
    6: 0.0125,  # closed shrubland
    7: 0.0125,  # open shrubland
    8: 0.033,  # woody savanna
    9: 0.033,  # savanna
    10: 0.01,  # grassland
    11: 0.01,  # permanent wetland
    12: 0.01,  # cropland
    13: np.nan,  # urban
    14: 0.01,  # cropland / natural vegetation mosaic
    15: np.nan,  # snow and ice
    16: 0.01,  # barren
    254: np.nan,  # unclassified
    255: np.nan,  # fill
}


def saturation_vapor_pressure(ta):
    """Saturation vapour pressure (kPa) at air temperature `ta` (C). Allen eq. 14."""
    ta = np.asarray(ta, dtype=float)
    return 0.6108 * np.exp((17.27 * ta) / (ta + 237.3))


def vapor_pressure_slope(ta):
    """Slope of the saturation vapour pressure curve (kPa C-1). Allen eq. 20."""
    ta = np.asarray(ta, dtype=float)
    return (4098.0 * saturation_vapor_pressure(ta)) / (ta + 237.3) ** 2


def atmospheric_pressure(elevation, std_atm: float = STD_ATM):
    """Atmospheric pressure (kPa) from elevation (m). Allen eq. 7."""
    elevation = np.asarray(elevation, dtype=float)
    return std_atm * ((293.0 - 0.0065 * elevation) / 293.0) ** 5.26


def psychrometric_constant(pressure):
    return (SPECIFIC_HEAT * np.asarray(pressure, dtype=float)) / (EPSILON * LATENT_HEAT)


def air_density(pressure, ta):
    """Density of dry air (kg m-3)."""
    return np.asarray(pressure, dtype=float) / ((np.asarray(ta, dtype=float) - ABS_ZERO) * GAS_CONSTANT)


def assign_param(table: Mapping[int, float], cover) -> np.ndarray:
    """
    Map land-cover codes to parameter values.

    Returns a new float array shaped like `cover`; codes absent from `table`
    become NaN. `cover` is not modified.
    """
    cover = np.asarray(cover)
    out = np.full(cover.shape, np.nan, dtype=float)
    for code, value in table.items():
        out[cover == code] = value
    return out


def annual_total(monthly) -> np.ndarray:
    # NaN in any month (e.g. water cells) propagates to the annual value.
    return np.sum(np.asarray(monthly, dtype=float), axis=-1)


def priestley_taylor(rn, ta, pressure) -> np.ndarray:
    """Priestley-Taylor PET (mm month-1) from net radiation `rn` (MJ m-2 d-1)."""
    rn = np.asarray(rn, dtype=float)
    delta = vapor_pressure_slope(ta)
    gamma = psychrometric_constant(pressure)
    daily = (1.0 / LATENT_HEAT) * PT_ALPHA * (delta * rn) * (1.0 / (delta + gamma))
    return daily * DAYS_PER_MONTH


@dataclass(frozen=True)
class ClimateInputs:
    # Monthly mean air temperature (C).
    tmp: np.ndarray
    # Monthly mean vapour pressure (kPa).
    vap: np.ndarray
    # Net surface radiation, CERES (MJ m-2 d-1).
    rn_ceres: np.ndarray
    # Downwelling shortwave radiation, CERES (MJ m-2 d-1).
    sw_ceres: np.ndarray
    # Leaf area index (m2 m-2).
    lai: np.ndarray
    # MODIS land cover codes.
    cover: np.ndarray
    # Elevation (m).
    elevation: np.ndarray
    # Net surface radiation, GEWEX (MJ m-2 d-1); optional second PT estimate.
    rn_gewex: np.ndarray | None = None

    def __post_init__(self) -> None:
        # Static layers stored without the month axis get a length-1 one so they broadcast.
        ndim = np.ndim(self.tmp)
        for name in ("cover", "elevation"):
            arr = np.asarray(getattr(self, name))
            if arr.ndim == ndim - 1:
                object.__setattr__(self, name, arr[..., np.newaxis])

    @classmethod
    def from_mapping(cls, arrays: Mapping[str, np.ndarray]) -> "ClimateInputs":
        required = ["tmp", "vap", "rn_ceres", "sw_ceres", "lai", "cover", "elevation"]
        missing = [k for k in required if k not in arrays]
        if missing:
            raise InputShapeError(f"Missing climate arrays: {missing}")
        return cls(
            **{k: np.asarray(arrays[k]) for k in required},
            rn_gewex=np.asarray(arrays["rn_gewex"]) if "rn_gewex" in arrays else None,
        )

    def check_shapes(self) -> tuple[int, ...]:
        shape = np.shape(self.tmp)
        monthly = {"vap": self.vap, "rn_ceres": self.rn_ceres, "sw_ceres": self.sw_ceres, "lai": self.lai}
        if self.rn_gewex is not None:
            monthly["rn_gewex"] = self.rn_gewex
        for name, arr in monthly.items():
            if np.shape(arr) != shape:
                raise InputShapeError(f"{name} has shape {np.shape(arr)}, expected {shape}")
        for name, arr in {"cover": self.cover, "elevation": self.elevation}.items():
            try:
                np.broadcast_shapes(np.shape(arr), shape)
            except ValueError as exc:
                raise InputShapeError(f"{name} with shape {np.shape(arr)} does not broadcast to {shape}") from exc
        return shape


def penman_monteith_leuning(inputs: ClimateInputs, *, ga_table: Mapping[int, float] = BIOME_GA_TABLE) -> np.ndarray:
    """Modified PML PET (mm month-1): PM canopy evaporation plus PT soil evaporation."""
    shape = inputs.check_shapes()
    ta = np.asarray(inputs.tmp, dtype=float)
    lai = np.asarray(inputs.lai, dtype=float)
    rn = np.asarray(inputs.rn_ceres, dtype=float)

    vpd = saturation_vapor_pressure(ta) - np.asarray(inputs.vap, dtype=float)
    pressure = atmospheric_pressure(inputs.elevation)
    pa = air_density(pressure, ta)
    delta = vapor_pressure_slope(ta)
    gamma = psychrometric_constant(pressure)
    ga = np.broadcast_to(assign_param(ga_table, inputs.cover), shape)

    # Available energy split between soil and canopy (Leuning et al. 2008).
    soil_energy = rn * np.exp(-KA * lai)
    canopy_energy = rn - soil_energy
    # Photosynthetically active radiation absorbed by the canopy.
    qh = 0.5 * np.asarray(inputs.sw_ceres, dtype=float) * (1.0 - np.exp(-KA * lai))

    # Canopy conductance (m s-1). Zero LAI gives gc = 0, so the canopy term is 0 and only soil
    # evaporation remains; errstate covers the ga_day / gc division there.
    with np.errstate(divide="ignore", invalid="ignore"):
        gc = (GS_MAX / KA) * np.log((qh + Q50) / (qh * np.exp(-KA * lai) + Q50)) * (1.0 / (1.0 + vpd / D50))

        # m s-1 -> m d-1
        gc = gc * SECONDS_PER_DAY
        ga_day = ga * SECONDS_PER_DAY

        canopy = (1.0 / LATENT_HEAT) * (canopy_energy * delta + SPECIFIC_HEAT * pa * vpd * ga_day) * (
            1.0 / (delta + gamma * (1.0 + ga_day / gc))
        )
    soil = (1.0 / LATENT_HEAT) * PT_ALPHA * soil_energy * (delta / (delta + gamma))
    return (canopy + soil) * DAYS_PER_MONTH


@dataclass(frozen=True)
class PETResult:
    pt_ceres: np.ndarray
    pml: np.ndarray
    pt_gewex: np.ndarray | None = None

    def as_arrays(self) -> dict[str, np.ndarray]:
        out = {"annual_pt_ceres": self.pt_ceres, "annual_pml": self.pml}
        if self.pt_gewex is not None:
            out["annual_pt_gewex"] = self.pt_gewex
        return out


def compute_annual_pet(inputs: ClimateInputs) -> PETResult:
    inputs.check_shapes()
    pressure = atmospheric_pressure(inputs.elevation)
    pt_ceres = annual_total(priestley_taylor(inputs.rn_ceres, inputs.tmp, pressure))
    pt_gewex = None
    if inputs.rn_gewex is not None:
        pt_gewex = annual_total(priestley_taylor(inputs.rn_gewex, inputs.tmp, pressure))
    pml = annual_total(penman_monteith_leuning(inputs))
    return PETResult(pt_ceres=pt_ceres, pml=pml, pt_gewex=pt_gewex)
