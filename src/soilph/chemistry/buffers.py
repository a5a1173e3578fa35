"""
Soil pH buffer calculations.

Two buffers bracket the soil pH distribution:

- Calcite buffer: pH of an open CaCO3-H2O-CO2 system at a given pCO2. Charge
  balance reduces to a quartic in [H+], solved numerically on a bracketing
  interval.
- Aluminium exchange buffer: empirical. pH is regressed on the exchangeable
  Ca/Al ratio using the Gaines-Thomas and Gapon exchange models (as adapted by
  Reuss et al. 1990). The buffer value is the mean pH of soils carrying
  exchangeable aluminium. The input is normally the spatially resampled NCSS
  subsoil table.
"""

from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass
from typing import Any, Mapping

import numpy as np
import pandas as pd
from scipy import optimize, stats

from soilph.errors import EmptyDomainError, InputShapeError

logger = logging.getLogger(__name__)

# Equilibrium constants at 25 C.
CALCITE_CONSTANTS: dict[str, float] = {
    "K1": 10 ** -6.35,  # first dissociation of carbonic acid (mol L-1)
    "K2": 10 ** -10.33,  # second dissociation (mol L-1)
    "Ks": 10 ** -8.48,  # calcite solubility product (mol2 L-2)
    "kH": 0.033,  # Henry's constant for CO2 (mol L-1 atm-1)
    "Kw": 10 ** -14,  # water dissociation (mol2 L-2)
}

# pCO2 in 1985, the median collection date of the profile data (atm).
PCO2_LAB = 0.000345

EXCHANGE_COLUMNS = ("pH", "ECEC", "EXAL")


def calcite_quartic(h, pco2: float, constants: Mapping[str, float] = CALCITE_CONSTANTS):
    """Charge-balance residual of the open calcite system as a function of [H+]."""
    k1, k2, ks, kh, kw = (constants[k] for k in ("K1", "K2", "Ks", "kH", "Kw"))
    t1 = (2.0 * ks / (k1 * k2 * kh * pco2)) * h**4
    t2 = h**3
    t3 = (kw + k1 * kh * pco2) * h
    t4 = 2.0 * (k1 * k2 * kh * pco2)
    return t1 + t2 - t3 - t4


def calcite_ph(
    pco2: float = PCO2_LAB,
    constants: Mapping[str, float] = CALCITE_CONSTANTS,
    interval: tuple[float, float] = (10**-8.5, 10**-8),
) -> float:
    """
    pH of the calcite buffer at `pco2` (atm).

    The root is searched for in `interval` ([H+] in mol L-1); the residual
    must change sign across it.
    """
    lo, hi = sorted(float(x) for x in interval)
    f_lo = calcite_quartic(lo, pco2, constants)
    f_hi = calcite_quartic(hi, pco2, constants)
    if np.sign(f_lo) == np.sign(f_hi):
        raise ValueError(f"No sign change for the calcite quartic on [{lo:.3g}, {hi:.3g}] at pCO2={pco2}")
    # Residuals are ~1e-20, so tolerances are set relative to [H+].
    h = optimize.brentq(calcite_quartic, lo, hi, args=(pco2, constants), xtol=lo * 1e-12, rtol=1e-12)
    return float(-math.log10(h))


def filter_exchange_rows(df: pd.DataFrame) -> pd.DataFrame:
    """
    Keep rows where the exchange models are defined: EXAL and ECEC present and
    positive, and EXAL < ECEC (exchangeable Ca = ECEC - EXAL must be positive).
    """
    missing = [c for c in EXCHANGE_COLUMNS if c not in df.columns]
    if missing:
        raise InputShapeError(f"exchange table missing required columns: {missing}")
    exal = pd.to_numeric(df["EXAL"], errors="coerce")
    ecec = pd.to_numeric(df["ECEC"], errors="coerce")
    ph = pd.to_numeric(df["pH"], errors="coerce")
    keep = exal.notna() & ecec.notna() & ph.notna() & (exal > 0) & (ecec > 0) & (exal < ecec)
    return df.loc[keep].copy()


@dataclass(frozen=True)
class RegressionFit:
    slope: float
    intercept: float
    r_squared: float
    p_value: float
    stderr: float


@dataclass(frozen=True)
class AluminumBuffer:
    gaines_thomas: RegressionFit
    gapon: RegressionFit
    # Gapon coefficients, pH = b0 + b1 * log10(Ca/Al).
    b0: float
    b1: float
    ph_al: float
    n_rows: int


def _fit(x: np.ndarray, y: np.ndarray) -> RegressionFit:
    res = stats.linregress(x, y)
    return RegressionFit(
        slope=float(res.slope),
        intercept=float(res.intercept),
        r_squared=float(res.rvalue**2),
        p_value=float(res.pvalue),
        stderr=float(res.stderr),
    )


def fit_exchange_models(df: pd.DataFrame) -> AluminumBuffer:
    ex = filter_exchange_rows(df)
    if len(ex) < 3:
        raise EmptyDomainError(f"Need at least 3 usable exchange rows to fit, got {len(ex)}")

    ex_al = ex["EXAL"].astype(float).to_numpy()
    ex_ca = ex["ECEC"].astype(float).to_numpy() - ex_al
    ph_obs = ex["pH"].astype(float).to_numpy()

    gaines_thomas = _fit(np.log10(ex_ca**3 / ex_al**2), ph_obs)
    gapon = _fit(np.log10(ex_ca / ex_al), ph_obs)
    logger.info(
        "Exchange models on %d rows: Gaines-Thomas r2=%.3f, Gapon r2=%.3f",
        len(ex),
        gaines_thomas.r_squared,
        gapon.r_squared,
    )
    return AluminumBuffer(
        gaines_thomas=gaines_thomas,
        gapon=gapon,
        b0=gapon.intercept,
        b1=gapon.slope,
        ph_al=round(float(np.mean(ph_obs)), 1),
        n_rows=int(len(ex)),
    )


def summarize_buffers(df: pd.DataFrame, *, pco2: float = PCO2_LAB) -> dict[str, Any]:
    """Both buffers as a JSON-serializable dict, rounded as reported."""
    al = fit_exchange_models(df)
    return {
        "calcite": {"pco2_atm": float(pco2), "ph": round(calcite_ph(pco2), 1)},
        "aluminum": asdict(al),
    }
