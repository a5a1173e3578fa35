import numpy as np
import pytest

from soilph.climate.pet import (
    BIOME_GA_TABLE,
    D50,
    DAYS_PER_MONTH,
    GS_MAX,
    KA,
    Q50,
    SECONDS_PER_DAY,
    SPECIFIC_HEAT,
    LATENT_HEAT,
    PT_ALPHA,
    ClimateInputs,
    air_density,
    annual_total,
    assign_param,
    atmospheric_pressure,
    compute_annual_pet,
    penman_monteith_leuning,
    priestley_taylor,
    psychrometric_constant,
    saturation_vapor_pressure,
    vapor_pressure_slope,
)
from soilph.errors import InputShapeError


def _inputs(shape=(2, 3, 12), **overrides) -> ClimateInputs:
    arrays = {
        "tmp": np.full(shape, 20.0),
        "vap": np.full(shape, 1.5),
        "rn_ceres": np.full(shape, 10.0),
        "sw_ceres": np.full(shape, 20.0),
        "lai": np.full(shape, 3.0),
        "cover": np.full(shape[:-1], 1),
        "elevation": np.full(shape[:-1], 100.0),
    }
    arrays.update(overrides)
    return ClimateInputs.from_mapping(arrays)


def test_saturation_vapor_pressure_matches_fao_table() -> None:
    assert saturation_vapor_pressure(0.0) == pytest.approx(0.6108)
    assert saturation_vapor_pressure(20.0) == pytest.approx(2.338, rel=1e-3)


def test_vapor_pressure_slope_matches_fao_table() -> None:
    assert vapor_pressure_slope(20.0) == pytest.approx(0.145, rel=5e-3)


def test_atmospheric_pressure_from_elevation() -> None:
    assert atmospheric_pressure(0.0) == pytest.approx(101.3)
    # FAO-56 example 2: 1800 m -> 81.8 kPa.
    assert atmospheric_pressure(1800.0) == pytest.approx(81.8, rel=2e-3)


def test_assign_param_returns_new_array_with_nan_for_unknown_codes() -> None:
    cover = np.array([[0, 1], [6, 99]])
    before = cover.copy()
    ga = assign_param(BIOME_GA_TABLE, cover)
    assert np.isnan(ga[0, 0])
    assert ga[0, 1] == pytest.approx(0.033)
    assert ga[1, 0] == pytest.approx(0.0125)
    assert np.isnan(ga[1, 1])
    np.testing.assert_array_equal(cover, before)


def test_priestley_taylor_hand_computed() -> None:
    ta, rn, p = 15.0, 12.0, 100.0
    delta = vapor_pressure_slope(ta)
    gamma = psychrometric_constant(p)
    expected = (1.0 / LATENT_HEAT) * PT_ALPHA * delta * rn / (delta + gamma) * DAYS_PER_MONTH
    assert float(priestley_taylor(rn, ta, p)) == pytest.approx(float(expected))
    assert float(priestley_taylor(0.0, ta, p)) == 0.0


def test_annual_total_sums_month_axis() -> None:
    assert annual_total(np.ones((2, 3, 12))).tolist() == [[12.0] * 3] * 2


def test_compute_annual_pet_shapes_and_values() -> None:
    result = compute_annual_pet(_inputs())
    assert result.pt_ceres.shape == (2, 3)
    assert result.pml.shape == (2, 3)
    assert result.pt_gewex is None
    assert np.isfinite(result.pml).all()
    assert (result.pml > 0).all()
    assert (result.pt_ceres > 0).all()
    assert sorted(result.as_arrays()) == ["annual_pml", "annual_pt_ceres"]


def test_gewex_estimate_is_optional() -> None:
    result = compute_annual_pet(_inputs(rn_gewex=np.full((2, 3, 12), 10.0)))
    assert result.pt_gewex is not None
    np.testing.assert_allclose(result.pt_gewex, result.pt_ceres)


def test_pml_is_nan_where_land_cover_has_no_conductance() -> None:
    cover = np.array([[0, 1, 13], [15, 10, 255]])
    pml = annual_total(penman_monteith_leuning(_inputs(cover=cover)))
    assert np.isnan(pml[0, 0]) and np.isnan(pml[0, 2])
    assert np.isnan(pml[1, 0]) and np.isnan(pml[1, 2])
    assert np.isfinite(pml[0, 1]) and np.isfinite(pml[1, 1])


def test_pml_with_bare_ground_is_soil_priestley_taylor() -> None:
    inputs = _inputs(lai=np.zeros((2, 3, 12)))
    pml = penman_monteith_leuning(inputs)
    pt = priestley_taylor(inputs.rn_ceres, inputs.tmp, atmospheric_pressure(inputs.elevation))
    np.testing.assert_allclose(pml, pt)


def test_shape_mismatch_is_rejected() -> None:
    with pytest.raises(InputShapeError):
        compute_annual_pet(_inputs(vap=np.full((2, 2, 12), 1.5)))


def test_missing_array_is_rejected() -> None:
    with pytest.raises(InputShapeError):
        ClimateInputs.from_mapping({"tmp": np.zeros((1, 1, 12))})


def test_pml_hand_computed_for_one_forest_cell() -> None:
    ta, vap, rn, sw, lai, elev = 20.0, 1.5, 10.0, 20.0, 3.0, 100.0
    pml = penman_monteith_leuning(_inputs(shape=(1, 1, 1)))

    p = atmospheric_pressure(elev)
    delta = vapor_pressure_slope(ta)
    gamma = psychrometric_constant(p)
    vpd = saturation_vapor_pressure(ta) - vap
    pa = air_density(p, ta)
    ga = 0.033 * SECONDS_PER_DAY
    soil_energy = rn * np.exp(-KA * lai)
    qh = 0.5 * sw * (1.0 - np.exp(-KA * lai))
    # Leuning et al. 2008 canopy conductance, one extinction coefficient throughout.
    gc = (GS_MAX / KA) * np.log((qh + Q50) / (qh * np.exp(-KA * lai) + Q50)) / (1.0 + vpd / D50) * SECONDS_PER_DAY
    canopy = ((rn - soil_energy) * delta + SPECIFIC_HEAT * pa * vpd * ga) / (delta + gamma * (1.0 + ga / gc)) / LATENT_HEAT
    soil = PT_ALPHA * soil_energy * delta / (delta + gamma) / LATENT_HEAT

    assert float(pml[0, 0, 0]) == pytest.approx(float((canopy + soil) * DAYS_PER_MONTH))
