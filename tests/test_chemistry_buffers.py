import json

import numpy as np
import pandas as pd
import pytest

from soilph.chemistry.buffers import (
    calcite_ph,
    calcite_quartic,
    filter_exchange_rows,
    fit_exchange_models,
    summarize_buffers,
)
from soilph.errors import EmptyDomainError, InputShapeError


def _exchange_table() -> pd.DataFrame:
    # pH = 4.0 + 0.5 * log10(Ca / Al) exactly, with Ca = ECEC - EXAL.
    ca = np.array([0.5, 1.0, 2.0, 5.0, 10.0])
    al = np.array([1.0, 2.0, 0.5, 1.0, 3.0])
    return pd.DataFrame(
        {
            "MID": [1, 2, 3, 4, 5],
            "pH": 4.0 + 0.5 * np.log10(ca / al),
            "ECEC": al + ca,
            "EXAL": al,
        }
    )


def test_calcite_ph_under_lab_conditions() -> None:
    ph = calcite_ph()
    assert 8.1 < ph < 8.4
    assert round(ph, 1) == 8.2


def test_calcite_root_zeroes_the_quartic() -> None:
    h = 10 ** -calcite_ph()
    scale = abs(calcite_quartic(10**-8, 0.000345))
    assert abs(calcite_quartic(h, 0.000345)) < scale * 1e-6


def test_calcite_ph_falls_as_pco2_rises() -> None:
    assert calcite_ph(0.0004) < calcite_ph(0.000345)


def test_calcite_ph_needs_a_bracketing_interval() -> None:
    with pytest.raises(ValueError):
        calcite_ph(interval=(1e-12, 1e-11))


def test_filter_exchange_rows_drops_undefined_rows() -> None:
    df = pd.DataFrame(
        {
            "MID": [1, 2, 3, 4, 5, 6, 7],
            "pH": [4.5, 4.6, 4.7, 4.8, 4.9, 5.0, np.nan],
            "ECEC": [10.0, 0.0, 5.0, 5.0, np.nan, 8.0, 8.0],
            "EXAL": [2.0, 1.0, 0.0, 5.0, 1.0, 9.0, 1.0],
        }
    )
    kept = filter_exchange_rows(df)
    assert kept["MID"].tolist() == [1]


def test_fit_exchange_models_recovers_gapon_coefficients() -> None:
    result = fit_exchange_models(_exchange_table())
    assert result.n_rows == 5
    assert result.b1 == pytest.approx(0.5)
    assert result.b0 == pytest.approx(4.0)
    assert result.gapon.r_squared == pytest.approx(1.0)
    assert result.gaines_thomas.r_squared < 1.0
    assert result.ph_al == 4.1


def test_fit_exchange_models_needs_rows() -> None:
    df = _exchange_table()
    df["EXAL"] = 0.0
    with pytest.raises(EmptyDomainError):
        fit_exchange_models(df)


def test_fit_exchange_models_needs_columns() -> None:
    with pytest.raises(InputShapeError):
        fit_exchange_models(_exchange_table().drop(columns=["EXAL"]))


def test_summarize_buffers_is_json_serializable() -> None:
    summary = summarize_buffers(_exchange_table())
    assert summary["calcite"]["ph"] == 8.2
    assert summary["aluminum"]["ph_al"] == 4.1
    json.dumps(summary)
