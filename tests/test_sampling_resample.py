import numpy as np
import pandas as pd
import pytest

from soilph.errors import EmptyDomainError, InputShapeError, InvalidParameterError
from soilph.sampling.resample import (
    bootstrap_sample,
    nearest_occupied_cells,
    occupied_cells,
    search_area_mask,
    spatial_sample,
)


def _grid(cells: list[tuple[int, float, float, int]]) -> pd.DataFrame:
    return pd.DataFrame(cells, columns=["cellindex", "cclon", "cclat", "SEA"])


def _block_grid(lon0: int, lat0: int, size: int) -> pd.DataFrame:
    # size x size one-degree land cells with south-west corner at (lon0, lat0).
    rows = []
    idx = 1
    for i in range(size):
        for j in range(size):
            rows.append((idx, lon0 + i + 0.5, lat0 + j + 0.5, 1))
            idx += 1
    return _grid(rows)


def _profiles_in(grid: pd.DataFrame, cell_ids: list[int], per_cell: int = 1) -> pd.DataFrame:
    rows = []
    mid = 1
    for cid in cell_ids:
        cell = grid[grid["cellindex"] == cid].iloc[0]
        for k in range(per_cell):
            rows.append(
                {
                    "MID": mid,
                    "cellindex": cid,
                    "PID": f"P{mid}",
                    "cclon": float(cell["cclon"]),
                    "cclat": float(cell["cclat"]),
                    "pH": 5.0 + 0.1 * k,
                }
            )
            mid += 1
    return pd.DataFrame(rows)


def test_single_occupied_cell_supplies_every_row() -> None:
    grid = _grid(
        [
            (1, -0.5, 0.5, 1),
            (2, -0.5, -0.5, 1),
            (3, 0.5, 0.5, 1),
            (4, 0.5, -0.5, 1),
        ]
    )
    profiles = pd.DataFrame([{"MID": 1, "cellindex": 2, "cclon": -0.5, "cclat": -0.5, "pH": 6.7}])

    sampled = spatial_sample(profiles, grid, length_scale=1000, n=100, seed=1)

    assert len(sampled) == 100
    assert (sampled["MID"] == 1).all()
    assert list(sampled.columns) == list(profiles.columns)


def test_output_has_n_rows_from_occupied_cells_only() -> None:
    grid = _block_grid(0, 0, 10)
    profiles = _profiles_in(grid, [1, 5, 37, 88, 100], per_cell=3)

    sampled = spatial_sample(profiles, grid, length_scale=150, n=500, seed=7)

    assert len(sampled) == 500
    assert set(sampled["cellindex"]) <= set(profiles["cellindex"])
    assert list(sampled.columns) == list(profiles.columns)
    assert sampled.index.tolist() == list(range(500))
    # Every sampled row is an input row, unchanged.
    merged = sampled.merge(profiles, on=list(profiles.columns), how="left", indicator=True)
    assert (merged["_merge"] == "both").all()


def test_same_seed_gives_identical_output() -> None:
    grid = _block_grid(-5, 40, 8)
    profiles = _profiles_in(grid, [2, 9, 30, 64], per_cell=4)

    first = spatial_sample(profiles, grid, length_scale=200, n=300, seed=42)
    second = spatial_sample(profiles, grid, length_scale=200, n=300, seed=42)

    pd.testing.assert_frame_equal(first, second)


def test_explicit_generator_is_used() -> None:
    grid = _block_grid(-5, 40, 8)
    profiles = _profiles_in(grid, [2, 9, 30, 64], per_cell=4)

    a = spatial_sample(profiles, grid, length_scale=200, n=50, rng=np.random.default_rng(3))
    b = spatial_sample(profiles, grid, length_scale=200, n=50, seed=3)

    pd.testing.assert_frame_equal(a, b)


def test_input_tables_are_not_mutated() -> None:
    grid = _block_grid(0, 0, 4)
    profiles = _profiles_in(grid, [1, 16], per_cell=2)
    grid_before = grid.copy()
    profiles_before = profiles.copy()

    spatial_sample(profiles, grid, length_scale=500, n=20, seed=0)

    pd.testing.assert_frame_equal(grid, grid_before)
    pd.testing.assert_frame_equal(profiles, profiles_before)


def test_empty_profiles_fail() -> None:
    grid = _block_grid(0, 0, 2)
    profiles = pd.DataFrame(columns=["MID", "cellindex", "cclon", "cclat"])
    with pytest.raises(EmptyDomainError):
        spatial_sample(profiles, grid, length_scale=100, n=10, seed=0)


def test_profile_table_without_columns_counts_as_empty() -> None:
    grid = _block_grid(0, 0, 2)
    with pytest.raises(EmptyDomainError):
        spatial_sample(pd.DataFrame(), grid, length_scale=100, n=5, seed=0)


def test_no_land_in_range_fails() -> None:
    grid = _grid(
        [
            (1, 0.5, 0.5, 1),
            (2, 100.5, 45.5, 0),
        ]
    )
    profiles = pd.DataFrame([{"MID": 1, "cellindex": 2, "cclon": 100.5, "cclat": 45.5}])
    with pytest.raises(EmptyDomainError):
        spatial_sample(profiles, grid, length_scale=50, n=10, seed=0)


@pytest.mark.parametrize("n", [0, -5])
def test_non_positive_n_fails(n: int) -> None:
    grid = _block_grid(0, 0, 2)
    profiles = _profiles_in(grid, [1])
    with pytest.raises(InvalidParameterError):
        spatial_sample(profiles, grid, length_scale=100, n=n, seed=0)


@pytest.mark.parametrize("length_scale", [0.0, -1.0, float("nan")])
def test_invalid_length_scale_fails(length_scale: float) -> None:
    grid = _block_grid(0, 0, 2)
    profiles = _profiles_in(grid, [1])
    with pytest.raises(InvalidParameterError):
        spatial_sample(profiles, grid, length_scale=length_scale, n=5, seed=0)


def test_missing_grid_column_fails() -> None:
    grid = _block_grid(0, 0, 2).drop(columns=["SEA"])
    profiles = _profiles_in(_block_grid(0, 0, 2), [1])
    with pytest.raises(InputShapeError):
        spatial_sample(profiles, grid, length_scale=100, n=5, seed=0)


def test_search_area_uses_any_occupied_cell() -> None:
    occupied = pd.DataFrame({"cellindex": [1, 9], "cclon": [0.5, 10.5], "cclat": [0.5, 0.5]})
    land = _grid(
        [
            (1, 0.5, 0.5, 1),
            (2, 1.5, 0.5, 1),
            (3, 5.5, 0.5, 1),
            (4, 9.5, 0.5, 1),
        ]
    )
    # One degree at the equator is ~111.3 km.
    mask = search_area_mask(occupied, land, length_scale=120)
    assert mask.tolist() == [True, True, False, True]


def test_water_cells_never_become_sample_nodes() -> None:
    grid = _grid(
        [
            (1, 0.5, 0.5, 1),
            (2, 1.5, 0.5, 0),
        ]
    )
    profiles = pd.DataFrame(
        [
            {"MID": 1, "cellindex": 1, "cclon": 0.5, "cclat": 0.5},
            {"MID": 2, "cellindex": 2, "cclon": 1.5, "cclat": 0.5},
        ]
    )
    sampled = spatial_sample(profiles, grid, length_scale=200, n=200, seed=5)
    # Nodes can only sit on cell 1, whose nearest occupied cell is itself.
    assert (sampled["MID"] == 1).all()


def test_nodes_are_weighted_by_cell_area() -> None:
    grid = _grid(
        [
            (1, 0.5, 0.5, 1),
            (2, 0.5, 80.5, 1),
        ]
    )
    profiles = pd.DataFrame(
        [
            {"MID": 1, "cellindex": 1, "cclon": 0.5, "cclat": 0.5},
            {"MID": 2, "cellindex": 2, "cclon": 0.5, "cclat": 80.5},
        ]
    )
    sampled = spatial_sample(profiles, grid, length_scale=10, n=20000, seed=11)
    # Area ratio is about cos(80.5) / cos(0.5) = 0.165, so ~14% of draws land up north.
    polar_share = float((sampled["MID"] == 2).mean())
    assert 0.12 < polar_share < 0.16


def test_nearest_cell_ties_go_to_lowest_cellindex() -> None:
    profiles = pd.DataFrame(
        [
            {"MID": 1, "cellindex": 7, "cclon": -1.0, "cclat": 0.0},
            {"MID": 2, "cellindex": 3, "cclon": 1.0, "cclat": 0.0},
        ]
    )
    occupied = occupied_cells(profiles)
    assert occupied["cellindex"].tolist() == [3, 7]

    nodes = pd.DataFrame({"cclon": [0.0, -0.9, 0.9], "cclat": [0.0, 0.0, 0.0]})
    closest = nearest_occupied_cells(nodes, occupied, chunk_size=2)
    assert occupied["cellindex"].to_numpy()[closest].tolist() == [3, 7, 3]


def test_occupied_cells_keep_first_coordinate_per_cell() -> None:
    profiles = pd.DataFrame(
        [
            {"MID": 1, "cellindex": 5, "cclon": 2.5, "cclat": 1.5},
            {"MID": 2, "cellindex": 2, "cclon": 0.5, "cclat": 1.5},
            {"MID": 3, "cellindex": 5, "cclon": 2.5, "cclat": 1.5},
        ]
    )
    occupied = occupied_cells(profiles)
    assert occupied["cellindex"].tolist() == [2, 5]
    assert list(occupied.columns) == ["cellindex", "cclon", "cclat"]


def test_profiles_within_a_cell_are_drawn_uniformly() -> None:
    grid = _grid([(1, 0.5, 0.5, 1)])
    profiles = _profiles_in(grid, [1], per_cell=4)
    sampled = spatial_sample(profiles, grid, length_scale=50, n=8000, seed=2)
    shares = sampled["MID"].value_counts(normalize=True)
    assert sorted(shares.index.tolist()) == [1, 2, 3, 4]
    assert ((shares > 0.2) & (shares < 0.3)).all()


def test_bootstrap_sample_draws_input_rows() -> None:
    profiles = pd.DataFrame({"MID": [1, 2, 3], "cellindex": [1, 1, 2], "pH": [5.0, 6.0, 7.0]})
    a = bootstrap_sample(profiles, 50, seed=9)
    b = bootstrap_sample(profiles, 50, seed=9)
    assert len(a) == 50
    assert set(a["MID"]) <= {1, 2, 3}
    pd.testing.assert_frame_equal(a, b)


def test_bootstrap_sample_rejects_empty_and_bad_n() -> None:
    with pytest.raises(EmptyDomainError):
        bootstrap_sample(pd.DataFrame(columns=["MID"]), 5, seed=0)
    with pytest.raises(InvalidParameterError):
        bootstrap_sample(pd.DataFrame({"MID": [1]}), 0, seed=0)
