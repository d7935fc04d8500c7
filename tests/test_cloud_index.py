"""
Unit Tests for the cloud index - albedo floor, ceiling and clear-sky index.

Pure grid functions, table-driven where the formula has branches.
"""
import warnings

import numpy as np
import pytest

from daily_solar.solar.cloud_index import (
    albedo_floor,
    ceiling,
    clear_sky_index,
    smoothed_grid,
)


class TestClearSkyIndex:
    """Piecewise mapping d = (X - B) / (X - P) -> K."""

    CASES = [
        # (name, brightness, expected_k) with X=100, P=20
        ("at_floor_clear", 20.0, 1.0),
        ("half", 60.0, 0.5),
        ("just_above_threshold", 83.0, 17.0 / 80.0),
        ("at_threshold", 84.0, 0.2),
        ("at_ceiling", 100.0, 0.2),
        ("brighter_than_ceiling", 110.0, 0.2),
        ("below_floor_brightening", 15.0, 85.0 / 80.0),
        ("far_below_floor_clamped", 10.0, 1.09),
    ]

    @pytest.mark.parametrize(
        "name,brightness,expected",
        CASES,
        ids=[c[0] for c in CASES],
    )
    def test_formula(self, name, brightness, expected):
        k = clear_sky_index(np.array([[brightness]]), 100.0, np.array([[20.0]]))
        assert k[0, 0] == pytest.approx(expected), f"Failed on {name}"

    def test_degenerate_floor_equals_ceiling(self):
        """X == P must give K = 1, without numeric warnings."""
        b = np.array([[100.0, 80.0]])
        p = np.array([[100.0, 100.0]])
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            k = clear_sky_index(b, 100.0, p)
        assert k.tolist() == [[1.0, 1.0]]

    def test_brightness_at_ceiling_is_not_null(self):
        """The (X-B)/(X-B) term counts as 1, so B == X still gets a value."""
        k = clear_sky_index(np.array([[100.0]]), 100.0, np.array([[50.0]]))
        assert np.isfinite(k[0, 0])
        assert k[0, 0] == pytest.approx(0.2)

    def test_null_pixels_stay_null(self):
        b = np.array([[np.nan, 60.0, 60.0]])
        p = np.array([[20.0, np.nan, 20.0]])
        k = clear_sky_index(b, 100.0, p)
        assert np.isnan(k[0, 0])
        assert np.isnan(k[0, 1])
        assert k[0, 2] == pytest.approx(0.5)

    def test_bounded(self):
        rng = np.random.default_rng(7)
        b = rng.uniform(0, 400, size=(20, 20))
        p = rng.uniform(0, 100, size=(20, 20))
        k = clear_sky_index(b, 300.0, p)
        assert np.all(k >= 0.2)
        assert np.all(k <= 1.09)


class TestAlbedoFloor:
    """Per-pixel minimum over the lookback window."""

    def test_minimum(self):
        floor = albedo_floor([
            np.array([[5.0, 9.0]]),
            np.array([[7.0, 3.0]]),
            np.array([[6.0, 4.0]]),
        ])
        assert floor.tolist() == [[5.0, 3.0]]

    def test_single_grid_is_its_own_floor(self):
        grid = np.array([[12.5, 30.0], [7.0, 1.0]])
        np.testing.assert_array_equal(albedo_floor([grid]), grid)

    def test_nulls_are_skipped(self):
        floor = albedo_floor([
            np.array([[np.nan, np.nan]]),
            np.array([[4.0, np.nan]]),
        ])
        assert floor[0, 0] == 4.0
        assert np.isnan(floor[0, 1])

    def test_empty(self):
        with pytest.raises(ValueError):
            albedo_floor([])


class TestCeiling:
    """Smoothed maximum brightness."""

    def test_glint_is_rejected(self):
        grid = np.zeros((12, 12))
        grid[0:5, 0:5] = 200.0
        grid[9, 9] = 1000.0
        assert grid.max() == 1000.0
        assert ceiling(grid) == pytest.approx(200.0)

    def test_uniform_grid(self):
        grid = np.full((8, 8), 150.0)
        assert ceiling(grid) == pytest.approx(150.0)

    def test_nulls_ignored_in_average(self):
        grid = np.full((8, 8), 150.0)
        grid[3, 3] = np.nan
        grid[0, :] = np.nan
        smoothed = smoothed_grid(grid)
        assert np.all(np.isfinite(smoothed))
        assert ceiling(grid) == pytest.approx(150.0)

    def test_all_null(self):
        with pytest.raises(ValueError):
            ceiling(np.full((6, 6), np.nan))
