"""Tests for the heating and cooling degree day calculation."""

import numpy as np
import pandas as pd
import pytest

from edge_buildings.calc_degree_days import (
    InvalidParameterError,
    InvalidRangeError,
    calc_hdd_cdd,
    degree_days,
    temperature_grid,
)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def tlim():
    """Return limit temperatures for both kinds."""
    return {"HDD": [0, 10], "CDD": [10, 20]}


@pytest.fixture(params=["closed", "integral"])
def method(request):
    """Run a test with both calculation methods."""
    return request.param


def get_value(df, tamb, tlim, kind):
    row = df[np.isclose(df["tamb"], tamb) & np.isclose(df["tlim"], tlim)
             & (df["variable"] == kind)]
    assert len(row) == 1
    return row["value"].iloc[0]


# =============================================================================
# Tests: temperature_grid
# =============================================================================


class TestTemperatureGrid:
    """Tests for the ambient temperature grid."""

    def test_upper_bound_excluded(self):
        grid = temperature_grid(-10, 10)
        assert len(grid) == 200
        assert grid[0] == -10.0
        assert grid[-1] == 9.9

    def test_single_point(self):
        np.testing.assert_array_equal(temperature_grid(0, 0.1), [0.0])

    def test_grid_rounded_to_resolution(self):
        grid = temperature_grid(-1, 1)
        np.testing.assert_array_equal(grid, np.round(grid, 1))
        assert 0.3 in grid

    def test_off_grid_lower_bound(self):
        grid = temperature_grid(0.05, 0.35)
        np.testing.assert_allclose(grid, [0.05, 0.15, 0.25])
        assert grid[0] == 0.05

    def test_non_decimal_resolution(self):
        np.testing.assert_array_equal(temperature_grid(0, 1, resolution=0.25),
                                      [0, 0.25, 0.5, 0.75])

    def test_integer_resolution(self):
        np.testing.assert_array_equal(temperature_grid(-2, 2, resolution=1),
                                      [-2, -1, 0, 1])


# =============================================================================
# Tests: input validation
# =============================================================================


class TestValidation:
    """Invalid input raises before any calculation."""

    def test_inverted_bounds(self, tlim):
        with pytest.raises(InvalidRangeError):
            calc_hdd_cdd(10, 5, tlim)

    def test_inverted_bounds_take_precedence(self, tlim):
        """Range errors are raised regardless of other parameters."""
        with pytest.raises(InvalidRangeError):
            calc_hdd_cdd(10, 5, tlim, tamb_std=-1)

    def test_equal_bounds(self, tlim):
        with pytest.raises(InvalidRangeError):
            calc_hdd_cdd(5, 5, tlim)

    def test_infinite_bound(self, tlim):
        with pytest.raises(InvalidRangeError):
            calc_hdd_cdd(-np.inf, 5, tlim)

    def test_negative_ambient_std(self, tlim):
        with pytest.raises(InvalidParameterError):
            calc_hdd_cdd(-10, 10, tlim, tamb_std=-1)

    def test_negative_limit_std(self, tlim):
        with pytest.raises(InvalidParameterError):
            calc_hdd_cdd(-10, 10, tlim, tlim_std=-0.5)

    def test_missing_kind(self):
        with pytest.raises(InvalidParameterError):
            calc_hdd_cdd(-10, 10, {"HDD": [15]})

    def test_errors_are_value_errors(self, tlim):
        with pytest.raises(ValueError):
            calc_hdd_cdd(10, 5, tlim)

    def test_unknown_method(self, tlim):
        with pytest.raises(NotImplementedError):
            calc_hdd_cdd(-10, 10, tlim, method="montecarlo")

    def test_unknown_kind(self):
        with pytest.raises(NotImplementedError):
            degree_days(0, 10, "GDD")

    def test_unknown_kind_in_limits(self):
        with pytest.raises(NotImplementedError, match="GDD"):
            calc_hdd_cdd(-10, 10, {"HDD": [], "CDD": [], "GDD": [15]})

    def test_unknown_method_without_limits(self):
        with pytest.raises(NotImplementedError):
            calc_hdd_cdd(-10, 10, {"HDD": [], "CDD": []}, method="montecarlo")


# =============================================================================
# Tests: result table
# =============================================================================


class TestResultTable:
    """Shape and content of the result table."""

    def test_boundary_single_row(self, method):
        df = calc_hdd_cdd(0, 0.1, {"HDD": [5], "CDD": []},
                          tamb_std=0, tlim_std=0, method=method)
        assert len(df) == 1
        row = df.iloc[0]
        assert row["tamb"] == 0
        assert row["tlim"] == 5
        assert row["variable"] == "HDD"
        assert row["value"] == 5
        assert (df["variable"] == "CDD").sum() == 0

    def test_off_grid_lower_bound(self, method):
        df = calc_hdd_cdd(0.05, 0.15, {"HDD": [5], "CDD": []},
                          tamb_std=0, tlim_std=0, method=method)
        assert len(df) == 1
        assert df["tamb"].iloc[0] == 0.05
        assert df["value"].iloc[0] == pytest.approx(4.95)

    def test_columns(self, tlim):
        df = calc_hdd_cdd(-1, 1, tlim)
        assert list(df.columns) == ["tamb", "tlim", "variable", "value"]

    def test_empty_limits(self):
        df = calc_hdd_cdd(-1, 1, {"HDD": [], "CDD": []})
        assert df.empty
        assert list(df.columns) == ["tamb", "tlim", "variable", "value"]

    def test_scenario(self, tlim, method):
        df = calc_hdd_cdd(-10, 10, tlim, tamb_std=5, tlim_std=5,
                          method=method)
        n = len(temperature_grid(-10, 10))
        assert (df["variable"] == "HDD").sum() == n * 2
        assert (df["variable"] == "CDD").sum() == n * 2
        assert (df["value"] >= 0).all()

        # variability smooths the ramp: the expectation lies above the
        # deterministic value but by less than sigma/sqrt(2*pi)
        v = get_value(df, 0, 10, "HDD")
        assert 10 < v < 10 + np.sqrt(50) / np.sqrt(2 * np.pi)

    def test_row_order(self, tlim):
        df = calc_hdd_cdd(0, 0.3, tlim)
        assert list(df["variable"].unique()) == ["HDD", "CDD"]
        hdd = df[df["variable"] == "HDD"]
        np.testing.assert_array_equal(hdd["tamb"], [0, 0, 0.1, 0.1, 0.2, 0.2])
        np.testing.assert_array_equal(hdd["tlim"], [0, 10] * 3)


# =============================================================================
# Tests: properties of the estimator
# =============================================================================


class TestProperties:
    """Mathematical properties of the expected degree days."""

    @pytest.mark.parametrize("tamb_std,tlim_std", [(0, 0), (5, 5), (0, 5),
                                                   (2, 0), (15, 15)])
    def test_non_negative(self, tlim, method, tamb_std, tlim_std):
        df = calc_hdd_cdd(-50, 50, tlim, tamb_std=tamb_std,
                          tlim_std=tlim_std, method=method, resolution=1)
        assert (df["value"] >= 0).all()

    def test_zero_variability_is_ramp(self, tlim, method):
        df = calc_hdd_cdd(-30, 30, tlim, tamb_std=0, tlim_std=0,
                          method=method)
        hdd = df[df["variable"] == "HDD"]
        cdd = df[df["variable"] == "CDD"]
        np.testing.assert_array_equal(hdd["value"],
                                      np.maximum(0, hdd["tlim"] - hdd["tamb"]))
        np.testing.assert_array_equal(cdd["value"],
                                      np.maximum(0, cdd["tamb"] - cdd["tlim"]))

    def test_hdd_strictly_increasing_in_limit(self):
        limits = np.linspace(-5, 25, 31)
        hdd = degree_days(5, limits, "HDD", tamb_std=5, tlim_std=5)
        assert np.all(np.diff(hdd) > 0)

    def test_cdd_decreasing_in_limit(self, method):
        limits = np.linspace(-5, 25, 31)
        cdd = degree_days(5, limits, "CDD", tamb_std=5, tlim_std=5,
                          method=method)
        assert np.all(np.diff(cdd) <= 0)

    def test_hdd_increasing_in_limit_integral(self):
        limits = np.linspace(-5, 25, 31)
        hdd = degree_days(5, limits, "HDD", tamb_std=5, tlim_std=5,
                          method="integral")
        assert np.all(np.diff(hdd) > 0)

    def test_sign_flip_symmetry(self, method):
        tamb = temperature_grid(-20, 20)
        for limit in [-5, 0, 12.5, 18]:
            hdd = degree_days(tamb, limit, "HDD", tamb_std=3, tlim_std=4,
                              method=method)
            cdd = degree_days(-tamb, -limit, "CDD", tamb_std=3, tlim_std=4,
                              method=method)
            np.testing.assert_array_equal(hdd, cdd)

    def test_closed_form_at_zero_gap(self):
        """At equal means the expectation is sigma/sqrt(2*pi)."""
        v = degree_days(15, 15, "HDD", tamb_std=3, tlim_std=4)
        assert v == pytest.approx(5 / np.sqrt(2 * np.pi))

    def test_large_gap_approaches_ramp(self):
        v = degree_days(-30, 18, "HDD", tamb_std=5, tlim_std=5)
        assert v == pytest.approx(48, abs=1e-6)

    def test_methods_agree(self, tlim):
        """The truncated double sum agrees with the closed form within 0.1."""
        closed = calc_hdd_cdd(-20, 30, tlim, method="closed")
        integral = calc_hdd_cdd(-20, 30, tlim, method="integral")
        np.testing.assert_allclose(integral["value"], closed["value"],
                                   atol=0.1)

    def test_methods_agree_one_sided_variability(self):
        tamb = temperature_grid(0, 20, resolution=0.5)
        closed = degree_days(tamb, 15, "HDD", tamb_std=4, tlim_std=0)
        integral = degree_days(tamb, 15, "HDD", tamb_std=4, tlim_std=0,
                               method="integral")
        np.testing.assert_allclose(integral, closed, atol=0.1)

    def test_deterministic(self, tlim):
        pd.testing.assert_frame_equal(calc_hdd_cdd(-5, 5, tlim),
                                      calc_hdd_cdd(-5, 5, tlim))
