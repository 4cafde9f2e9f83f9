"""
Tests for peak and background shapes.
"""

import numpy as np
import pytest
from scipy import integrate
from scipy.special import erfc

from peakfit.peaks.shapes import (GAUSS, SKEWED_GAUSSIAN, RADWARE, CRYSTAL_BALL, NO_BACKGROUND,
                                  CONSTANT, QUADRATIC, STEP, LINEAR, STEP_LINEAR,
                                  gauss, gauss_area, radware, radware_area,
                                  skewed_gaussian, skewed_gaussian_area,
                                  skewed_gauss, v_crystalball, step_background,
                                  sum_shapes, get_peak_shape, get_background_shape)


class TestPeakShapes:

    def test_gauss_peak_value(self):
        assert gauss(50.0, 200.0, 50.0, 3.0) == pytest.approx(200.0)
        assert gauss(53.0, 200.0, 50.0, 3.0) == pytest.approx(200.0 * np.exp(-0.5))

    def test_gauss_area(self):
        area, _ = integrate.quad(lambda t: gauss(t, 200.0, 50.0, 3.0), 0, 100)
        assert gauss_area(200.0, 50.0, 3.0) == pytest.approx(area, rel=1e-8)

    def test_skewed_gauss_matches_direct_form(self):
        """The stable evaluation agrees with exp(d/beta) * erfc(z) where that is finite."""
        x = np.linspace(-10, 10, 81)
        h, c, s, b = 5.0, 0.0, 1.2, 2.0
        direct = h * np.exp((x - c) / b) * erfc((x - c) / (np.sqrt(2) * s) + s / (np.sqrt(2) * b))
        np.testing.assert_allclose(skewed_gauss(x, h, c, s, b), direct, rtol=1e-7, atol=1e-300)

    def test_skewed_gauss_finite_far_from_peak(self):
        x = np.array([-1e4, -50.0, 0.0, 50.0, 1e4])
        y = skewed_gauss(x, 100.0, 0.0, 1.0, 0.05)
        assert np.all(np.isfinite(y))
        assert y[-1] == pytest.approx(0.0)

    def test_radware_without_skew_is_gauss(self):
        x = np.linspace(40, 60, 21)
        np.testing.assert_allclose(radware(x, 10.0, 50.0, 2.0, 0.0, 1.0), gauss(x, 10.0, 50.0, 2.0))

    def test_skewed_gaussian_area(self):
        values = (80.0, 0.0, 1.2, 40.0, 3.0)
        area, _ = integrate.quad(lambda t: skewed_gaussian(t, *values), -80, 40, limit=200)
        assert skewed_gaussian_area(*values) == pytest.approx(area, rel=1e-6)

    def test_radware_is_gaussian_plus_skewed_gaussian(self):
        x = np.linspace(40, 60, 21)
        values = (10.0, 50.0, 2.0, 25.0, 1.5)
        expected = 0.75 * gauss(x, *values[:3]) + skewed_gaussian(x, *values)
        np.testing.assert_allclose(radware(x, *values), expected)

    def test_radware_area(self):
        values = (120.0, 0.0, 1.5, 30.0, 2.0)
        area, _ = integrate.quad(lambda t: radware(t, *values), -60, 60, limit=200)
        assert radware_area(*values) == pytest.approx(area, rel=1e-6)

    def test_crystalball_continuous_at_transition(self):
        N, beta, m, x0, sigma = 10.0, -1.5, 2.0, 5.0, 0.2
        xt = x0 - abs(beta) * sigma
        left = v_crystalball(xt - 1e-9, N, beta, m, x0, sigma)
        right = v_crystalball(xt + 1e-9, N, beta, m, x0, sigma)
        assert left == pytest.approx(right, rel=1e-6)

    def test_crystalball_tail_is_low_side(self):
        N, beta, m, x0, sigma = 1.0, -1.0, 3.0, 0.0, 1.0
        assert v_crystalball(-5.0, N, beta, m, x0, sigma) > v_crystalball(5.0, N, beta, m, x0, sigma)


class TestBackgroundShapes:

    def test_step_levels(self):
        assert step_background(-100.0, 200.0, 0.0, 1.0, 5.0) == pytest.approx(10.0)
        assert step_background(0.0, 200.0, 0.0, 1.0, 5.0) == pytest.approx(5.0)
        assert step_background(100.0, 200.0, 0.0, 1.0, 5.0) == pytest.approx(0.0)

    def test_step_shares_peak_parameters(self):
        assert STEP.param_names == ('height', 'centroid', 'sigma', 'step')

    def test_sum_shapes_merges_names(self):
        assert STEP_LINEAR.param_names == ('height', 'centroid', 'sigma', 'step', 'bg_offset', 'bg_slope')
        x = np.linspace(-5, 5, 11)
        values = (100.0, 0.0, 1.0, 2.0, 3.0, 0.5)
        expected = step_background(x, *values[:4]) + values[4] + values[5] * x
        np.testing.assert_allclose(STEP_LINEAR.evaluate(x, values), expected)

    def test_sum_shapes_with_shared_names(self):
        both = sum_shapes('gauss_line', GAUSS, LINEAR)
        assert both.n_params == 5
        assert both.evaluate(0.0, (1.0, 0.0, 1.0, 2.0, 0.0)) == pytest.approx(3.0)


class TestRegistry:

    @pytest.mark.parametrize("name, shape", [
        ('gaussian', GAUSS),
        ('skewed_gaussian', SKEWED_GAUSSIAN),
        ('radware', RADWARE),
        ('crystal_ball', CRYSTAL_BALL),
    ])
    def test_peak_lookup(self, name, shape):
        assert get_peak_shape(name) is shape
        assert shape.name == name

    @pytest.mark.parametrize("name, shape", [
        ('no_background', NO_BACKGROUND),
        ('constant', CONSTANT),
        ('linear', LINEAR),
        ('quadratic', QUADRATIC),
        ('step', STEP),
        ('step_linear', STEP_LINEAR),
    ])
    def test_background_lookup(self, name, shape):
        assert get_background_shape(name) is shape
        assert shape.name == name

    def test_skewed_gaussian_layout(self):
        assert SKEWED_GAUSSIAN.param_names == ('height', 'centroid', 'sigma', 'R', 'beta')
        assert SKEWED_GAUSSIAN.centroid_param == 'centroid'

    def test_unknown(self):
        with pytest.raises(ValueError):
            get_peak_shape('voigt')
        with pytest.raises(ValueError):
            get_background_shape('spline')


if __name__ == "__main__":
    pytest.main([__file__, "-v", "-s"])
