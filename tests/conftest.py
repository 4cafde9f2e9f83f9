"""
Shared pytest fixtures for all test modules.
"""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pytest

from peakfit.peaks.shapes import Shape, GAUSS, LINEAR, NO_BACKGROUND, gauss
from peakfit.peaks.single_peak import PeakModel
from peakfit.peaks.multi_peak import make_global_background


FIXED_CENTROID = 5.0
FIXED_SIGMA = 1.0


def fixed_gauss(x, height):
    """Gaussian with only its height free."""
    return gauss(x, height, FIXED_CENTROID, FIXED_SIGMA)


@pytest.fixture
def amplitude_shape():
    """1-parameter peak: amplitude at a fixed centroid."""
    return Shape('fixed_gauss', ('height',), fixed_gauss, centroid_param=None)


@pytest.fixture
def simple_peak(amplitude_shape):
    """Amplitude-only peak on a flat-plus-slope background: [A, b0, b1]."""
    peak = PeakModel(amplitude_shape, LINEAR, name='simple', x_range=(0.0, 10.0))
    peak.total_function.set_parameters([10.0, 2.0, 0.5])
    return peak


@pytest.fixture
def global_bg():
    """2-parameter linear global background (g0, g1) over [0, 10]."""
    gb = make_global_background((0.0, 10.0), LINEAR, name='global')
    gb.set_parameters([1.0, 1.0])
    return gb


@pytest.fixture
def spectrum():
    """Noise-free Gaussian (h=200, c=50, s=3) on 20 + 0.1 x, with a small deterministic ripple."""
    x = np.arange(20.0, 80.0, 0.5)
    y = gauss(x, 200.0, 50.0, 3.0) + 20.0 + 0.1 * x + 1.5 * np.sin(1.7 * x)
    return x, y


@pytest.fixture
def two_peak_spectrum():
    """Two Gaussians on a linear continuum (no noise)."""
    x = np.arange(20.0, 100.0, 0.5)
    y = (gauss(x, 150.0, 50.0, 2.5) + gauss(x, 90.0, 70.0, 3.0)
         + 15.0 + 0.05 * x)
    return x, y


@pytest.fixture
def gauss_on_nothing():
    """Gaussian peak without local background, for joint fits."""
    def make(name, centroid):
        peak = PeakModel(GAUSS, NO_BACKGROUND, name=name,
                         x_range=(centroid - 10, centroid + 10))
        peak.total_function.set_parameters([100.0, centroid, 2.0])
        return peak
    return make
