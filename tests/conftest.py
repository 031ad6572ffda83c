"""
Shared pytest fixtures for all test modules.
"""

import matplotlib
matplotlib.use("Agg")

import pytest
import numpy as np
import lmfit

from GRSIFit.peaks.single_peak import SinglePeak
from GRSIFit.peaks.shapes import gaussian
from GRSIFit.core.runinfo import teardown_run_info


class ThreeParameterPeak(SinglePeak):
    """Minimal shape: parameters (offset, height, slope), roles [bg, peak, bg]."""

    _param_names = ("offset", "height", "slope")
    _background_roles = (True, False, True)

    def peak_function(self, x, params):
        return params[1] * np.exp(-np.asarray(x, dtype=float) ** 2)

    def background_function(self, x, params):
        return params[0] + params[2] * np.asarray(x, dtype=float)

    def centroid(self):
        return 0.0

    def centroid_err(self):
        return 0.0

    def area(self):
        return self._parameter(1) * np.sqrt(np.pi)

    def area_err(self):
        return self._propagate_error(lambda p: p[1] * np.sqrt(np.pi))

    def make_params(self, x, y, prefix=""):
        params = lmfit.Parameters()
        params.add(f"{prefix}offset", value=0.0)
        params.add(f"{prefix}height", value=float(np.max(y)))
        params.add(f"{prefix}slope", value=0.0)
        return params


@pytest.fixture
def unbound_peak():
    """Three-parameter peak with no total function bound."""
    return ThreeParameterPeak()


@pytest.fixture
def three_param_peak():
    """Three-parameter peak bound to a total function with parameters [10, 2, 0.5]."""
    peak = ThreeParameterPeak()
    total = peak.initialize_total_function(-5.0, 5.0)
    total.set_parameters([10.0, 2.0, 0.5])
    return peak


@pytest.fixture
def rng():
    return np.random.default_rng(12345)


@pytest.fixture
def gaussian_spectrum(rng):
    """
    Poisson-fluctuated Gaussian (height 1000, centroid 50, sigma 2) on 10 + 0.1·x.

    Returns (x, counts, truth)
    """
    x = np.arange(0.0, 100.0, 0.5)
    truth = {'height': 1000.0, 'centroid': 50.0, 'sigma': 2.0, 'bg_offset': 10.0, 'bg_slope': 0.1}
    expected = gaussian(x, truth['height'], truth['centroid'], truth['sigma']) \
        + truth['bg_offset'] + truth['bg_slope'] * x
    return x, rng.poisson(expected).astype(float), truth


@pytest.fixture
def doublet_spectrum(rng):
    """
    Two Gaussians (40 and 60, sigma 2, heights 800/400) on 20 + 0.05·x.

    Returns (x, counts, truth)
    """
    x = np.arange(0.0, 100.0, 0.5)
    truth = {'centroids': (40.0, 60.0), 'heights': (800.0, 400.0), 'sigma': 2.0}
    expected = 20.0 + 0.05 * x
    for c, h in zip(truth['centroids'], truth['heights']):
        expected = expected + gaussian(x, h, c, truth['sigma'])
    return x, rng.poisson(expected).astype(float), truth


@pytest.fixture(autouse=True)
def _reset_run_info():
    """No test leaks the process-wide RunInfo into another."""
    yield
    teardown_run_info()
