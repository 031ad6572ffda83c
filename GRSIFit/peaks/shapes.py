"""
Concrete peak shapes.

- GaussianPeak:       Gaussian on a linear background
- SkewedGaussianPeak: RadWare-style Gaussian + skewed Gaussian on a
                      smoothed step and a linear background
- CrystalBallPeak:    Gaussian core with power-law low-energy tail on a
                      linear background

All evaluators are vectorised over x and take the full parameter vector
of the total function; each component only reads what it needs.
"""

from typing import Optional

import numpy as np
import lmfit
from scipy.special import erf, erfc, erfcx

from GRSIFit.core.config import (FWHM_PER_SIGMA, DEFAULT_SIGMA, DEFAULT_BETA,
                                 DEFAULT_RELATIVE_SKEW, DEFAULT_STEP)
from GRSIFit.peaks.single_peak import SinglePeak

SQRT2 = np.sqrt(2.0)
SQRT2PI = np.sqrt(2.0 * np.pi)


# ============================================================================
# SHARED EVALUATORS
# ============================================================================

def gaussian(x, height, centroid, sigma):
    return height * np.exp(-0.5 * ((x - centroid) / sigma) ** 2)


def linear(x, offset, slope):
    return offset + slope * x


def skewed_gaussian(x, height, centroid, sigma, beta):
    """
    Gaussian convolved with a low-side exponential of decay length beta.

    exp(u/beta) * erfc(u/(√2σ) + σ/(√2β)) is evaluated through erfcx where
    the erfc argument is positive so the exponential cannot overflow.
    """
    u = x - centroid
    z = u / (SQRT2 * sigma) + sigma / (SQRT2 * beta)
    with np.errstate(over='ignore', invalid='ignore'):
        stable = erfcx(z) * np.exp(u / beta - z ** 2)
        direct = np.exp(u / beta) * erfc(z)
    return height * np.where(z > 0, stable, direct)


def smoothed_step(x, height, centroid, sigma):
    return 0.5 * height * erfc((x - centroid) / (SQRT2 * sigma))


def v_crystalball(x: np.ndarray, N: float, beta: float, m: float,
                  x0: float, sigma: float) -> np.ndarray:
    """
    Vectorized Crystal Ball shape.

    Args:
        x: Energy values
        N: Normalization amplitude
        beta: Tail transition in units of sigma (sign ignored, tail on the low side)
        m: Tail exponent (>1)
        x0: Peak position
        sigma: Peak width

    Returns:
        Array of values (same shape as x)
    """
    absb = np.abs(beta)
    z = (x - x0) / sigma

    gauss = np.exp(-0.5 * z**2)

    A_tail = (m / absb)**m * np.exp(-0.5 * absb**2)
    B = m / absb - absb
    with np.errstate(divide='ignore', invalid='ignore'):
        tail = A_tail / (B - z)**m

    return N * np.where(z > -absb, gauss, tail)


# ============================================================================
# GAUSSIAN
# ============================================================================

class GaussianPeak(SinglePeak):
    """
    Gaussian peak on a linear background.

    Parameters: height, centroid, sigma | bg_offset, bg_slope
    """

    _param_names = ("height", "centroid", "sigma", "bg_offset", "bg_slope")
    _background_roles = (False, False, False, True, True)

    def __init__(self, centroid: Optional[float] = None):
        super().__init__()
        if centroid is not None:
            total = self.initialize_total_function()
            total.set_parameters([0.0, centroid, DEFAULT_SIGMA, 0.0, 0.0])

    def peak_function(self, x, params):
        return gaussian(x, params[0], params[1], params[2])

    def background_function(self, x, params):
        return linear(x, params[3], params[4])

    def centroid(self) -> float:
        return self._parameter(1)

    def centroid_err(self) -> float:
        return self._parameter_error(1)

    @staticmethod
    def _area(params) -> float:
        return params[0] * abs(params[2]) * SQRT2PI

    def area(self) -> float:
        return self._area(self._current_parameters())

    def area_err(self) -> float:
        return self._propagate_error(self._area)

    def fwhm(self) -> float:
        return FWHM_PER_SIGMA * abs(self._parameter(2))

    def make_params(self, x, y, prefix=""):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        centroid = self._centroid_guess(x, y, 1)
        width = x.max() - x.min()
        baseline = min(y[0], y[-1])
        height = max(y.max() - baseline, 1.0)

        params = lmfit.Parameters()
        params.add(f"{prefix}height", value=height, min=0.0)
        params.add(f"{prefix}centroid", value=centroid, min=x.min(), max=x.max())
        params.add(f"{prefix}sigma", value=min(DEFAULT_SIGMA, width / 4), min=1e-3 * width, max=width)
        params.add(f"{prefix}bg_offset", value=baseline)
        params.add(f"{prefix}bg_slope", value=0.0)
        return params


# ============================================================================
# SKEWED GAUSSIAN (RadWare form)
# ============================================================================

class SkewedGaussianPeak(SinglePeak):
    """
    Gaussian plus skewed Gaussian on a step and a linear background.

    Parameters: height, centroid, sigma, beta, relative_skew (% of height)
                | step (% of height), bg_offset, bg_slope

    The step is classified as background, but its position, width and
    scale come from the peak's centroid, sigma and height.
    """

    _param_names = ("height", "centroid", "sigma", "beta", "relative_skew",
                    "step", "bg_offset", "bg_slope")
    _background_roles = (False, False, False, False, False, True, True, True)

    def __init__(self, centroid: Optional[float] = None):
        super().__init__()
        if centroid is not None:
            total = self.initialize_total_function()
            total.set_parameters([0.0, centroid, DEFAULT_SIGMA, DEFAULT_BETA,
                                  DEFAULT_RELATIVE_SKEW, DEFAULT_STEP, 0.0, 0.0])

    def peak_function(self, x, params):
        height, centroid, sigma, beta, skew = params[:5]
        fraction = skew / 100.0
        return (gaussian(x, height * (1.0 - fraction), centroid, sigma)
                + skewed_gaussian(x, height * fraction, centroid, sigma, beta))

    def background_function(self, x, params):
        height, centroid, sigma = params[:3]
        step = smoothed_step(x, height * params[5] / 100.0, centroid, sigma)
        return step + linear(x, params[6], params[7])

    def centroid(self) -> float:
        return self._parameter(1)

    def centroid_err(self) -> float:
        return self._parameter_error(1)

    @staticmethod
    def _area(params) -> float:
        height, _, sigma, beta, skew = params[:5]
        fraction = skew / 100.0
        sigma = abs(sigma)
        gauss_part = sigma * SQRT2PI * (1.0 - fraction)
        skew_part = fraction * 2.0 * beta * np.exp(-sigma**2 / (2.0 * beta**2))
        return height * (gauss_part + skew_part)

    def area(self) -> float:
        return self._area(self._current_parameters())

    def area_err(self) -> float:
        return self._propagate_error(self._area)

    def fwhm(self) -> float:
        """FWHM of the Gaussian core."""
        return FWHM_PER_SIGMA * abs(self._parameter(2))

    def make_params(self, x, y, prefix=""):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        centroid = self._centroid_guess(x, y, 1)
        width = x.max() - x.min()
        baseline = min(y[0], y[-1])
        height = max(y.max() - baseline, 1.0)
        sigma = min(DEFAULT_SIGMA, width / 4)

        params = lmfit.Parameters()
        params.add(f"{prefix}height", value=height, min=0.0)
        params.add(f"{prefix}centroid", value=centroid, min=x.min(), max=x.max())
        params.add(f"{prefix}sigma", value=sigma, min=1e-3 * width, max=width)
        params.add(f"{prefix}beta", value=max(DEFAULT_BETA, 0.5 * sigma), min=0.1 * sigma, max=width)
        params.add(f"{prefix}relative_skew", value=DEFAULT_RELATIVE_SKEW, min=0.0, max=100.0)
        params.add(f"{prefix}step", value=DEFAULT_STEP, min=0.0, max=100.0)
        params.add(f"{prefix}bg_offset", value=baseline)
        params.add(f"{prefix}bg_slope", value=0.0)
        return params


# ============================================================================
# CRYSTAL BALL
# ============================================================================

class CrystalBallPeak(SinglePeak):
    """
    Crystal Ball peak on a linear background.

    Parameters: N, x0, sigma, beta, m | bg_offset, bg_slope
    """

    _param_names = ("N", "x0", "sigma", "beta", "m", "bg_offset", "bg_slope")
    _background_roles = (False, False, False, False, False, True, True)

    def __init__(self, centroid: Optional[float] = None,
                 beta_init: float = -1.5, m_init: float = 2.0):
        super().__init__()
        self._beta_init = beta_init
        self._m_init = m_init
        if centroid is not None:
            total = self.initialize_total_function()
            total.set_parameters([0.0, centroid, DEFAULT_SIGMA, beta_init, m_init, 0.0, 0.0])

    def peak_function(self, x, params):
        N, x0, sigma, beta, m = params[:5]
        return v_crystalball(x, N=N, beta=beta, m=m, x0=x0, sigma=sigma)

    def background_function(self, x, params):
        return linear(x, params[5], params[6])

    def centroid(self) -> float:
        return self._parameter(1)

    def centroid_err(self) -> float:
        return self._parameter_error(1)

    @staticmethod
    def _area(params) -> float:
        """N·σ·[ m/(|β|(m-1)) e^{-β²/2} + √(π/2)(1 + erf(|β|/√2)) ]"""
        N, _, sigma, beta, m = params[:5]
        absb = abs(beta)
        tail = m / (absb * (m - 1.0)) * np.exp(-0.5 * absb**2)
        core = np.sqrt(np.pi / 2.0) * (1.0 + erf(absb / SQRT2))
        return N * abs(sigma) * (tail + core)

    def area(self) -> float:
        return self._area(self._current_parameters())

    def area_err(self) -> float:
        return self._propagate_error(self._area)

    def fwhm(self) -> float:
        """FWHM of the Gaussian core (the tail starts below half maximum for |β| > 1.18)."""
        return FWHM_PER_SIGMA * abs(self._parameter(2))

    def make_params(self, x, y, prefix=""):
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        centroid = self._centroid_guess(x, y, 1)
        width = x.max() - x.min()
        baseline = min(y[0], y[-1])
        N_value = max(y.max() - baseline, 1.0)

        params = lmfit.Parameters()
        params.add(f"{prefix}N", value=N_value, min=N_value * 0.1, max=N_value * 10)
        params.add(f"{prefix}x0", value=centroid, min=x.min(), max=x.max())
        params.add(f"{prefix}sigma", value=min(DEFAULT_SIGMA, width / 4), min=1e-3 * width, max=width)
        params.add(f"{prefix}beta", value=self._beta_init, min=-5, max=-0.1)
        params.add(f"{prefix}m", value=self._m_init, min=1.01, max=10)
        params.add(f"{prefix}bg_offset", value=baseline)
        params.add(f"{prefix}bg_slope", value=0.0)
        return params
