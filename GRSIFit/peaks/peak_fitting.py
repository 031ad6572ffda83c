"""
Peak fitting with lmfit.

Two entry points:
1. fit_single_peak: one SinglePeak, its own background, one window
2. PeakFitter:      several peaks on one shared global background

Data flow:
    (x, counts) → select window → lmfit.minimize → parameters written back
    into each peak's total function → update_background_parameters()

The fit writes values, errors and covariance into the peak's total
function, so every derived quantity (centroid, area, ...) reflects the
result immediately afterwards.
"""

from typing import List, Optional, Tuple
import logging

import numpy as np
import lmfit
from lmfit.minimizer import MinimizerResult

from GRSIFit.core.config import FitConfig, DrawConfig
from GRSIFit.core.functions import ParametricFunction, linear_background
from GRSIFit.peaks.single_peak import SinglePeak
from GRSIFit.peaks.fit_report import FitReport

logger = logging.getLogger(__name__)


# ============================================================================
# FITTING HELPERS
# ============================================================================

def _select_fitting_window(x: np.ndarray, counts: np.ndarray,
                           fit_range: Optional[Tuple[float, float]],
                           center: Optional[float],
                           config: FitConfig) -> Tuple[np.ndarray, np.ndarray, float, float]:
    """Select window and extract data. Returns (mask over x, y, x_min, x_max)."""
    x = np.asarray(x, dtype=float)
    counts = np.asarray(counts, dtype=float)
    if x.shape != counts.shape:
        raise ValueError(f"x and counts differ in shape: {x.shape} vs {counts.shape}")

    if fit_range is not None:
        x_min, x_max = fit_range
    elif center is not None:
        x_min, x_max = center - config.default_width, center + config.default_width
    else:
        x_min, x_max = x.min(), x.max()

    mask = (x >= x_min) & (x <= x_max)
    if mask.sum() < config.min_points:
        raise ValueError(f"Insufficient data in window [{x_min:.2f}, {x_max:.2f}]: "
                         f"{mask.sum()} points, need {config.min_points}")

    return mask, counts[mask], float(x_min), float(x_max)


def _residual_errors(y: np.ndarray, errors: Optional[np.ndarray], config: FitConfig) -> np.ndarray:
    if errors is not None:
        errors = np.asarray(errors, dtype=float)
        return np.where(errors > 0, errors, config.min_error)
    if config.poisson_errors:
        return np.sqrt(np.maximum(y, config.min_error ** 2))
    return np.ones_like(y)


def _minimize(residual, params: lmfit.Parameters, config: FitConfig) -> MinimizerResult:
    kws = {'method': config.method}
    if config.max_nfev is not None:
        kws['max_nfev'] = config.max_nfev
    return lmfit.minimize(residual, params, **kws)


def _full_covariance(result: MinimizerResult, names: List[str]) -> Optional[np.ndarray]:
    """Covariance over `names`, zero rows/columns for fixed parameters."""
    if result.covar is None:
        return None
    index = {name: i for i, name in enumerate(names)}
    cov = np.zeros((len(names), len(names)))
    positions = [index.get(var) for var in result.var_names]
    for a, i in enumerate(positions):
        for b, j in enumerate(positions):
            if i is not None and j is not None:
                cov[i, j] = result.covar[a, b]
    return cov


def _values_and_errors(params: lmfit.Parameters, names: List[str]) -> Tuple[np.ndarray, np.ndarray]:
    values = np.array([params[name].value for name in names])
    errors = np.array([params[name].stderr or 0.0 for name in names])
    return values, errors


# ============================================================================
# SINGLE PEAK
# ============================================================================

def fit_single_peak(peak: SinglePeak, x: np.ndarray, counts: np.ndarray,
                    fit_range: Optional[Tuple[float, float]] = None,
                    errors: Optional[np.ndarray] = None,
                    config: FitConfig = FitConfig()) -> MinimizerResult:
    """
    Fit one peak and its own background to a spectrum region.

    Args:
        peak: Peak shape; bound on the fly if it has no total function yet
        x: Bin centers
        counts: Bin contents
        fit_range: (x_min, x_max) window. If None, uses ±config.default_width
                   around the peak's current centroid (whole data when unbound)
        errors: Per-bin uncertainties. If None, sqrt(N) with a floor
        config: FitConfig

    Returns:
        lmfit MinimizerResult. The peak's total function holds the fitted
        parameters, errors and covariance, its background function is in sync.

    Example:
        >>> peak = GaussianPeak(centroid=1332.)
        >>> result = fit_single_peak(peak, channels, counts, fit_range=(1310, 1355))
        >>> peak.print_summary()
    """
    center = peak.centroid() if peak.get_total_function() is not None else None
    mask, y_fit, x_min, x_max = _select_fitting_window(x, counts, fit_range, center, config)
    x_fit = np.asarray(x, dtype=float)[mask]
    sigma = _residual_errors(y_fit, None if errors is None else np.asarray(errors)[mask], config)

    if peak.get_total_function() is None:
        peak.initialize_total_function(x_min, x_max)
    total = peak.get_total_function()
    names = total.param_names

    params = peak.make_params(x_fit, y_fit)

    def residual(p):
        values = np.array([p[name].value for name in names])
        return (y_fit - peak.total_function(x_fit, values)) / sigma

    result = _minimize(residual, params, config)

    values, par_errors = _values_and_errors(result.params, names)
    total.set_parameters(values)
    total.set_par_errors(par_errors)
    total.covariance = _full_covariance(result, names)
    total.set_range(x_min, x_max)

    peak.update_background_parameters()
    peak.get_background_function().set_range(x_min, x_max)

    if not result.success:
        logger.warning("Fit of %s in [%.2f, %.2f] did not converge: %s",
                       peak.name, x_min, x_max, result.message)
    if config.verbose:
        _print_fit_summary(result, [peak])

    return result


def _print_fit_summary(result: MinimizerResult, peaks: List[SinglePeak]) -> None:
    mark = "✓" if result.success else "⚠"
    print(f"  {mark} Fit: {len(peaks)} peak(s), {result.nvarys} free parameters, "
          f"χ²_reduced = {result.redchi:.3f}")
    for i, peak in enumerate(peaks):
        print(f"    [{i}] centroid={peak.centroid():.4f} ± {peak.centroid_err():.4f}, "
              f"area={peak.area():.1f} ± {peak.area_err():.1f}")


# ============================================================================
# MULTIPLE PEAKS ON A GLOBAL BACKGROUND
# ============================================================================

class PeakFitter:
    """
    Fit several peaks on one shared background.

    The composite function is the sum of every peak's peak_function plus
    the global background. Each peak's own background parameters are held
    at zero during the fit; after the fit every peak is bound to the global
    background so that peak.draw() shows it on top of that background.

    The fitter owns the default background it creates; a background passed
    in stays owned by the caller.
    """

    def __init__(self, x_min: float, x_max: float,
                 background: Optional[ParametricFunction] = None):
        if x_min >= x_max:
            raise ValueError(f"Invalid fit range [{x_min}, {x_max}]")
        self.x_min = float(x_min)
        self.x_max = float(x_max)
        self._peaks: List[SinglePeak] = []
        self._background = background if background is not None else linear_background(x_min, x_max)
        self._background.set_range(x_min, x_max)
        self.result: Optional[MinimizerResult] = None

    def __repr__(self) -> str:
        return f"PeakFitter([{self.x_min:g}, {self.x_max:g}], n_peaks={len(self._peaks)})"

    # --- composition ---

    @property
    def peaks(self) -> List[SinglePeak]:
        return list(self._peaks)

    @property
    def background(self) -> ParametricFunction:
        return self._background

    def add_peak(self, peak: SinglePeak) -> None:
        if peak.get_total_function() is None:
            raise ValueError(f"{peak!r} has no total function; construct it with a centroid")
        if any(p is peak for p in self._peaks):
            raise ValueError(f"{peak!r} is already part of this fit")
        self._peaks.append(peak)

    def remove_peak(self, peak: SinglePeak) -> None:
        self._peaks.remove(peak)
        peak.set_global_background(None)

    def set_background(self, background: ParametricFunction) -> None:
        background.set_range(self.x_min, self.x_max)
        self._background = background
        for peak in self._peaks:
            if peak.has_global_background():
                peak.set_global_background(background)

    # --- parameter layout ---

    @staticmethod
    def _prefix(i: int) -> str:
        return f"p{i}_"

    def _param_names(self) -> List[str]:
        names = []
        for i, peak in enumerate(self._peaks):
            names += [self._prefix(i) + name for name in peak.get_total_function().param_names]
        names += ["global_" + name for name in self._background.param_names]
        return names

    def _split(self, values: np.ndarray) -> Tuple[List[np.ndarray], np.ndarray]:
        slices, start = [], 0
        for peak in self._peaks:
            n = peak.get_n_parameters()
            slices.append(values[start:start + n])
            start += n
        return slices, values[start:]

    def _make_params(self, x: np.ndarray, y: np.ndarray) -> lmfit.Parameters:
        params = lmfit.Parameters()
        for i, peak in enumerate(self._peaks):
            # seed each peak from its own neighbourhood
            center = peak.centroid()
            half = max((self.x_max - self.x_min) / (2 * len(self._peaks)), np.diff(x).mean() * 5)
            local = (x >= center - half) & (x <= center + half)
            if local.sum() < 3:
                local = np.ones_like(x, dtype=bool)
            peak_params = peak.make_params(x[local], y[local], prefix=self._prefix(i))
            for j, name in enumerate(peak.get_total_function().param_names):
                par = peak_params[self._prefix(i) + name]
                if peak.is_background_parameter(j):
                    par.set(value=0.0, vary=False)
            params.update(peak_params)

        edge = min(y[0], y[-1])
        for j, name in enumerate(self._background.param_names):
            params.add("global_" + name, value=edge if j == 0 else 0.0)
        return params

    # --- evaluation ---

    def _composite(self, x: np.ndarray, values: np.ndarray) -> np.ndarray:
        peak_values, bg_values = self._split(values)
        y = np.asarray(self._background.eval_par(x, bg_values), dtype=float) + np.zeros_like(x)
        for peak, p in zip(self._peaks, peak_values):
            y = y + peak.peak_function(x, p)
        return y

    def eval(self, x) -> np.ndarray:
        """Composite curve with the current peak and background parameters."""
        x = np.asarray(x, dtype=float)
        values = [peak.get_total_function().get_parameters() for peak in self._peaks]
        values.append(self._background.get_parameters())
        return self._composite(x, np.concatenate(values) if values else np.zeros(0))

    # --- fitting ---

    def fit(self, x: np.ndarray, counts: np.ndarray,
            errors: Optional[np.ndarray] = None,
            config: FitConfig = FitConfig()) -> MinimizerResult:
        """
        Fit all peaks and the global background in [x_min, x_max].

        Returns:
            lmfit MinimizerResult (also kept as self.result)
        """
        if not self._peaks:
            raise ValueError("No peaks defined - cannot build model")

        mask, y_fit, _, _ = _select_fitting_window(x, counts, (self.x_min, self.x_max), None, config)
        x_fit = np.asarray(x, dtype=float)[mask]
        sigma = _residual_errors(y_fit, None if errors is None else np.asarray(errors)[mask], config)

        names = self._param_names()
        params = self._make_params(x_fit, y_fit)

        def residual(p):
            values = np.array([p[name].value for name in names])
            return (y_fit - self._composite(x_fit, values)) / sigma

        result = _minimize(residual, params, config)
        self._store(result, names)
        self.result = result

        if not result.success:
            logger.warning("Global fit in [%.2f, %.2f] did not converge: %s",
                           self.x_min, self.x_max, result.message)
        if config.verbose:
            _print_fit_summary(result, self._peaks)

        return result

    def _store(self, result: MinimizerResult, names: List[str]) -> None:
        values, errors = _values_and_errors(result.params, names)
        cov = _full_covariance(result, names)
        peak_values, bg_values = self._split(values)
        peak_errors, bg_errors = self._split(errors)

        start = 0
        for peak, p, e in zip(self._peaks, peak_values, peak_errors):
            n = len(p)
            total = peak.get_total_function()
            total.set_parameters(p)
            total.set_par_errors(e)
            total.covariance = None if cov is None else cov[start:start + n, start:start + n].copy()
            total.set_range(self.x_min, self.x_max)
            start += n

            peak.set_global_background(self._background)
            peak.update_background_parameters()
            peak.get_background_function().set_range(self.x_min, self.x_max)

        self._background.set_parameters(bg_values)
        self._background.set_par_errors(bg_errors)
        self._background.covariance = None if cov is None else cov[start:, start:].copy()

    # --- output ---

    def reports(self) -> List[FitReport]:
        return [FitReport(peak) for peak in self._peaks]

    def draw(self, ax=None, x: Optional[np.ndarray] = None, counts: Optional[np.ndarray] = None,
             config: DrawConfig = DrawConfig()):
        """
        Draw data (if given), the composite curve, the global background and
        each peak on top of it.

        Returns:
            Matplotlib axis
        """
        import matplotlib.pyplot as plt
        if ax is None:
            _, ax = plt.subplots(figsize=(8, 4))

        if x is not None and counts is not None:
            ax.step(x, counts, where='mid', color=config.data_color, linewidth=1, label='Data')

        grid = np.linspace(self.x_min, self.x_max, config.n_points)
        ax.plot(grid, self.eval(grid), color='blue', linewidth=config.linewidth, label='Total fit')
        self._background.draw(ax, n_points=config.n_points, linestyle='--', color='gray')

        for i, peak in enumerate(self._peaks):
            peak.draw(ax, n_points=config.n_points, label=f'Peak {i} ({peak.centroid():.2f})')
            if config.show_components:
                peak.draw_components(ax, n_points=config.n_points)

        ax.set_xlim(self.x_min, self.x_max)
        ax.legend(fontsize=9)
        return ax
