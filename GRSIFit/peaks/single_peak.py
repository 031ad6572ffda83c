"""
Single-peak models with separable peak and background components.

Every peak shape fits one total function (peak + background superposed)
but can also be evaluated piece by piece. The parameters of the total
function are classified as belonging to the background or to the peak,
a background-only function is materialised on demand, and a transient
composite is synthesised when the peak has to be shown on top of a
wider, shared background.

Lifecycle:
    peak = GaussianPeak(centroid=1332.)       # total function bound
    fit_single_peak(peak, x, counts)           # parameters populated
    peak.update_background_parameters()        # caller keeps bg in sync
    peak.set_global_background(global_bg)      # optional, non-owning
    peak.draw(ax)                              # peak on global background

The background function is a cached derived object. It is never updated
behind the caller's back: after any change to the total function's
parameters, call update_background_parameters().

The global background is borrowed. It must outlive every draw() and
peak_on_global_function() call that uses it; this is not checked.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator, List, Optional, Sequence, Tuple
import logging

import numpy as np
import lmfit

from GRSIFit.core.config import BACKGROUND_LINE_STYLE, DEFAULT_DOMAIN, DRAW_POINTS
from GRSIFit.core.functions import ParametricFunction

logger = logging.getLogger(__name__)


def _zeros_like(x) -> np.ndarray:
    x = np.asarray(x, dtype=float)
    return np.zeros_like(x) if x.ndim else 0.0


class SinglePeak(ABC):
    """
    Abstract peak shape bound to a composite fit function.

    Subclasses define:
        _param_names:       ordered parameter names of the total function
        _background_roles:  one bool per parameter, True = background
        peak_function, background_function:  per-component evaluators
        centroid, centroid_err, area, area_err:  derived quantities
        make_params:        lmfit seeds for a fit to data
    """

    _param_names: Tuple[str, ...] = ()
    _background_roles: Tuple[bool, ...] = ()

    def __init__(self):
        self._total_function: Optional[ParametricFunction] = None
        self._background_function: Optional[ParametricFunction] = None
        self._global_background: Optional[ParametricFunction] = None
        self._list_of_bg_pars: List[bool] = []

    def __repr__(self) -> str:
        state = "bound" if self._total_function is not None else "unbound"
        return f"{type(self).__name__}({state}, n_params={self.n_parameters})"

    # ------------------------------------------------------------------
    # Total function binding
    # ------------------------------------------------------------------

    def initialize_total_function(self, x_min: float = DEFAULT_DOMAIN[0],
                                  x_max: float = DEFAULT_DOMAIN[1]) -> ParametricFunction:
        """
        Bind a fresh total function built from this shape's total_function.

        Rebinding discards the cached background function.
        """
        total = ParametricFunction(f"{self.name}_total", self.total_function,
                                   x_min, x_max, n_params=len(self._param_names),
                                   param_names=self._param_names)
        self.bind_total_function(total, self._background_roles)
        return total

    def bind_total_function(self, function: ParametricFunction,
                            background_roles: Sequence[bool]) -> None:
        """Bind an existing function with an explicit role per parameter."""
        if len(background_roles) != function.n_params:
            raise ValueError(f"Need {function.n_params} parameter roles, got {len(background_roles)}")
        self._total_function = function
        self._list_of_bg_pars = [bool(role) for role in background_roles]
        self._background_function = None

    def get_total_function(self) -> Optional[ParametricFunction]:
        return self._total_function

    @property
    def name(self) -> str:
        return type(self).__name__.lower()

    # ------------------------------------------------------------------
    # Parameter classification
    # ------------------------------------------------------------------

    def is_background_parameter(self, index: int) -> bool:
        """
        True if parameter `index` belongs to the background sub-model.

        Unknown indices are reported and treated as background. This keeps
        compatibility with the historical behaviour; it is a fallback, not a
        statement that unknown parameters really describe the background.
        """
        if not 0 <= index < len(self._list_of_bg_pars):
            logger.warning("Parameter not in list: %d", index)
            return True
        return self._list_of_bg_pars[index]

    def is_peak_parameter(self, index: int) -> bool:
        return not self.is_background_parameter(index)

    def get_n_parameters(self) -> int:
        if self._total_function is None:
            return 0
        return self._total_function.n_params

    @property
    def n_parameters(self) -> int:
        return self.get_n_parameters()

    def background_parameter_indices(self) -> List[int]:
        return [i for i, is_bg in enumerate(self._list_of_bg_pars) if is_bg]

    def peak_parameter_indices(self) -> List[int]:
        return [i for i, is_bg in enumerate(self._list_of_bg_pars) if not is_bg]

    # ------------------------------------------------------------------
    # Component evaluators
    # ------------------------------------------------------------------

    @abstractmethod
    def peak_function(self, x, params):
        """Peak contribution only; background parameters are ignored."""

    @abstractmethod
    def background_function(self, x, params):
        """Background contribution only, read from the full parameter vector."""

    def total_function(self, x, params):
        return self.peak_function(x, params) + self.background_function(x, params)

    def peak_on_global_function(self, x, params):
        """
        Peak contribution plus the global background.

        params holds this peak's parameters followed by the global
        background's parameters. Zero when no global background is bound
        or this peak has no total function.
        """
        if self._global_background is None or self._total_function is None:
            return _zeros_like(x)
        params = np.asarray(params, dtype=float)
        n_own = self.get_n_parameters()
        return self.peak_function(x, params) + self._global_background.eval_par(x, params[n_own:])

    # ------------------------------------------------------------------
    # Background sub-function
    # ------------------------------------------------------------------

    def get_background_function(self) -> ParametricFunction:
        """Background-only function, built on first access and cached."""
        if self._background_function is None:
            names = self._total_function.param_names if self._total_function is not None else None
            self._background_function = ParametricFunction(f"{self.name}_bg", self.background_function,
                                                           *DEFAULT_DOMAIN,
                                                           n_params=self.get_n_parameters(),
                                                           param_names=names)
            self._background_function.line_style = BACKGROUND_LINE_STYLE
        return self._background_function

    def rebuild_background_function(self) -> ParametricFunction:
        """Discard the cached background function and build a new one."""
        self._background_function = None
        return self.get_background_function()

    def update_background_parameters(self) -> None:
        """Copy the total function's current parameters into the background function."""
        if self._total_function is None:
            return
        bg = self.get_background_function()
        bg.set_parameters(self._total_function.get_parameters())
        bg.set_par_errors(self._total_function.get_par_errors())

    # ------------------------------------------------------------------
    # Global background
    # ------------------------------------------------------------------

    def set_global_background(self, background: Optional[ParametricFunction]) -> None:
        self._global_background = background

    def get_global_background(self) -> Optional[ParametricFunction]:
        return self._global_background

    def has_global_background(self) -> bool:
        return self._global_background is not None

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    @contextmanager
    def _peak_on_global_curve(self) -> Iterator[ParametricFunction]:
        """Transient peak-on-global-background function, released on exit."""
        low, high = self._global_background.get_range()
        n_own = self.get_n_parameters()
        n_global = self._global_background.n_params
        tmp_func = ParametricFunction("draw_peak", self.peak_on_global_function,
                                      low, high, n_params=n_own + n_global)
        try:
            params = np.zeros(n_own + n_global)
            params[:n_own] = self._total_function.get_parameters()
            tmp_func.line_color = self._total_function.line_color
            tmp_func.line_style = self._total_function.line_style
            params[n_own:] = self._global_background.get_parameters()
            tmp_func.set_parameters(params)
            yield tmp_func
        finally:
            tmp_func.release()

    def draw(self, ax=None, n_points: int = DRAW_POINTS, **plot_kwargs):
        """
        Draw this peak on top of the global background.

        Nothing is drawn (and None returned) when no global background is
        bound or this peak has no total function. Otherwise returns the
        Line2D artists of the composite curve.
        """
        if self._global_background is None or self._total_function is None:
            return None
        with self._peak_on_global_curve() as tmp_func:
            return tmp_func.draw(ax, n_points=n_points, **plot_kwargs)

    def draw_components(self, ax=None, n_points: int = DRAW_POINTS):
        """Draw this peak's own total and background functions."""
        if self._total_function is None:
            return []
        lines = self._total_function.draw(ax, n_points=n_points)
        lines += self.get_background_function().draw(ax, n_points=n_points)
        return lines

    # ------------------------------------------------------------------
    # Derived quantities
    # ------------------------------------------------------------------

    @abstractmethod
    def centroid(self) -> float: ...

    @abstractmethod
    def centroid_err(self) -> float: ...

    @abstractmethod
    def area(self) -> float: ...

    @abstractmethod
    def area_err(self) -> float: ...

    def fwhm(self) -> Optional[float]:
        """Full width at half maximum, None when the shape has no closed form."""
        return None

    def _parameter(self, index: int) -> float:
        if self._total_function is None:
            return 0.0
        return self._total_function.get_parameter(index)

    def _parameter_error(self, index: int) -> float:
        if self._total_function is None:
            return 0.0
        return self._total_function.get_par_error(index)

    def _current_parameters(self) -> np.ndarray:
        if self._total_function is None:
            return np.zeros(len(self._param_names))
        return self._total_function.get_parameters()

    def _propagate_error(self, quantity: Callable[[np.ndarray], float]) -> float:
        """
        Uncertainty of quantity(params) from the fit covariance.

        Falls back to the diagonal parameter errors when no covariance is
        stored. Gradient by central differences.
        """
        if self._total_function is None:
            return 0.0
        params = self._total_function.get_parameters()
        cov = self._total_function.covariance
        if cov is None:
            cov = np.diag(self._total_function.get_par_errors() ** 2)

        grad = np.zeros_like(params)
        for i in np.flatnonzero(np.diag(cov) > 0):
            h = np.sqrt(np.finfo(float).eps) * max(abs(params[i]), 1.0)
            up, down = params.copy(), params.copy()
            up[i] += h
            down[i] -= h
            grad[i] = (quantity(up) - quantity(down)) / (2 * h)

        variance = float(grad @ cov @ grad)
        return float(np.sqrt(max(variance, 0.0)))

    # ------------------------------------------------------------------
    # Fit seeding
    # ------------------------------------------------------------------

    @abstractmethod
    def make_params(self, x: np.ndarray, y: np.ndarray, prefix: str = "") -> lmfit.Parameters:
        """Initial values and bounds for fitting this shape to (x, y)."""

    def _centroid_guess(self, x: np.ndarray, y: np.ndarray, index: int) -> float:
        """Current centroid when inside the data window, else the maximum bin."""
        if self._total_function is not None:
            current = self._total_function.get_parameter(index)
            if x.min() <= current <= x.max() and current != 0.0:
                return current
        return float(x[np.argmax(y)])

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def summary(self) -> str:
        return (f"Centroid = {self.centroid()} +/- {self.centroid_err()}\n"
                f"Area = {self.area()} +/- {self.area_err()}")

    def print_summary(self) -> None:
        print(self.summary())
