"""
One-dimensional parametric functions.

A ParametricFunction couples a vectorised callable ``func(x, params)`` with
its own parameter vector, parameter errors, an evaluation range and
cosmetic line attributes. Peak models build their total, background and
transient display functions out of these objects.
"""

from __future__ import annotations
from typing import Callable, Optional, Sequence, Tuple

import numpy as np
import matplotlib.pyplot as plt     # type: ignore[import]

from GRSIFit.core.config import DEFAULT_LINE_COLOR, DEFAULT_LINE_STYLE, DRAW_POINTS

Evaluator = Callable[[np.ndarray, np.ndarray], np.ndarray]


class ParametricFunction:
    """Callable curve with a parameter vector, a range and line styling."""

    def __init__(self, name: str, func: Evaluator,
                 x_min: float = 0.0, x_max: float = 1.0,
                 n_params: int = 0,
                 param_names: Optional[Sequence[str]] = None):
        if n_params < 0:
            raise ValueError(f"n_params must be non-negative, got {n_params}")
        if param_names is not None and len(param_names) != n_params:
            raise ValueError(f"Expected {n_params} parameter names, got {len(param_names)}")

        self.name = name
        self._func: Optional[Evaluator] = func
        self._params = np.zeros(n_params)
        self._errors = np.zeros(n_params)
        self._names = list(param_names) if param_names is not None else [f"p{i}" for i in range(n_params)]
        self.covariance: Optional[np.ndarray] = None
        self._x_min = 0.0
        self._x_max = 1.0
        self.set_range(x_min, x_max)

        self.line_color = DEFAULT_LINE_COLOR
        self.line_style = DEFAULT_LINE_STYLE

    def __repr__(self) -> str:
        return (f"ParametricFunction({self.name}, n_params={self.n_params}, "
                f"range=[{self._x_min:g}, {self._x_max:g}])")

    # --- evaluation ---

    def __call__(self, x):
        return self.eval_par(x)

    def eval_par(self, x, params=None):
        """Evaluate at x with explicit parameters (own parameters when None)."""
        if self._func is None:
            raise RuntimeError(f"Function '{self.name}' has been released")
        p = self._params if params is None else np.asarray(params, dtype=float)
        return self._func(np.asarray(x, dtype=float), p)

    # --- parameters ---

    @property
    def n_params(self) -> int:
        return len(self._params)

    @property
    def param_names(self) -> list[str]:
        return list(self._names)

    def get_par_name(self, index: int) -> str:
        return self._names[index]

    def get_parameters(self) -> np.ndarray:
        return self._params.copy()

    def set_parameters(self, values) -> None:
        """Copy the first min(n_params, len(values)) entries of values."""
        values = np.asarray(values, dtype=float).ravel()
        n = min(self.n_params, len(values))
        self._params[:n] = values[:n]

    def get_parameter(self, index: int) -> float:
        return float(self._params[index])

    def set_parameter(self, index: int, value: float) -> None:
        self._params[index] = value

    def get_par_errors(self) -> np.ndarray:
        return self._errors.copy()

    def set_par_errors(self, values) -> None:
        values = np.asarray(values, dtype=float).ravel()
        n = min(self.n_params, len(values))
        self._errors[:n] = values[:n]

    def get_par_error(self, index: int) -> float:
        return float(self._errors[index])

    # --- range ---

    def get_range(self) -> Tuple[float, float]:
        return self._x_min, self._x_max

    def set_range(self, low: float, high: float) -> None:
        if low > high:
            raise ValueError(f"Invalid range [{low}, {high}] for '{self.name}'")
        self._x_min, self._x_max = float(low), float(high)

    # --- rendering / lifetime ---

    def draw(self, ax=None, n_points: int = DRAW_POINTS, **plot_kwargs):
        """
        Plot the curve over its range.

        Args:
            ax: Matplotlib axis (current axis when None)
            n_points: Number of samples across the range
            **plot_kwargs: Forwarded to ax.plot (override color/linestyle)

        Returns:
            List of Line2D artists
        """
        if ax is None:
            ax = plt.gca()
        x = np.linspace(self._x_min, self._x_max, n_points)
        y = np.broadcast_to(self.eval_par(x), x.shape)
        style = {'color': self.line_color, 'linestyle': self.line_style, 'label': self.name}
        style.update(plot_kwargs)
        return ax.plot(x, y, **style)

    def release(self) -> None:
        """Drop the callable and parameter storage."""
        self._func = None
        self._params = np.zeros(0)
        self._errors = np.zeros(0)
        self.covariance = None

    @property
    def released(self) -> bool:
        return self._func is None


# -------------------------------
# Common global backgrounds
# -------------------------------

def _polynomial(x: np.ndarray, params: np.ndarray) -> np.ndarray:
    return np.polyval(params[::-1], x) + np.zeros_like(x)


def linear_background(x_min: float, x_max: float, name: str = "global_bg") -> ParametricFunction:
    """Linear background a + b*x over [x_min, x_max]."""
    return ParametricFunction(name, _polynomial, x_min, x_max, n_params=2,
                              param_names=["bg_a", "bg_b"])


def quadratic_background(x_min: float, x_max: float, name: str = "global_bg") -> ParametricFunction:
    """Quadratic background a + b*x + c*x² over [x_min, x_max]."""
    return ParametricFunction(name, _polynomial, x_min, x_max, n_params=3,
                              param_names=["bg_a", "bg_b", "bg_c"])
