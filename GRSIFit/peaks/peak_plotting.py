"""
Peak fit visualization.

All functions return matplotlib figure/axis objects for further customization.
"""

from typing import Iterable, Tuple
import numpy as np
import matplotlib.pyplot as plt

from GRSIFit.core.config import DrawConfig
from GRSIFit.peaks.single_peak import SinglePeak


def mark_peak_position(ax, x0, name, color='red', y_fraction=0.95):
    """
    Mark peak position with vertical line and label.

    Parameters
    ----------
    ax : matplotlib axis
    x0 : float
        Peak position (fitted centroid)
    name : str
        Label text
    color : str
        Line and text color
    y_fraction : float
        Fraction of y-axis limit for text placement (0-1)
    """
    ax.axvline(x0, color=color, linestyle='--', linewidth=1.5, alpha=0.6)
    ax.text(x0, ax.get_ylim()[1] * y_fraction, name,
            rotation=90, ha='left', va='top', fontsize=10,
            fontweight='bold', color=color)


def plot_residuals(ax, x, data, model, show_poisson=True):
    """Plot residuals with optional ±√N bands."""
    residuals = data - model
    ax.step(x, residuals, where='mid', color='black', linewidth=1.5)
    ax.axhline(0, color='red', linestyle='--', linewidth=1)

    if show_poisson:
        ax.fill_between(x, -np.sqrt(np.maximum(data, 0)), np.sqrt(np.maximum(data, 0)),
                        alpha=0.3, color='gray', label='±√N')
        ax.legend(fontsize=10, loc='upper right')

    ax.set_ylabel('Residuals')
    ax.grid(True, alpha=0.3)


def plot_single_peak_fit(peak: SinglePeak, x: np.ndarray, counts: np.ndarray,
                         config: DrawConfig = DrawConfig(),
                         figsize: Tuple[float, float] = (8, 6),
                         xlabel: str = 'Channel'):
    """
    Data, total fit and background of one peak, with residuals below.

    Returns
    -------
    fig, (ax_fit, ax_res)
    """
    total = peak.get_total_function()
    if total is None:
        raise ValueError(f"{peak!r} has no total function to plot")

    fig, (ax_fit, ax_res) = plt.subplots(2, 1, figsize=figsize, sharex=True,
                                         gridspec_kw={'height_ratios': [3, 1]})
    x_min, x_max = total.get_range()
    mask = (x >= x_min) & (x <= x_max)

    ax_fit.step(x[mask], counts[mask], where='mid', color=config.data_color, linewidth=1, label='Data')
    total.draw(ax_fit, n_points=config.n_points, linewidth=config.linewidth, label='Total')
    peak.get_background_function().draw(ax_fit, n_points=config.n_points, label='Background')
    mark_peak_position(ax_fit, peak.centroid(), f"{peak.centroid():.2f}", color=total.line_color)
    ax_fit.set_ylabel('Counts')
    ax_fit.legend(fontsize=10)
    ax_fit.grid(True, alpha=0.3)

    plot_residuals(ax_res, x[mask], counts[mask], total(x[mask]))
    ax_res.set_xlabel(xlabel)

    fig.tight_layout()
    return fig, (ax_fit, ax_res)


def plot_peaks_on_background(peaks: Iterable[SinglePeak], ax=None,
                             config: DrawConfig = DrawConfig(),
                             figsize: Tuple[float, float] = (8, 4)):
    """
    Draw each peak on its global background (peaks without one are skipped).

    Returns
    -------
    fig, ax
    """
    if ax is None:
        fig, ax = plt.subplots(figsize=figsize)
    else:
        fig = ax.figure

    for peak in peaks:
        peak.draw(ax, n_points=config.n_points, linewidth=config.linewidth)
        if config.show_components:
            peak.draw_components(ax, n_points=config.n_points)

    return fig, ax
