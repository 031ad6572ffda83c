"""
Peak fitting package.

Modules:
- single_peak: Peak/background decomposition contract (SinglePeak)
- shapes: Gaussian, skewed-Gaussian and Crystal Ball peak shapes
- peak_fitting: Single-peak and global-background fits with lmfit
- fit_report: Read-only reports and summary tables
- peak_plotting: Visualization helpers
"""

# Core contract
from GRSIFit.peaks.single_peak import SinglePeak

# Shapes
from GRSIFit.peaks.shapes import (
    GaussianPeak,
    SkewedGaussianPeak,
    CrystalBallPeak,
)

# Fitting
from GRSIFit.peaks.peak_fitting import (
    fit_single_peak,
    PeakFitter,
)

# Reporting
from GRSIFit.peaks.fit_report import (
    FitReport,
    summarize_peaks,
)

# Visualization functions
from GRSIFit.peaks.peak_plotting import (
    plot_single_peak_fit,
    plot_peaks_on_background,
    plot_residuals,
    mark_peak_position,
)
