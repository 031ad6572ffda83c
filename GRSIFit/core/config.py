from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional, Union

import yaml

# -------------------------------
# Display conventions
# -------------------------------
DEFAULT_LINE_COLOR = "red"
DEFAULT_LINE_STYLE = "-"
BACKGROUND_LINE_STYLE = "--"       # background sub-functions are drawn dashed
DEFAULT_DOMAIN = (0.0, 1.0)        # range of freshly built sub-functions
DRAW_POINTS = 500                  # samples per drawn curve

# -------------------------------
# Peak shape conventions
# -------------------------------
FWHM_PER_SIGMA = 2.0 * (2.0 * 0.6931471805599453) ** 0.5   # 2*sqrt(2 ln 2)
DEFAULT_SIGMA = 1.0                # (channels) initial width guess
DEFAULT_BETA = 1.0                 # (channels) skewed-Gaussian decay length
DEFAULT_RELATIVE_SKEW = 10.0       # (%) skewed fraction of the peak height
DEFAULT_STEP = 1.0                 # (%) step height relative to the peak height


@dataclass(frozen=True)
class FitConfig:
    min_points: int = 10               # minimum number of bins inside the fit window
    default_width: float = 10.0        # (channels) half-width of window when none given
    method: str = "leastsq"            # lmfit minimizer
    poisson_errors: bool = True        # weight residuals by sqrt(N)
    min_error: float = 1.0             # error floor for empty bins
    max_nfev: Optional[int] = None     # passed to lmfit when set
    verbose: bool = False              # print per-peak fit summaries


@dataclass(frozen=True)
class DrawConfig:
    n_points: int = DRAW_POINTS
    linewidth: float = 1.5
    show_components: bool = False      # also draw per-peak total/background curves
    data_color: str = "black"


def load_fit_config(config_path: Union[str, Path]) -> FitConfig:
    """
    Load a FitConfig from a YAML file.

    Only keys matching FitConfig fields are used; the section may either be
    the whole document or live under a top-level ``fit`` key.

    Args:
        config_path: Path to YAML file

    Returns:
        FitConfig with YAML values over the defaults
    """
    with open(config_path, 'r') as f:
        raw = yaml.safe_load(f) or {}

    section = raw.get('fit', raw)
    if not isinstance(section, dict):
        raise ValueError(f"Fit section in {config_path} must be a mapping, got {type(section).__name__}")

    known = {f.name for f in fields(FitConfig)}
    unknown = set(section) - known
    if unknown:
        raise ValueError(f"Unknown fit config keys in {config_path}: {sorted(unknown)}")

    return FitConfig(**section)
