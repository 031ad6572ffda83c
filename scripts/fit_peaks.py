#!/usr/bin/env python3
"""
Fit peaks in a spectrum on a shared background.

The spectrum is a two-column text file (bin center, counts). Peaks, the
fit range and the background come from a YAML file:

    spectrum: spectra/co60.txt
    range: [1300, 1360]
    background: linear            # or quadratic
    peaks:
      - {shape: gaussian, centroid: 1332.5}
      - {shape: skewed, centroid: 1340.0}
    fit:
      method: leastsq
      min_points: 10
    output:
      figure: co60_fit.png

Usage:
    python scripts/fit_peaks.py path/to/config.yaml [OPTIONS]

Example:
    # Use everything from YAML
    python scripts/fit_peaks.py configs/co60.yaml

    # Override the fit range
    python scripts/fit_peaks.py configs/co60.yaml --range 1310 1350

    # Print per-peak fit summaries
    python scripts/fit_peaks.py configs/co60.yaml --verbose
"""

import argparse
import logging
from dataclasses import replace
from pathlib import Path

import numpy as np
import yaml

from GRSIFit.core.config import FitConfig, load_fit_config
from GRSIFit.core.functions import linear_background, quadratic_background
from GRSIFit.peaks.shapes import GaussianPeak, SkewedGaussianPeak, CrystalBallPeak
from GRSIFit.peaks.peak_fitting import PeakFitter
from GRSIFit.peaks.fit_report import summarize_peaks

SHAPES = {
    'gaussian': GaussianPeak,
    'skewed': SkewedGaussianPeak,
    'crystalball': CrystalBallPeak,
}

BACKGROUNDS = {
    'linear': linear_background,
    'quadratic': quadratic_background,
}


def load_config(config_path: Path) -> dict:
    """Load YAML configuration file."""
    with open(config_path, 'r') as f:
        return yaml.safe_load(f)


def build_fitter(config: dict, fit_range) -> PeakFitter:
    """Create the PeakFitter with its background and peaks from configuration."""
    bg_kind = config.get('background', 'linear')
    if bg_kind not in BACKGROUNDS:
        raise ValueError(f"background must be one of {list(BACKGROUNDS)}, got '{bg_kind}'")

    fitter = PeakFitter(*fit_range, background=BACKGROUNDS[bg_kind](*fit_range))
    for peak_def in config['peaks']:
        shape = peak_def.get('shape', 'gaussian')
        if shape not in SHAPES:
            raise ValueError(f"shape must be one of {list(SHAPES)}, got '{shape}'")
        fitter.add_peak(SHAPES[shape](centroid=peak_def['centroid']))
    return fitter


def main():
    parser = argparse.ArgumentParser(
        description='Fit peaks on a shared background',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument('config', type=Path, help='Path to YAML config file')
    parser.add_argument('--range', type=float, nargs=2, metavar=('MIN', 'MAX'),
                        help='Override fit range')
    parser.add_argument('--figure', type=Path,
                        help='Override output figure path')
    parser.add_argument('--verbose', action='store_true',
                        help='Print fit summaries')

    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    print(f"Loading configuration from {args.config}")
    config = load_config(args.config)
    fit_config = load_fit_config(args.config) if 'fit' in config else FitConfig()
    fit_config = replace(fit_config, verbose=fit_config.verbose or args.verbose)

    spectrum_path = Path(config['spectrum'])
    if not spectrum_path.is_absolute():
        spectrum_path = args.config.parent / spectrum_path
    x, counts = np.loadtxt(spectrum_path, unpack=True)
    print(f"Loaded {len(x)} bins from {spectrum_path}")

    fit_range = tuple(args.range) if args.range else tuple(config.get('range', (x.min(), x.max())))
    fitter = build_fitter(config, fit_range)

    print("\n" + "="*60)
    print(f"FITTING {len(fitter.peaks)} PEAK(S) IN [{fit_range[0]}, {fit_range[1]}]")
    print("="*60)

    result = fitter.fit(x, counts, config=fit_config)

    for report in fitter.reports():
        print(report)
    print(f"\nχ²_reduced: {result.redchi:.3f}")
    print(summarize_peaks(fitter.peaks).to_string(index=False))

    figure_path = args.figure or config.get('output', {}).get('figure')
    if figure_path:
        import matplotlib
        matplotlib.use('Agg')
        import matplotlib.pyplot as plt

        ax = fitter.draw(x=x, counts=counts)
        figure_path = Path(figure_path)
        figure_path.parent.mkdir(parents=True, exist_ok=True)
        ax.figure.savefig(figure_path, dpi=150, bbox_inches='tight')
        plt.close(ax.figure)
        print(f"  → Saved: {figure_path}")


if __name__ == "__main__":
    main()
