# tests/peaks/test_fit_report.py

import pytest
import numpy as np
import matplotlib.pyplot as plt

from GRSIFit.core.config import DrawConfig
from GRSIFit.core.functions import linear_background
from GRSIFit.peaks.shapes import GaussianPeak, CrystalBallPeak
from GRSIFit.peaks.fit_report import FitReport, summarize_peaks
from GRSIFit.peaks.peak_fitting import fit_single_peak
from GRSIFit.peaks.peak_plotting import plot_single_peak_fit, plot_peaks_on_background


@pytest.fixture
def fitted_peak():
    peak = GaussianPeak(centroid=50.0)
    total = peak.get_total_function()
    total.set_parameters([100.0, 50.0, 2.0, 1.0, 0.0])
    total.set_par_errors([5.0, 0.05, 0.1, 0.0, 0.0])
    return peak


class TestFitReport:
    """Test the per-peak report."""

    def test_reads_from_peak(self, fitted_peak):
        """Test that report values come from the peak."""
        report = FitReport(fitted_peak)
        assert report.peak is fitted_peak
        assert report.centroid == 50.0
        assert report.centroid_err == 0.05
        assert report.area == pytest.approx(100.0 * 2.0 * np.sqrt(2 * np.pi))
        assert report.fwhm == pytest.approx(2.0 * 2.3548, rel=1e-4)


    def test_tracks_refit(self, fitted_peak):
        """Test that a report follows later parameter changes."""
        report = FitReport(fitted_peak)
        fitted_peak.get_total_function().set_parameter(1, 51.5)
        assert report.centroid == 51.5


    def test_summary_text(self, fitted_peak):
        """Test the formatted summary text."""
        text = FitReport(fitted_peak).summary()
        assert text.splitlines()[0] == "GaussianPeak:"
        assert "Centroid = 50.0000 +/- 0.0500" in text
        assert "FWHM" in text


    def test_print_summary(self, fitted_peak, capsys):
        """Test that the summary is printed."""
        FitReport(fitted_peak).print_summary()
        assert "Area = " in capsys.readouterr().out


    def test_as_dict(self, fitted_peak):
        """Test the keys of the report dictionary."""
        row = FitReport(fitted_peak).as_dict()
        assert row['shape'] == "GaussianPeak"
        assert set(row) == {'shape', 'centroid', 'centroid_err', 'area', 'area_err', 'fwhm'}


def test_summarize_peaks(fitted_peak):
    """Test the summary table for several peak shapes."""
    other = CrystalBallPeak(centroid=80.0)
    df = summarize_peaks([fitted_peak, other])

    assert list(df.columns) == ['shape', 'centroid', 'centroid_err', 'area', 'area_err', 'fwhm']
    assert len(df) == 2
    assert df.loc[0, 'centroid'] == 50.0
    assert df.loc[1, 'shape'] == "CrystalBallPeak"


def test_summarize_no_peaks():
    """Test the summary table with no peaks."""
    df = summarize_peaks([])
    assert df.empty
    assert 'area' in df.columns


class TestPlotting:
    """Test peak fit figures."""

    def test_single_peak_fit_figure(self, gaussian_spectrum):
        """Test the fit and residual figure for one peak."""
        x, counts, _ = gaussian_spectrum
        peak = GaussianPeak(centroid=50.0)
        fit_single_peak(peak, x, counts, fit_range=(35, 65))

        fig, (ax_fit, ax_res) = plot_single_peak_fit(peak, x, counts)

        # data, total and background
        assert len(ax_fit.lines) >= 3
        assert ax_res.get_ylabel() == 'Residuals'
        plt.close(fig)


    def test_single_peak_fit_requires_bound_peak(self, gaussian_spectrum):
        """Test that plotting an unbound peak is rejected."""
        x, counts, _ = gaussian_spectrum
        with pytest.raises(ValueError, match="no total function"):
            plot_single_peak_fit(GaussianPeak(), x, counts)


    def test_peaks_without_background_are_skipped(self, fitted_peak):
        """Test that peaks without a global background are not drawn."""
        other = GaussianPeak(centroid=60.0)
        other.set_global_background(linear_background(40.0, 80.0))

        fig, ax = plot_peaks_on_background([fitted_peak, other])
        assert len(ax.lines) == 1
        plt.close(fig)


    def test_components_drawn_on_request(self, fitted_peak):
        """Test that components are drawn when configured."""
        fitted_peak.set_global_background(linear_background(40.0, 60.0))
        fig, ax = plt.subplots()
        plot_peaks_on_background([fitted_peak], ax=ax, config=DrawConfig(show_components=True))
        assert len(ax.lines) == 3
        plt.close(fig)
