"""Read-only summaries of fitted peaks."""

from typing import Dict, Iterable, Optional

import pandas as pd

from GRSIFit.peaks.single_peak import SinglePeak


class FitReport:
    """
    Read/print façade over a SinglePeak.

    Holds no values of its own: every accessor reads the peak's current
    parameters, so a report taken before a refit shows the refit result.
    """

    def __init__(self, peak: SinglePeak):
        self._peak = peak

    @property
    def peak(self) -> SinglePeak:
        return self._peak

    @property
    def centroid(self) -> float:
        return self._peak.centroid()

    @property
    def centroid_err(self) -> float:
        return self._peak.centroid_err()

    @property
    def area(self) -> float:
        return self._peak.area()

    @property
    def area_err(self) -> float:
        return self._peak.area_err()

    @property
    def fwhm(self) -> Optional[float]:
        return self._peak.fwhm()

    def as_dict(self) -> Dict[str, Optional[float]]:
        return {
            'shape': type(self._peak).__name__,
            'centroid': self.centroid,
            'centroid_err': self.centroid_err,
            'area': self.area,
            'area_err': self.area_err,
            'fwhm': self.fwhm,
        }

    def summary(self) -> str:
        lines = [f"{type(self._peak).__name__}:",
                 f"  Centroid = {self.centroid:.4f} +/- {self.centroid_err:.4f}",
                 f"  Area = {self.area:.2f} +/- {self.area_err:.2f}"]
        if self.fwhm is not None:
            lines.append(f"  FWHM = {self.fwhm:.4f}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()

    def __repr__(self) -> str:
        return (f"FitReport({type(self._peak).__name__}: centroid={self.centroid:.3f}"
                f"±{self.centroid_err:.3f}, area={self.area:.1f}±{self.area_err:.1f})")

    def print_summary(self) -> None:
        print(self.summary())


def summarize_peaks(peaks: Iterable[SinglePeak]) -> pd.DataFrame:
    """
    One row per peak with centroid, area, their uncertainties and FWHM.

    Example:
        >>> df = summarize_peaks(fitter.peaks)
        >>> df[['centroid', 'area']]
    """
    rows = [FitReport(peak).as_dict() for peak in peaks]
    return pd.DataFrame(rows, columns=['shape', 'centroid', 'centroid_err',
                                       'area', 'area_err', 'fwhm'])
