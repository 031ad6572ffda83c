"""
GRSIFit: spectral peak fitting for detector-data analysis.

Subpackages:
- core:  parametric functions, configuration, run metadata, detector data
- peaks: peak shapes, fitting, reports and plotting
"""

__version__ = "0.1.0"
