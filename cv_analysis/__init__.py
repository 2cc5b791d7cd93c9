"""
Cyclic Voltammetry Analysis Package
-----------------------------------
Peak detection, hysteresis, scan-rate correlations, Laviron/Nicholson kinetics
and mechanism diagnostics for cyclic voltammograms.
"""

__version__ = "1.0.0"

# Import key components for easier access
from .analyzer import (
    AnalysisConfig,
    CVAnalyzer,
    analyze_multiple_curves,
    analyze_single_curve,
    to_dict,
)
from .core.normalization import Curve, to_curve, validate_curves

__all__ = [
    'AnalysisConfig',
    'CVAnalyzer',
    'Curve',
    'analyze_multiple_curves',
    'analyze_single_curve',
    'to_curve',
    'to_dict',
    'validate_curves',
]
