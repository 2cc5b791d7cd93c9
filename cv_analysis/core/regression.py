"""Least-squares fits used for scan-rate correlations.

Every fit returns ``None`` instead of raising when the data cannot support
it (fewer than two points, zero x-variance, log of zero, sqrt of a negative).
"""

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

import numpy as np


@dataclass
class RegressionResult:
    slope: float
    intercept: float
    r2: float
    points: int


def _coefficient_of_determination(y: np.ndarray, predicted: np.ndarray) -> float:
    ss_res = float(np.sum((y - predicted) ** 2))
    ss_tot = float(np.sum((y - np.mean(y)) ** 2))
    if ss_tot == 0:
        return 1.0 if ss_res == 0 else 0.0
    return float(min(1.0, max(0.0, 1.0 - ss_res / ss_tot)))


def _ols(x: np.ndarray, y: np.ndarray) -> Optional[RegressionResult]:
    if x.size < 2 or x.size != y.size:
        return None
    if np.ptp(x) == 0:
        return None

    mean_x = np.mean(x)
    mean_y = np.mean(y)
    dx = x - mean_x
    slope = float(np.sum(dx * (y - mean_y)) / np.sum(dx * dx))
    intercept = float(mean_y - slope * mean_x)
    r2 = _coefficient_of_determination(y, slope * x + intercept)
    return RegressionResult(slope=slope, intercept=intercept, r2=r2, points=int(x.size))


def _finite_pairs(x: np.ndarray, y: np.ndarray):
    mask = np.isfinite(x) & np.isfinite(y)
    return x[mask], y[mask]


def linear_regression(x: Sequence[float], y: Sequence[float]) -> Optional[RegressionResult]:
    """Ordinary least squares fit of y = m·x + b."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size != y.size:
        return None
    return _ols(*_finite_pairs(x, y))


def regression_with_transform(x: Sequence[float], y: Sequence[float],
                              transform: Callable[[np.ndarray], np.ndarray]) -> Optional[RegressionResult]:
    """Fit transform(y) against transform(x), ignoring non-finite results."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size != y.size:
        return None
    with np.errstate(divide='ignore', invalid='ignore'):
        tx = transform(x)
        ty = transform(y)
    return _ols(*_finite_pairs(tx, ty))


def regression_log_log(x: Sequence[float], y: Sequence[float]) -> Optional[RegressionResult]:
    """Power-law fit: ln|y| against ln|x|. Zero anywhere means no result."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if np.any(x == 0) or np.any(y == 0):
        return None
    return regression_with_transform(x, y, lambda v: np.log(np.abs(v)))


def regression_vs_sqrt(x: Sequence[float], y: Sequence[float]) -> Optional[RegressionResult]:
    """Fit y against sqrt(x); requires non-negative x (Randles-Sevcik form)."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size != y.size or np.any(x < 0):
        return None
    return _ols(*_finite_pairs(np.sqrt(x), y))


def linear_regression_through_origin(x: Sequence[float], y: Sequence[float]) -> Optional[RegressionResult]:
    """Fit y = m·x with the intercept forced to zero.

    slope = Σxy / Σx²; R² is computed against the constrained prediction.
    """
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size < 2 or x.size != y.size:
        return None

    sum_x2 = float(np.sum(x * x))
    if sum_x2 == 0:
        return None

    slope = float(np.sum(x * y) / sum_x2)
    r2 = _coefficient_of_determination(y, slope * x)
    return RegressionResult(slope=slope, intercept=0.0, r2=r2, points=int(x.size))
