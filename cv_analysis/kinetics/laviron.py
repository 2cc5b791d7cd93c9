"""Laviron analysis of peak potential against ln(scan rate).

Detects the critical scan rate beyond which Ep vs ln(v) is linear and
derives the transfer coefficient, the heterogeneous rate constant and the
formal potential of surface-confined or quasi-reversible couples.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..core.constants import DEFAULT_TEMPERATURE, FARADAY, GAS_CONSTANT, LAVIRON_PARAMS
from ..core.regression import RegressionResult, linear_regression

logger = logging.getLogger(__name__)


@dataclass
class WindowFit:
    index: int
    r2: float
    slope: float
    intercept: float


@dataclass
class CriticalScanRateResult:
    v_critical: float
    index_critical: int
    windows: Tuple[WindowFit, ...] = field(default_factory=tuple)
    is_found: bool = False
    message: str = ''


@dataclass
class BilinearRegressionResult:
    before_critical: Optional[RegressionResult]
    after_critical: Optional[RegressionResult]
    critical_index: int


@dataclass
class LavironResult:
    alpha: float
    ks: float
    e0: Optional[float]
    slope: float
    intercept: float
    r2: float
    data_points: int


def _sorted_by_scan_rate(scan_rates: Sequence[float],
                         peak_potentials: Sequence[float]) -> Tuple[np.ndarray, np.ndarray]:
    v = np.asarray(scan_rates, dtype=float)
    ep = np.asarray(peak_potentials, dtype=float)
    order = np.argsort(v, kind='stable')
    return v[order], ep[order]


def critical_scan_rate(scan_rates: Sequence[float],
                       peak_potentials: Sequence[float],
                       window: int = LAVIRON_PARAMS['window'],
                       r2_threshold: float = LAVIRON_PARAMS['r2_threshold'],
                       min_stability: int = LAVIRON_PARAMS['min_stability']) -> CriticalScanRateResult:
    """Locate the scan rate νc where Ep vs ln(v) becomes linear.

    A window of consecutive points (sorted by scan rate) slides over
    (ln v, Ep). The first run of ``min_stability`` windows that all reach
    ``r2_threshold`` marks νc at the start of that run.

    Args:
        scan_rates: Scan rates (V/s)
        peak_potentials: Peak potentials (V), aligned with scan_rates
        window: Points per sliding window
        r2_threshold: Minimum R² for a window to count as linear
        min_stability: Consecutive linear windows required

    Returns:
        CriticalScanRateResult; when no stable run exists the last (fastest)
        point is returned with is_found=False
    """
    if len(scan_rates) < window or len(scan_rates) != len(peak_potentials):
        first = float(scan_rates[0]) if len(scan_rates) else 0.0
        return CriticalScanRateResult(
            v_critical=first,
            index_critical=0,
            is_found=False,
            message='Insufficient or inconsistent data',
        )

    v, ep = _sorted_by_scan_rate(scan_rates, peak_potentials)
    with np.errstate(divide='ignore', invalid='ignore'):
        ln_v = np.log(v)

    windows: List[WindowFit] = []
    for i in range(len(ln_v) - window + 1):
        fit = linear_regression(ln_v[i:i + window], ep[i:i + window])
        if fit is not None:
            windows.append(WindowFit(index=i, r2=fit.r2, slope=fit.slope, intercept=fit.intercept))

    for i in range(len(windows) - min_stability + 1):
        if all(w.r2 >= r2_threshold for w in windows[i:i + min_stability]):
            idx = windows[i].index
            v_c = float(v[idx])
            return CriticalScanRateResult(
                v_critical=v_c,
                index_critical=idx,
                windows=tuple(windows),
                is_found=True,
                message=f'Critical scan rate at index {idx} (v = {v_c:.3e} V/s), R² = {windows[i].r2:.4f}',
            )

    last = len(v) - 1
    return CriticalScanRateResult(
        v_critical=float(v[last]),
        index_critical=last,
        windows=tuple(windows),
        is_found=False,
        message=f'No clear critical scan rate; using last point (v = {v[last]:.3e} V/s)',
    )


def formal_potential(anodic_potentials: Sequence[float],
                     cathodic_potentials: Sequence[float]) -> Optional[float]:
    """E° ≈ (mean Ep,a + mean Ep,c) / 2."""
    if len(anodic_potentials) == 0 or len(cathodic_potentials) == 0:
        return None
    return float((np.mean(anodic_potentials) + np.mean(cathodic_potentials)) / 2.0)


def transfer_coefficient(slope: float, n: int = 1,
                         temperature: float = DEFAULT_TEMPERATURE,
                         is_anodic: bool = True) -> Optional[float]:
    """α = (RT/F) / (n · slope) from the Ep vs ln(v) slope.

    The cathodic branch has a negative slope, so it is negated first. A
    non-positive effective slope gives no result.
    """
    effective = slope if is_anodic else -slope
    if not math.isfinite(effective) or effective <= 0 or n <= 0:
        return None
    rt_f = GAS_CONSTANT * temperature / FARADAY
    return rt_f / (n * effective)


def heterogeneous_rate_constant(alpha: float, intercept: float, n: int = 1,
                                temperature: float = DEFAULT_TEMPERATURE) -> Optional[float]:
    """ks = exp((α·n·F / RT) · intercept).

    The regression intercept stands in for (intercept - E°); this mirrors
    the established workflow and is kept as an approximation.
    """
    exponent = (alpha * n * FARADAY / (GAS_CONSTANT * temperature)) * intercept
    try:
        ks = math.exp(exponent)
    except OverflowError:
        logger.warning(f"Rate constant overflow for exponent {exponent:.3g}")
        return None
    return ks


def perform_laviron_analysis(scan_rates: Sequence[float],
                             peak_potentials: Sequence[float],
                             n: int = 1,
                             temperature: float = DEFAULT_TEMPERATURE,
                             is_anodic: bool = True,
                             formal_potential: Optional[float] = None) -> Optional[LavironResult]:
    """Fit Ep vs ln(v) and derive α and ks; needs at least three points."""
    if len(scan_rates) < 3 or len(scan_rates) != len(peak_potentials):
        return None

    v, ep = _sorted_by_scan_rate(scan_rates, peak_potentials)
    if np.any(v <= 0):
        return None
    fit = linear_regression(np.log(v), ep)
    if fit is None:
        return None

    alpha = transfer_coefficient(fit.slope, n, temperature, is_anodic)
    if alpha is None:
        return None
    ks = heterogeneous_rate_constant(alpha, fit.intercept, n, temperature)
    if ks is None:
        return None

    return LavironResult(
        alpha=alpha,
        ks=ks,
        e0=formal_potential,
        slope=fit.slope,
        intercept=fit.intercept,
        r2=fit.r2,
        data_points=fit.points,
    )


def bilinear_regression(xs: Sequence[float], ys: Sequence[float],
                        critical_index: int) -> BilinearRegressionResult:
    """Independent fits before and from the critical index."""
    xs = np.asarray(xs, dtype=float)
    ys = np.asarray(ys, dtype=float)
    before = linear_regression(xs[:critical_index], ys[:critical_index]) if critical_index > 1 else None
    after = linear_regression(xs[critical_index:], ys[critical_index:]) if critical_index < len(xs) - 1 else None
    return BilinearRegressionResult(before_critical=before, after_critical=after,
                                    critical_index=int(critical_index))
