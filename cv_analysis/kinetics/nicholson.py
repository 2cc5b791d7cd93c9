"""Nicholson estimation of the standard rate constant k0 from peak separation."""

import math
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from ..core.constants import DEFAULT_TEMPERATURE, FARADAY, GAS_CONSTANT
from ..core.regression import RegressionResult, linear_regression

# ψ vs ΔEp (mV) at 25 °C for n = 1 (Nicholson, Anal. Chem. 1965, 37, 1351)
NICHOLSON_TABLE = (
    (61.0, 20.0),
    (63.0, 7.0),
    (65.0, 5.0),
    (68.0, 3.0),
    (72.0, 2.0),
    (76.0, 1.5),
    (80.0, 1.0),
    (84.0, 0.75),
    (92.0, 0.5),
    (105.0, 0.3),
    (121.0, 0.2),
    (141.0, 0.15),
    (170.0, 0.1),
    (212.0, 0.05),
    (270.0, 0.025),
    (350.0, 0.01),
)

_TABLE_DELTA_EP = np.array([row[0] for row in NICHOLSON_TABLE])
_TABLE_PSI = np.array([row[1] for row in NICHOLSON_TABLE])

REVERSIBLE = 'reversible'
QUASI_REVERSIBLE = 'quasi-reversible'
IRREVERSIBLE = 'irreversible'


@dataclass
class NicholsonResult:
    k0: float                      # cm/s
    psi: float
    delta_ep: float                # V
    scan_rate: float               # V/s
    diffusion_coefficient: float   # cm²/s
    regime: str


@dataclass
class K0Statistics:
    mean: float
    std_dev: float
    min: float
    max: float
    count: int


@dataclass
class DeltaEpTrend:
    regression: Optional[RegressionResult]
    is_quasi_reversible: bool
    message: str


def interpolate_psi(delta_ep: float) -> Optional[float]:
    """Interpolate ψ for a peak separation given in volts.

    Values outside the tabulated 61-350 mV span are clamped to the edge ψ.
    """
    if delta_ep is None or not math.isfinite(delta_ep):
        return None
    return float(np.interp(delta_ep * 1000.0, _TABLE_DELTA_EP, _TABLE_PSI))


def calculate_k0(delta_ep: float, scan_rate: float, diffusion_coefficient: float,
                 n: int = 1, temperature: float = DEFAULT_TEMPERATURE) -> Optional[float]:
    """k0 = ψ · sqrt(D · f · v), with f = nF/(RT)."""
    if delta_ep <= 0 or scan_rate <= 0 or diffusion_coefficient <= 0:
        return None
    psi = interpolate_psi(delta_ep)
    if psi is None:
        return None
    f = n * FARADAY / (GAS_CONSTANT * temperature)
    return psi * math.sqrt(diffusion_coefficient * f * scan_rate)


def classify_kinetic_regime(delta_ep: float, n: int = 1) -> str:
    """Reversible below 59/n + 10 mV, irreversible from 200 mV."""
    delta_ep_mv = delta_ep * 1000.0
    if delta_ep_mv < 59.0 / n + 10.0:
        return REVERSIBLE
    if delta_ep_mv < 200.0:
        return QUASI_REVERSIBLE
    return IRREVERSIBLE


def is_nicholson_applicable(delta_ep: float, n: int = 1) -> bool:
    return classify_kinetic_regime(delta_ep, n) == QUASI_REVERSIBLE


def perform_nicholson_analysis(delta_eps: Sequence[float], scan_rates: Sequence[float],
                               diffusion_coefficient: float, n: int = 1,
                               temperature: float = DEFAULT_TEMPERATURE) -> List[NicholsonResult]:
    """One k0 estimate per aligned (ΔEp, scan rate) pair; unusable pairs are skipped."""
    if len(delta_eps) != len(scan_rates) or len(delta_eps) == 0:
        return []

    results = []
    for delta_ep, scan_rate in zip(delta_eps, scan_rates):
        k0 = calculate_k0(delta_ep, scan_rate, diffusion_coefficient, n, temperature)
        psi = interpolate_psi(delta_ep)
        if k0 is None or psi is None:
            continue
        results.append(NicholsonResult(
            k0=k0,
            psi=psi,
            delta_ep=float(delta_ep),
            scan_rate=float(scan_rate),
            diffusion_coefficient=float(diffusion_coefficient),
            regime=classify_kinetic_regime(delta_ep, n),
        ))
    return results


def calculate_k0_statistics(results: Sequence[NicholsonResult]) -> Optional[K0Statistics]:
    if not results:
        return None
    k0 = np.array([r.k0 for r in results], dtype=float)
    return K0Statistics(
        mean=float(np.mean(k0)),
        std_dev=float(np.std(k0)),
        min=float(np.min(k0)),
        max=float(np.max(k0)),
        count=int(k0.size),
    )


def analyze_delta_ep_vs_scan_rate(delta_eps: Sequence[float],
                                  scan_rates: Sequence[float]) -> DeltaEpTrend:
    """A ΔEp that grows with v points to quasi-reversible kinetics."""
    if len(delta_eps) < 2 or len(scan_rates) < 2:
        return DeltaEpTrend(None, False, 'Insufficient data')

    regression = linear_regression(scan_rates, delta_eps)
    if regression is None:
        return DeltaEpTrend(None, False, 'Regression could not be computed')

    is_quasi = regression.slope > 0.01 and regression.r2 > 0.7
    if is_quasi:
        message = 'ΔEp increases with v: quasi-reversible system (Nicholson applicable)'
    elif abs(regression.slope) < 0.01:
        message = 'ΔEp constant: reversible system (Nicholson not needed)'
    else:
        message = 'Irregular ΔEp behaviour'
    return DeltaEpTrend(regression, is_quasi, message)
