"""Randles-Sevcik estimate of the diffusion-limited peak current."""

import math
from typing import Dict, Optional

from .constants import RANDLES_COEFFICIENT
from .peak_analysis import Peak


def _positive(value: Optional[float]) -> bool:
    return value is not None and math.isfinite(value) and value > 0


def estimate_diffusional_current(scan_rate: Optional[float],
                                 n: int = 1,
                                 area: Optional[float] = None,
                                 diffusion_coefficient: Optional[float] = None,
                                 concentration: Optional[float] = None) -> Optional[float]:
    """Expected peak current (A) for a reversible, diffusion-controlled couple at 25 °C.

    ip = 2.69e5 · n^1.5 · A · D^0.5 · C · v^0.5

    Args:
        scan_rate: Sweep rate (V/s)
        n: Electrons transferred
        area: Electrode area (cm²)
        diffusion_coefficient: D (cm²/s)
        concentration: Bulk concentration (mol/L), converted to mol/cm³

    Returns:
        Expected current or None when any input is missing
    """
    if not all(_positive(v) for v in (scan_rate, area, diffusion_coefficient, concentration)):
        return None
    concentration_mol_cm3 = concentration / 1000.0
    return (RANDLES_COEFFICIENT * n ** 1.5 * area * math.sqrt(diffusion_coefficient)
            * concentration_mol_cm3 * math.sqrt(scan_rate))


def compare_peak_with_randles(peak: Optional[Peak], scan_rate: Optional[float], n: int = 1,
                              area: Optional[float] = None,
                              diffusion_coefficient: Optional[float] = None,
                              concentration: Optional[float] = None) -> Dict[str, Optional[float]]:
    """Return the expected Randles-Sevcik current and the measured/expected ratio."""
    if peak is None:
        return {'expected': None, 'ratio': None}
    expected = estimate_diffusional_current(scan_rate, n, area, diffusion_coefficient, concentration)
    if not expected:
        return {'expected': expected, 'ratio': None}
    return {'expected': expected, 'ratio': abs(peak.ip) / expected}
