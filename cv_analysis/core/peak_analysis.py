"""Peak detection for cyclic voltammograms."""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

ANODIC = 'anodic'
CATHODIC = 'cathodic'


@dataclass
class Peak:
    """Represents a current extremum of a voltammogram."""
    ep: float          # Peak potential (V)
    ip: float          # Peak current (A)
    index: int         # Position in the originating series
    direction: str     # 'anodic' (maximum) or 'cathodic' (minimum)


def detect_peaks(potential: Sequence[float], current: Sequence[float],
                 min_prominence: float = 0.0) -> List[Peak]:
    """Find local current maxima (anodic) and minima (cathodic).

    A sample qualifies when it is strictly higher (or lower) than both
    neighbours and its larger neighbour step reaches min_prominence.

    Args:
        potential: Potential array (V)
        current: Current array (A)
        min_prominence: Minimum step to either neighbour

    Returns:
        Peaks in series order
    """
    potential = np.asarray(potential, dtype=float)
    current = np.asarray(current, dtype=float)
    if potential.size < 3 or current.size < 3 or potential.size != current.size:
        return []

    value = current[1:-1]
    rising = value - current[:-2]
    falling = current[2:] - value
    prominence = np.maximum(np.abs(rising), np.abs(falling))
    keep = prominence >= min_prominence

    maxima = keep & (rising > 0) & (falling < 0)
    minima = keep & (rising < 0) & (falling > 0)

    peaks = []
    for i in np.flatnonzero(maxima | minima):
        idx = int(i) + 1
        peaks.append(Peak(
            ep=float(potential[idx]),
            ip=float(current[idx]),
            index=idx,
            direction=ANODIC if maxima[i] else CATHODIC,
        ))
    return peaks


def pick_primary_peaks(peaks: Sequence[Peak]) -> Dict[str, Optional[Peak]]:
    """Select the dominant anodic (highest Ip) and cathodic (lowest Ip) peaks."""
    anodic = [p for p in peaks if p.direction == ANODIC]
    cathodic = [p for p in peaks if p.direction == CATHODIC]
    return {
        ANODIC: max(anodic, key=lambda p: p.ip) if anodic else None,
        CATHODIC: min(cathodic, key=lambda p: p.ip) if cathodic else None,
    }


def calculate_delta_ep(anodic: Optional[Peak], cathodic: Optional[Peak]) -> Optional[float]:
    """Peak separation |Ep,a - Ep,c| in volts."""
    if anodic is None or cathodic is None:
        return None
    return abs(anodic.ep - cathodic.ep)


def peak_current_ratio(anodic: Optional[Peak], cathodic: Optional[Peak]) -> Optional[float]:
    """|Ip,c| / |Ip,a|; close to 1 for a chemically reversible couple."""
    if anodic is None or cathodic is None or anodic.ip == 0:
        return None
    return abs(cathodic.ip) / abs(anodic.ip)
