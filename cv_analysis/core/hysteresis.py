"""Hysteresis (loop) area between the forward and reverse sweeps."""

from dataclasses import dataclass, field
from typing import Sequence, Tuple

import numpy as np

from .constants import HYSTERESIS_GRID_POINTS


@dataclass
class HysteresisResult:
    area: float = 0.0
    curve: Tuple[float, ...] = field(default_factory=tuple)   # forward - reverse on the grid


def trapezoidal_integral(x: Sequence[float], y: Sequence[float]) -> float:
    """Trapezoidal integral of y over x, skipping intervals with a non-finite width."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if x.size < 2 or y.size < 2 or x.size != y.size:
        return 0.0

    dx = np.diff(x)
    avg = (y[1:] + y[:-1]) / 2.0
    valid = np.isfinite(dx)
    return float(np.sum(dx[valid] * avg[valid]))


def _sort_branch(potential: np.ndarray, current: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    order = np.argsort(potential, kind='stable')
    return potential[order], current[order]


def compute_hysteresis(potential: Sequence[float], current: Sequence[float],
                       grid_points: int = HYSTERESIS_GRID_POINTS) -> HysteresisResult:
    """Integrate the difference between forward and reverse branches.

    The sweep is split at the maximum potential. Both branches are sorted by
    potential, interpolated onto a uniform grid covering their overlap, and
    the forward-minus-reverse difference is integrated.

    Args:
        potential: Potential array (V)
        current: Current array (A)
        grid_points: Number of grid points across the overlap

    Returns:
        HysteresisResult with the absolute area (A·V) and difference curve
    """
    potential = np.asarray(potential, dtype=float)
    current = np.asarray(current, dtype=float)
    if potential.size < 3 or current.size < 3 or potential.size != current.size:
        return HysteresisResult()

    idx_max = int(np.argmax(potential))
    if idx_max <= 0 or idx_max >= potential.size - 1:
        return HysteresisResult()

    fwd_e, fwd_i = _sort_branch(potential[:idx_max + 1], current[:idx_max + 1])
    rev_e, rev_i = _sort_branch(potential[idx_max:][::-1], current[idx_max:][::-1])

    start = max(fwd_e[0], rev_e[0])
    end = min(fwd_e[-1], rev_e[-1])
    if not (np.isfinite(start) and np.isfinite(end)) or start >= end:
        return HysteresisResult()

    grid = np.linspace(start, end, grid_points)
    diff = np.interp(grid, fwd_e, fwd_i) - np.interp(grid, rev_e, rev_i)
    area = trapezoidal_integral(grid, diff)

    return HysteresisResult(area=abs(area), curve=tuple(diff.tolist()))
