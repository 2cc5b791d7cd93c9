"""Smoothing utilities for voltammetric current series."""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np
from scipy.signal import savgol_filter

from .constants import CV_DEFAULTS

logger = logging.getLogger(__name__)


def _ensure_window(window: int, length: int) -> int:
    window = min(int(window), length)
    if window % 2 == 0:
        window -= 1
    if window < 3:
        window = min(3, length)
    return window


def resolve_smoothing_params(length: int,
                             window_size: Optional[int] = None,
                             poly_order: Optional[int] = None) -> Optional[Tuple[int, int]]:
    """Clamp requested Savitzky-Golay settings to a valid (window, order) pair.

    Args:
        length: Number of samples in the series
        window_size: Requested window (defaults to 11)
        poly_order: Requested polynomial order (defaults to 3)

    Returns:
        (window, poly_order) or None when the series is too short to smooth
    """
    if length < 3:
        return None

    window = _ensure_window(window_size if window_size is not None else CV_DEFAULTS['window_size'], length)
    order = min(poly_order if poly_order is not None else CV_DEFAULTS['poly_order'], window - 1)
    if window < 3 or order < 1:
        return None
    return window, max(1, int(order))


def smooth_current(current: Sequence[float], window_size: int, poly_order: int) -> np.ndarray:
    """Smooth a current series with a Savitzky-Golay filter.

    The window must be odd and no longer than the series, and the polynomial
    order must be lower than the window. Invalid settings return the input
    unchanged.

    Args:
        current: Current samples
        window_size: Filter window length (odd)
        poly_order: Polynomial order

    Returns:
        Smoothed current array (same length as the input)
    """
    current = np.asarray(current, dtype=float)

    if current.size == 0:
        return current

    problems = []
    if window_size < 1 or window_size % 2 == 0:
        problems.append(f'window {window_size} is not a positive odd number')
    if window_size > current.size:
        problems.append(f'window {window_size} exceeds series length {current.size}')
    if poly_order < 0 or poly_order >= window_size:
        problems.append(f'polynomial order {poly_order} must be in [0, {window_size - 1}]')

    if problems:
        logger.warning(f"Skipping Savitzky-Golay smoothing: {'; '.join(problems)}")
        return current.copy()

    try:
        return savgol_filter(current, window_size, poly_order)
    except (ValueError, np.linalg.LinAlgError) as e:
        logger.warning(f"Savitzky-Golay smoothing failed, using original signal: {e}")
        return current.copy()
