"""Curve data model and normalization of raw potential/current records."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .constants import CV_DEFAULTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Curve:
    """A single CV sweep: paired potential (V) and current (A) samples."""
    potential: Tuple[float, ...]
    current: Tuple[float, ...]
    scan_rate: Optional[float] = None   # V/s
    id: Optional[str] = None
    name: Optional[str] = None

    def __post_init__(self):
        potential = tuple(float(v) for v in self.potential)
        current = tuple(float(v) for v in self.current)
        if len(potential) != len(current):
            raise ValueError(
                f"Potential and current lengths differ: {len(potential)} != {len(current)}"
            )
        object.__setattr__(self, 'potential', potential)
        object.__setattr__(self, 'current', current)
        if self.scan_rate is not None:
            # numpy scalars and Decimals become plain floats; unparseable rates become NaN
            object.__setattr__(self, 'scan_rate', _parse_number(self.scan_rate))

    def __len__(self) -> int:
        return len(self.potential)

    @property
    def label(self) -> str:
        return self.name or self.id or '<unnamed>'

    @classmethod
    def from_pairs(cls, pairs: Sequence[Sequence[float]], scan_rate: Optional[float] = None,
                   id: Optional[str] = None, name: Optional[str] = None) -> 'Curve':
        potential = [p[0] for p in pairs]
        current = [p[1] for p in pairs]
        return cls(tuple(potential), tuple(current), scan_rate=scan_rate, id=id, name=name)

    def arrays(self) -> Tuple[np.ndarray, np.ndarray]:
        return np.asarray(self.potential, dtype=float), np.asarray(self.current, dtype=float)


@dataclass
class ValidationResult:
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def notes(self) -> List[str]:
        return list(self.errors) + list(self.warnings)


@dataclass
class NormalizedCurve:
    curve: Curve
    validation: ValidationResult


def _parse_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float('nan')


def is_positive_finite(value: Any) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0


def filter_non_finite(potential: np.ndarray, current: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Drop samples where either coordinate is NaN or infinite."""
    n = min(len(potential), len(current))
    potential = np.asarray(potential[:n], dtype=float)
    current = np.asarray(current[:n], dtype=float)
    mask = np.isfinite(potential) & np.isfinite(current)
    return potential[mask], current[mask]


def check_monotonicity(potential: np.ndarray, threshold: float = 0.9) -> Tuple[bool, str]:
    """Return (is_monotonic, direction) where 90% of steps must agree by default."""
    potential = np.asarray(potential, dtype=float)
    if potential.size < 2:
        return True, 'mixed'
    steps = np.diff(potential)
    total = steps.size
    increasing = int(np.sum(steps > 0))
    decreasing = int(np.sum(steps < 0))
    if increasing / total > threshold:
        return True, 'increasing'
    if decreasing / total > threshold:
        return True, 'decreasing'
    return False, 'mixed'


def resolve_scan_rate(potential: np.ndarray,
                      scan_rate: Optional[float] = None,
                      samples_sec: Optional[float] = None,
                      total_time: Optional[float] = None,
                      default: float = CV_DEFAULTS['default_scan_rate']) -> Tuple[float, str]:
    """Resolve the sweep rate in V/s.

    Priority: explicit scan rate, legacy samples-per-second value, potential
    range over total acquisition time, then the default.

    Returns:
        (scan_rate, source) where source is one of 'explicit', 'samples_sec',
        'derived' or 'default'.
    """
    if is_positive_finite(scan_rate):
        return float(scan_rate), 'explicit'

    if is_positive_finite(samples_sec):
        return float(samples_sec), 'samples_sec'

    potential = np.asarray(potential, dtype=float)
    potential = potential[np.isfinite(potential)]
    if potential.size >= 2 and is_positive_finite(total_time):
        derived = float(np.max(potential) - np.min(potential)) / float(total_time)
        if is_positive_finite(derived):
            return derived, 'derived'

    return float(default), 'default'


def to_curve(records: Optional[Sequence[Sequence[Any]]],
             scan_rate: Optional[float] = None,
             samples_sec: Optional[float] = None,
             total_time: Optional[float] = None,
             curve_id: Optional[str] = None,
             name: Optional[str] = None,
             min_points: int = CV_DEFAULTS['min_points'],
             default_scan_rate: float = CV_DEFAULTS['default_scan_rate'],
             require_monotonic: bool = False) -> NormalizedCurve:
    """Convert raw (potential, current) rows into a validated Curve.

    Never raises: malformed input produces an empty curve whose validation
    notes explain why.

    Args:
        records: Rows of string or numeric pairs (extra columns are ignored)
        scan_rate: Explicit sweep rate (V/s)
        samples_sec: Legacy per-second sample rate used as a scan rate fallback
        total_time: Acquisition time (s) used to derive a scan rate
        curve_id: Optional identifier
        name: Optional display name
        min_points: Minimum number of valid samples
        default_scan_rate: Fallback sweep rate (V/s)
        require_monotonic: Warn when the potential is not monotonic

    Returns:
        NormalizedCurve with the parsed Curve and its ValidationResult
    """
    errors: List[str] = []
    warnings: List[str] = []

    rows = [row for row in (records or []) if row is not None and len(row) >= 2]
    if not rows:
        errors.append('Empty input: no potential/current rows')
        rate, _ = resolve_scan_rate(np.array([]), scan_rate, samples_sec, total_time, default_scan_rate)
        empty = Curve((), (), scan_rate=rate, id=curve_id, name=name)
        return NormalizedCurve(empty, ValidationResult(False, errors, warnings))

    potential = np.array([_parse_number(row[0]) for row in rows], dtype=float)
    current = np.array([_parse_number(row[1]) for row in rows], dtype=float)

    original_length = potential.size
    potential, current = filter_non_finite(potential, current)
    removed = original_length - potential.size
    if removed > 0:
        warnings.append(f'Filtered {removed} non-finite samples')

    rate, source = resolve_scan_rate(potential, scan_rate, samples_sec, total_time, default_scan_rate)
    if source == 'default':
        warnings.append(f'Scan rate unavailable, using default {rate} V/s')
        logger.warning(f"No scan rate for curve {name or curve_id or '<unnamed>'}, using default {rate} V/s")
    elif source != 'explicit':
        warnings.append(f'Scan rate resolved from {source}: {rate:.6g} V/s')

    if potential.size < min_points:
        errors.append(f'Insufficient data: {potential.size} valid points (minimum {min_points})')
        empty = Curve((), (), scan_rate=rate, id=curve_id, name=name)
        return NormalizedCurve(empty, ValidationResult(False, errors, warnings))

    if require_monotonic:
        is_monotonic, _ = check_monotonicity(potential)
        if not is_monotonic:
            warnings.append('Potential is not monotonic (possibly a multi-cycle CV)')

    potential_range = float(np.max(potential) - np.min(potential))
    if potential_range < 0.01:
        warnings.append('Potential range is very small (<10 mV)')
    if potential_range > 5:
        warnings.append('Potential range is very large (>5 V)')

    max_current = float(np.max(np.abs(current)))
    if max_current < 1e-12:
        warnings.append('Current is very small (<1 pA)')
    if max_current > 1:
        warnings.append('Current is very large (>1 A)')

    curve = Curve(tuple(potential.tolist()), tuple(current.tolist()),
                  scan_rate=rate, id=curve_id, name=name)
    return NormalizedCurve(curve, ValidationResult(True, errors, warnings))


def validate_curves(batch: Sequence[Dict[str, Any]], **kwargs) -> Dict[str, List]:
    """Normalize a batch of raw records and split valid from invalid ones.

    Each entry is a dict with a 'records' key plus optional 'scan_rate',
    'samples_sec', 'total_time', 'id' and 'name' keys.
    """
    results = {
        'valid': [],
        'invalid': [],
        'warnings': [],
    }
    for entry in batch:
        normalized = to_curve(
            entry.get('records'),
            scan_rate=entry.get('scan_rate'),
            samples_sec=entry.get('samples_sec'),
            total_time=entry.get('total_time'),
            curve_id=entry.get('id'),
            name=entry.get('name'),
            **kwargs,
        )
        label = normalized.curve.label
        if normalized.validation.is_valid:
            results['valid'].append(normalized.curve)
            results['warnings'].extend(f'{label}: {w}' for w in normalized.validation.warnings)
        else:
            results['invalid'].append({
                'id': entry.get('id'),
                'name': entry.get('name'),
                'errors': list(normalized.validation.errors),
            })
    return results
