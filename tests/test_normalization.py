import math
from decimal import Decimal

import numpy as np
import pytest

from cv_analysis.core.normalization import (
    Curve,
    check_monotonicity,
    resolve_scan_rate,
    to_curve,
    validate_curves,
)


def build_records(n_points=20, start=-0.2, stop=0.6, as_text=False):
    e = np.linspace(start, stop, n_points)
    i = 1e-5 * np.sin(4 * e)
    rows = list(zip(e.tolist(), i.tolist()))
    if as_text:
        rows = [(f"{a:.6f}", f"{b:.6e}") for a, b in rows]
    return rows


def test_curve_rejects_mismatched_series():
    with pytest.raises(ValueError):
        Curve((0.0, 0.1, 0.2), (1.0, 2.0))


def test_curve_coerces_to_float_tuples():
    curve = Curve.from_pairs([(0, 1), (1, 2)], scan_rate=0.1, name="a")
    assert curve.potential == (0.0, 1.0)
    assert curve.current == (1.0, 2.0)
    assert len(curve) == 2
    assert curve.label == "a"


def test_curve_scan_rate_becomes_plain_float():
    for rate in (np.float32(0.05), np.int64(2), Decimal("0.1")):
        curve = Curve((0.0, 0.1), (1.0, 2.0), scan_rate=rate)
        assert type(curve.scan_rate) is float, type(rate)
        assert curve.scan_rate == pytest.approx(float(rate))
    assert Curve((), ()).scan_rate is None
    assert math.isnan(Curve((), (), scan_rate="fast").scan_rate)


def test_to_curve_parses_text_records_with_explicit_scan_rate():
    normalized = to_curve(build_records(as_text=True), scan_rate=0.05, curve_id="c1")
    assert normalized.validation.is_valid
    assert len(normalized.curve) == 20
    assert normalized.curve.scan_rate == 0.05
    assert not any("Scan rate" in w for w in normalized.validation.warnings)


def test_scan_rate_priority():
    e = np.linspace(-0.2, 0.6, 20)
    assert resolve_scan_rate(e, 0.05, 0.02, 8.0) == (0.05, 'explicit')
    assert resolve_scan_rate(e, None, 0.02, 8.0) == (0.02, 'samples_sec')
    rate, source = resolve_scan_rate(e, None, None, 8.0)
    assert source == 'derived'
    assert rate == pytest.approx(0.1)
    assert resolve_scan_rate(e, 0.0, -1.0, None) == (0.1, 'default')


def test_default_scan_rate_adds_warning():
    normalized = to_curve(build_records())
    assert normalized.validation.is_valid
    assert normalized.curve.scan_rate == 0.1
    assert any("default" in w for w in normalized.validation.warnings), normalized.validation.warnings


def test_non_finite_samples_are_filtered():
    records = build_records() + [("nan", "1e-6"), ("0.1", "inf"), ("abc", "2e-6")]
    normalized = to_curve(records, scan_rate=0.1)
    assert normalized.validation.is_valid
    assert len(normalized.curve) == 20
    assert any("Filtered 3" in w for w in normalized.validation.warnings)


def test_insufficient_points_fail_softly():
    normalized = to_curve(build_records(n_points=5), scan_rate=0.1)
    assert not normalized.validation.is_valid
    assert len(normalized.curve) == 0
    assert any("Insufficient data" in e for e in normalized.validation.errors)

    relaxed = to_curve(build_records(n_points=5), scan_rate=0.1, min_points=5)
    assert relaxed.validation.is_valid


def test_empty_input_fails_softly():
    for records in (None, [], [(1.0,)]):
        normalized = to_curve(records)
        assert not normalized.validation.is_valid
        assert len(normalized.curve) == 0
        assert normalized.validation.errors


def test_monotonicity_check():
    assert check_monotonicity(np.linspace(0, 1, 20)) == (True, 'increasing')
    assert check_monotonicity(np.linspace(1, 0, 20)) == (True, 'decreasing')
    fwd = np.linspace(0, 1, 20)
    assert check_monotonicity(np.concatenate([fwd, fwd[::-1]])) == (False, 'mixed')

    cyclic = to_curve(list(zip(np.concatenate([fwd, fwd[::-1]]), np.zeros(40) + 1e-6)),
                      scan_rate=0.1, require_monotonic=True)
    assert any("not monotonic" in w for w in cyclic.validation.warnings)


def test_validate_curves_splits_batch():
    batch = [
        {'id': 'ok', 'records': build_records(), 'scan_rate': 0.1},
        {'id': 'short', 'records': build_records(n_points=3), 'scan_rate': 0.1},
        {'id': 'derived', 'records': build_records(), 'total_time': 4.0},
    ]
    result = validate_curves(batch)
    assert [c.id for c in result['valid']] == ['ok', 'derived']
    assert result['valid'][1].scan_rate == pytest.approx(0.2)
    assert [c['id'] for c in result['invalid']] == ['short']
    assert any(w.startswith('derived:') for w in result['warnings'])
