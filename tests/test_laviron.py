import math

import numpy as np
import pytest

from cv_analysis.core.constants import DEFAULT_TEMPERATURE, FARADAY, GAS_CONSTANT
from cv_analysis.kinetics.laviron import (
    bilinear_regression,
    critical_scan_rate,
    formal_potential,
    heterogeneous_rate_constant,
    perform_laviron_analysis,
    transfer_coefficient,
)

RT_F = GAS_CONSTANT * DEFAULT_TEMPERATURE / FARADAY
SCAN_RATES = np.array([0.01, 0.02, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0])


def build_laviron_potentials(slope=0.03, offset=0.2, irregular=(0.30, 0.10, 0.28)):
    """Irregular Ep at slow scans followed by a linear Ep vs ln(v) regime."""
    ep = offset + slope * np.log(SCAN_RATES)
    ep[:len(irregular)] = irregular
    return ep


def test_critical_scan_rate_found_at_start_of_linear_regime():
    ep = build_laviron_potentials()
    res = critical_scan_rate(SCAN_RATES, ep)
    assert res.is_found, res.message
    assert res.index_critical == 3
    assert res.v_critical == pytest.approx(0.1)
    assert len(res.windows) == SCAN_RATES.size - 4 + 1


def test_critical_scan_rate_sorts_by_scan_rate():
    ep = build_laviron_potentials()
    res = critical_scan_rate(SCAN_RATES[::-1], ep[::-1])
    assert res.is_found
    assert res.v_critical == pytest.approx(0.1)


def test_critical_scan_rate_not_found_uses_fastest_point():
    ep = np.array([0.30, 0.10, 0.28, 0.12, 0.31, 0.09, 0.29, 0.11])
    res = critical_scan_rate(SCAN_RATES, ep)
    assert not res.is_found
    assert res.index_critical == SCAN_RATES.size - 1
    assert res.v_critical == pytest.approx(2.0)


def test_critical_scan_rate_insufficient_data():
    res = critical_scan_rate([0.1, 0.2, 0.5], [0.2, 0.21, 0.22])
    assert not res.is_found
    assert res.index_critical == 0
    assert "Insufficient" in res.message


def test_transfer_coefficient_for_both_branches():
    assert transfer_coefficient(0.03) == pytest.approx(RT_F / 0.03)
    assert transfer_coefficient(-0.03, is_anodic=False) == pytest.approx(RT_F / 0.03)
    assert transfer_coefficient(0.015, n=2) == pytest.approx(RT_F / 0.03)
    assert transfer_coefficient(-0.03) is None, "anodic Ep must shift positive"
    assert transfer_coefficient(0.0) is None


def test_formal_potential_is_midpoint_of_mean_peaks():
    assert formal_potential([0.30, 0.32], [0.20, 0.22]) == pytest.approx(0.26)
    assert formal_potential([], [0.2]) is None


def test_heterogeneous_rate_constant():
    assert heterogeneous_rate_constant(0.5, 0.0) == pytest.approx(1.0)
    expected = math.exp(0.5 * FARADAY / (GAS_CONSTANT * DEFAULT_TEMPERATURE) * -0.1)
    assert heterogeneous_rate_constant(0.5, -0.1) == pytest.approx(expected)
    assert heterogeneous_rate_constant(1.0, 1e5) is None, "overflow must not raise"


def test_perform_laviron_analysis_linear_data():
    v = SCAN_RATES[3:]
    ep = 0.2 + 0.03 * np.log(v)
    res = perform_laviron_analysis(v, ep, formal_potential=0.15)
    assert res is not None
    assert res.slope == pytest.approx(0.03)
    assert res.intercept == pytest.approx(0.2)
    assert res.r2 == pytest.approx(1.0)
    assert res.alpha == pytest.approx(RT_F / 0.03)
    assert res.ks == pytest.approx(heterogeneous_rate_constant(res.alpha, 0.2))
    assert res.e0 == 0.15
    assert res.data_points == v.size


def test_perform_laviron_analysis_rejects_short_or_invalid_input():
    assert perform_laviron_analysis([0.1, 0.2], [0.2, 0.21]) is None
    assert perform_laviron_analysis([0.0, 0.1, 0.2], [0.2, 0.21, 0.22]) is None
    # Decreasing anodic potentials give no physical transfer coefficient
    assert perform_laviron_analysis([0.1, 0.2, 0.5], [0.3, 0.28, 0.25]) is None


def test_bilinear_regression_splits_at_critical_index():
    xs = np.arange(8, dtype=float)
    ys = np.where(xs < 4, 0.1, 0.1 + 0.02 * (xs - 3))
    res = bilinear_regression(xs, ys, 4)
    assert res.critical_index == 4
    assert res.before_critical.slope == pytest.approx(0.0)
    assert res.after_critical.slope == pytest.approx(0.02)
    assert res.after_critical.points == 4

    edge = bilinear_regression(xs, ys, 1)
    assert edge.before_critical is None
    assert edge.after_critical is not None
