import numpy as np
import pytest

from cv_analysis.core.diagnostics import (
    analyze_control,
    classify_reversibility,
    diagnose_mechanism,
)
from cv_analysis.core.peak_analysis import ANODIC, CATHODIC, Peak

ANODIC_PEAK = Peak(0.25, 2e-5, 100, ANODIC)
CATHODIC_PEAK = Peak(0.19, -1.9e-5, 500, CATHODIC)
SCAN_RATES = np.array([0.01, 0.04, 0.09, 0.16, 0.25])


def test_log_log_slope_half_is_diffusion():
    res = diagnose_mechanism(slope_log_log=0.5, delta_ep=0.03)
    assert res.mechanism == 'diffusion'
    assert res.confidence > 0.7


def test_log_log_slope_one_is_adsorption():
    res = diagnose_mechanism(slope_log_log=1.05)
    assert res.mechanism == 'adsorption'
    assert res.confidence == pytest.approx(0.85)


def test_missing_cathodic_with_loop_is_ec():
    res = diagnose_mechanism(anodic_peak=ANODIC_PEAK, hysteresis_area=1e-5)
    assert res.mechanism == 'EC'
    assert res.rules == ('ec_missing_cathodic',)

    small_loop = diagnose_mechanism(anodic_peak=ANODIC_PEAK, hysteresis_area=1e-8)
    assert small_loop.mechanism == 'unknown'


def test_reversible_couple_is_diffusion():
    res = diagnose_mechanism(ANODIC_PEAK, CATHODIC_PEAK, delta_ep=0.06, hysteresis_area=1e-6)
    assert res.mechanism == 'diffusion'
    assert res.confidence == pytest.approx(0.75)


def test_later_rule_overrides_mechanism_but_confidence_is_max():
    res = diagnose_mechanism(ANODIC_PEAK, CATHODIC_PEAK, delta_ep=0.2, slope_log_log=0.5)
    assert res.mechanism == 'kinetic'
    assert res.confidence == pytest.approx(0.80), "confidence must be the max of matched rules"
    assert res.rules == ('log_log_diffusion', 'kinetic_delta_ep')
    assert len(res.notes) == 2


def test_no_evidence_is_unknown():
    res = diagnose_mechanism()
    assert res.mechanism == 'unknown'
    assert res.confidence == pytest.approx(0.4)
    assert any('Insufficient' in n for n in res.notes)


def test_reversibility_classes():
    assert classify_reversibility(0.059).classification == 'reversible'
    assert classify_reversibility(0.059).confidence == pytest.approx(0.8)
    assert classify_reversibility(0.030, n=2).classification == 'reversible'
    assert classify_reversibility(0.100).classification == 'quasi-reversible'
    assert classify_reversibility(0.250).classification == 'irreversible'

    low = classify_reversibility(0.030)
    assert low.classification == 'reversible'
    assert low.confidence == pytest.approx(0.6)

    missing = classify_reversibility(None)
    assert missing.classification == 'unknown'
    assert missing.confidence == 0.0


def test_reversibility_current_ratio_adjusts_confidence():
    balanced = classify_reversibility(0.059, peak_current_ratio=0.98)
    assert balanced.confidence == pytest.approx(0.95)

    skewed = classify_reversibility(0.059, peak_current_ratio=0.5)
    assert skewed.confidence == pytest.approx(0.6)
    assert any('coupled chemical' in n for n in skewed.notes)

    for ratio in (None, 0.0, 0.5, 1.0, 3.0):
        for sep in (0.01, 0.059, 0.1, 0.3):
            res = classify_reversibility(sep, peak_current_ratio=ratio)
            assert 0.0 <= res.confidence <= 1.0


def test_control_from_log_log_slope():
    diffusion = analyze_control(3e-4 * np.sqrt(SCAN_RATES), SCAN_RATES)
    assert diffusion.control_type == 'diffusion'
    assert diffusion.slope_log_log == pytest.approx(0.5)
    assert diffusion.confidence == pytest.approx(1.0)

    adsorption = analyze_control(3e-4 * SCAN_RATES, SCAN_RATES)
    assert adsorption.control_type == 'adsorption'

    mixed = analyze_control(3e-4 * SCAN_RATES ** 0.75, SCAN_RATES)
    assert mixed.control_type == 'mixed'
    assert mixed.confidence == pytest.approx(0.9)


def test_control_uses_absolute_cathodic_currents():
    res = analyze_control(-3e-4 * np.sqrt(SCAN_RATES), SCAN_RATES)
    assert res.control_type == 'diffusion'


def test_control_falls_back_to_untransformed_fits():
    # Large background current flattens the log-log slope out of every band
    sqrt_like = analyze_control(1e-4 + 1e-5 * np.sqrt(SCAN_RATES), SCAN_RATES)
    assert sqrt_like.control_type == 'diffusion'
    assert sqrt_like.confidence == pytest.approx(0.6)

    linear_like = analyze_control(1e-4 + 1e-5 * SCAN_RATES, SCAN_RATES)
    assert linear_like.control_type == 'adsorption'
    assert linear_like.confidence == pytest.approx(0.6)


def test_control_unknown_without_correlation():
    zigzag = np.array([1e-5, 3e-5, 1e-5, 3e-5, 1e-5])
    res = analyze_control(zigzag, SCAN_RATES)
    assert res.control_type == 'unknown'
    assert res.confidence == 0.0

    short = analyze_control([1e-5], [0.1])
    assert short.control_type == 'unknown'
    assert short.r2_sqrt is None
