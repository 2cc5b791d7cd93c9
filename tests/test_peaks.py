import numpy as np
import pytest

from cv_analysis.core.peak_analysis import (
    ANODIC,
    CATHODIC,
    Peak,
    calculate_delta_ep,
    detect_peaks,
    peak_current_ratio,
    pick_primary_peaks,
)


def test_strictly_increasing_current_has_no_peaks():
    e = np.linspace(0.0, 1.0, 50)
    assert detect_peaks(e, np.linspace(-1e-5, 1e-5, 50)) == []


def test_triangle_apex_is_anodic_peak():
    potential = [0, .1, .2, .3, .4, .5, .4, .3, .2, .1, 0]
    current = [0, .5, 1, 1.5, 2, 2.5, 2, 1.5, 1, .5, 0]
    peaks = detect_peaks(potential, current)
    anodic = [p for p in peaks if p.direction == ANODIC]
    assert anodic, "Expected an anodic peak at the apex"
    assert anodic[0].index == 5
    assert anodic[0].ep == pytest.approx(0.5)
    assert anodic[0].ip == pytest.approx(2.5)
    assert not [p for p in peaks if p.direction == CATHODIC]


def test_minimum_is_cathodic_peak_and_indices_in_bounds():
    e = np.linspace(0.5, -0.1, 121)
    i = -np.exp(-0.5 * ((e - 0.2) / 0.04) ** 2)
    peaks = detect_peaks(e, i)
    assert len(peaks) == 1
    assert peaks[0].direction == CATHODIC
    assert 0 < peaks[0].index < e.size - 1
    assert peaks[0].ep == pytest.approx(0.2, abs=0.005)


def test_plateaus_and_short_series_do_not_produce_peaks():
    assert detect_peaks([0, 1], [0, 1]) == []
    assert detect_peaks([0, 1, 2, 3], [0, 1, 1, 0]) == []


def test_min_prominence_filters_small_bumps():
    e = np.arange(7, dtype=float)
    i = np.array([0.0, 1e-9, 0.0, 0.0, 5e-6, 0.0, 0.0])
    assert len(detect_peaks(e, i)) == 2
    peaks = detect_peaks(e, i, min_prominence=1e-7)
    assert [p.index for p in peaks] == [4]


def test_pick_primary_peaks_selects_extremes():
    peaks = [
        Peak(0.2, 1e-5, 3, ANODIC),
        Peak(0.3, 4e-5, 5, ANODIC),
        Peak(0.1, -2e-5, 9, CATHODIC),
        Peak(0.15, -6e-5, 11, CATHODIC),
    ]
    primary = pick_primary_peaks(peaks)
    assert primary[ANODIC].ip == pytest.approx(4e-5)
    assert primary[CATHODIC].ip == pytest.approx(-6e-5)

    assert pick_primary_peaks([]) == {ANODIC: None, CATHODIC: None}


def test_delta_ep_and_current_ratio():
    a = Peak(0.25, 2e-5, 10, ANODIC)
    c = Peak(0.19, -1.8e-5, 30, CATHODIC)
    assert calculate_delta_ep(a, c) == pytest.approx(0.06)
    assert calculate_delta_ep(c, a) == pytest.approx(0.06)
    assert calculate_delta_ep(a, None) is None
    assert calculate_delta_ep(None, c) is None
    assert peak_current_ratio(a, c) == pytest.approx(0.9)
    assert peak_current_ratio(None, c) is None
