"""Rule-based classification of CV mechanism, reversibility and control.

Each classifier is an ordered table of rules. A rule pairs a predicate with
the classification it implies, a heuristic confidence and a note.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .constants import CONTROL_THRESHOLDS, CV_THRESHOLDS, REVERSIBILITY_THRESHOLDS
from .peak_analysis import Peak
from .regression import (
    RegressionResult,
    linear_regression,
    regression_log_log,
    regression_vs_sqrt,
)

MECHANISMS = ('diffusion', 'adsorption', 'EC', 'ECE', 'kinetic', 'unknown')
BASE_CONFIDENCE = 0.4


@dataclass
class Rule:
    name: str
    predicate: Callable[[Dict], bool]
    classification: str
    confidence: float
    note: str


@dataclass
class Diagnostics:
    mechanism: str = 'unknown'
    confidence: float = BASE_CONFIDENCE
    notes: Tuple[str, ...] = field(default_factory=tuple)
    rules: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ReversibilityResult:
    classification: str = 'unknown'
    confidence: float = 0.0
    notes: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class ControlAnalysis:
    control_type: str = 'unknown'
    confidence: float = 0.0
    slope_log_log: Optional[float] = None
    r2_log_log: Optional[float] = None
    r2_sqrt: Optional[float] = None
    r2_linear: Optional[float] = None
    notes: Tuple[str, ...] = field(default_factory=tuple)


def _near(value: Optional[float], target: float, tolerance: float) -> bool:
    return value is not None and abs(value - target) <= tolerance


def _clip_confidence(value: float) -> float:
    return float(min(1.0, max(0.0, value)))


# ----------------------
# Mechanism
# ----------------------

def _mechanism_rules(thresholds: Dict[str, float]) -> List[Rule]:
    tol = thresholds['slope_tolerance']
    return [
        Rule('log_log_diffusion',
             lambda f: _near(f['slope_log_log'], 0.5, tol),
             'diffusion', 0.80,
             'log(ip)-log(v) slope ≈ 0.5 indicates diffusion control (Randles-Sevcik).'),
        Rule('log_log_adsorption',
             lambda f: _near(f['slope_log_log'], 1.0, tol),
             'adsorption', 0.85,
             'log(ip)-log(v) slope ≈ 1 suggests an adsorbed species.'),
        Rule('ec_missing_cathodic',
             lambda f: f['cathodic'] is None and f['hysteresis_area'] > thresholds['hysteresis_area'],
             'EC', 0.75,
             'No cathodic peak with a large hysteresis: possible fast follow-up chemistry (EC).'),
        Rule('kinetic_delta_ep',
             lambda f: f['delta_ep'] is not None and f['delta_ep'] > thresholds['delta_ep_kinetic'],
             'kinetic', 0.70,
             'Large ΔEp indicates slow electron transfer / near irreversibility (Laviron).'),
        Rule('reversible_delta_ep',
             lambda f: (f['anodic'] is not None and f['cathodic'] is not None
                        and f['delta_ep'] is not None
                        and f['delta_ep'] < thresholds['delta_ep_reversible']),
             'diffusion', 0.75,
             'ΔEp close to 59/n mV is consistent with a reversible diffusion-controlled couple.'),
    ]


def diagnose_mechanism(anodic_peak: Optional[Peak] = None,
                       cathodic_peak: Optional[Peak] = None,
                       delta_ep: Optional[float] = None,
                       hysteresis_area: float = 0.0,
                       slope_log_log: Optional[float] = None,
                       thresholds: Optional[Dict[str, float]] = None) -> Diagnostics:
    """Classify the reaction mechanism from peak, loop and scan-rate evidence.

    Rules are evaluated in order and each match overrides the mechanism set
    by earlier matches. The confidence is the maximum over matched rules.

    Args:
        anodic_peak: Primary anodic peak
        cathodic_peak: Primary cathodic peak
        delta_ep: Peak separation (V)
        hysteresis_area: Loop area (A·V)
        slope_log_log: Slope of log|Ip| vs log(v), when several scan rates exist
        thresholds: Overrides for CV_THRESHOLDS

    Returns:
        Diagnostics
    """
    limits = dict(CV_THRESHOLDS)
    if thresholds:
        limits.update(thresholds)

    facts = {
        'anodic': anodic_peak,
        'cathodic': cathodic_peak,
        'delta_ep': delta_ep,
        'hysteresis_area': hysteresis_area or 0.0,
        'slope_log_log': slope_log_log,
    }

    matched = [rule for rule in _mechanism_rules(limits) if rule.predicate(facts)]
    if not matched:
        return Diagnostics(
            mechanism='unknown',
            confidence=BASE_CONFIDENCE,
            notes=('Insufficient data for a conclusive diagnosis.',),
            rules=(),
        )

    return Diagnostics(
        mechanism=matched[-1].classification,
        confidence=_clip_confidence(max(rule.confidence for rule in matched)),
        notes=tuple(rule.note for rule in matched),
        rules=tuple(rule.name for rule in matched),
    )


# ----------------------
# Reversibility
# ----------------------

def _reversibility_rules(n: int) -> List[Rule]:
    t = REVERSIBILITY_THRESHOLDS
    nernst = t['nernst_mv'] / n
    band = t['reversible_band_mv']
    return [
        Rule('nernstian',
             lambda f: abs(f['delta_ep_mv'] - nernst) <= band,
             'reversible', 0.80,
             f'ΔEp within ±{band:.0f} mV of {nernst:.1f} mV (59/n): reversible electron transfer.'),
        Rule('irreversible',
             lambda f: f['delta_ep_mv'] >= t['irreversible_mv'],
             'irreversible', 0.80,
             f"ΔEp ≥ {t['irreversible_mv']:.0f} mV: irreversible electron transfer."),
        Rule('sub_nernstian',
             lambda f: f['delta_ep_mv'] < nernst - band,
             'reversible', 0.60,
             'ΔEp below the Nernstian value: surface-confined species or overlapping peaks.'),
        Rule('quasi_reversible',
             lambda f: True,
             'quasi-reversible', 0.70,
             'ΔEp between the reversible and irreversible limits: quasi-reversible kinetics.'),
    ]


def classify_reversibility(delta_ep: Optional[float], n: int = 1,
                           peak_current_ratio: Optional[float] = None) -> ReversibilityResult:
    """Classify electron-transfer reversibility from ΔEp (V) and |Ipc/Ipa|.

    The first matching ΔEp rule decides the class; the current ratio then
    adjusts the confidence.
    """
    if delta_ep is None or not np.isfinite(delta_ep) or n <= 0:
        return ReversibilityResult('unknown', 0.0, ('Both peaks are required to assess reversibility.',))

    facts = {'delta_ep_mv': delta_ep * 1000.0}
    rule = next(r for r in _reversibility_rules(n) if r.predicate(facts))
    confidence = rule.confidence
    notes = [rule.note]

    if peak_current_ratio is not None and np.isfinite(peak_current_ratio):
        deviation = abs(peak_current_ratio - 1.0)
        if deviation <= REVERSIBILITY_THRESHOLDS['ratio_tolerance']:
            confidence += 0.15
            notes.append(f'Peak current ratio {peak_current_ratio:.2f} ≈ 1: chemically reversible.')
        elif deviation > REVERSIBILITY_THRESHOLDS['ratio_mismatch']:
            confidence -= 0.2
            notes.append(f'Peak current ratio {peak_current_ratio:.2f} far from 1: possible coupled chemical step.')

    return ReversibilityResult(rule.classification, _clip_confidence(confidence), tuple(notes))


# ----------------------
# Diffusion vs adsorption control
# ----------------------

def _control_rules() -> List[Rule]:
    t = CONTROL_THRESHOLDS
    tol = t['slope_tolerance']
    lo = t['diffusion_slope']
    hi = t['adsorption_slope']

    def _log_log_ok(f):
        return f['log_log'] is not None and f['log_log'].r2 > t['min_r2']

    def _better(fit, other):
        return fit is not None and fit.r2 > t['min_r2'] and (other is None or fit.r2 > other.r2)

    return [
        Rule('log_log_diffusion',
             lambda f: _log_log_ok(f) and _near(f['log_log'].slope, lo, tol),
             'diffusion', 1.0,
             'log-log slope ≈ 0.5: diffusion-controlled current.'),
        Rule('log_log_adsorption',
             lambda f: _log_log_ok(f) and _near(f['log_log'].slope, hi, tol),
             'adsorption', 1.0,
             'log-log slope ≈ 1: adsorption (surface) controlled current.'),
        Rule('log_log_mixed',
             lambda f: _log_log_ok(f) and lo + tol < f['log_log'].slope < hi - tol,
             'mixed', 0.9,
             'log-log slope between 0.5 and 1: mixed diffusion/adsorption control.'),
        Rule('sqrt_fit',
             lambda f: _better(f['sqrt'], f['linear']),
             'diffusion', t['fallback_weight'],
             'Ip vs √v fits better than Ip vs v: diffusion control favoured.'),
        Rule('linear_fit',
             lambda f: _better(f['linear'], f['sqrt']),
             'adsorption', t['fallback_weight'],
             'Ip vs v fits better than Ip vs √v: adsorption control favoured.'),
    ]


def _rule_confidence(rule: Rule, facts: Dict) -> float:
    # Confidence is scaled by the R² of the fit that triggered the rule
    source = {
        'sqrt_fit': facts['sqrt'],
        'linear_fit': facts['linear'],
    }.get(rule.name, facts['log_log'])
    r2 = source.r2 if isinstance(source, RegressionResult) else 0.0
    return _clip_confidence(rule.confidence * r2)


def analyze_control(peak_currents: Sequence[float], scan_rates: Sequence[float]) -> ControlAnalysis:
    """Decide whether peak currents are diffusion or adsorption controlled.

    Fits Ip vs √v, Ip vs v and log|Ip| vs log(v). A well-determined log-log
    slope decides first; otherwise the better of the two untransformed fits.
    """
    ip = np.abs(np.asarray(peak_currents, dtype=float))
    v = np.asarray(scan_rates, dtype=float)
    if ip.size != v.size or ip.size < 2:
        return ControlAnalysis(notes=('At least two aligned peak currents are required.',))

    facts = {
        'sqrt': regression_vs_sqrt(v, ip),
        'linear': linear_regression(v, ip),
        'log_log': regression_log_log(v, ip),
    }

    rule = next((r for r in _control_rules() if r.predicate(facts)), None)
    log_log = facts['log_log']
    summary = dict(
        slope_log_log=log_log.slope if log_log else None,
        r2_log_log=log_log.r2 if log_log else None,
        r2_sqrt=facts['sqrt'].r2 if facts['sqrt'] else None,
        r2_linear=facts['linear'].r2 if facts['linear'] else None,
    )

    if rule is None:
        return ControlAnalysis(
            control_type='unknown',
            confidence=0.0,
            notes=(f"No correlation reaches R² > {CONTROL_THRESHOLDS['min_r2']}.",),
            **summary,
        )

    return ControlAnalysis(
        control_type=rule.classification,
        confidence=_rule_confidence(rule, facts),
        notes=(rule.note,),
        **summary,
    )
