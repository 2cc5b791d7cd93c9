"""
Single-curve and multi-scan-rate analysis of cyclic voltammograms.
"""
import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from config.config_loader import get_section, load_config
from .core.constants import CV_DEFAULTS, DEFAULT_TEMPERATURE, LAVIRON_PARAMS
from .core.diagnostics import (
    ControlAnalysis,
    Diagnostics,
    ReversibilityResult,
    analyze_control,
    classify_reversibility,
    diagnose_mechanism,
)
from .core.hysteresis import HysteresisResult, compute_hysteresis
from .core.normalization import Curve, filter_non_finite, is_positive_finite, to_curve
from .core.peak_analysis import (
    ANODIC,
    CATHODIC,
    Peak,
    calculate_delta_ep,
    detect_peaks,
    peak_current_ratio,
    pick_primary_peaks,
)
from .core.preprocessing import resolve_smoothing_params, smooth_current
from .core.randles import compare_peak_with_randles
from .core.regression import (
    RegressionResult,
    linear_regression,
    linear_regression_through_origin,
    regression_log_log,
    regression_vs_sqrt,
)
from .kinetics.laviron import (
    BilinearRegressionResult,
    CriticalScanRateResult,
    LavironResult,
    bilinear_regression,
    critical_scan_rate,
    formal_potential,
    perform_laviron_analysis,
    transfer_coefficient,
)
from .kinetics.nicholson import (
    DeltaEpTrend,
    K0Statistics,
    NicholsonResult,
    analyze_delta_ep_vs_scan_rate,
    calculate_k0_statistics,
    perform_nicholson_analysis,
)

logger = logging.getLogger(__name__)

# camelCase keys accepted from external configuration payloads
_CONFIG_ALIASES = {
    'diffusionCoefficient': 'diffusion_coefficient',
    'windowSize': 'window_size',
    'polyOrder': 'poly_order',
    'minPoints': 'min_points',
    'minProminence': 'min_prominence',
    'lavironWindow': 'laviron_window',
    'lavironR2Threshold': 'laviron_r2_threshold',
    'lavironMinStability': 'laviron_min_stability',
}

CORRELATION_KEYS = (
    'ip_vs_sqrt_v_anodic',
    'ip_vs_sqrt_v_cathodic',
    'ip_vs_v_anodic',
    'ip_vs_v_cathodic',
    'log_ip_vs_log_v_anodic',
    'log_ip_vs_log_v_cathodic',
    'delta_ep_vs_ln_v',
    'ep_a_vs_ln_v',
    'ep_c_vs_ln_v',
)


@dataclass
class AnalysisConfig:
    """Electrochemical and numerical settings for an analysis run."""
    n: int = 1
    area: Optional[float] = None                    # cm²
    concentration: Optional[float] = None           # mol/L
    temperature: float = DEFAULT_TEMPERATURE        # K
    diffusion_coefficient: Optional[float] = None   # cm²/s
    smooth: bool = False
    window_size: Optional[int] = None
    poly_order: Optional[int] = None
    min_points: int = CV_DEFAULTS['min_points']
    min_prominence: float = 0.0
    laviron_window: int = LAVIRON_PARAMS['window']
    laviron_r2_threshold: float = LAVIRON_PARAMS['r2_threshold']
    laviron_min_stability: int = LAVIRON_PARAMS['min_stability']

    @classmethod
    def from_mapping(cls, mapping: Optional[Mapping[str, Any]]) -> 'AnalysisConfig':
        """Build a config from a dict, accepting camelCase keys and ignoring unknown ones."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key, value in (mapping or {}).items():
            name = _CONFIG_ALIASES.get(key, key)
            if name in known and value is not None:
                values[name] = value
        return cls(**values)


@dataclass
class PlotSeries:
    x: Tuple[float, ...] = field(default_factory=tuple)
    y: Tuple[float, ...] = field(default_factory=tuple)


@dataclass
class CVParameters:
    anodic_peak: Optional[Peak] = None
    cathodic_peak: Optional[Peak] = None
    delta_ep: Optional[float] = None                    # V
    peak_current_ratio: Optional[float] = None          # |Ipc| / |Ipa|
    expected_randles_current: Optional[float] = None    # A
    randles_ratio: Optional[float] = None               # |Ipa| / expected
    reversibility: ReversibilityResult = field(default_factory=ReversibilityResult)


@dataclass
class CVAnalysisResult:
    peaks: Tuple[Peak, ...] = field(default_factory=tuple)
    primary_peaks: Dict[str, Optional[Peak]] = field(default_factory=lambda: {ANODIC: None, CATHODIC: None})
    parameters: CVParameters = field(default_factory=CVParameters)
    hysteresis: HysteresisResult = field(default_factory=HysteresisResult)
    diagnostics: Diagnostics = field(default_factory=Diagnostics)
    plots: Dict[str, PlotSeries] = field(
        default_factory=lambda: {'raw': PlotSeries(), 'processed': PlotSeries()}
    )
    notes: Tuple[str, ...] = field(default_factory=tuple)


@dataclass
class CurveAnalysis:
    id: Optional[str]
    name: Optional[str]
    scan_rate: float
    analysis: CVAnalysisResult


@dataclass
class ControlSummary:
    anodic: Optional[ControlAnalysis] = None
    cathodic: Optional[ControlAnalysis] = None
    overall: ControlAnalysis = field(default_factory=ControlAnalysis)


@dataclass
class LavironKinetics:
    critical_scan_rate_anodic: Optional[CriticalScanRateResult] = None
    critical_scan_rate_cathodic: Optional[CriticalScanRateResult] = None
    bilinear_anodic: Optional[BilinearRegressionResult] = None
    bilinear_cathodic: Optional[BilinearRegressionResult] = None
    transfer_coefficient_anodic: Optional[float] = None
    transfer_coefficient_cathodic: Optional[float] = None
    analysis_anodic: Optional[LavironResult] = None
    analysis_cathodic: Optional[LavironResult] = None
    formal_potential: Optional[float] = None


@dataclass
class NicholsonSummary:
    results: Tuple[NicholsonResult, ...]
    statistics: Optional[K0Statistics]
    trend: DeltaEpTrend


@dataclass
class MultiCVResult:
    curves: Tuple[CurveAnalysis, ...]
    skipped: Tuple[str, ...]
    correlations: Dict[str, Optional[RegressionResult]]
    average_delta_ep: Optional[float]
    average_hysteresis_area: Optional[float]
    mechanism_consensus: Optional[str]
    diagnostics: Diagnostics
    control: ControlSummary
    laviron: Optional[LavironKinetics] = None
    nicholson: Optional[NicholsonSummary] = None


def to_dict(result) -> Dict[str, Any]:
    """Plain-dict view of any analysis result, suitable for JSON."""
    return asdict(result)


# ----------------------
# Single curve
# ----------------------

def _empty_result(notes: Sequence[str] = ()) -> CVAnalysisResult:
    message = 'Insufficient data for analysis.'
    return CVAnalysisResult(
        diagnostics=Diagnostics(notes=(message,)),
        notes=tuple(notes) + (message,),
    )


def _series(x: np.ndarray, y: np.ndarray) -> PlotSeries:
    return PlotSeries(tuple(x.tolist()), tuple(y.tolist()))


def analyze_single_curve(curve: Curve, config: Optional[AnalysisConfig] = None) -> CVAnalysisResult:
    """
    Run the full single-curve pipeline: smoothing, peaks, ΔEp, hysteresis,
    reversibility, Randles-Sevcik comparison and mechanism diagnostics.

    Never raises; unusable input gives an empty result with explanatory notes.

    Args:
        curve: Input curve
        config: Analysis settings (defaults when None)

    Returns:
        CVAnalysisResult
    """
    config = config or AnalysisConfig()
    label = getattr(curve, 'label', '<unnamed>')
    try:
        potential, current = filter_non_finite(*curve.arrays())
        notes: List[str] = []
        removed = len(curve) - potential.size
        if removed:
            notes.append(f'Filtered {removed} non-finite samples')

        if potential.size < max(int(config.min_points), 3):
            logger.warning(f"Curve {label} has {potential.size} usable points, skipping analysis")
            return _empty_result(notes)

        processed = current
        if config.smooth:
            params = resolve_smoothing_params(potential.size, config.window_size, config.poly_order)
            if params is not None:
                processed = smooth_current(current, *params)
            else:
                notes.append('Smoothing skipped: series too short')

        peaks = detect_peaks(potential, processed, config.min_prominence)
        primary = pick_primary_peaks(peaks)
        anodic, cathodic = primary[ANODIC], primary[CATHODIC]
        delta_ep = calculate_delta_ep(anodic, cathodic)
        ratio = peak_current_ratio(anodic, cathodic)

        hysteresis = compute_hysteresis(potential, processed)
        reversibility = classify_reversibility(delta_ep, config.n, ratio)
        randles = compare_peak_with_randles(
            anodic, curve.scan_rate, config.n,
            area=config.area,
            diffusion_coefficient=config.diffusion_coefficient,
            concentration=config.concentration,
        )

        diagnostics = diagnose_mechanism(
            anodic_peak=anodic,
            cathodic_peak=cathodic,
            delta_ep=delta_ep,
            hysteresis_area=hysteresis.area,
            slope_log_log=None,
        )

        parameters = CVParameters(
            anodic_peak=anodic,
            cathodic_peak=cathodic,
            delta_ep=delta_ep,
            peak_current_ratio=ratio,
            expected_randles_current=randles['expected'],
            randles_ratio=randles['ratio'],
            reversibility=reversibility,
        )

        return CVAnalysisResult(
            peaks=tuple(peaks),
            primary_peaks=primary,
            parameters=parameters,
            hysteresis=hysteresis,
            diagnostics=diagnostics,
            plots={
                'raw': _series(potential, current),
                'processed': _series(potential, np.asarray(processed, dtype=float)),
            },
            notes=tuple(notes),
        )
    except Exception:
        logger.exception(f"Analysis failed for curve {label}")
        return _empty_result(('Analysis failed',))


# ----------------------
# Multiple scan rates
# ----------------------

def _paired(entries: Sequence[CurveAnalysis], getter) -> Tuple[np.ndarray, np.ndarray]:
    """Scan rates and values for the entries where the value exists."""
    rates, values = [], []
    for entry in entries:
        value = getter(entry.analysis)
        if value is not None and math.isfinite(value):
            rates.append(entry.scan_rate)
            values.append(value)
    return np.asarray(rates, dtype=float), np.asarray(values, dtype=float)


def _peak_value(direction: str, attr: str):
    def getter(analysis: CVAnalysisResult):
        peak = analysis.primary_peaks.get(direction)
        return getattr(peak, attr) if peak is not None else None
    return getter


def _with_origin(v: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    return np.concatenate(([0.0], v)), np.concatenate(([0.0], y))


def _current_correlations(v: np.ndarray, ip: np.ndarray, include_origin: bool) -> Dict[str, Optional[RegressionResult]]:
    if v.size < 2:
        return {'sqrt': None, 'linear': None, 'log_log': None}

    if include_origin:
        v0, ip0 = _with_origin(v, ip)
        sqrt_fit = linear_regression_through_origin(np.sqrt(v0), ip0)
        linear_fit = linear_regression_through_origin(v0, ip0)
    else:
        sqrt_fit = regression_vs_sqrt(v, ip)
        linear_fit = linear_regression(v, ip)

    # log(0) is undefined: the synthetic origin never enters the log-log fit
    return {'sqrt': sqrt_fit, 'linear': linear_fit, 'log_log': regression_log_log(v, ip)}


def _ln_fit(v: np.ndarray, y: np.ndarray) -> Optional[RegressionResult]:
    if v.size < 2:
        return None
    return linear_regression(np.log(v), y)


def _mean(values: Sequence[float]) -> Optional[float]:
    return float(np.mean(values)) if len(values) else None


def _branch_kinetics(v: np.ndarray, ep: np.ndarray, correlation: Optional[RegressionResult],
                     config: AnalysisConfig, is_anodic: bool, e0: Optional[float]):
    critical = critical_scan_rate(
        v, ep,
        window=config.laviron_window,
        r2_threshold=config.laviron_r2_threshold,
        min_stability=config.laviron_min_stability,
    )

    bilinear = None
    start = 0
    if critical.is_found:
        bilinear = bilinear_regression(np.log(v), ep, critical.index_critical)
        start = critical.index_critical

    alpha = None
    if correlation is not None and correlation.slope:
        alpha = transfer_coefficient(correlation.slope, config.n, config.temperature, is_anodic)

    analysis = perform_laviron_analysis(v[start:], ep[start:], config.n, config.temperature, is_anodic, e0)
    return critical, bilinear, alpha, analysis


def _laviron_block(v_a: np.ndarray, ep_a: np.ndarray, v_c: np.ndarray, ep_c: np.ndarray,
                   correlations: Dict[str, Optional[RegressionResult]],
                   config: AnalysisConfig) -> Optional[LavironKinetics]:
    min_points = LAVIRON_PARAMS['min_points']
    if ep_a.size < min_points and ep_c.size < min_points:
        return None

    kinetics = LavironKinetics(formal_potential=formal_potential(ep_a, ep_c))

    if ep_a.size >= min_points:
        (kinetics.critical_scan_rate_anodic,
         kinetics.bilinear_anodic,
         kinetics.transfer_coefficient_anodic,
         kinetics.analysis_anodic) = _branch_kinetics(
            v_a, ep_a, correlations['ep_a_vs_ln_v'], config, True, kinetics.formal_potential)

    if ep_c.size >= min_points:
        (kinetics.critical_scan_rate_cathodic,
         kinetics.bilinear_cathodic,
         kinetics.transfer_coefficient_cathodic,
         kinetics.analysis_cathodic) = _branch_kinetics(
            v_c, ep_c, correlations['ep_c_vs_ln_v'], config, False, kinetics.formal_potential)

    return kinetics


def _nicholson_block(v: np.ndarray, delta_eps: np.ndarray,
                     config: AnalysisConfig) -> Optional[NicholsonSummary]:
    d = config.diffusion_coefficient
    if not is_positive_finite(d) or delta_eps.size == 0:
        return None
    results = perform_nicholson_analysis(delta_eps.tolist(), v.tolist(), d, config.n, config.temperature)
    return NicholsonSummary(
        results=tuple(results),
        statistics=calculate_k0_statistics(results),
        trend=analyze_delta_ep_vs_scan_rate(delta_eps.tolist(), v.tolist()),
    )


def _control_summary(v_a, ip_a, v_c, ip_c) -> ControlSummary:
    anodic = analyze_control(ip_a, v_a) if ip_a.size >= 2 else None
    cathodic = analyze_control(ip_c, v_c) if ip_c.size >= 2 else None
    candidates = [c for c in (anodic, cathodic) if c is not None]
    overall = max(candidates, key=lambda c: c.confidence) if candidates else ControlAnalysis(
        notes=('At least two aligned peak currents are required.',))
    return ControlSummary(anodic=anodic, cathodic=cathodic, overall=overall)


def analyze_multiple_curves(curves: Optional[Sequence[Curve]],
                            config: Optional[AnalysisConfig] = None,
                            include_origin: bool = False) -> Optional[MultiCVResult]:
    """
    Analyze a batch of curves recorded at different scan rates.

    Curves without a finite positive scan rate are skipped. The remaining
    ones are sorted by scan rate and reduced to aligned per-quantity arrays
    that feed the correlations, consensus diagnostics, control analysis,
    Laviron kinetics and, when a diffusion coefficient is configured,
    Nicholson k0 estimates.

    Args:
        curves: Curves to analyze
        config: Analysis settings (defaults when None)
        include_origin: Prepend (0, 0) and force the Ip vs √v and Ip vs v fits through it

    Returns:
        MultiCVResult, or None for an empty or unusable batch
    """
    if not curves:
        return None

    config = config or AnalysisConfig()
    try:
        # Collect
        entries: List[CurveAnalysis] = []
        skipped: List[str] = []
        for curve in curves:
            if not is_positive_finite(curve.scan_rate):
                logger.warning(f"Skipping curve {curve.label}: invalid scan rate {curve.scan_rate}")
                skipped.append(curve.label)
                continue
            entries.append(CurveAnalysis(
                id=curve.id,
                name=curve.name,
                scan_rate=float(curve.scan_rate),
                analysis=analyze_single_curve(curve, config),
            ))

        if not entries:
            logger.warning("No curve in the batch has a usable scan rate")
            return None

        # Align
        entries.sort(key=lambda e: e.scan_rate)
        v_ia, ip_a = _paired(entries, _peak_value(ANODIC, 'ip'))
        v_ic, ip_c = _paired(entries, _peak_value(CATHODIC, 'ip'))
        v_ea, ep_a = _paired(entries, _peak_value(ANODIC, 'ep'))
        v_ec, ep_c = _paired(entries, _peak_value(CATHODIC, 'ep'))
        v_d, delta_eps = _paired(entries, lambda a: a.parameters.delta_ep)

        # Correlate
        anodic_fits = _current_correlations(v_ia, ip_a, include_origin)
        cathodic_fits = _current_correlations(v_ic, ip_c, include_origin)
        correlations = {
            'ip_vs_sqrt_v_anodic': anodic_fits['sqrt'],
            'ip_vs_sqrt_v_cathodic': cathodic_fits['sqrt'],
            'ip_vs_v_anodic': anodic_fits['linear'],
            'ip_vs_v_cathodic': cathodic_fits['linear'],
            'log_ip_vs_log_v_anodic': anodic_fits['log_log'],
            'log_ip_vs_log_v_cathodic': cathodic_fits['log_log'],
            'delta_ep_vs_ln_v': _ln_fit(v_d, delta_eps),
            'ep_a_vs_ln_v': _ln_fit(v_ea, ep_a),
            'ep_c_vs_ln_v': _ln_fit(v_ec, ep_c),
        }

        # Aggregate
        areas = [e.analysis.hysteresis.area for e in entries if e.analysis.hysteresis.area > 0]
        average_delta_ep = _mean(delta_eps)
        average_area = _mean(areas)
        mechanisms = Counter(e.analysis.diagnostics.mechanism for e in entries)
        consensus = mechanisms.most_common(1)[0][0]

        log_log = correlations['log_ip_vs_log_v_anodic']
        reference = entries[-1].analysis.primary_peaks
        diagnostics = diagnose_mechanism(
            anodic_peak=reference[ANODIC],
            cathodic_peak=reference[CATHODIC],
            delta_ep=average_delta_ep,
            hysteresis_area=average_area or 0.0,
            slope_log_log=log_log.slope if log_log else None,
        )
        control = _control_summary(v_ia, ip_a, v_ic, ip_c)

        # Kinetics
        laviron = _laviron_block(v_ea, ep_a, v_ec, ep_c, correlations, config)
        nicholson = _nicholson_block(v_d, delta_eps, config)

        logger.info(f"Analyzed {len(entries)} curves ({len(skipped)} skipped), consensus: {consensus}")

        return MultiCVResult(
            curves=tuple(entries),
            skipped=tuple(skipped),
            correlations=correlations,
            average_delta_ep=average_delta_ep,
            average_hysteresis_area=average_area,
            mechanism_consensus=consensus,
            diagnostics=diagnostics,
            control=control,
            laviron=laviron,
            nicholson=nicholson,
        )
    except Exception:
        logger.exception("Multi-curve analysis failed")
        return None


def _is_pair(value) -> bool:
    """A single (potential, current) row rather than a column of samples."""
    return (isinstance(value, (tuple, list, np.ndarray)) and len(value) == 2
            and np.ndim(value[0]) == 0)


class CVAnalyzer:
    """Main class for cyclic voltammetry analysis."""

    def __init__(self, config: Optional[Dict] = None):
        """
        Initialize the analyzer.

        Args:
            config: Configuration dictionary (loads config/config.yaml when None)
        """
        self.config = config or load_config()
        self.settings = AnalysisConfig.from_mapping(get_section(self.config, 'analysis'))
        norm_cfg = get_section(self.config, 'normalization')
        self.min_points = int(norm_cfg.get('min_points', CV_DEFAULTS['min_points']))
        self.default_scan_rate = float(norm_cfg.get('default_scan_rate', CV_DEFAULTS['default_scan_rate']))
        self.require_monotonic = bool(norm_cfg.get('require_monotonic', False))

    def as_curve(self, data: Union[Curve, pd.DataFrame, Tuple, Dict[str, Any]],
                 scan_rate: Optional[float] = None) -> Curve:
        if isinstance(data, Curve):
            return data
        if isinstance(data, pd.DataFrame):
            columns = ['potential', 'current'] if {'potential', 'current'} <= set(data.columns) else list(data.columns[:2])
            records = data[columns].to_numpy().tolist()
        elif isinstance(data, tuple) and len(data) == 2 and not _is_pair(data[0]):
            # (potential_column, current_column)
            records = list(zip(data[0], data[1]))
        elif isinstance(data, (tuple, list, np.ndarray)):
            records = [row for row in data if np.ndim(row) == 1 and len(row) >= 2]
        elif isinstance(data, dict) and 'potential' in data and 'current' in data:
            records = list(zip(data['potential'], data['current']))
            scan_rate = scan_rate if scan_rate is not None else data.get('scan_rate')
        else:
            raise TypeError("Unsupported data format for analyze().")

        normalized = to_curve(
            records,
            scan_rate=scan_rate,
            min_points=self.min_points,
            default_scan_rate=self.default_scan_rate,
            require_monotonic=self.require_monotonic,
        )
        for warning in normalized.validation.warnings:
            logger.debug(f"Normalization warning: {warning}")
        if not normalized.validation.is_valid:
            logger.warning(f"Invalid curve: {'; '.join(normalized.validation.errors)}")
        return normalized.curve

    def analyze(self, data, scan_rate: Optional[float] = None) -> CVAnalysisResult:
        return analyze_single_curve(self.as_curve(data, scan_rate), self.settings)

    def analyze_batch(self, curves: Sequence, include_origin: bool = False) -> Optional[MultiCVResult]:
        return analyze_multiple_curves([self.as_curve(c) for c in curves], self.settings, include_origin)
