import argparse
import json
import logging
import os
import sys
from pathlib import Path

# Ensure repo root is on sys.path when running from anywhere
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from config.config_loader import get_section, load_config  # noqa: E402
from cv_analysis.analyzer import (  # noqa: E402
    AnalysisConfig,
    analyze_multiple_curves,
    analyze_single_curve,
    to_dict,
)
from cv_analysis.data_loader import load_curve_files  # noqa: E402


def _print_single(label, result):
    params = result.parameters
    print(f"\n{label}")
    print("-" * len(label))
    for direction, peak in (("anodic", params.anodic_peak), ("cathodic", params.cathodic_peak)):
        if peak is not None:
            print(f"{direction} peak: Ep={peak.ep:.4f} V, Ip={peak.ip:.4e} A")
        else:
            print(f"{direction} peak: not found")
    if params.delta_ep is not None:
        print(f"delta_ep: {params.delta_ep * 1000:.1f} mV")
    print(f"hysteresis_area: {result.hysteresis.area:.4e}")
    print(f"reversibility: {params.reversibility.classification}")
    print(f"mechanism: {result.diagnostics.mechanism} (confidence {result.diagnostics.confidence:.2f})")


def _print_batch(result):
    print("\nMulti-scan summary")
    print("------------------")
    print(f"curves analyzed: {len(result.curves)} (skipped: {len(result.skipped)})")
    for key, fit in result.correlations.items():
        if fit is not None:
            print(f"{key}: slope={fit.slope:.4g}, intercept={fit.intercept:.4g}, R^2={fit.r2:.4f}")
    if result.average_delta_ep is not None:
        print(f"average_delta_ep: {result.average_delta_ep * 1000:.1f} mV")
    print(f"mechanism_consensus: {result.mechanism_consensus}")
    print(f"control: {result.control.overall.control_type} (confidence {result.control.overall.confidence:.2f})")
    if result.laviron is not None:
        lav = result.laviron
        for branch, crit in (("anodic", lav.critical_scan_rate_anodic), ("cathodic", lav.critical_scan_rate_cathodic)):
            if crit is not None:
                print(f"critical_scan_rate_{branch}: {crit.message}")
        if lav.formal_potential is not None:
            print(f"formal_potential: {lav.formal_potential:.4f} V")
    if result.nicholson is not None and result.nicholson.statistics is not None:
        stats = result.nicholson.statistics
        print(f"nicholson_k0: mean={stats.mean:.3e} cm/s over {stats.count} curves")


def main():
    parser = argparse.ArgumentParser(
        description="Headless cyclic voltammetry analysis: peaks → hysteresis → scan-rate correlations → kinetics"
    )
    parser.add_argument("--files", nargs="+", required=True, help="CSV files with potential,current columns")
    parser.add_argument("--scan-rates", nargs="+", type=float, default=None,
                        help="Scan rates (V/s) aligned with --files")
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML configuration file")
    parser.add_argument("--include-origin", action="store_true",
                        help="Force Ip vs sqrt(v) and Ip vs v fits through the origin")
    parser.add_argument("--smooth", action="store_true", help="Apply Savitzky-Golay smoothing")
    parser.add_argument("--diffusion-coefficient", type=float, default=None,
                        help="D (cm^2/s); enables Nicholson k0 estimates")
    parser.add_argument("--out", type=str, default=None, help="Write the JSON summary to this path")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.scan_rates is not None and len(args.scan_rates) != len(args.files):
        parser.error("--scan-rates must list one value per file")

    cfg = load_config(args.config)
    settings = get_section(cfg, 'analysis')
    if args.smooth:
        settings['smooth'] = True
    if args.diffusion_coefficient is not None:
        settings['diffusion_coefficient'] = args.diffusion_coefficient
    analysis_config = AnalysisConfig.from_mapping(settings)

    files = [os.path.abspath(f) for f in args.files]
    loaded = load_curve_files(files, args.scan_rates)
    curves = [n.curve for n in loaded.values() if n.validation.is_valid]
    invalid = [label for label, n in loaded.items() if not n.validation.is_valid]
    for label in invalid:
        print(f"Skipping {label}: {'; '.join(loaded[label].validation.errors)}")

    summary = {'curves': {}, 'batch': None}
    for curve in curves:
        result = analyze_single_curve(curve, analysis_config)
        _print_single(curve.label, result)
        summary['curves'][curve.label] = to_dict(result)

    if len(curves) > 1:
        batch = analyze_multiple_curves(curves, analysis_config, include_origin=args.include_origin)
        if batch is not None:
            _print_batch(batch)
            summary['batch'] = to_dict(batch)
        else:
            print("\nNo multi-scan result (check scan rates or inputs)")

    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        with open(out_path, 'w', encoding='utf-8') as f:
            json.dump(summary, f, indent=2)
        print(f"\nSummary written to: {out_path}")
    else:
        print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
