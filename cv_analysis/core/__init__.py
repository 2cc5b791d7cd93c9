"""Single-curve building blocks.

Modules:
- normalization: Curve model, record parsing and scan-rate resolution
- preprocessing: Savitzky-Golay smoothing
- peak_analysis: anodic/cathodic peak detection and ΔEp
- hysteresis: loop area between forward and reverse sweeps
- regression: least-squares fits for scan-rate correlations
- randles: Randles-Sevcik expected peak current
- diagnostics: mechanism, reversibility and control classifiers
"""
