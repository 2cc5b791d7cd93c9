"""Physical constants and empirical thresholds for CV analysis."""

# Physical constants
GAS_CONSTANT = 8.314        # J/(mol·K)
FARADAY = 96485.0           # C/mol
DEFAULT_TEMPERATURE = 298.15  # K

# Smoothing defaults (Savitzky-Golay)
CV_DEFAULTS = {
    'window_size': 11,
    'poly_order': 3,
    'default_scan_rate': 0.1,   # V/s
    'min_points': 10,
}

# Mechanism diagnostics thresholds
CV_THRESHOLDS = {
    'slope_tolerance': 0.15,
    'hysteresis_area': 1e-6,
    'delta_ep_kinetic': 0.12,     # V
    'delta_ep_reversible': 0.08,  # V
}

# Reversibility classification (mV unless stated otherwise)
REVERSIBILITY_THRESHOLDS = {
    'nernst_mv': 59.0,            # divided by n
    'reversible_band_mv': 10.0,
    'irreversible_mv': 200.0,
    'ratio_tolerance': 0.1,       # |ratio - 1| considered ideal
    'ratio_mismatch': 0.3,        # |ratio - 1| considered chemically coupled
}

# Diffusion vs adsorption control analysis
CONTROL_THRESHOLDS = {
    'min_r2': 0.85,
    'diffusion_slope': 0.5,
    'adsorption_slope': 1.0,
    'slope_tolerance': 0.15,
    'fallback_weight': 0.6,
}

# Laviron critical scan rate detection
LAVIRON_PARAMS = {
    'window': 4,
    'r2_threshold': 0.95,
    'min_stability': 2,
    'min_points': 4,
}

# Randles-Sevcik coefficient at 25 °C (A s^0.5 / (mol V^0.5))
RANDLES_COEFFICIENT = 2.69e5

# Uniform grid used to resample forward/reverse branches
HYSTERESIS_GRID_POINTS = 256
