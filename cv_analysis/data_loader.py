import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

import pandas as pd

from config.config_loader import get_section, load_config
from .core.constants import CV_DEFAULTS
from .core.normalization import NormalizedCurve, to_curve

# Load configuration
config = load_config()
data_cfg = get_section(config, 'data')
norm_cfg = get_section(config, 'normalization')

# Set up logging
logger = logging.getLogger(__name__)


def read_curve_table(file_path: Union[str, Path],
                     skiprows: int = data_cfg.get('skiprows', 0),
                     header: Optional[int] = data_cfg.get('header'),
                     names: Optional[List[str]] = data_cfg.get('names'),
                     **kwargs) -> pd.DataFrame:
    """
    Read a potential/current table from a CSV file.

    Args:
        file_path: Path to the CSV file
        skiprows: Number of rows to skip
        header: Row number to use as column names
        names: Column names to use
        **kwargs: Additional arguments to pass to pd.read_csv

    Returns:
        pd.DataFrame with at least the columns ['potential', 'current']
    """
    try:
        if names is None and header is None:
            names = ['potential', 'current']

        data = pd.read_csv(
            file_path,
            skiprows=skiprows,
            header=header,
            names=names,
            **kwargs
        )
        logger.info(f"Successfully loaded data from {file_path}")
        return data
    except Exception as e:
        logger.error(f"Error loading data from {file_path}: {str(e)}")
        raise


def load_curve_csv(file_path: Union[str, Path],
                   scan_rate: Optional[float] = None,
                   samples_sec: Optional[float] = None,
                   total_time: Optional[float] = None,
                   curve_id: Optional[str] = None,
                   name: Optional[str] = None,
                   **kwargs) -> NormalizedCurve:
    """
    Load a CSV voltammogram and normalize it into a Curve.

    The first two columns are taken as potential (V) and current (A) unless
    columns named 'potential' and 'current' are present. Unparseable cells
    become NaN and are filtered by the normalizer.

    Args:
        file_path: Path to the CSV file
        scan_rate: Sweep rate (V/s)
        samples_sec: Legacy per-second rate used when scan_rate is missing
        total_time: Acquisition time (s) used to derive the scan rate
        curve_id: Identifier (defaults to the file stem)
        name: Display name (defaults to the file name)
        **kwargs: Passed to read_curve_table

    Returns:
        NormalizedCurve
    """
    path = Path(file_path)
    data = read_curve_table(path, **kwargs)

    if {'potential', 'current'} <= set(data.columns):
        table = data[['potential', 'current']]
    else:
        table = data.iloc[:, :2]
    table = table.apply(pd.to_numeric, errors='coerce')

    normalized = to_curve(
        table.to_numpy().tolist(),
        scan_rate=scan_rate,
        samples_sec=samples_sec,
        total_time=total_time,
        curve_id=curve_id or path.stem,
        name=name or path.name,
        min_points=norm_cfg.get('min_points', CV_DEFAULTS['min_points']),
        default_scan_rate=norm_cfg.get('default_scan_rate', CV_DEFAULTS['default_scan_rate']),
        require_monotonic=norm_cfg.get('require_monotonic', False),
    )

    for warning in normalized.validation.warnings:
        logger.warning(f"{path.name}: {warning}")
    for error in normalized.validation.errors:
        logger.error(f"{path.name}: {error}")
    return normalized


def load_curve_files(file_paths: List[Union[str, Path]],
                     scan_rates: Optional[List[Optional[float]]] = None,
                     **kwargs) -> Dict[str, NormalizedCurve]:
    """
    Load several CSV voltammograms.

    Args:
        file_paths: CSV paths
        scan_rates: Sweep rates aligned with file_paths (V/s)
        **kwargs: Passed to load_curve_csv

    Returns:
        Dict mapping file name to NormalizedCurve
    """
    if scan_rates is not None and len(scan_rates) != len(file_paths):
        raise ValueError(f"Got {len(scan_rates)} scan rates for {len(file_paths)} files")

    curves = {}
    for i, file_path in enumerate(file_paths):
        rate = scan_rates[i] if scan_rates is not None else None
        normalized = load_curve_csv(file_path, scan_rate=rate, **kwargs)
        curves[Path(file_path).name] = normalized
    return curves
