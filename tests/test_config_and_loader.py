import numpy as np
import pytest

from config.config_loader import get_section, load_config
from cv_analysis.analyzer import AnalysisConfig
from cv_analysis.data_loader import load_curve_csv, load_curve_files


def write_cv_csv(path, n_points=60, header=True, bad_rows=0):
    e = np.linspace(-0.2, 0.6, n_points)
    i = 1e-5 * np.exp(-0.5 * ((e - 0.25) / 0.05) ** 2)
    lines = ["potential,current"] if header else []
    lines += [f"{a:.6f},{b:.6e}" for a, b in zip(e, i)]
    lines += ["oops,1e-6"] * bad_rows
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_default_config_has_expected_sections():
    cfg = load_config()
    for section in ('analysis', 'normalization', 'data'):
        assert isinstance(cfg.get(section), dict), f"Missing section {section}"
    settings = AnalysisConfig.from_mapping(get_section(cfg, 'analysis'))
    assert settings.laviron_window == 4
    assert settings.laviron_r2_threshold == pytest.approx(0.95)
    assert settings.diffusion_coefficient is None


def test_load_config_from_explicit_path(tmp_path):
    path = tmp_path / "custom.yaml"
    path.write_text("analysis:\n  n: 2\n  smooth: true\n", encoding="utf-8")
    cfg = load_config(str(path))
    assert get_section(cfg, 'analysis') == {'n': 2, 'smooth': True}
    assert get_section(cfg, 'normalization') == {}


def test_load_config_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "absent.yaml"))


def test_get_section_tolerates_bad_input():
    assert get_section(None, 'analysis') == {}
    assert get_section({'analysis': None}, 'analysis') == {}
    assert get_section({'analysis': [1, 2]}, 'analysis') == {}


def test_load_curve_csv_with_header_row(tmp_path):
    path = write_cv_csv(tmp_path / "scan_100mVs.csv")
    normalized = load_curve_csv(path, scan_rate=0.1)
    assert normalized.validation.is_valid
    assert len(normalized.curve) == 60
    assert normalized.curve.scan_rate == 0.1
    assert normalized.curve.id == "scan_100mVs"
    assert normalized.curve.name == "scan_100mVs.csv"


def test_load_curve_csv_filters_unparseable_rows(tmp_path):
    path = write_cv_csv(tmp_path / "noisy.csv", header=False, bad_rows=2)
    normalized = load_curve_csv(path, total_time=8.0)
    assert normalized.validation.is_valid
    assert len(normalized.curve) == 60
    assert normalized.curve.scan_rate == pytest.approx(0.1)
    assert any("Filtered 2" in w for w in normalized.validation.warnings)


def test_load_curve_csv_too_short_is_invalid(tmp_path):
    path = write_cv_csv(tmp_path / "short.csv", n_points=4)
    normalized = load_curve_csv(path, scan_rate=0.1)
    assert not normalized.validation.is_valid
    assert len(normalized.curve) == 0


def test_load_curve_csv_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_curve_csv(tmp_path / "missing.csv")


def test_load_curve_files_aligns_scan_rates(tmp_path):
    paths = [write_cv_csv(tmp_path / f"cv_{k}.csv") for k in range(3)]
    curves = load_curve_files(paths, [0.05, 0.1, 0.2])
    assert list(curves) == ["cv_0.csv", "cv_1.csv", "cv_2.csv"]
    assert [c.curve.scan_rate for c in curves.values()] == [0.05, 0.1, 0.2]

    with pytest.raises(ValueError):
        load_curve_files(paths, [0.1])
