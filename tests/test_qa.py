"""Test the QA metric functions and the full-report runner.

Tests for comic_prepress.qa:
    - SSIM identity and sensitivity
    - Clipping symmetry on all-white / all-black pages
    - Sharpness, edge density, tint direction labels, text contrast
    - Perceptual hash / Hamming distance / perceptual diff
    - run_full_qa identity scenario, JSON export, partial-failure semantics

Run:
    pytest tests/test_qa.py -v
"""

import json
import math

import numpy as np
import pytest

from comic_prepress.color_engine.buffer import PixelBuffer
from comic_prepress.qa import checks
from comic_prepress.qa.report import Failed, Ok, QAReport, run_full_qa
from comic_prepress.utils import validators


@pytest.fixture
def lettered_page():
    """Black text strokes on white paper."""
    arr = np.full((200, 200, 3), 255, dtype=np.uint8)
    arr[:, ::4] = 0
    return PixelBuffer.from_array(arr)


# ============================================================================
# CLIPPING
# ============================================================================

def test_clipping_all_white(solid):
    result = checks.check_histogram_clipping(solid((255, 255, 255)))
    assert result.white_clipping == pytest.approx(1.0)
    assert result.black_clipping == pytest.approx(0.0)
    assert result.has_clipping
    assert len(result.warnings) == 1


def test_clipping_all_black(solid):
    result = checks.check_histogram_clipping(solid((0, 0, 0)))
    assert result.white_clipping == pytest.approx(0.0)
    assert result.black_clipping == pytest.approx(1.0)
    assert result.has_clipping


def test_clipping_midgray(solid):
    result = checks.check_histogram_clipping(solid((128, 128, 128)))
    assert not result.has_clipping
    assert result.warnings == []


def test_clipping_threshold():
    arr = np.full((10, 10, 3), 128, dtype=np.uint8)
    arr[0, :2] = 255     # 2% white
    page = PixelBuffer.from_array(arr)
    assert checks.check_histogram_clipping(page, threshold=0.01).has_clipping
    assert not checks.check_histogram_clipping(page, threshold=0.05).has_clipping


# ============================================================================
# SSIM / DIFF / HASH
# ============================================================================

def test_ssim_identity(noisy_page, comic_page):
    assert checks.calculate_ssim(noisy_page, noisy_page) == pytest.approx(1.0, abs=1e-9)
    assert checks.calculate_ssim(comic_page, comic_page) == pytest.approx(1.0, abs=1e-9)


def test_ssim_drops_for_different_pages(noisy_page, comic_page):
    assert checks.calculate_ssim(noisy_page, comic_page) < 0.5


def test_ssim_symmetric(noisy_page, comic_page):
    assert checks.calculate_ssim(noisy_page, comic_page) == pytest.approx(
        checks.calculate_ssim(comic_page, noisy_page)
    )


def test_perceptual_diff(solid):
    white = solid((255, 255, 255))
    black = solid((0, 0, 0))
    assert checks.calculate_perceptual_diff(white, white) == 0.0
    assert checks.calculate_perceptual_diff(white, black) == pytest.approx(1.0)


def test_perceptual_hash_format(comic_page):
    h = checks.calculate_perceptual_hash(comic_page)
    assert len(h) == 16
    int(h, 16)


def test_perceptual_hash_scale_invariant(comic_page):
    arr = np.repeat(np.repeat(comic_page.to_array(), 2, axis=0), 2, axis=1)
    bigger = PixelBuffer.from_array(arr)
    assert checks.hamming_distance(
        checks.calculate_perceptual_hash(comic_page), checks.calculate_perceptual_hash(bigger)
    ) <= 2


def test_hamming_distance():
    assert checks.hamming_distance("0000", "0000") == 0
    assert checks.hamming_distance("ffff", "0000") == 16
    with pytest.raises(ValueError):
        checks.hamming_distance("ff", "fff")


# ============================================================================
# SHARPNESS / EDGES
# ============================================================================

def test_sharpness_flat_is_zero(solid):
    assert checks.calculate_sharpness(solid((90, 90, 90))) == 0.0


def test_sharpness_tiny_page_is_zero():
    assert checks.calculate_sharpness(PixelBuffer.from_array(np.zeros((2, 2, 3), dtype=np.uint8))) == 0.0


def test_sharpness_orders_blur(lettered_page):
    import cv2
    blurred = PixelBuffer.from_array(cv2.GaussianBlur(np.ascontiguousarray(lettered_page.rgb()), (7, 7), 2))
    assert checks.calculate_sharpness(lettered_page) > checks.calculate_sharpness(blurred)


def test_edge_density(solid, lettered_page):
    assert checks.calculate_edge_density(solid((10, 200, 30))) == 0.0
    assert checks.calculate_edge_density(lettered_page) > 0.25


# ============================================================================
# TINT / CONTRAST
# ============================================================================

@pytest.mark.parametrize("rgb,label", [
    ((200, 150, 150), "Red"),
    ((100, 150, 150), "Cyan"),
    ((150, 150, 100), "Yellow"),
    ((150, 100, 150), "Magenta"),
])
def test_tint_direction(solid, rgb, label):
    result = checks.detect_color_tint(solid(rgb))
    assert result.has_tint
    assert any(w.startswith(label) for w in result.warnings)


def test_no_tint_on_neutral(solid):
    result = checks.detect_color_tint(solid((128, 128, 128)))
    assert not result.has_tint
    assert result.tints == {"red": 0.0, "green": 0.0, "blue": 0.0}


def test_contrast_high_for_lettering(lettered_page):
    result = checks.check_text_contrast(lettered_page)
    assert result.passed
    assert result.avg_contrast == pytest.approx(21.0)
    assert result.low_contrast_percent == 0.0


def test_contrast_low_on_flat_page(solid):
    result = checks.check_text_contrast(solid((200, 180, 160)))
    assert not result.passed
    assert result.avg_contrast == pytest.approx(1.0)
    assert result.warnings


def test_contrast_deterministic(noisy_page):
    assert checks.check_text_contrast(noisy_page, seed=9) == checks.check_text_contrast(noisy_page, seed=9)


def test_contrast_small_page_skipped(solid):
    result = checks.check_text_contrast(solid((0, 0, 0), width=20, height=100))
    assert result.skipped
    assert result.passed
    assert math.isnan(result.avg_contrast)
    assert "too small" in result.warnings[0]


# ============================================================================
# QUICK ANALYSIS / PRINT READINESS
# ============================================================================

def test_analyze_quality(comic_page):
    metrics = checks.analyze_quality(comic_page, comic_page)
    assert metrics["ssim"] == pytest.approx(1.0)
    assert metrics["perceptual_diff"] == 0.0
    assert "sharpness" in metrics


def test_print_readiness(lettered_page, solid):
    ready = checks.check_print_readiness(lettered_page, dpi=600, max_clipping=1.0)
    assert ready.ready
    assert ready.warnings == []

    not_ready = checks.check_print_readiness(solid((128, 128, 128)))
    assert not not_ready.ready
    assert not not_ready.checks["dpi"]["pass"]
    assert not not_ready.checks["sharpness"]["pass"]
    assert not_ready.checks["clipping"]["pass"]


# ============================================================================
# FULL QA
# ============================================================================

def test_full_qa_identity(comic_page):
    report = run_full_qa(comic_page, comic_page)
    own = checks.check_histogram_clipping(comic_page, 0.005)

    assert report.passed
    assert report.errors == []
    assert report.value("ssim") == pytest.approx(1.0)
    assert report.value("perceptual_diff") == 0.0
    assert report.value("clipping").has_clipping == own.has_clipping
    assert not any("SSIM" in w for w in report.warnings)


def test_full_qa_without_original(comic_page):
    report = run_full_qa(comic_page)
    assert "ssim" not in report.metrics
    assert "perceptual_diff" not in report.metrics
    assert isinstance(report.metrics["perceptual_hash"], Ok)


def test_full_qa_low_ssim_warns(noisy_page, comic_page):
    different = PixelBuffer.from_array(np.resize(comic_page.to_array(), noisy_page.shape))
    report = run_full_qa(different, noisy_page)
    assert report.passed
    assert any("SSIM" in w for w in report.warnings)


def test_full_qa_disabled_checks(comic_page):
    cfg = validators.QAConfig(
        check_clipping=False, check_ssim=False, check_edges=False,
        check_tint=False, check_contrast=False,
    )
    report = run_full_qa(comic_page, comic_page, cfg)
    assert set(report.metrics) == {"perceptual_diff", "perceptual_hash", "sharpness"}


def test_full_qa_records_failure_and_continues(comic_page, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("edge detector exploded")

    monkeypatch.setattr(checks, "calculate_edge_density", broken)
    report = run_full_qa(comic_page, comic_page)

    assert not report.passed
    assert isinstance(report.metrics["edge_density"], Failed)
    assert "edge detector exploded" in report.errors[0]
    assert isinstance(report.metrics["tint"], Ok)
    assert isinstance(report.metrics["sharpness"], Ok)
    assert report.value("edge_density", default=-1) == -1


def test_full_qa_small_page_passes_with_contrast_skipped(solid):
    page = solid((128, 128, 128), width=12, height=12)
    report = run_full_qa(page, page)
    assert report.passed
    assert report.errors == []
    assert report.metrics["contrast"].value.skipped
    assert any("too small" in w for w in report.warnings)
    assert report.to_dict()["metrics"]["contrast"]["value"]["avg_contrast"] is None
    assert isinstance(report.metrics["ssim"], Ok)


def test_report_to_dict_is_json(comic_page, monkeypatch):
    monkeypatch.setattr(checks, "calculate_sharpness", lambda b: float("nan"))
    report = run_full_qa(comic_page, comic_page)
    data = json.loads(json.dumps(report.to_dict()))

    assert data["passed"] is True
    assert data["metrics"]["ssim"]["status"] == "ok"
    assert data["metrics"]["clipping"]["value"]["has_clipping"] in (True, False)
    assert data["metrics"]["sharpness"]["value"] is None


def test_report_failed_entry_serialized():
    report = QAReport(passed=False, errors=["tint: boom"], metrics={"tint": Failed("boom")})
    assert report.to_dict()["metrics"]["tint"] == {"status": "failed", "reason": "boom"}
