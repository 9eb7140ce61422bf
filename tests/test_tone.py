"""Test paper sampling, cast removal and levels.

Tests for comic_prepress.color_engine.tone:
    - Paper median from bright corner samples; white fallback on dark pages
    - Yellow-cast neutralization on a full-size page
    - Ink preservation on dark pixels
    - Levels LUT monotonicity and guardrails

Run:
    pytest tests/test_tone.py -v
"""

import numpy as np
import pytest

from comic_prepress.color_engine.buffer import PixelBuffer
from comic_prepress.color_engine.tone import (
    PaperColor,
    ToneAndCastCorrector,
    apply_levels,
    build_levels_lut,
    remove_color_cast,
    sample_paper_color,
)
from comic_prepress.errors import ConfigurationError
from comic_prepress.utils import validators


@pytest.fixture(scope="module")
def yellowed_page():
    """1000×1500 scan on yellowed paper with an inked panel in the middle."""
    arr = np.empty((1500, 1000, 3), dtype=np.uint8)
    arr[:] = (245, 238, 200)
    arr[300:1200, 200:800] = (180, 50, 40)
    arr[295:300, 200:800] = (10, 10, 10)
    return PixelBuffer.from_array(arr)


# ============================================================================
# PAPER SAMPLING
# ============================================================================

def test_sample_paper_color_uniform(solid):
    paper = sample_paper_color(solid((245, 238, 200)))
    assert (paper.r, paper.g, paper.b) == (245.0, 238.0, 200.0)
    assert paper.samples == 100


def test_sample_paper_color_dark_page_falls_back_to_white(solid):
    paper = sample_paper_color(solid((20, 20, 20)))
    assert paper == PaperColor(255.0, 255.0, 255.0, 0)


def test_sample_paper_color_is_deterministic(noisy_page):
    assert sample_paper_color(noisy_page, seed=3) == sample_paper_color(noisy_page, seed=3)


def test_sample_paper_color_tiny_page():
    page = PixelBuffer.from_array(np.full((2, 2, 3), 230, dtype=np.uint8))
    paper = sample_paper_color(page)
    assert paper.samples > 0
    assert paper.spread == 0.0


def test_sample_paper_color_ignores_dark_samples():
    arr = np.full((100, 100, 3), 230, dtype=np.uint8)
    arr[:50, :50] = 0   # top-left corner inked
    paper = sample_paper_color(PixelBuffer.from_array(arr))
    assert paper.r == 230.0
    assert paper.samples == 75


# ============================================================================
# CAST REMOVAL
# ============================================================================

def test_yellow_cast_neutralized(yellowed_page):
    before = sample_paper_color(yellowed_page)
    assert before.spread == pytest.approx(45.0)

    corrected = remove_color_cast(yellowed_page, strength=0.9)
    after = sample_paper_color(corrected)

    assert after.samples > 0
    assert after.spread < 5.0
    assert (corrected.width, corrected.height, corrected.channels) == (1000, 1500, 3)


def test_zero_strength_is_identity(comic_page):
    assert remove_color_cast(comic_page, strength=0.0) == comic_page


def test_white_paper_is_identity(comic_page):
    paper = PaperColor(255.0, 255.0, 255.0, 0)
    assert remove_color_cast(comic_page, strength=1.0, paper=paper) == comic_page


def test_zero_paper_channel_left_uncorrected(solid):
    page = solid((200, 200, 200))
    out = remove_color_cast(page, strength=1.0, paper=PaperColor(240.0, 240.0, 0.0, 10))
    # avg = 160; R and G scaled by 160/240, B untouched
    px = out.to_array()[0, 0]
    assert px[2] == 200
    assert px[0] == pytest.approx(133, abs=1)


def test_preserve_inks_attenuates_dark_pixels(solid):
    ink = solid((40, 40, 60))
    paper = PaperColor(245.0, 238.0, 200.0, 100)
    full = remove_color_cast(ink, strength=1.0, preserve_inks=False, paper=paper).to_array()[0, 0]
    kept = remove_color_cast(ink, strength=1.0, preserve_inks=True, paper=paper).to_array()[0, 0]

    original = np.array([40, 40, 60])
    assert np.abs(kept.astype(int) - original).sum() < np.abs(full.astype(int) - original).sum()


def test_alpha_passthrough(solid):
    page = solid((245, 238, 200), alpha=128)
    out = remove_color_cast(page, strength=1.0)
    assert (out.to_array()[:, :, 3] == 128).all()


@pytest.mark.parametrize("strength", [-0.1, 1.5])
def test_invalid_strength(comic_page, strength):
    with pytest.raises(ConfigurationError):
        remove_color_cast(comic_page, strength=strength)


# ============================================================================
# LEVELS
# ============================================================================

@pytest.mark.parametrize("wp,bp,mid", [(235, 15, 1.0), (255, 0, 1.0), (200, 50, 0.5), (240, 10, 2.2), (16, 15, 1.0)])
def test_levels_lut_monotonic(wp, bp, mid):
    lut = build_levels_lut(wp, bp, mid)
    assert lut.shape == (256,)
    assert lut.dtype == np.uint8
    assert (np.diff(lut.astype(int)) >= 0).all()
    assert lut[0] == 0
    assert lut[255] == 255


def test_levels_lut_endpoints():
    lut = build_levels_lut(235, 15)
    assert lut[15] == 0
    assert lut[235] == 255
    assert lut[125] == 128   # (125-15)/220 * 255 = 127.5 → rounds to even


def test_levels_identity():
    np.testing.assert_array_equal(build_levels_lut(255, 0, 1.0), np.arange(256))


def test_levels_gamma_lightens_midtones():
    assert build_levels_lut(255, 0, 2.0)[128] > build_levels_lut(255, 0, 1.0)[128]


@pytest.mark.parametrize("wp,bp,mid", [(15, 235, 1.0), (100, 100, 1.0), (235, 15, 0.0), (235, 15, -1.0)])
def test_levels_guardrails(wp, bp, mid):
    with pytest.raises(ConfigurationError):
        build_levels_lut(wp, bp, mid)


def test_apply_levels_leaves_alpha(solid):
    page = solid((125, 15, 240), alpha=9)
    out = apply_levels(page).to_array()[0, 0]
    assert out.tolist() == [128, 0, 255, 9]


# ============================================================================
# CONFIGURED STAGE
# ============================================================================

def test_corrector_disabled_stages_are_identity(comic_page):
    corrector = ToneAndCastCorrector(
        validators.CastRemovalConfig(enabled=False),
        validators.LevelsConfig(enabled=False),
    )
    assert corrector.correct(comic_page) is comic_page


def test_corrector_matches_functions(comic_page):
    out = ToneAndCastCorrector().correct(comic_page)
    expected = apply_levels(remove_color_cast(comic_page))
    assert out == expected
