"""Image quality metrics for corrected pages (QualityAnalyzer).

Provides:
    - check_histogram_clipping(): blown highlights / crushed shadows
    - calculate_sharpness(): Laplacian energy of the grayscale page
    - calculate_ssim(): global-statistics SSIM at 512×512
    - calculate_edge_density(): Sobel edge fraction (oversharpening detector)
    - detect_color_tint(): channel-mean imbalance with a named direction
    - check_text_contrast(): WCAG contrast of random 11×11 neighbourhoods
    - calculate_perceptual_hash() / hamming_distance(): batch outlier checks
    - calculate_perceptual_diff(): RMS difference at 256×256
    - check_print_readiness(): resolution, sharpness and clipping gate

All checks are pure functions of their input buffers. Random sampling takes
an explicit seed.

Notes
-----
calculate_ssim uses whole-image mean/variance/covariance, not a sliding
window. QA thresholds (min_ssim 0.92) were tuned against this formula; a
windowed SSIM produces different values for the same pair.
"""

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional

import cv2
import numpy as np

from ..color_engine.buffer import PixelBuffer, ensure_color
from ..utils import color, hashing

logger = logging.getLogger(__name__)

WHITE_CLIP_LEVEL = 250
BLACK_CLIP_LEVEL = 5
SSIM_SIZE = 512
SSIM_C1 = 6.5025    # (0.01 * 255)^2
SSIM_C2 = 58.5225   # (0.03 * 255)^2
DIFF_SIZE = 256
CONTRAST_HALF_WINDOW = 5
CONTRAST_BORDER = 10

# (positive label, negative label) per channel
TINT_LABELS = (("red", "cyan"), ("green", "magenta"), ("blue", "yellow"))


# ---------------------------------------------------------------------------
# Result containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClippingResult:
    white_clipping: float
    black_clipping: float
    has_clipping: bool
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class TintResult:
    channel_means: Dict[str, float]
    channel_variances: Dict[str, float]
    tints: Dict[str, float]
    has_tint: bool
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class ContrastResult:
    avg_contrast: float
    min_contrast: float
    low_contrast_percent: float
    passed: bool
    warnings: List[str] = field(default_factory=list)
    skipped: bool = False

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class PrintReadiness:
    ready: bool
    checks: Dict[str, Dict]
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _gray(buffer: PixelBuffer) -> np.ndarray:
    ensure_color(buffer, "quality check")
    return color.rgb_to_gray(buffer.rgb())


def _resized_gray(buffer: PixelBuffer, size: int) -> np.ndarray:
    return cv2.resize(_gray(buffer), (size, size), interpolation=cv2.INTER_AREA).astype(np.float64)


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def check_histogram_clipping(buffer: PixelBuffer, threshold: float = 0.01) -> ClippingResult:
    """Fraction of near-white (>250) and near-black (<5) pixels.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page
    threshold : float
        Fraction above which either side counts as clipped (0.01 = 1%)

    Returns
    -------
    ClippingResult
        Fractions, the clipping flag and human-readable warnings
    """
    ensure_color(buffer, "check_histogram_clipping")
    avg = color.brightness(buffer.rgb())
    white = float(np.count_nonzero(avg > WHITE_CLIP_LEVEL)) / buffer.pixel_count
    black = float(np.count_nonzero(avg < BLACK_CLIP_LEVEL)) / buffer.pixel_count

    warnings = []
    if white > threshold:
        warnings.append(f"Highlight clipping detected: {white * 100:.2f}% of pixels are blown out")
    if black > threshold:
        warnings.append(f"Shadow clipping detected: {black * 100:.2f}% of pixels are crushed")

    return ClippingResult(
        white_clipping=white,
        black_clipping=black,
        has_clipping=white > threshold or black > threshold,
        warnings=warnings,
    )


def calculate_sharpness(buffer: PixelBuffer) -> float:
    """Mean squared 4-neighbour Laplacian over interior pixels (higher = sharper).

    Returns 0.0 for pages smaller than 3×3.
    """
    gray = _gray(buffer).astype(np.float64)
    if gray.shape[0] < 3 or gray.shape[1] < 3:
        return 0.0
    center = gray[1:-1, 1:-1]
    lap = 4.0 * center - gray[:-2, 1:-1] - gray[2:, 1:-1] - gray[1:-1, :-2] - gray[1:-1, 2:]
    return float(np.mean(lap * lap))


def calculate_ssim(buffer1: PixelBuffer, buffer2: PixelBuffer) -> float:
    """Single-window SSIM of two pages resized to 512×512 grayscale.

    Notes
    -----
    SSIM = ((2·μ1·μ2 + c1)(2·σ12 + c2)) / ((μ1² + μ2² + c1)(σ1² + σ2² + c2))
    with global statistics and the 8-bit constants c1 = 6.5025, c2 = 58.5225.
    Pages of different sizes are comparable because both are resized.
    """
    a = _resized_gray(buffer1, SSIM_SIZE)
    b = _resized_gray(buffer2, SSIM_SIZE)

    mean1, mean2 = a.mean(), b.mean()
    d1, d2 = a - mean1, b - mean2
    var1 = np.mean(d1 * d1)
    var2 = np.mean(d2 * d2)
    covar = np.mean(d1 * d2)

    numerator = (2 * mean1 * mean2 + SSIM_C1) * (2 * covar + SSIM_C2)
    denominator = (mean1 ** 2 + mean2 ** 2 + SSIM_C1) * (var1 + var2 + SSIM_C2)
    return float(numerator / denominator)


def calculate_edge_density(buffer: PixelBuffer, threshold: float = 30) -> float:
    """Fraction of interior pixels whose Sobel gradient magnitude exceeds threshold."""
    g = _gray(buffer).astype(np.float64)
    if g.shape[0] < 3 or g.shape[1] < 3:
        return 0.0

    gx = (
        -g[:-2, :-2] + g[:-2, 2:]
        - 2 * g[1:-1, :-2] + 2 * g[1:-1, 2:]
        - g[2:, :-2] + g[2:, 2:]
    )
    gy = (
        -g[:-2, :-2] - 2 * g[:-2, 1:-1] - g[:-2, 2:]
        + g[2:, :-2] + 2 * g[2:, 1:-1] + g[2:, 2:]
    )
    magnitude = np.sqrt(gx * gx + gy * gy)
    return float(np.count_nonzero(magnitude > threshold)) / magnitude.size


def detect_color_tint(buffer: PixelBuffer, threshold: float = 10) -> TintResult:
    """Flag channels whose mean deviates from the grand mean by more than threshold.

    A positive red deviation reads as a red tint, a negative one as cyan;
    likewise green/magenta and blue/yellow.
    """
    ensure_color(buffer, "detect_color_tint")
    rgb = buffer.rgb().reshape(-1, 3).astype(np.float64)
    means = rgb.mean(axis=0)
    variances = rgb.var(axis=0)
    deviation = means - means.mean()

    warnings = []
    for (positive, negative), dev in zip(TINT_LABELS, deviation):
        if abs(dev) > threshold:
            label = positive if dev > 0 else negative
            warnings.append(f"{label.capitalize()} tint detected: {abs(dev):.1f}")

    names = ("r", "g", "b")
    return TintResult(
        channel_means={n: float(v) for n, v in zip(names, means)},
        channel_variances={n: float(v) for n, v in zip(names, variances)},
        tints={p: float(d) for (p, _), d in zip(TINT_LABELS, deviation)},
        has_tint=bool(warnings),
        warnings=warnings,
    )


def check_text_contrast(
    buffer: PixelBuffer,
    min_contrast: float = 7.0,
    sample_size: int = 100,
    max_low_percent: float = 20.0,
    seed: int = 0
) -> ContrastResult:
    """Estimate lettering readability from random local contrast samples.

    Each sample takes an 11×11 neighbourhood at a random interior point and
    computes the WCAG ratio ``(L_max + 0.05) / (L_min + 0.05)`` of relative
    luminance. The page fails when ``max_low_percent`` or more of the samples
    fall below ``min_contrast``.

    Pages of ``2 * CONTRAST_BORDER`` pixels or less in either dimension have
    no interior to sample; they pass with ``skipped=True``, a NaN average and
    a warning.
    """
    ensure_color(buffer, "check_text_contrast")
    if buffer.width <= 2 * CONTRAST_BORDER or buffer.height <= 2 * CONTRAST_BORDER:
        message = f"Page {buffer.width}x{buffer.height} is too small for contrast sampling; skipped"
        logger.warning(message)
        return ContrastResult(
            avg_contrast=float("nan"),
            min_contrast=min_contrast,
            low_contrast_percent=0.0,
            passed=True,
            warnings=[message],
            skipped=True,
        )

    lum = color.relative_luminance(buffer.rgb())
    rng = np.random.default_rng(seed)
    xs = rng.integers(CONTRAST_BORDER, buffer.width - CONTRAST_BORDER, size=sample_size)
    ys = rng.integers(CONTRAST_BORDER, buffer.height - CONTRAST_BORDER, size=sample_size)

    offsets = np.arange(-CONTRAST_HALF_WINDOW, CONTRAST_HALF_WINDOW + 1)
    rows = ys[:, None, None] + offsets[None, :, None]
    cols = xs[:, None, None] + offsets[None, None, :]
    windows = lum[rows, cols].reshape(sample_size, -1)

    ratios = (windows.max(axis=1) + 0.05) / (windows.min(axis=1) + 0.05)
    low_percent = float(np.count_nonzero(ratios < min_contrast)) / sample_size * 100.0
    passed = low_percent < max_low_percent

    warnings = []
    if not passed:
        warnings.append(
            f"{low_percent:.1f}% of sampled areas have low contrast (<{min_contrast}:1)"
        )
    return ContrastResult(
        avg_contrast=float(ratios.mean()),
        min_contrast=min_contrast,
        low_contrast_percent=low_percent,
        passed=passed,
        warnings=warnings,
    )


def calculate_perceptual_hash(buffer: PixelBuffer) -> str:
    """64-bit average hash of the page as 16 hex characters."""
    return hashing.average_hash(_gray(buffer))


def hamming_distance(hash1: str, hash2: str) -> int:
    """Bit distance between two perceptual hashes (0 = same layout)."""
    return hashing.hamming_distance(hash1, hash2)


def calculate_perceptual_diff(buffer1: PixelBuffer, buffer2: PixelBuffer) -> float:
    """RMS color difference in [0, 1] of both pages resized to 256×256."""
    ensure_color(buffer1, "calculate_perceptual_diff")
    ensure_color(buffer2, "calculate_perceptual_diff")
    a = cv2.resize(np.ascontiguousarray(buffer1.rgb()), (DIFF_SIZE, DIFF_SIZE), interpolation=cv2.INTER_AREA)
    b = cv2.resize(np.ascontiguousarray(buffer2.rgb()), (DIFF_SIZE, DIFF_SIZE), interpolation=cv2.INTER_AREA)
    d = (a.astype(np.float64) - b.astype(np.float64)) / 255.0
    return float(np.sqrt(np.mean(d * d)))


def analyze_quality(buffer: PixelBuffer, original: Optional[PixelBuffer] = None) -> Dict:
    """Quick metric bundle: sharpness and clipping, plus SSIM/diff against an original."""
    metrics = {
        'sharpness': calculate_sharpness(buffer),
        'clipping': check_histogram_clipping(buffer),
    }
    if original is not None:
        metrics['ssim'] = calculate_ssim(original, buffer)
        metrics['perceptual_diff'] = calculate_perceptual_diff(original, buffer)
        logger.info(
            "SSIM %.4f (higher = more similar), perceptual diff %.4f (lower = more similar)",
            metrics['ssim'], metrics['perceptual_diff']
        )
    logger.info("Sharpness: %.2f", metrics['sharpness'])
    for warning in metrics['clipping'].warnings:
        logger.warning(warning)
    return metrics


def check_print_readiness(
    buffer: PixelBuffer,
    dpi: Optional[float] = None,
    min_dpi: float = 300,
    min_sharpness: float = 100,
    max_clipping: float = 0.01
) -> PrintReadiness:
    """Gate a page on resolution, sharpness and clipping.

    Parameters
    ----------
    dpi : float, optional
        Effective print resolution supplied by the layout step; 72 when unknown
    """
    dpi = 72.0 if dpi is None else float(dpi)
    sharpness = calculate_sharpness(buffer)
    clipping = check_histogram_clipping(buffer, max_clipping)

    checks = {
        'dpi': {
            'value': dpi,
            'pass': dpi >= min_dpi,
            'message': f"Resolution: {dpi:.0f} DPI" if dpi >= min_dpi
            else f"Resolution too low: {dpi:.0f} DPI (need {min_dpi:.0f})",
        },
        'sharpness': {
            'value': sharpness,
            'pass': sharpness >= min_sharpness,
            'message': f"Sharpness: {sharpness:.2f}" if sharpness >= min_sharpness
            else f"Image may be blurry: {sharpness:.2f} (need {min_sharpness})",
        },
        'clipping': {
            'value': clipping.to_dict(),
            'pass': not clipping.has_clipping,
            'message': "Clipping detected" if clipping.has_clipping else "No clipping detected",
        },
    }

    warnings = [c['message'] for c in checks.values() if not c['pass']]
    warnings.extend(clipping.warnings)
    return PrintReadiness(
        ready=all(c['pass'] for c in checks.values()),
        checks=checks,
        warnings=warnings,
    )
