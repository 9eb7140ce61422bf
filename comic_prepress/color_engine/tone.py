"""Paper-cast removal and levels: the ToneAndCastCorrector stage.

Scanned pages carry the color of aged paper (typically a yellow cast). This
stage estimates the paper color from the page margins and neutralizes it,
then remaps the tonal range with a guarded levels curve.

Pipeline:
    1. sample_paper_color(): random corner samples, bright pixels only, median
    2. remove_color_cast(): per-channel gain toward the paper's gray level,
       attenuated on dark (ink) pixels so line work keeps its color
    3. apply_levels(): 256-entry LUT (black/white point + gamma) on R, G, B

Fallbacks:
    - No bright margin samples → paper treated as pure white (no correction)
    - Paper channel at 0 → that channel left uncorrected
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import ConfigurationError
from ..utils import color, validators
from .buffer import PixelBuffer, ensure_color

logger = logging.getLogger(__name__)

PAPER_MIN_BRIGHTNESS = 180
INK_BRIGHTNESS = 128


@dataclass(frozen=True)
class PaperColor:
    """Median paper color; ``samples == 0`` means the white fallback was used."""

    r: float
    g: float
    b: float
    samples: int

    def as_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.float64)

    @property
    def spread(self) -> float:
        """Largest difference between two channels (0 for a neutral paper)."""
        values = self.as_array()
        return float(values.max() - values.min())


def _corner_regions(width: int, height: int, margin_percent: float):
    margin_x = max(1, int(width * margin_percent / 100))
    margin_y = max(1, int(height * margin_percent / 100))
    return [
        (0, 0, margin_x, margin_y),
        (width - margin_x, 0, margin_x, margin_y),
        (0, height - margin_y, margin_x, margin_y),
        (width - margin_x, height - margin_y, margin_x, margin_y),
    ]


def sample_paper_color(
    buffer: PixelBuffer,
    margin_percent: float = 5,
    sample_count: int = 100,
    seed: int = 0
) -> PaperColor:
    """Estimate the paper color from the four corner margins.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page
    margin_percent : float
        Corner region size as a percentage of width/height, default 5
    sample_count : int
        Total random samples, split evenly over the four corners
    seed : int
        Seed for the sampling generator

    Returns
    -------
    PaperColor
        Per-channel median of the samples brighter than 180

    Notes
    -----
    The median is robust to ink intruding into the margins. When no sample
    is bright enough (a full-bleed dark page), the paper is taken to be
    pure white, which makes cast removal a no-op.
    """
    ensure_color(buffer, "sample_paper_color")
    rgb = buffer.rgb()
    rng = np.random.default_rng(seed)
    per_region = max(1, sample_count // 4)

    picks = []
    for x0, y0, w, h in _corner_regions(buffer.width, buffer.height, margin_percent):
        xs = x0 + rng.integers(0, w, size=per_region)
        ys = y0 + rng.integers(0, h, size=per_region)
        picks.append(rgb[ys, xs].astype(np.float64))
    samples = np.concatenate(picks, axis=0)

    bright = samples[color.brightness(samples) > PAPER_MIN_BRIGHTNESS]
    if len(bright) == 0:
        logger.warning("No paper samples brighter than %d in margins; assuming white paper", PAPER_MIN_BRIGHTNESS)
        return PaperColor(255.0, 255.0, 255.0, 0)

    # Upper median, matching a sorted-array midpoint pick
    ordered = np.sort(bright, axis=0)
    mid = ordered[len(ordered) // 2]
    return PaperColor(float(mid[0]), float(mid[1]), float(mid[2]), int(len(bright)))


def remove_color_cast(
    buffer: PixelBuffer,
    strength: float = 0.5,
    preserve_inks: bool = True,
    paper: Optional[PaperColor] = None,
    margin_percent: float = 5,
    sample_count: int = 100,
    seed: int = 0
) -> PixelBuffer:
    """Neutralize the paper tint.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page
    strength : float
        0 = unchanged, 1 = paper mapped to its own gray level
    preserve_inks : bool
        Scale the strength by ``(brightness/128)^2`` below brightness 128
    paper : PaperColor, optional
        Pre-sampled paper color; sampled from the margins when None

    Returns
    -------
    PixelBuffer
        New buffer; alpha unchanged

    Notes
    -----
    Per channel ``adj = (avg_paper / paper_c) * s + (1 - s)`` where ``s`` is
    the per-pixel strength.
    """
    ensure_color(buffer, "remove_color_cast")
    if not 0.0 <= strength <= 1.0:
        raise ConfigurationError(f"Cast strength must be in [0, 1], got {strength}")

    if paper is None:
        paper = sample_paper_color(buffer, margin_percent, sample_count, seed)
    paper_rgb = paper.as_array()
    avg_paper = paper_rgb.mean()
    logger.info("Detected paper color: R%.0f G%.0f B%.0f (%d samples)", *paper_rgb, paper.samples)

    usable = paper_rgb > 0
    if not usable.all():
        logger.warning("Paper channel at zero; skipping cast correction for that channel")
    ratio = np.where(usable, avg_paper / np.where(usable, paper_rgb, 1.0), 1.0)

    logger.info(
        "Cast correction: R×%.3f G×%.3f B×%.3f",
        *(ratio * strength + (1.0 - strength))
    )

    rgb = buffer.rgb().astype(np.float64)
    pixel_strength = np.full(rgb.shape[:2], strength, dtype=np.float64)
    if preserve_inks:
        lum = color.brightness(rgb)
        dark = lum < INK_BRIGHTNESS
        pixel_strength[dark] *= (lum[dark] / INK_BRIGHTNESS) ** 2

    s = pixel_strength[:, :, None]
    adjust = ratio[None, None, :] * s + (1.0 - s)
    return buffer.with_rgb(rgb * adjust)


def build_levels_lut(
    white_point: float = 235,
    black_point: float = 15,
    midtone: float = 1.0
) -> np.ndarray:
    """Build the 256-entry levels lookup table.

    Returns
    -------
    np.ndarray
        (256,) uint8, non-decreasing

    Raises
    ------
    ConfigurationError
        If white_point <= black_point or midtone <= 0
    """
    if white_point <= black_point:
        raise ConfigurationError(
            f"white_point ({white_point}) must be greater than black_point ({black_point})"
        )
    if midtone <= 0:
        raise ConfigurationError(f"midtone must be positive, got {midtone}")

    levels = np.arange(256, dtype=np.float64)
    val = np.clip((levels - black_point) / (white_point - black_point), 0.0, 1.0)
    if midtone != 1.0:
        val = np.power(val, 1.0 / midtone)
    return np.rint(val * 255.0).astype(np.uint8)


def apply_levels(
    buffer: PixelBuffer,
    white_point: float = 235,
    black_point: float = 15,
    midtone: float = 1.0
) -> PixelBuffer:
    """Apply black/white point and gamma to R, G, B (alpha untouched)."""
    ensure_color(buffer, "apply_levels")
    lut = build_levels_lut(white_point, black_point, midtone)
    logger.info("Applying levels: black=%s, white=%s, gamma=%s", black_point, white_point, midtone)
    # LUT indexing on a private copy; the caller's bytes stay intact
    return buffer.with_rgb(lut[buffer.rgb()])


class ToneAndCastCorrector:
    """Cast removal followed by levels, configured once.

    Parameters
    ----------
    cast : CastRemovalConfig, optional
    levels : LevelsConfig, optional

    Examples
    --------
    >>> corrector = ToneAndCastCorrector(levels=LevelsConfig(white_point=245, black_point=12))
    >>> page = corrector.correct(page)
    """

    def __init__(
        self,
        cast: Optional[validators.CastRemovalConfig] = None,
        levels: Optional[validators.LevelsConfig] = None
    ):
        self.cast = validators.build_config(validators.CastRemovalConfig, cast)
        self.levels = validators.build_config(validators.LevelsConfig, levels)

    def correct(self, buffer: PixelBuffer) -> PixelBuffer:
        result = buffer
        if self.cast.enabled:
            result = remove_color_cast(
                result,
                strength=self.cast.strength,
                preserve_inks=self.cast.preserve_inks,
                margin_percent=self.cast.margin_percent,
                sample_count=self.cast.sample_count,
                seed=self.cast.seed,
            )
        if self.levels.enabled:
            result = apply_levels(
                result,
                white_point=self.levels.white_point,
                black_point=self.levels.black_point,
                midtone=self.levels.midtone,
            )
        return result
