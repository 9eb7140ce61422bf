"""Matte-stock compensation and paper grain.

Matte paper absorbs more ink than the screen preview suggests: midtones
print darker and saturated primaries spread. The compensation lifts the
midtones with a triangular weight peaking at brightness 128, darkens deep
shadows slightly to keep perceived depth, and pulls every channel down a
touch to rein in primaries:

    w       = 1 - |b - 128| / 64          for b in [64, 192], else 0
    lift    = midtone_lift * w
    compress= shadow_compress if b < 64 else 1
    out_c   = clamp((c * compress + lift) * saturate_reduce)

Grain adds a faint uniform luminance noise so large flat fills don't look
plastic after AI cleanup.
"""

import logging
from typing import Optional

import numpy as np

from ..errors import ConfigurationError
from ..utils import color, validators
from .buffer import PixelBuffer, ensure_color

logger = logging.getLogger(__name__)

MIDTONE_CENTER = 128.0
MIDTONE_HALF_WIDTH = 64.0


def apply_matte_compensation(
    buffer: PixelBuffer,
    midtone_lift: float = 6,
    shadow_compress: float = 0.95,
    saturate_reduce: float = 0.96
) -> PixelBuffer:
    """Compensate tones for matte stock.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page
    midtone_lift : float
        Peak additive lift at brightness 128 (typically +5 to +8);
        ``<= 0`` returns the input unchanged
    shadow_compress : float
        Multiplier for pixels darker than 64
    saturate_reduce : float
        Final multiplier for every channel

    Returns
    -------
    PixelBuffer
        Compensated buffer, or ``buffer`` itself when midtone_lift <= 0
    """
    ensure_color(buffer, "apply_matte_compensation")
    if midtone_lift <= 0:
        logger.debug("Matte compensation skipped (midtone_lift=%s)", midtone_lift)
        return buffer
    if not 0 < shadow_compress <= 1 or not 0 < saturate_reduce <= 1:
        raise ConfigurationError(
            f"shadow_compress and saturate_reduce must be in (0, 1], got {shadow_compress}, {saturate_reduce}"
        )

    logger.info("Applying matte compensation: midtone+%.1f, shadows×%.2f", midtone_lift, shadow_compress)

    rgb = buffer.rgb().astype(np.float64)
    b = color.brightness(rgb)

    weight = np.where(
        (b >= MIDTONE_CENTER - MIDTONE_HALF_WIDTH) & (b <= MIDTONE_CENTER + MIDTONE_HALF_WIDTH),
        1.0 - np.abs(b - MIDTONE_CENTER) / MIDTONE_HALF_WIDTH,
        0.0,
    )
    lift = (midtone_lift * weight)[:, :, None]
    compress = np.where(b < MIDTONE_CENTER - MIDTONE_HALF_WIDTH, shadow_compress, 1.0)[:, :, None]

    return buffer.with_rgb((rgb * compress + lift) * saturate_reduce)


def add_paper_grain(buffer: PixelBuffer, strength: float = 0.03, seed: int = 0) -> PixelBuffer:
    """Overlay uniform luminance noise of ±``strength``/2 of full scale.

    The same offset is added to R, G and B of a pixel, so grain never
    introduces color noise. Seeded for reproducible output.
    """
    ensure_color(buffer, "add_paper_grain")
    if strength < 0:
        raise ConfigurationError(f"Grain strength must be >= 0, got {strength}")
    if strength == 0:
        return buffer

    logger.info("Adding paper grain: %.1f%%", strength * 100)
    rng = np.random.default_rng(seed)
    noise = (rng.random((buffer.height, buffer.width)) - 0.5) * strength * 255.0
    return buffer.with_rgb(buffer.rgb().astype(np.float64) + noise[:, :, None])


class MatteCompensator:
    """Configured matte compensation (plus optional grain)."""

    def __init__(
        self,
        config: Optional[validators.MatteConfig] = None,
        grain: Optional[validators.GrainConfig] = None
    ):
        self.config = validators.build_config(validators.MatteConfig, config)
        self.grain = validators.build_config(validators.GrainConfig, grain)

    def compensate(self, buffer: PixelBuffer) -> PixelBuffer:
        if not self.config.enabled:
            return buffer
        return apply_matte_compensation(
            buffer,
            midtone_lift=self.config.midtone_lift,
            shadow_compress=self.config.shadow_compress,
            saturate_reduce=self.config.saturate_reduce,
        )

    def add_grain(self, buffer: PixelBuffer) -> PixelBuffer:
        if not self.grain.enabled:
            return buffer
        return add_paper_grain(buffer, self.grain.strength, self.grain.seed)
