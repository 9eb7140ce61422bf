"""Hue-banded selective saturation: the SaturationAdjuster stage.

Reprint inks and restored scans disagree in different hue ranges: warm
primaries print flat, while cool tones from digital cleanup read as neon.
Saturation is scaled per hue band:

    hue   0-60°   red/yellow   × red_yellow_boost   (1.1)
    hue  25-45°   skin tones   × 1.0 when skin_tone_protect (overrides boost)
    hue 180-270°  blue/cyan    × blue_green_reduce  (0.92)
    other hues                 × 1.0

Achromatic pixels have zero saturation and pass through unchanged.
"""

import logging
from typing import Optional

import numpy as np

from ..utils import color, validators
from .buffer import PixelBuffer, ensure_color

logger = logging.getLogger(__name__)

RED_YELLOW_BAND = (0.0, 60.0)
SKIN_TONE_BAND = (25.0, 45.0)
BLUE_GREEN_BAND = (180.0, 270.0)


def saturation_multipliers(
    hue_deg: np.ndarray,
    red_yellow_boost: float = 1.1,
    blue_green_reduce: float = 0.92,
    skin_tone_protect: bool = True
) -> np.ndarray:
    """Per-pixel saturation multiplier for the given hues (degrees)."""
    mult = np.ones_like(hue_deg, dtype=np.float64)
    mult[(hue_deg >= RED_YELLOW_BAND[0]) & (hue_deg <= RED_YELLOW_BAND[1])] = red_yellow_boost
    mult[(hue_deg >= BLUE_GREEN_BAND[0]) & (hue_deg <= BLUE_GREEN_BAND[1])] = blue_green_reduce
    if skin_tone_protect:
        mult[(hue_deg >= SKIN_TONE_BAND[0]) & (hue_deg <= SKIN_TONE_BAND[1])] = 1.0
    return mult


def adjust_saturation(
    buffer: PixelBuffer,
    red_yellow_boost: float = 1.1,
    blue_green_reduce: float = 0.92,
    skin_tone_protect: bool = True
) -> PixelBuffer:
    """Apply hue-banded saturation multipliers.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page
    red_yellow_boost : float
        Multiplier for hues 0-60°
    blue_green_reduce : float
        Multiplier for hues 180-270°
    skin_tone_protect : bool
        Keep hues 25-45° at ×1.0

    Returns
    -------
    PixelBuffer
        New buffer; hue and value preserved, saturation clamped to 1
    """
    ensure_color(buffer, "adjust_saturation")
    logger.info(
        "Applying selective saturation: warm×%.2f cool×%.2f skin_protect=%s",
        red_yellow_boost, blue_green_reduce, skin_tone_protect
    )

    rgb = buffer.rgb()
    hue, sat, val = color.rgb_to_hsv(rgb)
    mult = saturation_multipliers(hue, red_yellow_boost, blue_green_reduce, skin_tone_protect)

    adjusted = np.minimum(1.0, sat * mult)
    out = color.hsv_to_rgb(hue, adjusted, val)

    # Exact passthrough where nothing changed (gray pixels, unit multiplier)
    unchanged = (sat == 0) | (adjusted == sat)
    out[unchanged] = rgb[unchanged]
    return buffer.with_rgb(out)


class SaturationAdjuster:
    """Configured hue-banded saturation stage."""

    def __init__(self, config: Optional[validators.SaturationConfig] = None):
        self.config = validators.build_config(validators.SaturationConfig, config)

    def adjust(self, buffer: PixelBuffer) -> PixelBuffer:
        if not self.config.enabled:
            return buffer
        return adjust_saturation(
            buffer,
            red_yellow_boost=self.config.red_yellow_boost,
            blue_green_reduce=self.config.blue_green_reduce,
            skin_tone_protect=self.config.skin_tone_protect,
        )
