"""Local contrast ("clarity") via a small-radius box-blur unsharp variant.

    detail = original - box_blur(original, radius)
    output = clamp(original + detail * amount, 0, 255)

The radius stays at 1-3 px: enough to lift midtone texture and halftone
structure, too small to draw the halos of a wide unsharp mask.
"""

import logging
from typing import Optional

import cv2
import numpy as np

from ..errors import ConfigurationError
from ..utils import validators
from .buffer import PixelBuffer, ensure_color

logger = logging.getLogger(__name__)


def box_blur(rgb: np.ndarray, radius: int) -> np.ndarray:
    """Mean filter over a (2r+1)² window, reflected borders, float64 output."""
    ksize = 2 * radius + 1
    return cv2.blur(
        np.asarray(rgb, dtype=np.float64),
        (ksize, ksize),
        borderType=cv2.BORDER_REFLECT_101,
    )


def apply_clarity(buffer: PixelBuffer, radius: int = 2, amount: float = 0.5) -> PixelBuffer:
    """Add back ``amount`` × the high-pass detail of a box blur.

    Raises
    ------
    ConfigurationError
        If radius < 1 or amount < 0
    """
    ensure_color(buffer, "apply_clarity")
    if radius < 1:
        raise ConfigurationError(f"Clarity radius must be >= 1, got {radius}")
    if amount < 0:
        raise ConfigurationError(f"Clarity amount must be >= 0, got {amount}")

    logger.info("Applying local contrast: radius=%d, amount=%.2f", radius, amount)
    rgb = buffer.rgb().astype(np.float64)
    detail = rgb - box_blur(rgb, radius)
    return buffer.with_rgb(rgb + detail * amount)


class ClarityEnhancer:
    """Configured clarity stage."""

    def __init__(self, config: Optional[validators.ClarityConfig] = None):
        self.config = validators.build_config(validators.ClarityConfig, config)

    def enhance(self, buffer: PixelBuffer) -> PixelBuffer:
        if not self.config.enabled or self.config.amount == 0:
            return buffer
        return apply_clarity(buffer, self.config.radius, self.config.amount)
