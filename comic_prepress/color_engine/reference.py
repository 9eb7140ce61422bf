"""Reference-page color matching (ReferenceMatcher).

Pages of one issue drift apart after scanning and restoration. Each page is
pulled toward a hero page by matching the first two moments per channel:

    gain_c   = ref_std_c / src_std_c        (1 when src_std_c == 0)
    offset_c = ref_mean_c - src_mean_c * gain_c
    new_c    = orig_c * (gain_c * s + (1 - s)) + offset_c * s

A flat-color source has no spread to scale, so its gain is held at 1 and
only the mean shift is applied.
"""

import logging
from typing import Optional

import numpy as np

from ..errors import ConfigurationError, InputShapeError
from ..utils import validators
from .buffer import ChannelStatistics, PixelBuffer, calculate_channel_stats, ensure_color

logger = logging.getLogger(__name__)


def matching_transform(source: ChannelStatistics, target: ChannelStatistics):
    """Per-channel (gain, offset) mapping source moments onto target moments.

    Returns
    -------
    tuple of np.ndarray
        (gain, offset), each shape (3,) ordered R, G, B
    """
    src_mean, src_std = source.as_arrays()
    ref_mean, ref_std = target.as_arrays()

    flat = src_std == 0
    if flat.any():
        logger.debug("Source channel(s) %s have zero spread; gain held at 1", np.flatnonzero(flat).tolist())
    gain = np.where(flat, 1.0, ref_std / np.where(flat, 1.0, src_std))
    offset = ref_mean - src_mean * gain
    return gain, offset


def match_to_reference(
    source: PixelBuffer,
    reference: PixelBuffer,
    strength: float = 0.8
) -> PixelBuffer:
    """Pull ``source`` toward the channel statistics of ``reference``.

    Parameters
    ----------
    source : PixelBuffer
        Page to adjust
    reference : PixelBuffer
        Hero page; must share the source's width and height
    strength : float
        Blend between identity (0) and a full moment match (1)

    Raises
    ------
    InputShapeError
        If the two pages differ in width or height
    ConfigurationError
        If strength is outside [0, 1]
    """
    ensure_color(source, "match_to_reference")
    ensure_color(reference, "match_to_reference")
    if (source.width, source.height) != (reference.width, reference.height):
        raise InputShapeError(
            f"Reference page is {reference.width}x{reference.height}, "
            f"source is {source.width}x{source.height}"
        )
    if not 0.0 <= strength <= 1.0:
        raise ConfigurationError(f"Match strength must be in [0, 1], got {strength}")

    gain, offset = matching_transform(calculate_channel_stats(source), calculate_channel_stats(reference))
    logger.info("Channel gains: R×%.3f G×%.3f B×%.3f", *gain)

    scale = gain * strength + (1.0 - strength)
    rgb = source.rgb().astype(np.float64)
    return source.with_rgb(rgb * scale + offset * strength)


class ReferenceMatcher:
    """Configured reference matching stage."""

    def __init__(self, config: Optional[validators.ReferenceMatchConfig] = None):
        self.config = validators.build_config(validators.ReferenceMatchConfig, config)

    def match(self, source: PixelBuffer, reference: Optional[PixelBuffer]) -> PixelBuffer:
        if not self.config.enabled or reference is None:
            return source
        return match_to_reference(source, reference, self.config.strength)
