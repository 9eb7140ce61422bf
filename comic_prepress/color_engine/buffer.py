"""PixelBuffer and per-channel statistics.

PixelBuffer is the common currency of every stage: decoded 8-bit raster
data plus geometry. It is immutable by contract (frozen dataclass over
``bytes``); stages read it through a read-only numpy view and return new
buffers.

Layout:
    - Interleaved, row-major, 8 bits per channel
    - channels: 3 (RGB), 4 (RGBA) or 1 (a single CMYK plate)
    - len(data) == width * height * channels, checked on construction

Alpha is never touched by a color stage; ``with_rgb`` carries it over.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Union

import numpy as np

from ..errors import InputShapeError
from ..utils import fs

VALID_CHANNELS = (1, 3, 4)


@dataclass(frozen=True)
class PixelBuffer:
    """Immutable 8-bit raster.

    Parameters
    ----------
    width, height : int
        Geometry in pixels (both > 0)
    channels : int
        1, 3 or 4
    data : bytes
        Interleaved samples, ``width*height*channels`` bytes

    Raises
    ------
    InputShapeError
        If the geometry is invalid or the data length doesn't match it
    """

    width: int
    height: int
    channels: int
    data: bytes

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise InputShapeError(f"Buffer dimensions must be positive, got {self.width}x{self.height}")
        if self.channels not in VALID_CHANNELS:
            raise InputShapeError(f"Unsupported channel count {self.channels}; expected one of {VALID_CHANNELS}")
        if not isinstance(self.data, bytes):
            object.__setattr__(self, 'data', bytes(self.data))
        expected = self.width * self.height * self.channels
        if len(self.data) != expected:
            raise InputShapeError(
                f"Buffer length {len(self.data)} != {self.width}x{self.height}x{self.channels} ({expected})"
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_array(cls, arr: np.ndarray) -> 'PixelBuffer':
        """Build from an (H, W), (H, W, C) array; values are clipped to uint8."""
        arr = np.asarray(arr)
        if arr.ndim == 2:
            arr = arr[:, :, None]
        if arr.ndim != 3:
            raise InputShapeError(f"Expected (H, W) or (H, W, C) array, got shape {arr.shape}")
        if arr.dtype != np.uint8:
            arr = np.clip(np.rint(arr), 0, 255).astype(np.uint8)
        h, w, c = arr.shape
        return cls(width=w, height=h, channels=c, data=np.ascontiguousarray(arr).tobytes())

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> 'PixelBuffer':
        """Decode an image file (RGB or RGBA) into a buffer."""
        return cls.from_array(fs.load_image_array(path))

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def shape(self):
        return (self.height, self.width, self.channels)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height

    @property
    def has_alpha(self) -> bool:
        return self.channels == 4

    def to_array(self) -> np.ndarray:
        """Read-only (H, W, C) uint8 view over the buffer's bytes."""
        return np.frombuffer(self.data, dtype=np.uint8).reshape(self.shape)

    def rgb(self) -> np.ndarray:
        """(H, W, 3) uint8 color samples (read-only view).

        Raises
        ------
        InputShapeError
            If the buffer is a single-channel plate
        """
        if self.channels < 3:
            raise InputShapeError("Single-channel buffer has no RGB samples")
        return self.to_array()[:, :, :3]

    def with_rgb(self, rgb: np.ndarray) -> 'PixelBuffer':
        """New buffer with replaced color samples and this buffer's alpha.

        Float input is rounded to nearest and clamped to [0, 255].
        """
        rgb = np.asarray(rgb)
        if rgb.shape != (self.height, self.width, 3):
            raise InputShapeError(f"RGB shape {rgb.shape} doesn't match buffer {self.shape}")
        if rgb.dtype != np.uint8:
            rgb = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
        if self.has_alpha:
            rgb = np.concatenate([rgb, self.to_array()[:, :, 3:]], axis=2)
        return PixelBuffer.from_array(rgb)

    def save(self, path: Union[str, Path], **pil_kwargs) -> None:
        """Encode to an image file atomically (format from extension)."""
        fs.atomic_save_image(self.to_array(), path, pil_kwargs or None)


def ensure_color(buffer: PixelBuffer, stage: str) -> None:
    """Reject plates and non-buffers at the entry of a color stage."""
    if not isinstance(buffer, PixelBuffer):
        raise InputShapeError(f"{stage} expects a PixelBuffer, got {type(buffer).__name__}")
    if buffer.channels not in (3, 4):
        raise InputShapeError(f"{stage} expects an RGB or RGBA buffer, got {buffer.channels} channel(s)")


# ---------------------------------------------------------------------------
# Channel statistics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ChannelMoments:
    """First and second moments of one channel."""

    mean: float
    std_dev: float


@dataclass(frozen=True)
class ChannelStatistics:
    """Per-channel moments for R, G, B (population standard deviation)."""

    r: ChannelMoments
    g: ChannelMoments
    b: ChannelMoments

    def as_arrays(self):
        """Return (means, std_devs) as float64 arrays ordered R, G, B."""
        means = np.array([self.r.mean, self.g.mean, self.b.mean], dtype=np.float64)
        stds = np.array([self.r.std_dev, self.g.std_dev, self.b.std_dev], dtype=np.float64)
        return means, stds


def calculate_channel_stats(buffer: PixelBuffer) -> ChannelStatistics:
    """Compute mean and standard deviation of each color channel.

    Alpha is ignored. Results are derived per call and never cached.
    """
    ensure_color(buffer, "calculate_channel_stats")
    rgb = buffer.rgb().reshape(-1, 3).astype(np.float64)
    means = rgb.mean(axis=0)
    stds = rgb.std(axis=0)
    return ChannelStatistics(
        r=ChannelMoments(float(means[0]), float(stds[0])),
        g=ChannelMoments(float(means[1]), float(stds[1])),
        b=ChannelMoments(float(means[2]), float(stds[2])),
    )
