"""Color space helpers shared by the correction stages and QA.

Provides:
    - sRGB → linear RGB (exact sRGB transfer function)
    - WCAG relative luminance
    - Grayscale conversion (ITU-R BT.601 weights, as used by OpenCV)
    - Channel-mean brightness (the "ink vs paper" measure of the stages)
    - Vectorized RGB ↔ HSV with hue in degrees

All functions operate on numpy arrays of shape (..., 3) unless noted.
Input ranges are documented per function; nothing here mutates its input.

Invariants:
    - 8-bit code values are handled as float64 in [0, 255]
    - Normalized values live in [0, 1]
    - Hue in [0, 360), saturation and value in [0, 1]
"""

import cv2
import numpy as np


def srgb_to_linear(img: np.ndarray) -> np.ndarray:
    """Convert sRGB [0,1] to linear RGB [0,1].

    Notes
    -----
    Linear segment below 0.04045, power 2.4 segment above.
    """
    img = np.clip(np.asarray(img, dtype=np.float64), 0.0, 1.0)
    return np.where(img <= 0.04045, img / 12.92, ((img + 0.055) / 1.055) ** 2.4)


def relative_luminance(rgb_u8: np.ndarray) -> np.ndarray:
    """WCAG 2.x relative luminance of 8-bit sRGB values.

    Parameters
    ----------
    rgb_u8 : np.ndarray
        Shape (..., 3), code values in [0, 255]

    Returns
    -------
    np.ndarray
        Shape (...), luminance in [0, 1] (0 = black, 1 = white)
    """
    lin = srgb_to_linear(np.asarray(rgb_u8, dtype=np.float64) / 255.0)
    return 0.2126 * lin[..., 0] + 0.7152 * lin[..., 1] + 0.0722 * lin[..., 2]


def rgb_to_gray(rgb_u8: np.ndarray) -> np.ndarray:
    """Grayscale (H, W) uint8 from an (H, W, 3) uint8 RGB array."""
    return cv2.cvtColor(np.ascontiguousarray(rgb_u8, dtype=np.uint8), cv2.COLOR_RGB2GRAY)


def brightness(rgb: np.ndarray) -> np.ndarray:
    """Unweighted channel mean ``(r + g + b) / 3`` as float64."""
    rgb = np.asarray(rgb, dtype=np.float64)
    return rgb.sum(axis=-1) / 3.0


def rgb_to_hsv(rgb_u8: np.ndarray):
    """Convert 8-bit RGB to hue (degrees), saturation and value.

    Parameters
    ----------
    rgb_u8 : np.ndarray
        Shape (..., 3), code values in [0, 255]

    Returns
    -------
    tuple of np.ndarray
        (hue_deg, sat, val), each shape (...). Achromatic pixels
        (max == min) get hue 0 and saturation 0.
    """
    rgb = np.asarray(rgb_u8, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    cmax = rgb.max(axis=-1)
    cmin = rgb.min(axis=-1)
    delta = cmax - cmin

    safe_delta = np.where(delta == 0, 1.0, delta)
    hue = np.select(
        [delta == 0, cmax == r, cmax == g],
        [
            0.0,
            ((g - b) / safe_delta) % 6.0,
            (b - r) / safe_delta + 2.0,
        ],
        default=(r - g) / safe_delta + 4.0,
    ) * 60.0

    sat = np.where(cmax == 0, 0.0, delta / np.where(cmax == 0, 1.0, cmax))
    val = cmax / 255.0
    return hue, sat, val


def hsv_to_rgb(hue_deg: np.ndarray, sat: np.ndarray, val: np.ndarray) -> np.ndarray:
    """Convert hue (degrees), saturation and value back to float RGB [0, 255].

    Returns
    -------
    np.ndarray
        Shape (..., 3), float64, not rounded
    """
    hue_deg = np.asarray(hue_deg, dtype=np.float64)
    chroma = val * sat
    h6 = (hue_deg % 360.0) / 60.0
    x = chroma * (1.0 - np.abs(h6 % 2.0 - 1.0))
    m = val - chroma
    zero = np.zeros_like(chroma)

    sector = np.floor(h6).astype(np.int64) % 6
    r = np.choose(sector, [chroma, x, zero, zero, x, chroma])
    g = np.choose(sector, [x, chroma, chroma, x, zero, zero])
    b = np.choose(sector, [zero, zero, x, chroma, chroma, x])

    return np.stack([r + m, g + m, b + m], axis=-1) * 255.0
