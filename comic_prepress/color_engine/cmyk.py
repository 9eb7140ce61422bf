"""RGB → CMYK separation with GCR, UCR, TAC limiting and dot-gain compensation.

Per pixel, in this exact order (the order changes final ink values, so it is
part of the contract):

    1. Line art    brightness < 30 and channel spread < 10 → K=100, C=M=Y=0,
                   nothing below applies
    2. CMY         c = 1 - r/255, m = 1 - g/255, y = 1 - b/255
    3. Black gen.  k = ((minCMY - black_start) / black_width)^0.8 · gcr · max_black,
                   clamped to [0, min(minCMY, max_black)], 0 below black_start
    4. UCR         c, m, y -= k · ucr_amount         (floor 0)
    5. GCR         c, m, y -= k · gcr_strength       (floor 0); k = max(k, minCMY · gcr)
    6. TAC         (c+m+y+k)·100 > tac_limit → all four scaled by tac_limit / TAC
    7. Rich black  K ≥ 80 → C/M/Y support 60/40/40 scaled by (K-80)/20,
                   shrunk to fit whatever TAC headroom is left
    8. Dot gain    v -= gain_amount · sin(π·v) · curve  (peaks at 50%, 0 at 0/100%)

Ink values are integer percentages after step 6 (floored instead of rounded
where rounding would cross the limit) and are stored as bytes
``round(v * 2.55)`` in four single-channel buffers.

The preview inverse (cmyk_to_rgb) is a naive ink simulation, not an ICC
transform; a round trip is lossy.
"""

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np

from ..errors import InputShapeError
from ..utils import color, fs, hashing, validators
from .buffer import PixelBuffer, ensure_color

logger = logging.getLogger(__name__)

PLATE_NAMES = ("c", "m", "y", "k")
PLATE_LABELS = {"c": "Cyan", "m": "Magenta", "y": "Yellow", "k": "Black"}
BYTES_PER_PERCENT = 2.55
BLACK_CURVE_EXPONENT = 0.8


# ---------------------------------------------------------------------------
# Data containers
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CmykValue:
    """Ink percentages of one pixel (0-100) and their total coverage."""

    c: int
    m: int
    y: int
    k: int

    @property
    def tac(self) -> int:
        return self.c + self.m + self.y + self.k


@dataclass(frozen=True)
class SeparationMetadata:
    """Aggregate statistics of one separation."""

    width: int
    height: int
    max_tac: float
    avg_tac: float
    tac_limit: float
    gcr_strength: float
    line_art_pixel_count: int
    rich_black_pixel_count: int

    def to_dict(self) -> Dict[str, Union[int, float]]:
        return asdict(self)


@dataclass(frozen=True)
class CmykSeparation:
    """Four same-sized single-channel plates plus separation metadata."""

    c: PixelBuffer
    m: PixelBuffer
    y: PixelBuffer
    k: PixelBuffer
    metadata: SeparationMetadata

    def __post_init__(self):
        for name in PLATE_NAMES:
            plate = getattr(self, name)
            if plate.channels != 1:
                raise InputShapeError(f"Plate {name} must be single-channel, got {plate.channels}")
            if (plate.width, plate.height) != (self.metadata.width, self.metadata.height):
                raise InputShapeError(
                    f"Plate {name} is {plate.width}x{plate.height}, "
                    f"expected {self.metadata.width}x{self.metadata.height}"
                )

    def plates(self) -> Dict[str, PixelBuffer]:
        return {name: getattr(self, name) for name in PLATE_NAMES}

    def ink_percentages(self) -> np.ndarray:
        """(H, W, 4) float64 ink values in percent, recovered from the bytes."""
        stacked = np.stack([getattr(self, n).to_array()[:, :, 0] for n in PLATE_NAMES], axis=-1)
        return stacked.astype(np.float64) / BYTES_PER_PERCENT


@dataclass(frozen=True)
class SeparationAnalysis:
    """Ink usage summary of a separation."""

    neutral_pixels: int
    color_pixels: int
    avg_ink_coverage: float
    problematic_tac_pixels: int
    problematic_tac_percentage: float
    gcr_efficiency: float
    warnings: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Vectorized separation steps
# ---------------------------------------------------------------------------


def detect_line_art(rgb: np.ndarray, threshold: float = 30, neutrality: float = 10) -> np.ndarray:
    """Boolean mask of dark, neutral pixels (inked line work and lettering)."""
    rgb = np.asarray(rgb, dtype=np.float64)
    r, g, b = rgb[..., 0], rgb[..., 1], rgb[..., 2]
    spread = np.maximum(np.maximum(np.abs(r - g), np.abs(g - b)), np.abs(r - b))
    return (color.brightness(rgb) < threshold) & (spread < neutrality)


def _black_generation(rgb: np.ndarray, cfg: validators.CmykConfig) -> np.ndarray:
    """Steps 2-6: CMY, black generation, UCR, GCR and TAC limiting.

    Returns
    -------
    np.ndarray
        (..., 4) integer ink percentages C, M, Y, K whose sum never exceeds
        the TAC limit
    """
    cmy = 1.0 - np.asarray(rgb, dtype=np.float64) / 255.0
    min_cmy = cmy.min(axis=-1)

    above = min_cmy > cfg.black_start
    black_range = np.where(above, min_cmy - cfg.black_start, 0.0)
    k = np.power(black_range / cfg.black_width, BLACK_CURVE_EXPONENT) * cfg.gcr_strength * cfg.max_black
    k = np.where(above, np.minimum(np.minimum(k, min_cmy), cfg.max_black), 0.0)

    cmy = np.maximum(0.0, cmy - (k * cfg.ucr_amount)[..., None])
    cmy = np.maximum(0.0, cmy - (k * cfg.gcr_strength)[..., None])
    k = np.maximum(k, min_cmy * cfg.gcr_strength)

    inks = np.concatenate([cmy, k[..., None]], axis=-1)
    tac = inks.sum(axis=-1) * 100.0
    over = tac > cfg.tac_limit
    scale = np.where(over, cfg.tac_limit / np.where(over, tac, 1.0), 1.0)
    inks = inks * scale[..., None] * 100.0

    rounded = np.rint(inks)
    crosses = rounded.sum(axis=-1) > cfg.tac_limit
    return np.where(crosses[..., None], np.floor(inks), rounded)


def _rich_black(inks: np.ndarray, cfg: validators.CmykConfig) -> Tuple[np.ndarray, np.ndarray]:
    """Step 7: replace C/M/Y of deep blacks with scaled support inks.

    Returns
    -------
    tuple
        (inks, mask) where mask marks the pixels that became rich black
    """
    k = inks[..., 3]
    mask = k >= cfg.rich_black_min_k
    if not mask.any():
        return inks, mask

    scale = (k - cfg.rich_black_min_k) / (100.0 - cfg.rich_black_min_k)
    support = np.rint(
        np.stack([cfg.rich_black_c * scale, cfg.rich_black_m * scale, cfg.rich_black_y * scale], axis=-1)
    )

    headroom = np.maximum(cfg.tac_limit - k, 0.0)
    total = support.sum(axis=-1)
    too_much = total > headroom
    fit = np.where(too_much, headroom / np.where(too_much, total, 1.0), 1.0)
    support = np.where(too_much[..., None], np.floor(support * fit[..., None]), support)

    out = inks.copy()
    out[..., :3] = np.where(mask[..., None], support, inks[..., :3])
    return out, mask


def _dot_gain(inks: np.ndarray, amount: float, curve: float) -> np.ndarray:
    """Step 8: bell-shaped pre-compensation, never increases a value."""
    norm = inks / 100.0
    expected = amount * np.sin(norm * np.pi) * curve / 100.0
    return np.rint(np.clip(norm - expected, 0.0, 1.0) * 100.0)


# ---------------------------------------------------------------------------
# Scalar helpers
# ---------------------------------------------------------------------------


def rgb_to_cmyk(r: float, g: float, b: float, **options) -> CmykValue:
    """Separate one RGB color (steps 2-6 only, no rich black or dot gain).

    Examples
    --------
    >>> rgb_to_cmyk(255, 255, 255)
    CmykValue(c=0, m=0, y=0, k=0)
    """
    cfg = validators.build_config(validators.CmykConfig, None, options)
    inks = _black_generation(np.array([[r, g, b]], dtype=np.float64), cfg)[0]
    return CmykValue(*(int(v) for v in inks))


def cmyk_to_rgb(c: float, m: float, y: float, k: float) -> Tuple[int, int, int]:
    """Naive ink simulation of CMYK percentages to 8-bit RGB (preview only)."""
    white = 255.0 * (1.0 - k / 100.0)
    return (
        int(round(white * (1.0 - c / 100.0))),
        int(round(white * (1.0 - m / 100.0))),
        int(round(white * (1.0 - y / 100.0))),
    )


def is_line_art(r: float, g: float, b: float, threshold: float = 30, neutrality: float = 10) -> bool:
    """True when the pixel is dark and neutral enough to print as K only."""
    return bool(detect_line_art(np.array([r, g, b], dtype=np.float64), threshold, neutrality))


def create_rich_black(k: float, **options) -> CmykValue:
    """Rich-black recipe for a K value; plain K below the threshold."""
    cfg = validators.build_config(validators.CmykConfig, None, options)
    inks, _ = _rich_black(np.array([[0.0, 0.0, 0.0, float(k)]]), cfg)
    return CmykValue(*(int(round(v)) for v in inks[0]))


def compensate_dot_gain(value: float, gain_amount: float = 15, compensation_curve: float = 0.5) -> int:
    """Pre-reduce one ink percentage for expected dot gain."""
    return int(_dot_gain(np.array([float(value)]), gain_amount, compensation_curve)[0])


# ---------------------------------------------------------------------------
# Buffer conversion
# ---------------------------------------------------------------------------


def convert_to_cmyk(
    buffer: PixelBuffer,
    config: Optional[validators.CmykConfig] = None,
    **overrides
) -> CmykSeparation:
    """Separate an RGB(A) page into four ink plates.

    Parameters
    ----------
    buffer : PixelBuffer
        RGB or RGBA page (alpha ignored)
    config : CmykConfig, optional
        Base separation settings
    **overrides
        Field overrides, e.g. ``tac_limit=280``

    Returns
    -------
    CmykSeparation
        Plates stored as ``round(percent * 2.55)`` plus TAC statistics

    Raises
    ------
    ConfigurationError
        If the merged settings are invalid (e.g. negative TAC limit)
    """
    ensure_color(buffer, "convert_to_cmyk")
    cfg = validators.build_config(validators.CmykConfig, config, overrides)
    logger.info("Converting to CMYK: GCR=%.2f, TAC≤%.0f%%", cfg.gcr_strength, cfg.tac_limit)

    rgb = buffer.rgb().astype(np.float64)
    h, w = rgb.shape[:2]

    line_art = (
        detect_line_art(rgb, cfg.line_art_threshold, cfg.line_art_neutrality)
        if cfg.force_line_art_to_k
        else np.zeros((h, w), dtype=bool)
    )

    inks = _black_generation(rgb, cfg)
    rich = np.zeros((h, w), dtype=bool)
    if cfg.apply_rich_black:
        inks, rich = _rich_black(inks, cfg)
    if cfg.compensate_dot_gain:
        inks = _dot_gain(inks, cfg.dot_gain_amount, cfg.dot_gain_curve)

    inks[line_art] = (0.0, 0.0, 0.0, 100.0)
    rich &= ~line_art

    tac = inks.sum(axis=-1)
    metadata = SeparationMetadata(
        width=w,
        height=h,
        max_tac=float(tac.max()),
        avg_tac=float(tac.mean()),
        tac_limit=float(cfg.tac_limit),
        gcr_strength=float(cfg.gcr_strength),
        line_art_pixel_count=int(line_art.sum()),
        rich_black_pixel_count=int(rich.sum()),
    )

    stored = np.rint(inks * BYTES_PER_PERCENT)
    # Byte rounding may add up to ~0.8% TAC; floor those pixels instead
    slack = (stored / BYTES_PER_PERCENT).sum(axis=-1) > cfg.tac_limit + 0.5
    stored = np.where(slack[..., None], np.floor(inks * BYTES_PER_PERCENT), stored)
    stored = np.clip(stored, 0, 255).astype(np.uint8)
    plates = {name: PixelBuffer.from_array(stored[:, :, i]) for i, name in enumerate(PLATE_NAMES)}

    pixel_count = w * h
    logger.info(
        "CMYK conversion complete: max TAC %.1f%% (limit %.0f%%), avg TAC %.1f%%",
        metadata.max_tac, cfg.tac_limit, metadata.avg_tac
    )
    logger.info(
        "Line art pixels: %d (%.2f%%), rich black pixels: %d (%.2f%%)",
        metadata.line_art_pixel_count, 100.0 * metadata.line_art_pixel_count / pixel_count,
        metadata.rich_black_pixel_count, 100.0 * metadata.rich_black_pixel_count / pixel_count,
    )
    return CmykSeparation(metadata=metadata, **plates)


def cmyk_to_rgb_buffer(separation: CmykSeparation) -> PixelBuffer:
    """Render an approximate RGB preview of a separation."""
    inks = separation.ink_percentages() / 100.0
    white = 255.0 * (1.0 - inks[..., 3:4])
    return PixelBuffer.from_array(white * (1.0 - inks[..., :3]))


def analyze_separation(separation: CmykSeparation) -> SeparationAnalysis:
    """Summarize ink usage: neutrals carried by K, colour pixels, TAC overruns."""
    inks = separation.ink_percentages()
    pixel_count = inks.shape[0] * inks.shape[1]
    tac = inks.sum(axis=-1)
    cmy_total = inks[..., :3].sum(axis=-1)
    k = inks[..., 3]

    neutral = (k > 0) & (cmy_total < k * 0.3)
    colored = ~neutral & (cmy_total > 10)
    # Stored bytes carry up to 0.5% TAC of rounding slack
    over = tac > separation.metadata.tac_limit + 0.5

    warnings = []
    if over.any():
        warnings.append(
            f"{int(over.sum())} pixel(s) exceed the {separation.metadata.tac_limit:.0f}% TAC limit"
        )

    return SeparationAnalysis(
        neutral_pixels=int(neutral.sum()),
        color_pixels=int(colored.sum()),
        avg_ink_coverage=float(tac.mean()),
        problematic_tac_pixels=int(over.sum()),
        problematic_tac_percentage=float(100.0 * over.sum() / pixel_count),
        gcr_efficiency=float(100.0 * neutral.sum() / pixel_count),
        warnings=warnings,
    )


def export_separation_channels(separation: CmykSeparation, base_path: Union[str, Path]) -> List[Path]:
    """Write each plate as ``{base_path}_{c|m|y|k}.png`` for inspection.

    A ``{base_path}_plates.yaml`` manifest records the separation metadata
    and the SHA-256 of every written plate file.

    Returns
    -------
    list[Path]
        Plate paths in C, M, Y, K order (the manifest is not included)
    """
    base_path = Path(base_path)
    written = []
    digests = {}
    for name, plate in separation.plates().items():
        out = base_path.with_name(f"{base_path.name}_{name}.png")
        fs.atomic_save_image(plate.to_array(), out)
        logger.info("  %s channel: %s", PLATE_LABELS[name], out)
        written.append(out)
        digests[name] = {"file": out.name, "sha256": hashing.sha256_file(out)}

    manifest = base_path.with_name(f"{base_path.name}_plates.yaml")
    fs.atomic_yaml_dump({"separation": separation.metadata.to_dict(), "plates": digests}, manifest)
    logger.debug("Plate manifest: %s", manifest)
    return written


class CmykSeparator:
    """Configured separation stage.

    Examples
    --------
    >>> separator = CmykSeparator(CmykConfig(tac_limit=280))
    >>> separation = separator.convert(page)
    >>> preview = separator.preview(separation)
    """

    def __init__(self, config: Optional[validators.CmykConfig] = None):
        self.config = validators.build_config(validators.CmykConfig, config)

    def convert(self, buffer: PixelBuffer) -> CmykSeparation:
        return convert_to_cmyk(buffer, self.config)

    def preview(self, separation: CmykSeparation) -> PixelBuffer:
        return cmyk_to_rgb_buffer(separation)

    def analyze(self, separation: CmykSeparation) -> SeparationAnalysis:
        return analyze_separation(separation)
