"""Stage configuration schemas and profile loading.

Provides centralized validation for every correction stage using pydantic:
    - Tone: cast removal and levels guardrails
    - Color: hue-banded saturation, clarity, matte compensation, grain
    - Matching: reference-page strength
    - Prepress: CMYK separation (GCR/UCR/TAC/rich black/dot gain/line art)
    - QA: thresholds for clipping, SSIM, edges, tint, contrast
    - Profile schema (prepress.v1): the full pipeline as one YAML document

Configs are validated once, when a pipeline or stage is constructed, so a
bad profile fails before the first pixel is touched. Validation failures are
raised as ConfigurationError with the offending field in the message.

Units:
    - Tone values: 8-bit code values [0, 255]
    - Ink values: percent [0, 100]; TAC in percent [0, 400]
    - Strengths and ratios: [0.0, 1.0] unless noted

Usage:
    from comic_prepress.utils import validators

    cfg = validators.load_pipeline_config("configs/prepress_matte_v1.yaml")
    cmyk_cfg = validators.build_config(validators.CmykConfig, None, {"tac_limit": 280})
"""

from pathlib import Path
from typing import Any, Dict, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..errors import ConfigurationError

ConfigT = TypeVar("ConfigT", bound=BaseModel)


class _StageConfig(BaseModel):
    """Base for stage configs: immutable, unknown keys rejected."""
    model_config = ConfigDict(extra="forbid", frozen=True)


# ============================================================================
# TONE & CAST
# ============================================================================

class CastRemovalConfig(_StageConfig):
    """Paper-cast removal driven by margin samples."""
    enabled: bool = True
    strength: float = Field(0.5, ge=0.0, le=1.0, description="Correction strength")
    preserve_inks: bool = Field(True, description="Attenuate correction on dark (ink) pixels")
    margin_percent: float = Field(5.0, gt=0.0, le=50.0, description="Corner margin size (% of side)")
    sample_count: int = Field(100, ge=4, description="Total samples over the four corners")
    seed: int = Field(0, ge=0, description="Sampling seed (keeps the stage deterministic)")


class LevelsConfig(_StageConfig):
    """Input levels with gamma; white point must stay above black point."""
    enabled: bool = True
    white_point: int = Field(235, ge=1, le=255)
    black_point: int = Field(15, ge=0, le=254)
    midtone: float = Field(1.0, gt=0.0, le=10.0, description="Gamma; >1 lightens midtones")

    @model_validator(mode='after')
    def validate_point_order(self) -> 'LevelsConfig':
        if self.white_point <= self.black_point:
            raise ValueError(
                f"white_point ({self.white_point}) must be greater than black_point ({self.black_point})"
            )
        return self


# ============================================================================
# COLOR SHAPING
# ============================================================================

class SaturationConfig(_StageConfig):
    """Hue-banded saturation multipliers."""
    enabled: bool = True
    red_yellow_boost: float = Field(1.1, ge=0.0, le=3.0, description="Hue 0-60°")
    blue_green_reduce: float = Field(0.92, ge=0.0, le=3.0, description="Hue 180-270°")
    skin_tone_protect: bool = Field(True, description="Hue 25-45° left at ×1.0")


class ClarityConfig(_StageConfig):
    """Small-radius local contrast."""
    enabled: bool = True
    radius: int = Field(2, ge=1, le=3, description="Box blur radius in px")
    amount: float = Field(0.5, ge=0.0, le=3.0)


class MatteConfig(_StageConfig):
    """Matte-stock midtone lift and shadow compression."""
    enabled: bool = False
    midtone_lift: float = Field(6.0, ge=-64.0, le=64.0, description="Peak lift at brightness 128")
    shadow_compress: float = Field(0.95, gt=0.0, le=1.0)
    saturate_reduce: float = Field(0.96, gt=0.0, le=1.0)


class GrainConfig(_StageConfig):
    """Paper grain overlay."""
    enabled: bool = False
    strength: float = Field(0.03, ge=0.0, le=0.5)
    seed: int = Field(0, ge=0)


class ReferenceMatchConfig(_StageConfig):
    """Moment matching toward a hero page."""
    enabled: bool = True
    strength: float = Field(0.8, ge=0.0, le=1.0)


# ============================================================================
# PREPRESS (CMYK)
# ============================================================================

class CmykConfig(_StageConfig):
    """RGB → CMYK separation parameters.

    Defaults target uncoated/matte stock at 300% TAC. Typical press limits
    are 280-340%.
    """
    enabled: bool = False
    gcr_strength: float = Field(0.8, ge=0.0, le=1.0, description="Gray component replacement")
    ucr_amount: float = Field(0.3, ge=0.0, le=1.0, description="Under color removal")
    tac_limit: float = Field(300.0, ge=100.0, le=400.0, description="Total area coverage limit (%); line art needs K=100")
    black_start: float = Field(0.0, ge=0.0, lt=1.0)
    black_width: float = Field(1.0, gt=0.0, le=1.0)
    max_black: float = Field(1.0, ge=0.0, le=1.0)

    apply_rich_black: bool = True
    rich_black_min_k: float = Field(80.0, ge=0.0, lt=100.0)
    rich_black_c: float = Field(60.0, ge=0.0, le=100.0)
    rich_black_m: float = Field(40.0, ge=0.0, le=100.0)
    rich_black_y: float = Field(40.0, ge=0.0, le=100.0)

    force_line_art_to_k: bool = True
    line_art_threshold: float = Field(30.0, ge=0.0, le=255.0, description="Max brightness of line art")
    line_art_neutrality: float = Field(10.0, ge=0.0, le=255.0, description="Max channel spread of line art")

    compensate_dot_gain: bool = True
    dot_gain_amount: float = Field(15.0, ge=0.0, le=50.0, description="Expected gain at 50% (%)")
    dot_gain_curve: float = Field(0.5, ge=0.0, le=1.0)


# ============================================================================
# QA
# ============================================================================

class QAConfig(_StageConfig):
    """Thresholds for the automated QA suite."""
    check_clipping: bool = True
    clipping_threshold: float = Field(0.005, ge=0.0, le=1.0)
    check_ssim: bool = True
    min_ssim: float = Field(0.92, ge=-1.0, le=1.0)
    check_edges: bool = True
    max_edge_density: float = Field(0.25, ge=0.0, le=1.0)
    edge_threshold: float = Field(30.0, ge=0.0)
    check_tint: bool = True
    tint_threshold: float = Field(10.0, ge=0.0, le=255.0)
    check_contrast: bool = True
    min_contrast: float = Field(7.0, ge=1.0, le=21.0, description="WCAG ratio; 7.0 = AAA")
    contrast_samples: int = Field(100, ge=1)
    max_low_contrast_percent: float = Field(20.0, ge=0.0, le=100.0)
    seed: int = Field(0, ge=0)


# ============================================================================
# PIPELINE PROFILE (prepress.v1)
# ============================================================================

class PipelineConfig(_StageConfig):
    """Complete correction profile (prepress.v1 schema)."""
    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    schema_version: str = Field("prepress.v1", alias="schema")
    cast_removal: CastRemovalConfig = Field(default_factory=CastRemovalConfig)
    levels: LevelsConfig = Field(default_factory=LevelsConfig)
    saturation: SaturationConfig = Field(default_factory=SaturationConfig)
    clarity: ClarityConfig = Field(default_factory=ClarityConfig)
    matte: MatteConfig = Field(default_factory=MatteConfig)
    reference: ReferenceMatchConfig = Field(default_factory=ReferenceMatchConfig)
    grain: GrainConfig = Field(default_factory=GrainConfig)
    cmyk: CmykConfig = Field(default_factory=CmykConfig)
    qa: QAConfig = Field(default_factory=QAConfig)
    run_qa: bool = True

    @field_validator('schema_version')
    @classmethod
    def validate_schema(cls, v: str) -> str:
        if v != "prepress.v1":
            raise ValueError(f"Expected schema 'prepress.v1', got '{v}'")
        return v


# ============================================================================
# PUBLIC API
# ============================================================================

def build_config(
    model_cls: Type[ConfigT],
    config: Optional[ConfigT] = None,
    overrides: Optional[Dict[str, Any]] = None
) -> ConfigT:
    """Resolve a stage config from an optional base and keyword overrides.

    Parameters
    ----------
    model_cls : type
        Config model class (e.g. CmykConfig)
    config : model_cls, optional
        Base config; defaults are used when None
    overrides : dict, optional
        Field overrides applied on top of the base

    Returns
    -------
    model_cls
        Validated config instance

    Raises
    ------
    ConfigurationError
        If the merged values fail validation

    Examples
    --------
    >>> cfg = build_config(CmykConfig, None, {"tac_limit": 280})
    >>> cfg.tac_limit
    280.0
    """
    if config is not None and not isinstance(config, model_cls):
        raise ConfigurationError(
            f"Expected {model_cls.__name__}, got {type(config).__name__}"
        )
    data = config.model_dump() if config is not None else {}
    data.update(overrides or {})
    try:
        return model_cls(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid {model_cls.__name__}: {e}") from e


def load_pipeline_config(path: Union[str, Path]) -> PipelineConfig:
    """Load and validate a pipeline profile from YAML.

    Parameters
    ----------
    path : Union[str, Path]
        Path to a prepress.v1 YAML file

    Returns
    -------
    PipelineConfig
        Validated profile

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    ConfigurationError
        If validation fails (with the offending keys in the message)
    """
    from . import fs

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline profile not found: {path}")

    data = fs.load_yaml(path)
    try:
        return PipelineConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Pipeline profile validation failed at {path}: {e}") from e
