"""Correction pipeline: the composition root of the color engine.

Runs one page through every configured stage in a fixed order:

    cast removal → levels → saturation → clarity → matte → reference match
    → paper grain → CMYK separation → QA

Each stage's output is the next stage's input, so stages of one page run
sequentially. Different pages share nothing; a batch runner may process
them in parallel with one pipeline per worker or a shared one (the pipeline
holds only immutable config).

Error policy:
    - Invalid configuration raises ConfigurationError at construction
    - Correction failures propagate (a page is never passed through uncorrected)
    - QA never raises; failed checks are recorded in the report

Usage:
    from comic_prepress.pipeline import CorrectionPipeline

    pipeline = CorrectionPipeline.from_profile("configs/prepress_matte_v1.yaml")
    result = pipeline.run(page, reference=hero_page, page="p014")
    result.buffer.save("out/p014.png")
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from .color_engine.buffer import PixelBuffer
from .color_engine.clarity import ClarityEnhancer
from .color_engine.cmyk import CmykSeparation, CmykSeparator
from .color_engine.matte import MatteCompensator
from .color_engine.reference import ReferenceMatcher
from .color_engine.saturation import SaturationAdjuster
from .color_engine.tone import ToneAndCastCorrector
from .errors import ConfigurationError
from .qa.report import QAReport, run_full_qa
from .utils import hashing, validators
from .utils.logging_config import log_context

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PipelineResult:
    """Corrected page plus optional separation and QA report.

    ``config_hash`` identifies the profile that produced the page and
    ``output_sha256`` the exact corrected pixels, for batch reports.
    """
    buffer: PixelBuffer
    separation: Optional[CmykSeparation] = None
    qa_report: Optional[QAReport] = None
    config_hash: str = ""
    output_sha256: str = ""


class CorrectionPipeline:
    """Configured chain of correction stages.

    Parameters
    ----------
    config : PipelineConfig or dict, optional
        Full profile; defaults are used when None

    Raises
    ------
    ConfigurationError
        If the profile fails validation
    """

    def __init__(self, config: Optional[Union[validators.PipelineConfig, Dict[str, Any]]] = None):
        if config is None:
            config = validators.PipelineConfig()
        elif isinstance(config, dict):
            try:
                config = validators.PipelineConfig(**config)
            except ValidationError as e:
                raise ConfigurationError(f"Invalid pipeline profile: {e}") from e
        elif not isinstance(config, validators.PipelineConfig):
            raise ConfigurationError(f"Expected PipelineConfig or dict, got {type(config).__name__}")

        self.config = config
        self.tone = ToneAndCastCorrector(config.cast_removal, config.levels)
        self.saturation = SaturationAdjuster(config.saturation)
        self.clarity = ClarityEnhancer(config.clarity)
        self.matte = MatteCompensator(config.matte, config.grain)
        self.reference = ReferenceMatcher(config.reference)
        self.separator = CmykSeparator(config.cmyk)
        self.config_hash = hashing.hash_dict(config.model_dump(mode="json", by_alias=True))
        logger.debug("Pipeline profile %s (hash %s)", config.schema_version, self.config_hash[:12])

    @classmethod
    def from_profile(cls, path: Union[str, Path]) -> 'CorrectionPipeline':
        """Build a pipeline from a prepress.v1 YAML profile."""
        return cls(validators.load_pipeline_config(path))

    def run(
        self,
        buffer: PixelBuffer,
        reference: Optional[PixelBuffer] = None,
        page: Optional[str] = None
    ) -> PipelineResult:
        """Correct one page.

        Parameters
        ----------
        buffer : PixelBuffer
            Upscaled RGB or RGBA page
        reference : PixelBuffer, optional
            Hero page for consistency matching (same width and height)
        page : str, optional
            Label attached to every log line of this run

        Returns
        -------
        PipelineResult
            Corrected buffer (same shape as input), separation if CMYK is
            enabled, QA report against the input if QA is enabled

        Raises
        ------
        InputShapeError
            If buffer is a single-channel plate or the reference differs in size
        """
        context = {'page': page} if page is not None else {}
        with log_context(**context):
            t0 = time.perf_counter()
            logger.info("Correcting %dx%d page (%d channels)", buffer.width, buffer.height, buffer.channels)

            result = buffer
            for stage, fn in (
                ('tone', self.tone.correct),
                ('saturation', self.saturation.adjust),
                ('clarity', self.clarity.enhance),
                ('matte', self.matte.compensate),
                ('reference', lambda b: self.reference.match(b, reference)),
                ('grain', self.matte.add_grain),
            ):
                with log_context(stage=stage):
                    result = fn(result)

            separation = None
            if self.config.cmyk.enabled:
                with log_context(stage='cmyk'):
                    separation = self.separator.convert(result)

            qa_report = None
            if self.config.run_qa:
                with log_context(stage='qa'):
                    qa_report = run_full_qa(result, buffer, self.config.qa)

            output_sha256 = hashing.sha256_bytes(result.data)
            logger.info("Page corrected in %.2fs (sha256 %s)", time.perf_counter() - t0, output_sha256[:12])
            return PipelineResult(
                buffer=result,
                separation=separation,
                qa_report=qa_report,
                config_hash=self.config_hash,
                output_sha256=output_sha256,
            )
