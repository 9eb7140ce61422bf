"""Full QA pass over a corrected page.

Every check runs independently and yields a tagged result:

    Ok(value)       the metric was computed
    Failed(reason)  the check raised; the reason is recorded in ``errors``

A failing check never stops the remaining checks, so a report is always
returned. Warnings annotate the page but never fail it; only check failures
set ``passed`` to False.

Usage:
    from comic_prepress.qa.report import run_full_qa

    report = run_full_qa(corrected, original, min_ssim=0.9)
    if not report.passed:
        ...
    json.dumps(report.to_dict())
"""

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

import numpy as np

from ..color_engine.buffer import PixelBuffer
from ..utils import validators
from . import checks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Failed:
    reason: str


CheckResult = Union[Ok, Failed]


def _jsonable(value: Any) -> Any:
    """Convert metric values to plain JSON types (non-finite floats → None)."""
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return _jsonable(dataclasses.asdict(value))
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (int, np.integer)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        value = float(value)
        return value if math.isfinite(value) else None
    return value


@dataclass
class QAReport:
    """Outcome of run_full_qa.

    Attributes
    ----------
    passed : bool
        False iff at least one check failed to run
    warnings : list of str
        Quality concerns raised by checks that did run
    errors : list of str
        One entry per failed check
    metrics : dict
        Check name → Ok/Failed
    """
    passed: bool = True
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    metrics: Dict[str, CheckResult] = field(default_factory=dict)

    def value(self, name: str, default: Any = None) -> Any:
        """Metric value for ``name``, or ``default`` if it failed or didn't run."""
        result = self.metrics.get(name)
        return result.value if isinstance(result, Ok) else default

    def to_dict(self) -> Dict[str, Any]:
        metrics = {}
        for name, result in self.metrics.items():
            if isinstance(result, Ok):
                metrics[name] = {'status': 'ok', 'value': _jsonable(result.value)}
            else:
                metrics[name] = {'status': 'failed', 'reason': result.reason}
        return {
            'passed': self.passed,
            'warnings': list(self.warnings),
            'errors': list(self.errors),
            'metrics': metrics,
        }


def _run_check(name: str, fn: Callable[..., Any], *args, **kwargs) -> CheckResult:
    try:
        return Ok(fn(*args, **kwargs))
    except Exception as e:
        logger.warning("QA check '%s' failed: %s", name, e, exc_info=logger.isEnabledFor(logging.DEBUG))
        return Failed(f"{type(e).__name__}: {e}")


def run_full_qa(
    image: PixelBuffer,
    original: Optional[PixelBuffer] = None,
    config: Optional[validators.QAConfig] = None,
    **overrides
) -> QAReport:
    """Run every enabled QA check on ``image``.

    Parameters
    ----------
    image : PixelBuffer
        Corrected page
    original : PixelBuffer, optional
        Page before correction; enables SSIM and perceptual difference
    config : QAConfig, optional
        Thresholds; keyword overrides are applied on top

    Returns
    -------
    QAReport
        Always returned, even when individual checks fail

    Raises
    ------
    ConfigurationError
        If the merged config is invalid (raised before any check runs)
    """
    cfg = validators.build_config(validators.QAConfig, config, overrides)
    report = QAReport()

    def record(name: str, result: CheckResult) -> CheckResult:
        report.metrics[name] = result
        if isinstance(result, Failed):
            report.errors.append(f"{name}: {result.reason}")
        return result

    if cfg.check_clipping:
        result = record('clipping', _run_check(
            'clipping', checks.check_histogram_clipping, image, cfg.clipping_threshold
        ))
        if isinstance(result, Ok):
            report.warnings.extend(result.value.warnings)

    if original is not None:
        if cfg.check_ssim:
            result = record('ssim', _run_check('ssim', checks.calculate_ssim, original, image))
            if isinstance(result, Ok) and result.value < cfg.min_ssim:
                report.warnings.append(
                    f"SSIM score too low: {result.value:.4f} (minimum: {cfg.min_ssim})"
                )
        record('perceptual_diff', _run_check(
            'perceptual_diff', checks.calculate_perceptual_diff, original, image
        ))

    if cfg.check_edges:
        result = record('edge_density', _run_check(
            'edge_density', checks.calculate_edge_density, image, cfg.edge_threshold
        ))
        if isinstance(result, Ok) and result.value > cfg.max_edge_density:
            report.warnings.append(
                f"High edge density: {result.value * 100:.2f}% - possible oversharpening"
            )

    if cfg.check_tint:
        result = record('tint', _run_check('tint', checks.detect_color_tint, image, cfg.tint_threshold))
        if isinstance(result, Ok):
            report.warnings.extend(result.value.warnings)

    if cfg.check_contrast:
        result = record('contrast', _run_check(
            'contrast', checks.check_text_contrast, image,
            min_contrast=cfg.min_contrast,
            sample_size=cfg.contrast_samples,
            max_low_percent=cfg.max_low_contrast_percent,
            seed=cfg.seed,
        ))
        if isinstance(result, Ok):
            report.warnings.extend(result.value.warnings)

    record('perceptual_hash', _run_check('perceptual_hash', checks.calculate_perceptual_hash, image))
    record('sharpness', _run_check('sharpness', checks.calculate_sharpness, image))

    report.passed = not report.errors

    if report.passed:
        logger.info("QA passed with %d warning(s)", len(report.warnings))
    else:
        logger.warning("QA failed: %d check(s) errored", len(report.errors))
    for w in report.warnings:
        logger.info("QA warning: %s", w)
    return report
