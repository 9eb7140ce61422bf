"""Cross-cutting utilities (lowest dependency layer).

This package provides shared primitives for:
    - Stage config validation (validators)
    - Color space helpers (color)
    - Perceptual and provenance hashing (hashing)
    - YAML and raster I/O adapters (fs)
    - Unified logging (logging_config)

No module in utils/ may import from upper layers (color_engine, qa, pipeline).

Convenience imports:
    from comic_prepress.utils import color, validators
    from comic_prepress.utils.logging_config import setup_logging, get_logger
"""

from . import color
from . import fs
from . import hashing
from . import logging_config
from . import validators

from .logging_config import get_logger, log_context, push_context, setup_logging

__all__ = [
    'color',
    'fs',
    'hashing',
    'logging_config',
    'validators',
    'setup_logging',
    'get_logger',
    'push_context',
    'log_context',
]
