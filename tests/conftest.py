"""Shared fixtures: synthetic comic pages built from numpy arrays."""

import logging

import numpy as np
import pytest

from comic_prepress.color_engine.buffer import PixelBuffer
from comic_prepress.utils import logging_config


@pytest.fixture
def rng():
    """Seeded generator for reproducible synthetic pages."""
    return np.random.default_rng(1234)


@pytest.fixture
def solid():
    """Factory: solid-color page of the given size."""
    def _solid(rgb, width=64, height=48, alpha=None):
        channels = 3 if alpha is None else 4
        arr = np.empty((height, width, channels), dtype=np.uint8)
        arr[:, :, :3] = rgb
        if alpha is not None:
            arr[:, :, 3] = alpha
        return PixelBuffer.from_array(arr)
    return _solid


@pytest.fixture
def noisy_page(rng):
    """96×128 RGB page of uniform noise."""
    return PixelBuffer.from_array(rng.integers(0, 256, size=(128, 96, 3), dtype=np.uint8))


@pytest.fixture
def comic_page():
    """Paper background, a colored panel and black line work."""
    arr = np.full((120, 90, 3), (240, 235, 220), dtype=np.uint8)
    arr[20:60, 15:75] = (200, 60, 40)      # red fill
    arr[65:100, 15:75] = (40, 90, 200)     # blue fill
    arr[18:20, 10:80] = (5, 5, 6)          # panel border
    arr[100:102, 10:80] = (5, 5, 6)
    return PixelBuffer.from_array(arr)


@pytest.fixture
def reset_logging():
    """Restore root handlers and context after a logging test."""
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in saved_handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(saved_level)
    logging_config.pop_context()
    logging_config._configured = False
    logging.captureWarnings(False)
