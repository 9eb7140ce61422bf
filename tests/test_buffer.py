"""Test PixelBuffer construction, views and channel statistics.

Tests for comic_prepress.color_engine.buffer:
    - Length/geometry validation raises InputShapeError
    - from_array/to_array preserve samples; views are read-only
    - with_rgb rounds, clamps and keeps alpha
    - Channel statistics use the population standard deviation

Run:
    pytest tests/test_buffer.py -v
"""

import numpy as np
import pytest

from comic_prepress.color_engine.buffer import (
    PixelBuffer,
    calculate_channel_stats,
    ensure_color,
)
from comic_prepress.errors import InputShapeError, PrepressError


# ============================================================================
# CONSTRUCTION
# ============================================================================

def test_length_mismatch_rejected():
    with pytest.raises(InputShapeError):
        PixelBuffer(width=4, height=4, channels=3, data=bytes(47))


def test_input_shape_error_is_value_error():
    with pytest.raises(ValueError):
        PixelBuffer(width=2, height=2, channels=3, data=b"")
    assert issubclass(InputShapeError, PrepressError)


@pytest.mark.parametrize("width,height,channels", [(0, 4, 3), (4, -1, 3), (4, 4, 2), (4, 4, 5)])
def test_invalid_geometry_rejected(width, height, channels):
    with pytest.raises(InputShapeError):
        PixelBuffer(width=width, height=height, channels=channels, data=b"")


def test_bytearray_data_is_frozen_to_bytes():
    buf = PixelBuffer(width=1, height=1, channels=3, data=bytearray(b"\x01\x02\x03"))
    assert isinstance(buf.data, bytes)


def test_from_array_roundtrip(rng):
    arr = rng.integers(0, 256, size=(7, 5, 4), dtype=np.uint8)
    buf = PixelBuffer.from_array(arr)
    assert (buf.width, buf.height, buf.channels) == (5, 7, 4)
    np.testing.assert_array_equal(buf.to_array(), arr)


def test_from_array_grayscale_becomes_plate():
    buf = PixelBuffer.from_array(np.zeros((3, 4), dtype=np.uint8))
    assert buf.channels == 1
    assert buf.shape == (3, 4, 1)


def test_from_array_float_is_rounded_and_clipped():
    buf = PixelBuffer.from_array(np.array([[[-3.0, 127.6, 300.0]]]))
    assert buf.to_array()[0, 0].tolist() == [0, 128, 255]


def test_from_array_rejects_1d():
    with pytest.raises(InputShapeError):
        PixelBuffer.from_array(np.zeros(12, dtype=np.uint8))


# ============================================================================
# VIEWS
# ============================================================================

def test_views_are_read_only(noisy_page):
    with pytest.raises(ValueError):
        noisy_page.to_array()[0, 0, 0] = 1
    with pytest.raises(ValueError):
        noisy_page.rgb()[0, 0, 0] = 1


def test_rgb_of_plate_raises():
    plate = PixelBuffer.from_array(np.zeros((2, 2), dtype=np.uint8))
    with pytest.raises(InputShapeError):
        plate.rgb()


def test_with_rgb_keeps_alpha(solid):
    page = solid((10, 20, 30), width=4, height=3, alpha=77)
    out = page.with_rgb(np.full((3, 4, 3), 200.4))
    assert out.channels == 4
    assert (out.to_array()[:, :, :3] == 200).all()
    assert (out.to_array()[:, :, 3] == 77).all()


def test_with_rgb_shape_mismatch(solid):
    page = solid((0, 0, 0), width=4, height=3)
    with pytest.raises(InputShapeError):
        page.with_rgb(np.zeros((4, 3, 3)))


def test_ensure_color_rejects_plates_and_non_buffers():
    plate = PixelBuffer.from_array(np.zeros((2, 2), dtype=np.uint8))
    with pytest.raises(InputShapeError):
        ensure_color(plate, "stage")
    with pytest.raises(InputShapeError):
        ensure_color(np.zeros((2, 2, 3)), "stage")


def test_save_and_load(tmp_path, comic_page):
    path = tmp_path / "page.png"
    comic_page.save(path)
    loaded = PixelBuffer.from_file(path)
    assert loaded == comic_page


# ============================================================================
# CHANNEL STATISTICS
# ============================================================================

def test_channel_stats_population_std():
    arr = np.zeros((1, 2, 3), dtype=np.uint8)
    arr[0, 0] = (0, 10, 100)
    arr[0, 1] = (10, 10, 200)
    stats = calculate_channel_stats(PixelBuffer.from_array(arr))

    assert stats.r.mean == pytest.approx(5.0)
    assert stats.r.std_dev == pytest.approx(5.0)
    assert stats.g.std_dev == 0.0
    assert stats.b.mean == pytest.approx(150.0)
    assert stats.b.std_dev == pytest.approx(50.0)


def test_channel_stats_ignore_alpha(solid):
    stats = calculate_channel_stats(solid((1, 2, 3), alpha=255))
    means, stds = stats.as_arrays()
    np.testing.assert_allclose(means, [1, 2, 3])
    np.testing.assert_allclose(stds, 0.0)
