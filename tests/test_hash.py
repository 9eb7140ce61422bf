"""Test perceptual and provenance hashing.

Tests for comic_prepress.utils.hashing:
    - average_hash() format and bit layout
    - sha256_file()/sha256_bytes() consistency
    - hash_dict() is key-order independent

Run:
    pytest tests/test_hash.py -v
"""

import numpy as np
import pytest

from comic_prepress.utils import hashing


def test_average_hash_left_right_split():
    gray = np.zeros((32, 32), dtype=np.uint8)
    gray[:, 16:] = 255
    # Each row of the 8×8 grid reads 00001111
    assert hashing.average_hash(gray) == "0f" * 8


def test_average_hash_flat_is_zero():
    assert hashing.average_hash(np.full((10, 10), 200, dtype=np.uint8)) == "0" * 16


def test_average_hash_custom_size():
    rng = np.random.default_rng(0)
    h = hashing.average_hash(rng.integers(0, 256, size=(64, 64), dtype=np.uint8), hash_size=16)
    assert len(h) == 64


def test_sha256_file_consistent(tmp_path):
    path = tmp_path / "plate.bin"
    path.write_bytes(b"cyan plate")
    digest = hashing.sha256_file(path)
    assert digest == hashing.sha256_file(path)
    assert digest == hashing.sha256_bytes(b"cyan plate")
    assert len(digest) == 64


def test_sha256_file_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        hashing.sha256_file(tmp_path / "missing.bin")


def test_hash_dict_order_independent():
    assert hashing.hash_dict({"a": 1, "b": [1, 2]}) == hashing.hash_dict({"b": [1, 2], "a": 1})
    assert hashing.hash_dict({"a": 1}) != hashing.hash_dict({"a": 2})
