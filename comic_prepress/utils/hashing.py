"""Perceptual and cryptographic hashing for page provenance.

Provides:
    - average_hash(): 64-bit perceptual hash of a grayscale page (hex)
    - hamming_distance(): bit distance between two perceptual hashes
    - sha256_bytes(), sha256_file(), hash_dict(): exact provenance hashes

Used by:
    - QA: perceptual hash recorded in every report
    - Batch runners: duplicate / outlier detection across an issue
      (pages whose hash sits far from their neighbours)
    - Reports: exact hash of the corrected raster and of the config

Deterministic hashing:
    - Perceptual: 8×8 area-averaged grayscale, bit = pixel > mean,
      row-major, packed 4 bits per hex digit (16 hex chars)
    - Exact: SHA-256 hex digests (64 chars)
"""

import hashlib
import json
from pathlib import Path
from typing import Union

import cv2
import numpy as np

HASH_SIZE = 8


def average_hash(gray: np.ndarray, hash_size: int = HASH_SIZE) -> str:
    """Compute the average (mean-threshold) perceptual hash.

    Parameters
    ----------
    gray : np.ndarray
        Grayscale image (H, W), uint8
    hash_size : int
        Side of the downsampled grid, default 8 (64 bits)

    Returns
    -------
    str
        Hex string of ``hash_size**2 / 4`` characters

    Notes
    -----
    The image is resized to exactly hash_size × hash_size without keeping the
    aspect ratio, so two scans of the same page at different resolutions hash
    alike.
    """
    small = cv2.resize(
        np.ascontiguousarray(gray, dtype=np.uint8),
        (hash_size, hash_size),
        interpolation=cv2.INTER_AREA,
    ).astype(np.float64)

    bits = (small > small.mean()).astype(np.uint8).ravel()
    nibbles = bits.reshape(-1, 4) @ np.array([8, 4, 2, 1], dtype=np.uint8)
    return ''.join(f"{int(n):x}" for n in nibbles)


def hamming_distance(hash1: str, hash2: str) -> int:
    """Count differing bits between two hex hashes.

    Raises
    ------
    ValueError
        If the hashes differ in length

    Examples
    --------
    >>> hamming_distance("f0", "0f")
    8
    """
    if len(hash1) != len(hash2):
        raise ValueError(f"Hashes must be same length, got {len(hash1)} and {len(hash2)}")
    return sum(bin(int(a, 16) ^ int(b, 16)).count('1') for a, b in zip(hash1, hash2))


def sha256_bytes(data: bytes) -> str:
    """SHA-256 hex digest of raw bytes (e.g. a PixelBuffer's data)."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Union[str, Path], chunk_size: int = 1 << 20) -> str:
    """Compute SHA-256 hash of file contents, read in chunks.

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    sha256 = hashlib.sha256()
    with open(path, 'rb') as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            sha256.update(chunk)
    return sha256.hexdigest()


def hash_dict(d: dict) -> str:
    """SHA-256 of a JSON-serializable dict with sorted keys (config provenance)."""
    json_str = json.dumps(d, sort_keys=True)
    return hashlib.sha256(json_str.encode('utf-8')).hexdigest()
