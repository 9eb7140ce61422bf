"""Filesystem adapters: YAML configs, atomic writes, raster decode/encode.

The correction engine itself never touches the filesystem. These helpers
exist for the collaborators around it (batch runners, tests, the exporter
that inspects CMYK plates):
    - Atomic writes: tmp file → fsync → rename (no half-written plates)
    - YAML load/dump for stage profiles
    - PNG/TIFF decode to uint8 arrays and atomic encode via Pillow

All paths use pathlib.Path.

Usage:
    from comic_prepress.utils import fs
    cfg = fs.load_yaml("configs/prepress_matte_v1.yaml")
    fs.atomic_save_image(plate, out_dir / "p014_k.png")
"""

import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import yaml
from PIL import Image


def ensure_dir(p: Union[str, Path]) -> Path:
    """Create directory (and parents) if missing, return it as a Path."""
    p = Path(p)
    p.mkdir(parents=True, exist_ok=True)
    return p


def atomic_write_bytes(
    path: Union[str, Path],
    data: bytes,
    tmp_suffix: str = ".tmp"
) -> None:
    """Write bytes to file atomically (tmp → fsync → rename).

    Raises
    ------
    RuntimeError
        If the write or rename fails; the temporary file is removed.
    """
    path = Path(path)
    ensure_dir(path.parent)
    tmp_path = path.with_suffix(path.suffix + tmp_suffix)

    try:
        with open(tmp_path, 'wb') as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to write {path} atomically: {e}") from e


def atomic_save_image(
    img: np.ndarray,
    path: Union[str, Path],
    pil_kwargs: Optional[Dict[str, Any]] = None
) -> None:
    """Save a uint8 image atomically.

    Parameters
    ----------
    img : np.ndarray
        (H, W) grayscale, (H, W, 1), (H, W, 3) RGB or (H, W, 4) RGBA
    path : Union[str, Path]
        Target path; the extension selects the format
    pil_kwargs : dict, optional
        Extra arguments for ``PIL.Image.save`` (e.g. ``dpi=(300, 300)``)
    """
    path = Path(path)
    ensure_dir(path.parent)
    pil_kwargs = pil_kwargs or {}

    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    if img.ndim == 3 and img.shape[2] == 1:
        img = img[:, :, 0]

    pil_img = Image.fromarray(np.ascontiguousarray(img))
    tmp_path = path.with_name(path.stem + ".tmp" + path.suffix)
    try:
        pil_img.save(tmp_path, **pil_kwargs)
        tmp_path.replace(path)
    except OSError as e:
        if tmp_path.exists():
            tmp_path.unlink()
        raise RuntimeError(f"Failed to save image {path} atomically: {e}") from e


def load_image_array(path: Union[str, Path]) -> np.ndarray:
    """Decode an image file to an (H, W, 3) or (H, W, 4) uint8 array.

    Palette, grayscale and CMYK files are converted to RGB; files with
    transparency keep their alpha channel.

    Raises
    ------
    FileNotFoundError
        If path doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Image not found: {path}")

    with Image.open(path) as im:
        has_alpha = im.mode in ("RGBA", "LA") or (im.mode == "P" and "transparency" in im.info)
        return np.array(im.convert("RGBA" if has_alpha else "RGB"), dtype=np.uint8)


def atomic_yaml_dump(obj: Any, path: Union[str, Path]) -> None:
    """Save object as YAML atomically (PyYAML safe_dump, key order kept)."""
    yaml_str = yaml.safe_dump(obj, default_flow_style=False, sort_keys=False, allow_unicode=True)
    atomic_write_bytes(path, yaml_str.encode('utf-8'))


def load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    """Load a YAML file with safe_load.

    Raises
    ------
    FileNotFoundError
        If file doesn't exist
    yaml.YAMLError
        If YAML parsing fails
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"YAML file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            return yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise yaml.YAMLError(f"Failed to parse YAML file {path}: {e}") from e
