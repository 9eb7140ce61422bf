"""Comic Prepress: color science engine for restored comic-book pages.

This package takes an already-upscaled page raster and prepares it for
print: paper-cast removal, tone and saturation shaping, matte-stock
compensation, CMYK separation under a press TAC limit, and automated QA.

Architecture layers (strict one-way dependency):
    pipeline → {qa, color_engine} → utils

Key invariants:
    - Every stage is a pure function: buffers in, new buffers out
    - 8-bit interleaved RGB/RGBA at the boundaries; alpha passes through
    - CMYK separations never exceed the configured TAC limit
    - QA annotates results, it never stops a page
"""

__version__ = "0.1.0"
