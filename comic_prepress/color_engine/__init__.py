"""Color science stages for scanned comic pages.

Modules:
    - buffer: PixelBuffer value type and per-channel statistics
    - tone: Paper-cast removal and levels (ToneAndCastCorrector)
    - saturation: Hue-banded saturation (SaturationAdjuster)
    - clarity: Small-radius local contrast (ClarityEnhancer)
    - matte: Matte-stock compensation and paper grain (MatteCompensator)
    - reference: Moment matching toward a hero page (ReferenceMatcher)
    - cmyk: RGB → CMYK separation with GCR/UCR/TAC (CmykSeparator)

Stage order in the pipeline:
    1. Cast removal (paper sampled in the corner margins)
    2. Levels
    3. Saturation
    4. Clarity
    5. Matte compensation (optional)
    6. Reference matching (optional)
    7. Paper grain (optional)
    8. CMYK separation (optional)

Invariants:
    - Stages never mutate their input; width, height and channels are preserved
    - Alpha passes through untouched
    - Degenerate statistics fall back to documented defaults, never raise
"""
