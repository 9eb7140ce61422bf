"""Automated print QA for corrected pages.

Modules:
    - checks: Pure metric functions (clipping, sharpness, SSIM, edge density,
      tint, text contrast, perceptual hash/diff, print readiness)
    - report: Ok/Failed tagged results and run_full_qa

Invariants:
    - Checks never modify their inputs
    - A failing check is recorded, the remaining checks still run
    - Warnings annotate a page, they never fail it

Used by:
    - pipeline.py: QA of every corrected page against its input
"""
