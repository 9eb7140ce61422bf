"""Exception hierarchy for the prepress engine.

Fatal conditions only. Degenerate statistics (flat images, no paper
samples, zero standard deviation) are recovered locally by the stage that
meets them and never surface here.
"""


class PrepressError(Exception):
    """Base exception for all prepress engine errors."""

    pass


class InputShapeError(PrepressError, ValueError):
    """Buffer geometry is inconsistent (length, channels, dimension mismatch)."""

    pass


class ConfigurationError(PrepressError, ValueError):
    """A stage configuration is invalid (e.g. white point <= black point)."""

    pass
