"""
Exceptions raised by the frame extraction pipeline.
"""


class SlicerError(Exception):
    """Base class for all sprite sheet slicing errors."""


class SheetLoadError(SlicerError, OSError):
    """A sprite sheet file could not be read or decoded."""


class InvalidImageError(SlicerError, ValueError):
    """An in-memory raster has the wrong type, shape or dtype."""


class ConfigError(SlicerError, ValueError):
    """A configuration value or override entry is invalid."""


class ModelLoadError(SlicerError):
    """The persisted classifier record exists but cannot be parsed or read."""


class ModelSaveError(SlicerError):
    """The classifier record could not be written."""
