"""Exceptions raised by the FTRL engine.

Every error is raised synchronously at the offending call and leaves the model
usable for subsequent calls.
"""


class FtrlError(Exception):
    """Base class for all hashftrl errors."""


class ConfigurationError(FtrlError, ValueError):
    """Invalid or contradictory hyperparameters, labels or weight values."""


class ShapeError(FtrlError, ValueError):
    """Frame row/column counts do not match what the model expects."""


class StateError(FtrlError, RuntimeError):
    """Operation not allowed in the current model state."""


class TypeMismatchError(FtrlError, TypeError):
    """Column type does not match the target or the configured precision."""
