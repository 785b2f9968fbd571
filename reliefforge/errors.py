"""Exception types raised by the relighting pipeline."""


class ReliefForgeError(Exception):
    """Base class for all ReliefForge errors."""
    pass


class InvalidArgumentError(ReliefForgeError, ValueError):
    """A filter or codec was called with an unusable argument.

    Raised for non-positive normal-map strength, buffers whose dimensions
    do not match, and raw byte buffers of the wrong length.
    """
    pass


class EmptyNeighborhoodError(ReliefForgeError, ZeroDivisionError):
    """A mean was requested over a neighborhood with no present pixels."""
    pass


class ConfigError(ReliefForgeError):
    """Error while reading a settings file."""
    pass
