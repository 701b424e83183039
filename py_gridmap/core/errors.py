"""Exceptions raised by the terrain engine."""


class GridMapError(Exception):
    """Base class for all engine errors."""


class InvalidParameterError(GridMapError, ValueError):
    """Raised when an operation is called with input it cannot accept.

    Raised before any grid is touched, so the current state stays valid.
    """


class UnknownModeError(InvalidParameterError):
    """Raised when a generator mode has no registered strategy."""


class MapFormatError(GridMapError, ValueError):
    """Raised when an imported map document is malformed."""


class EditorStateError(GridMapError):
    """Raised when an editor call does not fit the current stroke state."""
