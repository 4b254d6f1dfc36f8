"""
Error types raised by the georeferencing engine.

Every failure is a subclass of GeoreferenceError, which is a ValueError so
callers that already guard numeric input with ``except ValueError`` keep
working. All of them are recoverable: a rejected fit leaves no engine state
behind and the host is expected to ask the user to reselect points.
"""


class GeoreferenceError(ValueError):
    """Base class for all georeferencing failures."""


class InvalidCoordinate(GeoreferenceError):
    """A coordinate is non-finite, non-numeric or outside its valid range."""


class WrongPointCount(GeoreferenceError):
    """A control point set does not hold 2, 3 or 4 pairs."""


class PointsTooClose(GeoreferenceError):
    """Two control points are closer than the minimum separation."""


class CapacityExceeded(GeoreferenceError):
    """A point was added to a control point set that is already full."""


class DegenerateConfiguration(GeoreferenceError):
    """The geometry cannot be solved or represented (singular system, zero area)."""


class ViewportUnavailable(GeoreferenceError):
    """The host map cannot convert pointer pixels to geographic coordinates yet."""
