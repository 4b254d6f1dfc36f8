"""
Unit type annotations for georeferencing quantities.

NewType aliases document which unit a number carries as it moves between
image space, geographic space and the projected Mercator plane. They are
erased at runtime and cost nothing.

Usage Example:
    >>> from overlay_georef.types import Degrees, Meters, PixelsFloat
    >>>
    >>> def meters_per_pixel(span: Meters, pixels: PixelsFloat) -> Unitless:
    ...     return Unitless(span / pixels)
"""

from typing import NewType

# Angular units
Degrees = NewType("Degrees", float)
"""Angle in degrees (latitude, longitude, display rotation)"""

Radians = NewType("Radians", float)
"""Angle in radians (fit rotation, trigonometric intermediates)"""

# Distance/position units
Meters = NewType("Meters", float)
"""Distance or position in meters on the Web-Mercator plane"""

# Image coordinate units
Pixels = NewType("Pixels", int)
"""Image dimensions in pixels (width, height)"""

PixelsFloat = NewType("PixelsFloat", float)
"""Floating-point image coordinates in pixels (sub-pixel clicks)"""

# Dimensionless quantities
Unitless = NewType("Unitless", float)
"""Dimensionless scalar (opacity, display scale, damping factor)"""
