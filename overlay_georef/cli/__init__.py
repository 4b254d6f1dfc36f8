"""Command-line interface for overlay georeferencing.

Entry point: ``overlay-georef`` (see ``overlay_georef.cli.main``).
"""

from overlay_georef.cli.main import app

__all__ = ["app"]
