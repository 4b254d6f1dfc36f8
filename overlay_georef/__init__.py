"""
Overlay Georeferencing Engine.

Pins a raster image (a scanned or photographed map) onto a geographic base
map from 2 to 4 user-selected point pairs, and keeps the placement
consistent while the user drags the overlay's corners or body.

Pipeline:
    ControlPointSet -> TransformSolver -> derive_anchors -> OverlayRecord

Editing:
    OverlayEditor routes pointer events into a ManipulationSession and
    returns replacement AnchorCorners.

Example Usage:
    >>> from overlay_georef import (
    ...     ControlPointSet, GeoPoint, PixelPoint, fit_transform, derive_anchors
    ... )
    >>> points = ControlPointSet()
    >>> points.add(PixelPoint(0, 0), GeoPoint(40.4168, -3.7038))
    >>> points.add(PixelPoint(100, 100), GeoPoint(40.4268, -3.6938))
    >>> transform = fit_transform(points, image_width=100, image_height=100)
    >>> corners = derive_anchors(transform, 100, 100)
    >>> corners.center()
    GeoPoint(lat=..., lng=...)
"""

from overlay_georef.config import EngineConfig, get_default_config
from overlay_georef.control_points import ControlPoint, ControlPointSet
from overlay_georef.errors import (
    CapacityExceeded,
    DegenerateConfiguration,
    GeoreferenceError,
    InvalidCoordinate,
    PointsTooClose,
    ViewportUnavailable,
    WrongPointCount,
)
from overlay_georef.geo_point import GeoPoint, PlanarPoint
from overlay_georef.manipulation import (
    DragHandle,
    ManipulationSession,
    OverlayEditor,
    SessionState,
)
from overlay_georef.overlay_geometry import (
    AnchorCorners,
    GeoBounds,
    derive_anchors,
    validate_anchor_corners,
)
from overlay_georef.overlay_record import OverlayRecord, OverlayVisualState
from overlay_georef.pixel_point import PixelPoint
from overlay_georef.projection import WebMercatorProjection, project, unproject
from overlay_georef.solver import FitResult, FitStrategy, TransformSolver, fit_transform
from overlay_georef.transform import PlanarTransform

__all__ = [
    # Points
    "GeoPoint",
    "PixelPoint",
    "PlanarPoint",
    "ControlPoint",
    "ControlPointSet",
    # Projection
    "WebMercatorProjection",
    "project",
    "unproject",
    # Fitting
    "PlanarTransform",
    "TransformSolver",
    "FitStrategy",
    "FitResult",
    "fit_transform",
    # Geometry
    "AnchorCorners",
    "GeoBounds",
    "derive_anchors",
    "validate_anchor_corners",
    # Editing
    "DragHandle",
    "ManipulationSession",
    "OverlayEditor",
    "SessionState",
    # Persistence shape
    "OverlayRecord",
    "OverlayVisualState",
    # Configuration
    "EngineConfig",
    "get_default_config",
    # Errors
    "GeoreferenceError",
    "InvalidCoordinate",
    "WrongPointCount",
    "PointsTooClose",
    "CapacityExceeded",
    "DegenerateConfiguration",
    "ViewportUnavailable",
]

__version__ = "0.1.0"
