"""
Interactive editing of an overlay footprint by dragging handles.

States:

    IDLE --pointer_down(handle)--> DRAGGING --pointer_up / pointer_leave--> IDLE

A corner handle rebuilds the footprint as the axis-aligned rectangle spanned
by the dragged corner and the opposite corner, which stays fixed. Rotation
or shear from a 3- or 4-point fit is therefore not kept through a corner
drag. The body (center handle) translates all four corners by the same
geographic delta, keeping size and shape.

Each pointer event produces a complete new AnchorCorners. When the host
cannot convert a pointer position to a geographic coordinate (map viewport
not ready) the editor keeps the last valid footprint instead of failing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from overlay_georef.errors import GeoreferenceError
from overlay_georef.geo_point import GeoPoint
from overlay_georef.overlay_geometry import AnchorCorners, GeoBounds
from overlay_georef.pixel_point import PixelPoint

logger = logging.getLogger(__name__)

PointerToGeo = Callable[[PixelPoint], Optional[GeoPoint]]
"""Host conversion from a viewport pixel to a map coordinate.

May return None or raise ViewportUnavailable while the map is not ready.
"""


class DragHandle(Enum):
    """Grab points of an overlay being edited."""

    NW = "nw"
    NE = "ne"
    SW = "sw"
    SE = "se"
    CENTER = "center"

    @property
    def is_corner(self) -> bool:
        return self is not DragHandle.CENTER


class SessionState(Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


# Corner attribute each handle grabs, and the attribute held fixed opposite it
_HANDLE_CORNER = {
    DragHandle.NW: "top_left",
    DragHandle.NE: "top_right",
    DragHandle.SW: "bottom_left",
    DragHandle.SE: "bottom_right",
}
_OPPOSITE_CORNER = {
    DragHandle.NW: "bottom_right",
    DragHandle.NE: "bottom_left",
    DragHandle.SW: "top_right",
    DragHandle.SE: "top_left",
}


@dataclass(frozen=True)
class ManipulationSession:
    """State of one drag, alive from pointer press to release.

    Attributes:
        active_handle: Handle being dragged.
        start_pointer: Viewport pixel where the drag started.
        start_bounds: Footprint at the moment the drag started.
    """

    active_handle: DragHandle
    start_pointer: PixelPoint
    start_bounds: AnchorCorners


def handle_positions(corners: AnchorCorners) -> dict[DragHandle, GeoPoint]:
    """Where the host should draw each handle for a footprint."""
    positions = {handle: getattr(corners, name) for handle, name in _HANDLE_CORNER.items()}
    positions[DragHandle.CENTER] = corners.center()
    return positions


def drag_corner(start_bounds: AnchorCorners, handle: DragHandle, dragged: GeoPoint) -> AnchorCorners:
    """Rectangle spanned by ``dragged`` and the corner opposite ``handle``.

    Dragging past the opposite corner flips the rectangle; dragging onto it
    yields a zero-area footprint, which ``validate_anchor_corners`` rejects
    before persisting.
    """
    if not handle.is_corner:
        raise ValueError(f"{handle} is not a corner handle")
    fixed = getattr(start_bounds, _OPPOSITE_CORNER[handle])
    return AnchorCorners.from_bounds(GeoBounds.from_points(dragged, fixed))


def drag_center(start_bounds: AnchorCorners, start_geo: GeoPoint, current_geo: GeoPoint) -> AnchorCorners:
    """Translate the whole footprint by ``current_geo - start_geo``."""
    return start_bounds.translated(current_geo.lat - start_geo.lat, current_geo.lng - start_geo.lng)


def _to_geo(pointer_to_geo: PointerToGeo, pixel: PixelPoint) -> Optional[GeoPoint]:
    """Convert a pointer position, returning None when the viewport cannot."""
    try:
        geo = pointer_to_geo(pixel)
    except GeoreferenceError as e:
        logger.debug(f"Pointer conversion failed at ({pixel.x}, {pixel.y}): {e}")
        return None
    if geo is None or not geo.is_valid:
        return None
    return geo


def recompute_corners(
    session: ManipulationSession, pointer: PixelPoint, pointer_to_geo: PointerToGeo
) -> Optional[AnchorCorners]:
    """Footprint for the pointer at ``pointer`` during ``session``.

    Pure apart from calling ``pointer_to_geo``. Returns None when the
    position cannot be converted or the result would leave the valid
    lat/lng range; callers keep their previous footprint in that case.
    """
    current_geo = _to_geo(pointer_to_geo, pointer)
    if current_geo is None:
        return None

    if session.active_handle.is_corner:
        candidate = drag_corner(session.start_bounds, session.active_handle, current_geo)
    else:
        start_geo = _to_geo(pointer_to_geo, session.start_pointer)
        if start_geo is None:
            return None
        candidate = drag_center(session.start_bounds, start_geo, current_geo)

    if not all(corner.is_valid for corner in candidate.corners):
        return None
    return candidate


class OverlayEditor:
    """Owns the footprint of one overlay and at most one drag session.

    The host routes pointer events here and reads ``current_corners()``
    to render the overlay; ``pointer_up`` returns the footprint to persist.

    Example:
        >>> editor = OverlayEditor(corners, map_view.pixel_to_geo)
        >>> editor.pointer_down(DragHandle.SE, PixelPoint(640, 480))
        True
        >>> editor.pointer_move(PixelPoint(700, 520))
        AnchorCorners(...)
        >>> committed = editor.pointer_up()
    """

    def __init__(self, corners: AnchorCorners, pointer_to_geo: PointerToGeo):
        self._pointer_to_geo = pointer_to_geo
        self._committed = corners
        self._current = corners
        self._session: Optional[ManipulationSession] = None

    @property
    def state(self) -> SessionState:
        return SessionState.IDLE if self._session is None else SessionState.DRAGGING

    @property
    def session(self) -> Optional[ManipulationSession]:
        return self._session

    @property
    def committed_corners(self) -> AnchorCorners:
        """Footprint as of the last finished drag (or construction)."""
        return self._committed

    def current_corners(self) -> AnchorCorners:
        """Footprint to render right now, including an in-progress drag."""
        return self._current

    def replace_geometry(self, corners: AnchorCorners) -> bool:
        """Install a new footprint (e.g. after a fresh transform fit).

        Refused while a drag is in progress so the footprint has a single
        writer at a time.
        """
        if self._session is not None:
            logger.warning("Ignoring geometry replacement while a drag is in progress")
            return False
        self._committed = corners
        self._current = corners
        return True

    def pointer_down(self, handle: Union[DragHandle, str, None], pointer: PixelPoint) -> bool:
        """Start dragging ``handle``. Returns True if a session started.

        Ignored (returns False) when a drag is already active or the press
        is not on a recognized handle.
        """
        if self._session is not None:
            logger.warning(
                f"Ignoring press on {handle}: already dragging {self._session.active_handle.value}"
            )
            return False
        if handle is None:
            return False

        try:
            drag_handle = DragHandle(handle)
        except ValueError:
            logger.debug(f"Press on unrecognized handle {handle!r} ignored")
            return False

        self._session = ManipulationSession(
            active_handle=drag_handle,
            start_pointer=pointer,
            start_bounds=self._current,
        )
        logger.debug(f"Started dragging {drag_handle.value} at ({pointer.x}, {pointer.y})")
        return True

    def pointer_move(self, pointer: PixelPoint) -> AnchorCorners:
        """Update the footprint for a pointer move and return it."""
        if self._session is None:
            return self._current

        candidate = recompute_corners(self._session, pointer, self._pointer_to_geo)
        if candidate is None:
            logger.warning("Pointer position unavailable, holding last valid footprint")
        else:
            self._current = candidate
        return self._current

    def pointer_up(self, pointer: Optional[PixelPoint] = None) -> AnchorCorners:
        """Finish the drag and commit the footprint.

        Releasing without an active drag is a no-op that returns the
        committed footprint.
        """
        if self._session is None:
            return self._committed

        if pointer is not None:
            self.pointer_move(pointer)

        handle = self._session.active_handle
        self._session = None
        self._committed = self._current
        logger.info(f"Committed {handle.value} drag: bounds {self._committed.bounds().to_dict()}")
        return self._committed

    def pointer_leave(self) -> AnchorCorners:
        """Pointer left the map: end the drag as if released."""
        return self.pointer_up()
