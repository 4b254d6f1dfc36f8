"""
Persisted shape of a placed overlay.

The host application owns storage; this module only defines the record and
its JSON form. Schema (version 1):

    {
      "schema_version": 1,
      "id": str,
      "name": str,
      "image_url": str | null,
      "image_width": int | null,
      "image_height": int | null,
      "anchor_corners": {"top_left": {"lat", "lng"}, "top_right": ...,
                         "bottom_left": ..., "bottom_right": ...},
      "position": {"lat", "lng"},
      "visual": {"opacity": float, "rotation_degrees": float, "scale": float}
    }

``anchor_corners`` is the geometry. ``position`` is derived from it
(``AnchorCorners.center()``) and is rewritten on every save.
``visual.rotation_degrees`` is a display-only rotation applied around the
center when rendering; it is NOT folded into ``anchor_corners``, so a
rotated overlay stores its unrotated footprint.
"""

from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Optional, Protocol

from overlay_georef.geo_point import GeoPoint
from overlay_georef.overlay_geometry import AnchorCorners
from overlay_georef.types import Degrees, Pixels, Unitless

SCHEMA_VERSION = 1


class FileSystem(Protocol):
    """Protocol for file system operations."""

    def read_text(self, path: str | Path) -> str:
        """Read text from a file."""
        ...

    def write_text(self, path: str | Path, content: str) -> None:
        """Write text to a file."""
        ...


class DefaultFileSystem:
    """Default file system implementation."""

    def read_text(self, path: str | Path) -> str:
        return Path(path).read_text(encoding="utf-8")

    def write_text(self, path: str | Path, content: str) -> None:
        Path(path).write_text(content, encoding="utf-8")


def _get_fs(fs: FileSystem | None) -> FileSystem:
    """Return the provided filesystem or the default."""
    return fs if fs is not None else DefaultFileSystem()


@dataclass(frozen=True)
class OverlayVisualState:
    """Presentation attributes layered over the footprint.

    Attributes:
        opacity: 0.0 (invisible) to 1.0 (opaque).
        rotation_degrees: Display rotation around the overlay center.
        scale: Display scale factor, strictly positive.
    """

    opacity: Unitless = 1.0
    rotation_degrees: Degrees = 0.0
    scale: Unitless = 1.0

    def __post_init__(self) -> None:
        for name in ("opacity", "rotation_degrees", "scale"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
                raise ValueError(f"{name} must be a finite number, got {value!r}")
        if not 0.0 <= self.opacity <= 1.0:
            raise ValueError(f"opacity must be in [0.0, 1.0], got {self.opacity}")
        if self.scale <= 0.0:
            raise ValueError(f"scale must be positive, got {self.scale}")

    def to_dict(self) -> dict[str, float]:
        return {
            "opacity": self.opacity,
            "rotation_degrees": self.rotation_degrees,
            "scale": self.scale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OverlayVisualState:
        """Missing attributes take their defaults.

        Raises:
            ValueError: If data is not a mapping or a value is invalid
        """
        if not isinstance(data, dict):
            raise ValueError(f"visual must be a mapping, got {type(data).__name__}")
        return cls(
            opacity=float(data.get("opacity", 1.0)),
            rotation_degrees=float(data.get("rotation_degrees", 0.0)),
            scale=float(data.get("scale", 1.0)),
        )


@dataclass(frozen=True)
class OverlayRecord:
    """Immutable overlay record as stored by the host.

    Attributes:
        id: Host identifier.
        name: Display name.
        anchor_corners: Geographic footprint.
        visual: Opacity, display rotation and scale.
        image_url: Where the host keeps the image, if anywhere.
        image_width: Source image width in pixels, if known.
        image_height: Source image height in pixels, if known.
    """

    id: str
    name: str
    anchor_corners: AnchorCorners
    visual: OverlayVisualState = field(default_factory=OverlayVisualState)
    image_url: Optional[str] = None
    image_width: Optional[Pixels] = None
    image_height: Optional[Pixels] = None

    @property
    def position(self) -> GeoPoint:
        """Center of the footprint."""
        return self.anchor_corners.center()

    def with_geometry(self, corners: AnchorCorners) -> OverlayRecord:
        """Copy with a new footprint, e.g. the result of a committed drag."""
        return replace(self, anchor_corners=corners)

    def with_visual(self, **changes: float) -> OverlayRecord:
        """Copy with some visual attributes changed (opacity, rotation_degrees, scale).

        Raises:
            ValueError: If a value is out of range
            TypeError: If an unknown attribute is given
        """
        return replace(self, visual=replace(self.visual, **changes))

    def to_dict(self) -> dict[str, Any]:
        """Convert record to a dictionary for JSON serialization."""
        return {
            "schema_version": SCHEMA_VERSION,
            "id": self.id,
            "name": self.name,
            "image_url": self.image_url,
            "image_width": self.image_width,
            "image_height": self.image_height,
            "anchor_corners": self.anchor_corners.to_dict(),
            "position": self.position.to_dict(),
            "visual": self.visual.to_dict(),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def save(self, path: str | Path, fs: FileSystem | None = None) -> None:
        """Save record to JSON file."""
        _get_fs(fs).write_text(path, self.to_json())

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OverlayRecord:
        """Create record from dictionary.

        ``position`` is ignored on load; it is always recomputed from the
        anchor corners.

        Raises:
            KeyError: If required keys are missing.
            ValueError: If the schema version or a value is invalid.
        """
        version = data.get("schema_version", SCHEMA_VERSION)
        if version != SCHEMA_VERSION:
            raise ValueError(f"Unsupported overlay schema version {version}")

        width = data.get("image_width")
        height = data.get("image_height")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            anchor_corners=AnchorCorners.from_dict(data["anchor_corners"]),
            visual=OverlayVisualState.from_dict(data.get("visual") or {}),
            image_url=data.get("image_url"),
            image_width=int(width) if width is not None else None,
            image_height=int(height) if height is not None else None,
        )

    @classmethod
    def from_json(cls, json_str: str) -> OverlayRecord:
        """Create record from JSON string.

        Raises:
            json.JSONDecodeError: If JSON is invalid.
            KeyError: If required keys are missing.
            ValueError: If data format is invalid.
        """
        return cls.from_dict(json.loads(json_str))

    @classmethod
    def load(cls, path: str | Path, fs: FileSystem | None = None) -> OverlayRecord:
        """Load record from JSON file.

        Raises:
            FileNotFoundError: If file doesn't exist.
            json.JSONDecodeError: If JSON is invalid.
        """
        return cls.from_json(_get_fs(fs).read_text(path))
