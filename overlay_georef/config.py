"""
Configuration for the georeferencing engine.

Holds the numeric thresholds used by validation and fitting. Defaults are
tuned for hand-clicked reference points on scanned maps; a YAML file can
override them per deployment.
"""

import logging
import math
import numbers
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

logger = logging.getLogger(__name__)

CONFIG_SECTION = "georeference"


@dataclass(frozen=True)
class EngineConfig:
    """Thresholds and switches for validation and transform fitting.

    Attributes:
        min_pixel_separation: Minimum Euclidean distance between any two
            pixel points of a control point set, in pixels.
        min_geo_separation: Minimum Euclidean lat/lng distance between any
            two geographic points, in degrees.
        max_control_points: Capacity of a control point set.
        flip_y: Fit the 2- and 3-point similarity in a y-up image frame when
            the image height is known, so a north-up scan is not mirrored.
        three_point_damping: Fraction of the third point's residual applied
            as extra translation in the 3-point fit.
        pivot_tolerance: Relative pivot magnitude below which the 4-point
            linear system is treated as singular.
    """

    min_pixel_separation: float = 20.0
    min_geo_separation: float = 1e-4
    max_control_points: int = 4
    flip_y: bool = True
    three_point_damping: float = 0.5
    pivot_tolerance: float = 1e-10

    def __post_init__(self) -> None:
        """Validate value ranges."""
        for name in ("min_pixel_separation", "min_geo_separation", "pivot_tolerance"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Real):
                raise ValueError(f"'{name}' must be a number, got {type(value).__name__}")
            if not math.isfinite(value) or value < 0:
                raise ValueError(f"'{name}' must be a finite non-negative number, got {value}")

        if isinstance(self.max_control_points, bool) or not isinstance(self.max_control_points, int):
            raise ValueError(
                f"'max_control_points' must be an integer, got {type(self.max_control_points).__name__}"
            )
        if not 2 <= self.max_control_points <= 4:
            raise ValueError(
                f"'max_control_points' must be between 2 and 4, got {self.max_control_points}"
            )

        if not isinstance(self.flip_y, bool):
            raise ValueError(f"'flip_y' must be a boolean, got {type(self.flip_y).__name__}")

        damping = self.three_point_damping
        if isinstance(damping, bool) or not isinstance(damping, numbers.Real):
            raise ValueError(f"'three_point_damping' must be a number, got {type(damping).__name__}")
        if not 0.0 <= damping <= 1.0:
            raise ValueError(f"'three_point_damping' must be in [0.0, 1.0], got {damping}")

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            EngineConfig instance loaded from file

        Raises:
            FileNotFoundError: If configuration file does not exist
            ValueError: If the file is malformed or contains invalid values

        Example:
            >>> config = EngineConfig.from_yaml('config/georeference.yaml')
            >>> config.min_pixel_separation
            20.0
        """
        config_path = Path(path)

        if not config_path.exists():
            raise FileNotFoundError(
                f"Configuration file not found: {path}\n"
                f"Please create a configuration file or use get_default_config()"
            )

        try:
            with open(config_path, "r") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML configuration file: {e}") from e

        if not data:
            raise ValueError(
                f"Configuration file is empty: {path}\n"
                f"Expected a '{CONFIG_SECTION}' section"
            )

        if not isinstance(data, dict) or CONFIG_SECTION not in data:
            raise ValueError(
                f"Configuration file missing '{CONFIG_SECTION}' section: {path}\n"
                f"Expected structure: {CONFIG_SECTION}:\n  min_pixel_separation: ...\n  ..."
            )

        return cls.from_dict(data[CONFIG_SECTION])

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "EngineConfig":
        """Create configuration from a dictionary.

        Unknown keys are rejected so that typos in a config file surface
        immediately instead of silently falling back to defaults.

        Raises:
            ValueError: If configuration is invalid
        """
        if config is None:
            return cls()
        if not isinstance(config, dict):
            raise ValueError(f"Configuration must be a dictionary, got {type(config).__name__}")

        known = set(cls.__dataclass_fields__)
        unknown = sorted(set(config) - known)
        if unknown:
            raise ValueError(
                f"Unknown configuration keys: {', '.join(unknown)}. "
                f"Valid keys: {', '.join(sorted(known))}"
            )

        values = dict(config)
        # YAML integers are fine where floats are expected
        for name in ("min_pixel_separation", "min_geo_separation", "three_point_damping", "pivot_tolerance"):
            if name in values and isinstance(values[name], int) and not isinstance(values[name], bool):
                values[name] = float(values[name])

        config_obj = cls(**values)
        logger.debug(f"Loaded engine configuration: {config_obj}")
        return config_obj

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to a dictionary."""
        return asdict(self)

    def to_yaml(self, path: str | Path) -> None:
        """Save configuration to a YAML file under the 'georeference' section."""
        with open(path, "w") as f:
            yaml.dump({CONFIG_SECTION: self.to_dict()}, f, default_flow_style=False, sort_keys=False)

        logger.info(f"Saved configuration to {path}")


_DEFAULT_CONFIG = EngineConfig()


def get_default_config() -> EngineConfig:
    """Return the default engine configuration.

    Returns:
        EngineConfig with 20 px / 1e-4 degree spacing thresholds, capacity 4,
        y-axis flipping enabled and half-residual 3-point damping.
    """
    return _DEFAULT_CONFIG


def resolve_config(config: EngineConfig | None) -> EngineConfig:
    """Return ``config`` or the default configuration when it is None."""
    return config if config is not None else _DEFAULT_CONFIG
