"""Tests for EngineConfig loading and validation."""

from pathlib import Path

import pytest

from overlay_georef.config import EngineConfig, get_default_config, resolve_config


class TestEngineConfigDefaults:
    def test_default_values(self) -> None:
        config = get_default_config()

        assert config.min_pixel_separation == 20.0
        assert config.min_geo_separation == 1e-4
        assert config.max_control_points == 4
        assert config.flip_y is True
        assert config.three_point_damping == 0.5

    def test_resolve_config(self) -> None:
        custom = EngineConfig(min_pixel_separation=5.0)
        assert resolve_config(None) is get_default_config()
        assert resolve_config(custom) is custom


class TestEngineConfigValidation:
    @pytest.mark.parametrize(
        "kwargs",
        [
            {"min_pixel_separation": -1.0},
            {"min_geo_separation": float("nan")},
            {"max_control_points": 5},
            {"max_control_points": 1},
            {"max_control_points": 3.0},
            {"three_point_damping": 1.5},
            {"flip_y": "yes"},
            {"pivot_tolerance": "small"},
        ],
        ids=["neg-px", "nan-geo", "cap-5", "cap-1", "cap-float", "damping", "flip-str", "pivot-str"],
    )
    def test_invalid_values(self, kwargs) -> None:
        with pytest.raises(ValueError):
            EngineConfig(**kwargs)


class TestEngineConfigFromDict:
    def test_none_gives_defaults(self) -> None:
        assert EngineConfig.from_dict(None) == EngineConfig()

    def test_int_values_become_floats(self) -> None:
        config = EngineConfig.from_dict({"min_pixel_separation": 30, "three_point_damping": 1})

        assert config.min_pixel_separation == 30.0
        assert isinstance(config.min_pixel_separation, float)
        assert config.three_point_damping == 1.0

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError, match="Unknown configuration keys: min_pixel_spacing"):
            EngineConfig.from_dict({"min_pixel_spacing": 10})

    def test_non_mapping_rejected(self) -> None:
        with pytest.raises(ValueError):
            EngineConfig.from_dict([1, 2])  # type: ignore[arg-type]


class TestEngineConfigYaml:
    def test_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        path.write_text("georeference:\n  min_pixel_separation: 35\n  flip_y: false\n")

        config = EngineConfig.from_yaml(path)

        assert config.min_pixel_separation == 35.0
        assert config.flip_y is False
        assert config.max_control_points == 4

    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / "engine.yaml"
        saved = EngineConfig(min_geo_separation=5e-4, max_control_points=3, three_point_damping=0.25)

        saved.to_yaml(path)

        assert EngineConfig.from_yaml(path) == saved

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            EngineConfig.from_yaml(tmp_path / "absent.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError, match="empty"):
            EngineConfig.from_yaml(path)

    def test_missing_section(self, tmp_path: Path) -> None:
        path = tmp_path / "other.yaml"
        path.write_text("display:\n  opacity: 0.5\n")
        with pytest.raises(ValueError, match="missing 'georeference' section"):
            EngineConfig.from_yaml(path)

    def test_malformed_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("georeference: [unclosed\n")
        with pytest.raises(ValueError, match="Failed to parse"):
            EngineConfig.from_yaml(path)
