"""Control point validation and fitting CLI commands."""

import json
from pathlib import Path
from typing import Any

import typer
import yaml

from overlay_georef.cli.main import app
from overlay_georef.config import EngineConfig, get_default_config
from overlay_georef.control_points import ControlPointSet
from overlay_georef.errors import GeoreferenceError
from overlay_georef.overlay_geometry import derive_anchors
from overlay_georef.solver import TransformSolver, transform_points
from overlay_georef.transform import PlanarTransform


def load_control_points(path: Path, config: EngineConfig) -> ControlPointSet:
    """
    Load a control point file (YAML or JSON).

    Expected format:
        control_points:
          - pixel: {x: 0, y: 0}
            geo: {lat: 40.4168, lng: -3.7038}
          - pixel: {x: 100, y: 100}
            geo: {lat: 40.4268, lng: -3.6938}

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file cannot be parsed or has the wrong structure
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Failed to parse control point file: {e}") from e

    try:
        return ControlPointSet.from_dict(data, config)
    except KeyError as e:
        raise ValueError(f"Control point entry missing key {e}") from e


def _load_config(config_file: Path | None) -> EngineConfig:
    if config_file is None:
        return get_default_config()
    try:
        return EngineConfig.from_yaml(config_file)
    except (FileNotFoundError, ValueError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)


def _load_points_or_exit(points_file: Path, config: EngineConfig) -> ControlPointSet:
    try:
        return load_control_points(points_file, config)
    except FileNotFoundError:
        typer.echo(f"Error: Control point file not found: {points_file}", err=True)
        raise typer.Exit(1)
    except ValueError as e:
        typer.echo(f"Error: Failed to load control points: {e}", err=True)
        raise typer.Exit(1)


def _emit(payload: dict[str, Any], output: Path | None) -> None:
    text = json.dumps(payload, indent=2)
    if output is None:
        typer.echo(text)
    else:
        output.write_text(text + "\n", encoding="utf-8")
        typer.echo(f"Result saved to: {output}")


@app.command("validate")
def validate_command(
    points_file: Path = typer.Argument(..., help="Control point YAML/JSON file"),
    width: int | None = typer.Option(None, help="Image width in pixels (bounds check)"),
    height: int | None = typer.Option(None, help="Image height in pixels (bounds check)"),
    config_file: Path | None = typer.Option(None, "--config", help="Engine YAML configuration"),
) -> None:
    """
    Check a control point selection without fitting.

    Example:
        overlay-georef validate points.yaml --width 2480 --height 3508
    """
    config = _load_config(config_file)
    points = _load_points_or_exit(points_file, config)

    try:
        points.validate(width, height)
    except GeoreferenceError as e:
        typer.echo(f"Invalid ({type(e).__name__}): {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"OK: {len(points)} control points")


@app.command("fit")
def fit_command(
    points_file: Path = typer.Argument(..., help="Control point YAML/JSON file"),
    width: int = typer.Option(..., help="Image width in pixels"),
    height: int = typer.Option(..., help="Image height in pixels"),
    config_file: Path | None = typer.Option(None, "--config", help="Engine YAML configuration"),
    output: Path | None = typer.Option(None, help="Write JSON result here instead of stdout"),
) -> None:
    """
    Fit a transform and print the overlay footprint as JSON.

    The output contains the strategy, the six transform coefficients,
    per-point residuals in meters, the anchor corners, their bounds, the
    center, and where each image point lands on the map.

    Example:
        overlay-georef fit points.yaml --width 2480 --height 3508 --output placement.json
    """
    config = _load_config(config_file)
    points = _load_points_or_exit(points_file, config)
    solver = TransformSolver(config)

    try:
        result = solver.fit(points, width, height)
        corners = derive_anchors(result.transform, width, height, solver.projection)
        preview = transform_points(result.transform, points.pixel_points, solver.projection)
    except GeoreferenceError as e:
        typer.echo(f"Fit failed ({type(e).__name__}): {e}", err=True)
        raise typer.Exit(1)

    _emit(
        {
            "strategy": result.strategy.value,
            "transform": result.transform.to_dict(),
            "residuals_m": list(result.residuals_m),
            "rms_error_m": result.rms_error_m,
            "anchor_corners": corners.to_dict(),
            "bounds": corners.bounds().to_dict(),
            "center": corners.center().to_dict(),
            "transformed_points": [p.to_dict() for p in preview],
        },
        output,
    )


@app.command("corners")
def corners_command(
    a: float = typer.Option(..., help="Planar x per pixel along image x"),
    b: float = typer.Option(..., help="Planar x per pixel along image y"),
    c: float = typer.Option(..., help="Planar y per pixel along image x"),
    d: float = typer.Option(..., help="Planar y per pixel along image y"),
    e: float = typer.Option(..., help="Planar x translation (meters)"),
    f: float = typer.Option(..., help="Planar y translation (meters)"),
    width: int = typer.Option(..., help="Image width in pixels"),
    height: int = typer.Option(..., help="Image height in pixels"),
) -> None:
    """
    Place an image with an explicit pixel -> Web-Mercator transform.

    Example:
        overlay-georef corners --a 1 --b 0 --c 0 --d -1 --e -412300 --f 4926000 --width 100 --height 100
    """
    transform = PlanarTransform(a=a, b=b, c=c, d=d, e=e, f=f)
    try:
        corners = derive_anchors(transform, width, height)
    except GeoreferenceError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(1)

    _emit(
        {
            "anchor_corners": corners.to_dict(),
            "bounds": corners.bounds().to_dict(),
            "center": corners.center().to_dict(),
        },
        None,
    )
