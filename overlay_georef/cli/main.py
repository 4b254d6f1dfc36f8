"""Main Typer CLI application for overlay georeferencing tools."""

import logging

import typer

app = typer.Typer(
    help="Georeference raster map overlays from reference point pairs",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    log_level: str = typer.Option("WARNING", help="Logging level (DEBUG, INFO, WARNING, ERROR)"),
) -> None:
    """Configure logging for all commands."""
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level: {log_level}")
    logging.basicConfig(level=level, format="%(asctime)s %(name)s %(levelname)s: %(message)s")


def _register_commands() -> None:
    """
    Import command modules to register commands with the app.

    Commands use the @app.command() decorator and register themselves
    when the module is imported.
    """
    from overlay_georef.cli import fit

    _ = fit


_register_commands()


if __name__ == "__main__":
    app()
