"""Typer CLI root application with serve command."""

import typer

from location_api.core.config import get_settings
from location_api.core.logging import setup_logging

app = typer.Typer(name="location-api", help="Tools marketplace location privacy and proximity CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir, json_logs=settings.log_json)


@app.command()
def serve(
    reload: bool = typer.Option(False, "--reload", help="Enable auto-reload for development"),
    host: str = typer.Option("0.0.0.0", "--host", help="Bind host"),  # noqa: S104
    port: int = typer.Option(8000, "--port", help="Bind port"),
) -> None:
    """Start the API server."""
    import uvicorn

    uvicorn.run(
        "location_api.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
    )


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from location_api.cli.db_cmd import db_app
    from location_api.cli.location_cmd import location_app
    from location_api.cli.token_cmd import token_app

    app.add_typer(db_app, name="db", help="Database migration commands")
    app.add_typer(location_app, name="location", help="Geocoding, privacy and audit log commands")
    app.add_typer(token_app, name="token", help="Access token commands")


_register_subcommands()
