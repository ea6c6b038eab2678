"""Location CLI commands: coordinate parsing, privacy previews, geocoding and log retention."""

import asyncio

import typer

location_app = typer.Typer()


@location_app.command("parse")
def parse(
    text: str = typer.Argument(..., help='Coordinate text, e.g. "40.7128, -74.0060" or DMS'),
) -> None:
    """Parse a coordinate string into decimal degrees."""
    from location_api.lib.geo.coordinates import parse_coordinates

    parsed = parse_coordinates(text)
    if parsed is None:
        typer.echo(f"Could not parse coordinates from '{text}'", err=True)
        raise typer.Exit(code=1)
    lat, lng = parsed
    typer.echo(f"{lat:.6f}, {lng:.6f}")


@location_app.command("generalize")
def generalize_point(
    lat: float = typer.Option(..., "--lat", help="Latitude (-90 to 90)"),  # noqa: B008
    lng: float = typer.Option(..., "--lng", help="Longitude (-180 to 180)"),  # noqa: B008
    level: str = typer.Option("neighborhood", "--level", help="exact, neighborhood, zip_code or district"),
) -> None:
    """Show the generalized location a listing owner would reveal."""
    from location_api.lib.privacy.generalizer import PrivacyLevel, generalize

    try:
        privacy_level = PrivacyLevel[level.strip().upper()]
    except KeyError:
        names = ", ".join(member.name.lower() for member in PrivacyLevel)
        typer.echo(f"Unknown privacy level '{level}'. Choose one of: {names}", err=True)
        raise typer.Exit(code=1) from None

    try:
        approx = generalize(lat, lng, privacy_level)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None

    typer.echo(f"{approx.latitude:.6f}, {approx.longitude:.6f}")
    typer.echo(f"  Level:  {approx.level.name.lower()} ({approx.band})")
    typer.echo(f"  Radius: {approx.radius_m} m")


@location_app.command("band")
def band(
    meters: float = typer.Argument(..., help="Distance in meters"),
) -> None:
    """Show the distance band reported for a distance."""
    from location_api.lib.privacy.generalizer import distance_to_band

    try:
        result = distance_to_band(meters)
    except ValueError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from None
    typer.echo(f"{result.label} ({result.text})")


@location_app.command("search")
def search(
    query: str = typer.Argument(..., help="Place name or address"),
    max_results: int = typer.Option(5, "--max-results", help="Maximum results (1-20)"),  # noqa: B008
    country_code: str | None = typer.Option(None, "--country", help="ISO 3166-1 alpha-2 filter"),
) -> None:
    """Forward-geocode a query through the configured provider."""
    asyncio.run(_search(query, max_results, country_code))


@location_app.command("reverse")
def reverse(
    lat: float = typer.Option(..., "--lat", help="Latitude (-90 to 90)"),  # noqa: B008
    lng: float = typer.Option(..., "--lng", help="Longitude (-180 to 180)"),  # noqa: B008
) -> None:
    """Reverse-geocode a coordinate through the configured provider."""
    asyncio.run(_reverse(lat, lng))


@location_app.command("purge-logs")
def purge_logs(
    retention_days: int | None = typer.Option(
        None, "--retention-days", help="Override SEARCH_LOG_RETENTION_DAYS"
    ),
) -> None:
    """Delete location search logs older than the retention period."""
    asyncio.run(_purge_logs(retention_days))


async def _search(query: str, max_results: int, country_code: str | None) -> None:
    """Async implementation of the search command."""
    from location_api.core.config import get_settings
    from location_api.lib.errors import LocationError
    from location_api.lib.geo.validators import SEARCH_MAX_RESULTS, validate_result_limit
    from location_api.lib.geocoder import get_configured_gateway

    if not query.strip():
        typer.echo("Error: query must not be blank", err=True)
        raise typer.Exit(code=1)
    if not validate_result_limit(max_results, SEARCH_MAX_RESULTS):
        typer.echo(f"Error: --max-results must be between 1 and {SEARCH_MAX_RESULTS}", err=True)
        raise typer.Exit(code=1)

    gateway = get_configured_gateway(get_settings())
    try:
        options = await gateway.search(query.strip(), max_results, country_code)
    except LocationError as e:
        typer.echo(f"Error: {e.detail}", err=True)
        raise typer.Exit(code=1) from None

    if not options:
        typer.echo("No locations found")
        return
    typer.echo(f"Found {len(options)} location(s) via {gateway.provider_name}:")
    for option in options:
        typer.echo(f"  {option.latitude:.6f}, {option.longitude:.6f}  {option.display_name}")


async def _reverse(lat: float, lng: float) -> None:
    """Async implementation of the reverse command."""
    from location_api.core.config import get_settings
    from location_api.lib.errors import LocationError
    from location_api.lib.geo.validators import validate_coordinates
    from location_api.lib.geocoder import get_configured_gateway

    if not validate_coordinates(lat, lng):
        typer.echo("Error: latitude must be between -90 and 90 and longitude between -180 and 180", err=True)
        raise typer.Exit(code=1)

    gateway = get_configured_gateway(get_settings())
    try:
        option = await gateway.reverse_geocode(lat, lng)
    except LocationError as e:
        typer.echo(f"Error: {e.detail}", err=True)
        raise typer.Exit(code=1) from None

    if option is None:
        typer.echo("No location found for these coordinates")
        return
    typer.echo(option.display_name)
    typer.echo(f"  Coordinates: {option.latitude:.6f}, {option.longitude:.6f}")
    if option.precision_radius_m is not None:
        typer.echo(f"  Precision:   ~{option.precision_radius_m} m")


async def _purge_logs(retention_days: int | None) -> None:
    """Async implementation of the purge-logs command."""
    from location_api.core.config import get_settings
    from location_api.core.database import dispose_engine, get_session_factory, init_engine
    from location_api.services.spatial_store import SqlSpatialStore, retention_cutoff

    settings = get_settings()
    days = retention_days if retention_days is not None else settings.search_log_retention_days
    if days < 1:
        typer.echo("Error: --retention-days must be at least 1", err=True)
        raise typer.Exit(code=1)

    init_engine(settings.database_url, schema=settings.database_schema)
    try:
        store = SqlSpatialStore(get_session_factory())
        removed = await store.purge_search_logs(retention_cutoff(days))
        typer.echo(f"Removed {removed} search log(s) older than {days} days")
    finally:
        await dispose_engine()
