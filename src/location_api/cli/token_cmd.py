"""Access token CLI commands for local testing of authenticated endpoints."""

import typer

token_app = typer.Typer()


@token_app.command("issue")
def issue_token(
    user_id: str = typer.Argument(..., help="User id placed in the token subject"),
    expires_minutes: int | None = typer.Option(
        None, "--expires-minutes", help="Token lifetime (defaults to JWT_ACCESS_TOKEN_EXPIRE_MINUTES)"
    ),
) -> None:
    """Print a signed access token for USER_ID."""
    from location_api.core.config import get_settings
    from location_api.core.security import create_access_token

    settings = get_settings()
    token = create_access_token(
        user_id,
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expires_minutes=expires_minutes or settings.jwt_access_token_expire_minutes,
    )
    typer.echo(token)
