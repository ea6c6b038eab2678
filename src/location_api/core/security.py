"""JWT token creation and validation.

Uses PyJWT. The location API only verifies bearer tokens issued by the
marketplace; ``create_access_token`` exists for development and tests.
"""

from datetime import UTC, datetime, timedelta

import jwt


def create_access_token(
    subject: str,
    secret_key: str,
    algorithm: str = "HS256",
    expires_minutes: int = 30,
) -> str:
    """Create a JWT access token.

    Args:
        subject: The token subject (the user id).
        secret_key: Secret key for signing.
        algorithm: JWT signing algorithm.
        expires_minutes: Token expiration in minutes.

    Returns:
        The encoded JWT string.
    """
    expire = datetime.now(UTC) + timedelta(minutes=expires_minutes)
    payload = {
        "sub": subject,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(payload, secret_key, algorithm=algorithm)


def decode_token(
    token: str,
    secret_key: str,
    algorithm: str = "HS256",
) -> dict:
    """Decode and validate a JWT token.

    Args:
        token: The JWT string to decode.
        secret_key: Secret key used for signing.
        algorithm: JWT signing algorithm.

    Returns:
        The decoded token payload.

    Raises:
        jwt.ExpiredSignatureError: If the token has expired.
        jwt.InvalidTokenError: If the token is invalid.
    """
    return jwt.decode(token, secret_key, algorithms=[algorithm])


def subject_from_token(token: str, secret_key: str, algorithm: str = "HS256") -> str | None:
    """Return the ``sub`` claim of a valid access token, or None.

    Expired, malformed, wrongly signed and non-access tokens all yield None.
    """
    try:
        payload = decode_token(token, secret_key, algorithm)
    except jwt.InvalidTokenError:
        return None
    if payload.get("type", "access") != "access":
        return None
    subject = payload.get("sub")
    return str(subject) if subject else None
