"""Read-only inspection of JWT bearer tokens.

The payload is decoded without verifying the signature; the server does
that. This is only used to show the user what their token says.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import jwt

from basincli.domain.errors import AuthError


def parse_jwt(token: str) -> Dict[str, Any]:
    """Decodes the JWT payload.

    Raises:
        AuthError: If the token is not a well-formed JWT.
    """
    try:
        return jwt.decode(token.strip(), options={"verify_signature": False})
    except jwt.PyJWTError as e:
        raise AuthError(f"Invalid JWT token: {e}", "Ensure you have a valid JWT token from Databasin") from e


def token_expiration(token: str) -> Optional[datetime]:
    exp = parse_jwt(token).get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(int(exp), tz=timezone.utc)


def token_subject(token: str) -> Optional[str]:
    sub = parse_jwt(token).get("sub")
    return str(sub) if sub is not None else None


def is_token_expired(token: str, now: Optional[datetime] = None) -> bool:
    """True when the exp claim is in the past. Unparseable tokens count as expired."""
    try:
        expiration = token_expiration(token)
    except AuthError:
        return True
    if expiration is None:
        return False
    return (now or datetime.now(timezone.utc)) >= expiration


def format_token_expiration(token: str, now: Optional[datetime] = None) -> str:
    """Human-readable time left, e.g. '2 days', '5h 30m', '45 minutes', 'Expired'."""
    try:
        expiration = token_expiration(token)
    except AuthError:
        return "Invalid token"
    if expiration is None:
        return "No expiration"

    remaining = (expiration - (now or datetime.now(timezone.utc))).total_seconds()
    if remaining <= 0:
        return "Expired"

    hours = int(remaining // 3600)
    minutes = int((remaining % 3600) // 60)
    if hours > 24:
        days = hours // 24
        return f"{days} day{'s' if days != 1 else ''}"
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes} minute{'s' if minutes != 1 else ''}"
