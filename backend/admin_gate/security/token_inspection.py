from datetime import datetime, timezone
from typing import Any, Dict

import jwt

from ..config import settings
from ..schemas.auth import AuthSession


class InvalidTokenError(Exception):
    """Raised when a token cannot be parsed or is malformed."""


class ExpiredTokenError(Exception):
    """Raised when a token has expired."""


def _parse_token_payload(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=["HS256"],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredTokenError from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError from exc


def validate_access_token(token: str) -> Dict[str, Any]:
    if not token or not isinstance(token, str):
        raise InvalidTokenError()

    payload = _parse_token_payload(token)

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError()

    email = payload.get("email")
    if not isinstance(email, str) or not email:
        raise InvalidTokenError()

    return payload


def session_from_access_token(token: str) -> AuthSession:
    """Build an AuthSession from a Supabase access token."""
    payload = validate_access_token(token)
    expires_at = None
    exp = payload.get("exp")
    if isinstance(exp, (int, float)):
        expires_at = datetime.fromtimestamp(exp, tz=timezone.utc)
    return AuthSession(
        access_token=token,
        user_id=payload["sub"],
        email=payload["email"],
        expires_at=expires_at,
    )
