from datetime import datetime, timedelta, timezone

import jwt
import pytest

from admin_gate.config import settings
from admin_gate.security.token_inspection import (
    ExpiredTokenError,
    InvalidTokenError,
    session_from_access_token,
    validate_access_token,
)


def _token(secret: str | None = None, **overrides) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": "8b0f3c1e-0000-4000-8000-000000000001",
        "email": "editor@example.com",
        "aud": settings.jwt_audience,
        "iat": now,
        "exp": now + timedelta(hours=1),
    }
    payload.update(overrides)
    payload = {key: value for key, value in payload.items() if value is not None}
    return jwt.encode(payload, secret or settings.supabase_jwt_secret, algorithm="HS256")


def test_session_from_valid_token() -> None:
    token = _token()

    session = session_from_access_token(token)

    assert session.access_token == token
    assert session.user_id == "8b0f3c1e-0000-4000-8000-000000000001"
    assert session.email == "editor@example.com"
    assert session.expires_at is not None
    assert session.is_expired() is False


def test_expired_token() -> None:
    past = datetime.now(timezone.utc) - timedelta(minutes=5)
    with pytest.raises(ExpiredTokenError):
        validate_access_token(_token(exp=past))


def test_wrong_secret_is_invalid() -> None:
    with pytest.raises(InvalidTokenError):
        validate_access_token(_token(secret="another-secret-that-is-long-enough"))


def test_wrong_audience_is_invalid() -> None:
    with pytest.raises(InvalidTokenError):
        validate_access_token(_token(aud="anon"))


@pytest.mark.parametrize("claim", ["sub", "email"])
def test_missing_identity_claim_is_invalid(claim: str) -> None:
    with pytest.raises(InvalidTokenError):
        validate_access_token(_token(**{claim: None}))


@pytest.mark.parametrize("token", ["", "not-a-jwt"])
def test_garbage_is_invalid(token: str) -> None:
    with pytest.raises(InvalidTokenError):
        validate_access_token(token)
