import jwt
import pytest
from datetime import datetime, timedelta, timezone

from gatherguru.auth_service.utils import InvalidToken, TokenService


@pytest.fixture
def tokens():
    return TokenService("test_secret", expiration_minutes=60)


def test_issue_token(tokens):
    token = tokens.issue("64b7f0c2a1b2c3d4e5f60718", "admin")

    assert isinstance(token, str)

    # Decode to verify contents using the same secret
    payload = jwt.decode(token, "test_secret", algorithms=["HS256"])
    assert payload["id"] == "64b7f0c2a1b2c3d4e5f60718"
    assert payload["role"] == "admin"
    assert payload["exp"] - payload["iat"] == 3600


def test_verify_token(tokens):
    token = tokens.issue("abc123", "organizer")

    claims = tokens.verify(token)
    assert claims.id == "abc123"
    assert claims.role == "organizer"


def test_verify_token_invalid(tokens):
    with pytest.raises(InvalidToken):
        tokens.verify("invalid.token.here")


def test_verify_token_expired():
    expired = TokenService("test_secret", expiration_minutes=-5)
    token = expired.issue("abc123", "user")

    with pytest.raises(InvalidToken):
        TokenService("test_secret").verify(token)


def test_verify_token_wrong_secret(tokens):
    token = TokenService("other_secret").issue("abc123", "user")

    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_verify_token_missing_role(tokens):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"id": "abc123", "iat": now, "exp": now + timedelta(minutes=5)},
        "test_secret",
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken):
        tokens.verify(token)


def test_missing_secret_is_rejected():
    with pytest.raises(RuntimeError):
        TokenService("")


def test_verify_token_missing_id(tokens):
    now = datetime.now(timezone.utc)
    token = jwt.encode(
        {"role": "user", "iat": now, "exp": now + timedelta(minutes=5)},
        "test_secret",
        algorithm="HS256",
    )

    with pytest.raises(InvalidToken):
        tokens.verify(token)
