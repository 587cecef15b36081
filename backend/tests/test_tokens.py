import string
from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt
from sqlalchemy.exc import OperationalError

from sfconnect.core import secret_store
from sfconnect.core.errors import StorageUnavailable
from sfconnect.core.secret_store import get_or_create_signing_secret
from sfconnect.core.tokens import TokenClaims, extract_token, issue_session_token, verify_session_token

BASE64URL = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"


def test_issue_then_verify_round_trips_claims(db_session):
    token = issue_session_token(db_session, 1, "test@example.com", "admin")
    assert token.count(".") == 2
    assert verify_session_token(db_session, token) == TokenClaims(user_id=1, email="test@example.com", role="admin")


def test_token_expires_after_seven_days(db_session):
    now = datetime.now(timezone.utc)
    token = issue_session_token(db_session, 1, "a@example.com", "operator", now=now)
    claims = jwt.get_unverified_claims(token)
    assert claims["exp"] - claims["iat"] == 7 * 24 * 60 * 60


def test_expired_token_is_invalid(db_session):
    issued = datetime.now(timezone.utc) - timedelta(days=7, minutes=1)
    token = issue_session_token(db_session, 1, "a@example.com", "operator", now=issued)
    assert verify_session_token(db_session, token) is None


def test_any_change_to_last_char_is_invalid(db_session):
    for user_id in range(1, 11):
        token = issue_session_token(db_session, user_id, "test@example.com", "admin")
        assert verify_session_token(db_session, token) is not None
        for ch in BASE64URL:
            if ch != token[-1]:
                assert verify_session_token(db_session, token[:-1] + ch) is None, (user_id, ch)


@pytest.mark.parametrize("token", ["", "invalid.token.here", "not-a-jwt", "a.b"])
def test_malformed_token_is_invalid(db_session, token):
    assert verify_session_token(db_session, token) is None


def test_token_signed_with_other_secret_is_invalid(db_session):
    forged = jwt.encode(
        {"userId": 1, "email": "x@example.com", "role": "admin", "exp": 4102444800},
        "some-other-secret",
        algorithm="HS256",
    )
    assert verify_session_token(db_session, forged) is None


@pytest.mark.parametrize(
    "payload",
    [
        {"email": "x@example.com", "role": "admin"},
        {"userId": "1", "email": "x@example.com", "role": "admin"},
        {"userId": True, "email": "x@example.com", "role": "admin"},
        {"userId": 1, "role": "admin"},
        {"userId": 1, "email": "x@example.com", "role": 3},
    ],
)
def test_missing_or_mistyped_claims_are_invalid(db_session, payload):
    secret = get_or_create_signing_secret(db_session)
    token = jwt.encode({**payload, "exp": 4102444800}, secret, algorithm="HS256")
    assert verify_session_token(db_session, token) is None


def test_token_without_expiry_is_invalid(db_session):
    secret = get_or_create_signing_secret(db_session)
    token = jwt.encode({"userId": 1, "email": "x@example.com", "role": "admin"}, secret, algorithm="HS256")
    assert verify_session_token(db_session, token) is None


def test_regenerating_secret_invalidates_tokens(db_session):
    from sfconnect.models.setup_config import SetupConfig

    token = issue_session_token(db_session, 1, "a@example.com", "operator")
    db_session.query(SetupConfig).delete()
    db_session.commit()
    assert verify_session_token(db_session, token) is None


def test_verify_raises_when_storage_is_down(db_session, monkeypatch):
    def _down(db):
        raise OperationalError("select", {}, Exception("connection refused"))

    monkeypatch.setattr(secret_store, "_load", _down)
    with pytest.raises(StorageUnavailable):
        verify_session_token(db_session, "whatever.token.value")


def test_extract_token_prefers_header_over_cookie():
    cookies = {"sf_connect_token": "from-cookie"}
    assert extract_token("Bearer from-header", cookies) == "from-header"
    assert extract_token(None, cookies) == "from-cookie"
    assert extract_token("Basic abc", cookies) == "from-cookie"
    assert extract_token(None, {}) is None
    assert extract_token("Bearer ", {}) is None
