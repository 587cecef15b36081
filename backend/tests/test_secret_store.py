import json

import pytest
from sqlalchemy.exc import OperationalError

from sfconnect.core import secret_store
from sfconnect.core.errors import StorageUnavailable
from sfconnect.core.secret_store import SIGNING_SECRET_KEY, get_or_create_signing_secret
from sfconnect.models.setup_config import SetupConfig


def test_first_call_generates_and_persists_secret(db_session):
    secret = get_or_create_signing_secret(db_session)
    assert isinstance(secret, str)
    # >= 32 bytes of entropy, textually encoded
    assert len(secret) >= 43

    row = db_session.query(SetupConfig).filter(SetupConfig.config_key == SIGNING_SECRET_KEY).one()
    assert row.config_value == secret
    assert json.loads(row.config_metadata)["auto_generated"] is True


def test_subsequent_calls_return_same_secret(db_session):
    first = get_or_create_signing_secret(db_session)
    second = get_or_create_signing_secret(db_session)
    assert first == second
    assert db_session.query(SetupConfig).count() == 1


def test_concurrent_first_run_converges_on_one_secret(session_factory, monkeypatch):
    """Process A reads "no secret", process B inserts, then A's insert conflicts."""
    process_a = session_factory()
    process_b = session_factory()
    try:
        real_load = secret_store._load
        calls = {"a": 0}

        def stale_first_read(db):
            if db is process_a:
                calls["a"] += 1
                if calls["a"] == 1:
                    # A's read happened before B committed
                    winner = get_or_create_signing_secret(process_b)
                    assert winner
                    return None
            return real_load(db)

        monkeypatch.setattr(secret_store, "_load", stale_first_read)

        secret_a = get_or_create_signing_secret(process_a)
        secret_b = get_or_create_signing_secret(process_b)

        assert secret_a == secret_b
        assert process_b.query(SetupConfig).filter(SetupConfig.config_key == SIGNING_SECRET_KEY).count() == 1
        # A re-read after its rejected insert
        assert calls["a"] == 2
    finally:
        process_a.close()
        process_b.close()


def test_storage_failure_is_not_masked(db_session, monkeypatch):
    def _down(db):
        raise OperationalError("select", {}, Exception("connection refused"))

    monkeypatch.setattr(secret_store, "_load", _down)
    with pytest.raises(StorageUnavailable):
        get_or_create_signing_secret(db_session)
