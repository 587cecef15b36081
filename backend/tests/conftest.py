import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Use in-memory SQLite for tests by default, can be overridden via TEST_DATABASE_URL
TEST_DB_URL = os.getenv("TEST_DATABASE_URL", "sqlite+pysqlite:///:memory:")

# Must be set before sfconnect modules are imported (settings + engine are module level).
os.environ.setdefault("ENVIRONMENT", "development")
os.environ.setdefault("DATABASE_URL", TEST_DB_URL)
# Minimum bcrypt cost keeps the suite fast; production default is 12
os.environ.setdefault("PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("BACKUP_CODE_HASH_ROUNDS", "4")

from sfconnect.main import create_app
from sfconnect.db.base import Base
from sfconnect.db.session import get_db_session, init_db
from sfconnect.core.passwords import hash_password
from sfconnect.db.repository import create_user
from sfconnect.models.user import UserRole
from sfconnect.seed import initialize_database


@pytest.fixture(scope="function")
def engine():
    # Important: in-memory SQLite needs StaticPool to keep the same DB across connections.
    kwargs = {"connect_args": {"check_same_thread": False}}
    if TEST_DB_URL.endswith(":memory:"):
        kwargs["poolclass"] = StaticPool
    eng = create_engine(TEST_DB_URL, **kwargs)
    init_db(eng)
    try:
        yield eng
    finally:
        Base.metadata.drop_all(bind=eng)


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session):
    app = create_app(initialize=False)

    # Override the DB session dependency to use the test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db_session] = override_get_db
    return TestClient(app)


@pytest.fixture(scope="function")
def seeded(db_session):
    """Signing secret plus the bootstrap admin, as on a real first start."""
    initialize_database(db_session)
    return db_session


@pytest.fixture(scope="function")
def make_user(db_session):
    def _make(email="user@example.com", password="Secret123!", role=UserRole.operator, name=None):
        return create_user(db_session, email=email, hashed_password=hash_password(password), name=name, role=role)
    return _make
