import os

# The app's own engine must never touch a file database during tests
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session  # noqa: E402

from matchday.database import get_session, init_db, make_engine, reset_db  # noqa: E402
from matchday.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"

# ============================================================================
# Test Database Setup with StaticPool
# ============================================================================
# 1. sqlite:///:memory: with StaticPool so ALL sessions share the same DB
# 2. make_engine sets check_same_thread=False, required for TestClient/threaded access
# 3. init_db imports every model before create_all()
# 4. App dependency overridden to use test_engine (see client_fixture)
# 5. Tables created and dropped per test, not relying on app startup
test_engine = make_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)


def override_get_session():
    """Override session to use test engine"""
    with Session(test_engine) as session:
        yield session


@pytest.fixture(name="session", scope="function")
def session_fixture():
    """Provide a test database session on a fresh schema"""
    init_db(test_engine)

    with Session(test_engine) as session:
        yield session

    reset_db(test_engine)


@pytest.fixture(name="client")
def client_fixture(session: Session):
    """Provide a test client with overridden database session

    Override MUST be set BEFORE TestClient() and stay in place for the entire
    duration, so the app never uses its own engine.
    """
    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
