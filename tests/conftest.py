import os
import sys
import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlalchemy.pool import StaticPool

ROOT_DIR = os.path.dirname(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# keep the startup hook away from the on-disk database file
os.environ.setdefault("DATABASE_URL", "sqlite://")

from main import app, get_session, seed_default_categories  # noqa: E402


test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
DBSession = Session


@pytest.fixture(scope="function")
def client():
    """Return a TestClient wired to a fresh, seeded in-memory database for each test."""
    SQLModel.metadata.drop_all(test_engine)
    SQLModel.metadata.create_all(test_engine)
    with DBSession(test_engine) as session:
        seed_default_categories(session)

    def override_get_session():
        with DBSession(test_engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def api_helpers(client):
    """Small helpers for creating rows through the API."""

    def add_transaction(type_: str, amount, date: str, category: str = "Other Expense", description=None):
        res = client.post(
            "/api/transactions",
            json={
                "type": type_,
                "category": category,
                "amount": amount,
                "date": date,
                "description": description,
            },
        )
        assert res.status_code == 201, res.text
        return res.json()

    def add_goal(name: str, target_amount, current_amount=0, **extra):
        res = client.post(
            "/api/goals",
            json={"name": name, "target_amount": target_amount, "current_amount": current_amount, **extra},
        )
        assert res.status_code == 201, res.text
        return res.json()

    return {
        "add_transaction": add_transaction,
        "add_goal": add_goal,
    }


@pytest.fixture
def db_session(client):
    """A session on the same in-memory database the client uses."""
    with DBSession(test_engine) as session:
        yield session
