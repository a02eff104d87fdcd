import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Point the application engine at a throwaway database before it is imported.
os.environ["JOKE_FACTORY_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["JOKE_FACTORY_INSTRUCTOR_PASSWORD"] = "classroom-secret"

from joke_factory.database import Base, get_db  # noqa: E402
from joke_factory.main import app  # noqa: E402
from joke_factory.services.aggregate_locks import aggregate_locks  # noqa: E402
from joke_factory.services.login_rate_limiter import login_rate_limiter  # noqa: E402

INSTRUCTOR_NAME = "Charles2026"
INSTRUCTOR_PASSWORD = "classroom-secret"


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory database per test; every session shares one connection."""
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """
    Provides a database session for a test.
    Overrides the main app's get_db dependency.
    """
    login_rate_limiter.reset()
    db = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    original_get_db = app.dependency_overrides.get(get_db)
    app.dependency_overrides[get_db] = lambda: db
    try:
        yield db
    finally:
        db.close()
        aggregate_locks.clear()
        if original_get_db:
            app.dependency_overrides[get_db] = original_get_db
        else:
            del app.dependency_overrides[get_db]


@pytest.fixture(scope="function")
def client(db_session: Session):
    """Provides a TestClient instance for making requests to the FastAPI app."""
    with TestClient(app) as c:
        yield c


def as_user(user_id) -> dict:
    return {"X-User-Id": str(user_id)}


class GameDriver:
    """Walks a TestClient through the usual classroom setup steps."""

    def __init__(self, client: TestClient):
        self.client = client
        self.instructor_id = None
        self.round_id = None

    def join(self, name: str) -> int:
        response = self.client.post("/v1/session/join", json={"display_name": name})
        assert response.status_code == 200, response.text
        return response.json()["user"]["user_id"]

    def login_instructor(self) -> int:
        response = self.client.post(
            "/v1/session/instructor-login",
            json={"display_name": INSTRUCTOR_NAME, "password": INSTRUCTOR_PASSWORD},
        )
        assert response.status_code == 200, response.text
        body = response.json()
        self.instructor_id = body["user"]["user_id"]
        self.round_id = body["round_id"]
        return self.instructor_id

    @staticmethod
    def headers(user_id) -> dict:
        return as_user(user_id)

    @property
    def instructor(self) -> dict:
        return as_user(self.instructor_id)

    def instructor_post(self, path: str, json=None):
        return self.client.post(path, json=json, headers=self.instructor)

    def configure(self, batch_size: int, customer_budget: int):
        response = self.client.put(
            f"/v1/instructor/rounds/{self.round_id}/config",
            json={"batch_size": batch_size, "customer_budget": customer_budget},
            headers=self.instructor,
        )
        assert response.status_code == 200, response.text
        return response.json()["round"]

    def form_teams(self, customers: int, teams: int, prefix: str = "player") -> dict:
        """Join ``customers + 2 * teams`` players and auto-assign them."""
        for index in range(customers + 2 * teams):
            self.join(f"{prefix}-{index}")
        response = self.instructor_post(
            f"/v1/instructor/rounds/{self.round_id}/assign",
            json={"customer_count": customers, "team_count": teams},
        )
        assert response.status_code == 200, response.text
        return response.json()

    def start(self):
        response = self.instructor_post(f"/v1/instructor/rounds/{self.round_id}/start")
        assert response.status_code == 200, response.text
        return response.json()["round"]

    def end(self):
        response = self.instructor_post(f"/v1/instructor/rounds/{self.round_id}/end")
        assert response.status_code == 200, response.text
        return response.json()["round"]

    def submit_batch(self, producer_id: int, team_id: int, jokes):
        return self.client.post(
            f"/v1/rounds/{self.round_id}/batches",
            json={"team_id": team_id, "jokes": list(jokes)},
            headers=as_user(producer_id),
        )

    def rate(self, grader_id: int, batch_id: int, ratings, feedback=None):
        return self.client.post(
            f"/v1/qc/batches/{batch_id}/ratings",
            json={"ratings": ratings, "feedback": feedback},
            headers=as_user(grader_id),
        )

    def buy(self, customer_id: int, joke_id: int):
        return self.client.post(
            f"/v1/rounds/{self.round_id}/market/{joke_id}/buy",
            headers=as_user(customer_id),
        )

    def return_joke(self, customer_id: int, joke_id: int):
        return self.client.post(
            f"/v1/rounds/{self.round_id}/market/{joke_id}/return",
            headers=as_user(customer_id),
        )


@pytest.fixture(scope="function")
def driver(client: TestClient) -> GameDriver:
    game = GameDriver(client)
    game.login_instructor()
    return game
