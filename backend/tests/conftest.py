import os

# 設定はインポート時に読み込まれるため、アプリより先に上書きします
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("ACTION_TIMEZONE", "UTC")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from actiontrack.database import get_session, init_db
from actiontrack.main import app
from actiontrack.time_window import get_clock
from actiontrack import users


class FakeClock:
    """Settable stand-in for the wall clock."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set_year(self, year: int) -> None:
        self.now = self.now.replace(year=year)


@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def admin(session):
    return users.create_user(session, "root", "rootpass", "admin")


@pytest.fixture
def alice(session):
    return users.create_user(session, "alice", "pw123456")


@pytest.fixture
def bob(session):
    return users.create_user(session, "bob", "pw123456")


@pytest.fixture
def client(engine, clock):
    def override_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_session
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login(client):
    """Return a helper that logs in and yields the bearer header."""

    def _login(username, password):
        resp = client.post("/api/auth/login", json={"username": username, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['data']['token']}"}

    return _login
