from collections.abc import Generator
from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient
from pymongo.database import Database

import database
from database import get_db
from main import app


class FakeClock:
    """Deterministic replacement for database.now, one second per call."""

    def __init__(self) -> None:
        self.current = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self.calls: list[datetime] = []

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        self.calls.append(self.current)
        return self.current


@pytest.fixture
def mongo_db() -> Database:
    """In-memory MongoDB database with the production indexes."""
    db = mongomock.MongoClient()["luminamarket_test"]
    database.ensure_indexes(db)
    return db


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    fake = FakeClock()
    monkeypatch.setattr(database, "now", fake)
    return fake


@pytest.fixture
def client(mongo_db: Database) -> Generator[TestClient, None, None]:
    """Test client wired to the in-memory database."""
    app.dependency_overrides[get_db] = lambda: mongo_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def offline_client() -> Generator[TestClient, None, None]:
    """Test client whose database is not configured."""
    app.dependency_overrides[get_db] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()
