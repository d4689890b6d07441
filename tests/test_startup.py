"""Tests for database connection handling at startup."""

import pytest
from structlog.testing import capture_logs
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, ServerSelectionTimeoutError

import database
from logging_config import LoggingMiddleware
from main import app


@pytest.fixture
def unconnected(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the lifespan away from any real client."""
    monkeypatch.setattr(database, "client", None)
    monkeypatch.setattr(database, "db", None)


def test_connect_without_url() -> None:
    assert database.connect(None, "luminamarket") == (None, None)
    assert database.connect("", "luminamarket") == (None, None)


def test_connect_with_unresolvable_srv_url(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that a client that cannot be built is logged, not raised."""

    def failing_client(url: str, **kwargs: object) -> None:
        raise ConfigurationError(f"The DNS query name does not exist: _mongodb._tcp.{url.split('//')[1]}.")

    monkeypatch.setattr(database, "MongoClient", failing_client)

    with capture_logs() as logs:
        client, db = database.connect("mongodb+srv://nonexistent-cluster.invalid", "luminamarket")

    assert client is None
    assert db is None
    assert logs[0]["event"] == "database_connection_failed"
    assert "nonexistent-cluster.invalid" in logs[0]["error"]


def test_startup_pings_and_creates_indexes(
    monkeypatch: pytest.MonkeyPatch, unconnected: None, mongo_db: Database
) -> None:
    pinged = []
    monkeypatch.setattr(database, "DATABASE_URL", "mongodb://localhost:27017")
    monkeypatch.setattr(database, "db", mongo_db)
    monkeypatch.setattr(database, "ping", pinged.append)
    mongo_db["users"].drop_indexes()

    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    assert pinged == [mongo_db]
    assert any(index.get("unique") for index in mongo_db["users"].index_information().values())


def test_startup_survives_unreachable_server(
    monkeypatch: pytest.MonkeyPatch, unconnected: None, mongo_db: Database
) -> None:
    def unreachable(db: Database) -> None:
        raise ServerSelectionTimeoutError("localhost:27017: connection refused")

    monkeypatch.setattr(database, "DATABASE_URL", "mongodb://localhost:27017")
    monkeypatch.setattr(database, "db", mongo_db)
    monkeypatch.setattr(database, "ping", unreachable)

    with TestClient(app) as client:
        response = client.get("/")

    assert response.status_code == 200


def test_startup_without_database_url(monkeypatch: pytest.MonkeyPatch, unconnected: None) -> None:
    monkeypatch.setattr(database, "DATABASE_URL", None)

    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        assert client.get("/api/items").status_code == 500


def test_unhandled_errors_are_logged() -> None:
    failing_app = FastAPI()
    failing_app.add_middleware(LoggingMiddleware)

    @failing_app.get("/boom")
    def boom():
        raise RuntimeError("boom")

    with capture_logs() as logs:
        response = TestClient(failing_app, raise_server_exceptions=False).get("/boom")

    assert response.status_code == 500
    failed = [log for log in logs if log["event"] == "request_failed"]
    assert failed[0]["error"] == "boom"
    assert failed[0]["log_level"] == "error"
