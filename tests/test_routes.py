from contextlib import contextmanager

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from mongoshell import routes
from mongoshell.config import Settings, get_settings
from mongoshell.main import app

BODY = {
    "connectionString": "mongodb://localhost:27017",
    "databaseName": "shell_test",
    "collectionName": "items",
}


@pytest.fixture
def client(db, monkeypatch):
    @contextmanager
    def fake_open_database(connection_string, database_name, settings):
        yield db

    monkeypatch.setattr(routes, "open_database", fake_open_database)
    app.dependency_overrides[get_settings] = lambda: Settings(token="secret")
    yield TestClient(app)
    app.dependency_overrides.clear()


AUTH = {"Authorization": "Bearer secret"}


def test_root(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "find" in response.json()["supported_commands"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_shell_result(client, items):
    response = client.post("/api/mongodb/shell", json={**BODY, "command": "db.items.count()"}, headers=AUTH)
    assert response.status_code == 200
    assert response.json() == {"result": 4}


def test_shell_error_is_500(client):
    response = client.post("/api/mongodb/shell", json={**BODY, "command": "db.items.nope()"}, headers=AUTH)
    assert response.status_code == 500
    assert "Supported commands:" in response.json()["error"]


def test_missing_fields_is_400(client):
    response = client.post("/api/mongodb/shell", json={"databaseName": "x", "command": "show collections"},
                           headers=AUTH)
    assert response.status_code == 400


def test_bad_token_is_401(client):
    response = client.post("/api/mongodb/shell", json={**BODY, "command": "show collections"},
                           headers={"Authorization": "Bearer wrong"})
    assert response.status_code == 401


def test_unreachable_database_is_503(client, monkeypatch):
    @contextmanager
    def unreachable(connection_string, database_name, settings):
        raise ServerSelectionTimeoutError("No servers found")
        yield

    monkeypatch.setattr(routes, "open_database", unreachable)
    response = client.post("/api/mongodb/shell", json={**BODY, "command": "show collections"}, headers=AUTH)
    assert response.status_code == 503
    assert "unavailable" in response.json()["error"]
