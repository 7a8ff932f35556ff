from __future__ import annotations

from fastapi.testclient import TestClient

from app.main import app
from conftest import FakeRedis


def test_envelope_shape(client, db_session, make_user):
    make_user(status="active", tier="basic", limit=3)

    data = client.post("/api/v1/image-usage", json={"userId": "u1", "action": "check"}).json()

    assert data["ok"] is True
    assert data["error"] is None
    assert data["meta"]["request_id"]


def test_invalid_json_body(client, db_session):
    resp = client.post(
        "/api/v1/check-subscription",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    error = resp.json()["error"]
    assert error["code"] == "VALIDATION_ERROR"
    assert error["message"] == "Invalid JSON body"


def test_validation_error_lists_fields(client, db_session):
    resp = client.post("/api/v1/users/ensure", json={"email": "a@b.c"})

    assert resp.status_code == 400
    fields = resp.json()["error"]["fields"]
    assert fields[0]["field"] == "userId"
    assert fields[0]["type"] == "missing"


def test_missing_database_configuration(db_session, monkeypatch):
    monkeypatch.setattr("app.core.dependencies.is_configured", lambda: False)
    app.dependency_overrides.clear()

    with TestClient(app) as bare_client:
        resp = bare_client.post("/api/v1/check-subscription", json={"userId": "u1"})

    assert resp.status_code == 500
    error = resp.json()["error"]
    assert error["code"] == "SERVER_MISCONFIGURED"
    assert error["message"] == "Server mis-configuration"


def test_status_page(client, monkeypatch):
    monkeypatch.setattr("app.main.get_redis", lambda: FakeRedis())

    resp = client.get("/")

    assert resp.status_code == 200
    assert "Mood Board Backend" in resp.text
    assert "Redis:" in resp.text
