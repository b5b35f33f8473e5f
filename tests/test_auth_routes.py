"""HTTP tests for the auth routes"""

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from authvault.core.config import AuthSettings
from web.app import create_app

EMAIL = "user1@example.com"
PASSWORD = "password123"


@pytest.fixture
def settings(tmp_path: Path) -> AuthSettings:
    return AuthSettings(data_dir=tmp_path / "data", bcrypt_rounds=4)


@pytest.fixture
def client(settings) -> TestClient:
    return TestClient(create_app(settings, configure_logging=False))


def _register_body(email=EMAIL, password=PASSWORD, confirm=PASSWORD):
    return {"type": "register", "email": email, "password": password, "confirmPassword": confirm}


def test_app_creates_user_store(client, settings):
    assert json.loads(settings.users_path.read_text(encoding="utf-8")) == {"users": []}


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}


def test_register_and_login_flow(client):
    res = client.post("/api/auth", json=_register_body())
    assert res.status_code == 200, res.text
    assert res.json() == {"message": "Registration successful", "redirect": "/login"}

    res = client.post("/api/auth", json=_register_body())
    assert res.status_code == 400
    assert res.json() == {"error": "Email is already in use", "field": "email"}

    res = client.post("/api/auth", json={"type": "login", "email": EMAIL, "password": PASSWORD})
    assert res.status_code == 200, res.text
    assert res.json() == {"message": "Login successful", "redirect": "/dashboard"}


def test_invalid_login(client):
    client.post("/api/auth", json=_register_body())

    wrong = client.post("/api/auth", json={"type": "login", "email": EMAIL, "password": "wrong-password"})
    unknown = client.post("/api/auth", json={"type": "login", "email": "ghost@example.com", "password": "x"})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.json() == unknown.json() == {"error": "Invalid email or password"}


def test_overlong_login_password_is_401(client):
    client.post("/api/auth", json=_register_body())
    res = client.post("/api/login", json={"email": EMAIL, "password": "p" * 80})
    assert res.status_code == 401
    assert res.json() == {"error": "Invalid email or password"}


def test_no_cors_headers_by_default(client):
    res = client.get("/health", headers={"Origin": "https://evil.example.com"})
    assert "access-control-allow-origin" not in res.headers


def test_cors_allows_only_configured_origins(settings, monkeypatch):
    monkeypatch.setenv("CORS_ORIGINS", "https://app.example.com")
    client = TestClient(create_app(settings, configure_logging=False))

    allowed = client.get("/health", headers={"Origin": "https://app.example.com"})
    other = client.get("/health", headers={"Origin": "https://evil.example.com"})

    assert allowed.headers["access-control-allow-origin"] == "https://app.example.com"
    assert "access-control-allow-credentials" not in allowed.headers
    assert "access-control-allow-origin" not in other.headers


def test_password_mismatch_response(client):
    res = client.post("/api/auth", json=_register_body(confirm="password124"))
    assert res.status_code == 400
    assert res.json() == {"error": "Passwords do not match", "field": "confirmPassword"}


def test_unknown_type_is_rejected(client):
    res = client.post("/api/auth", json={"type": "reset", "email": EMAIL, "password": PASSWORD})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid action type"}


def test_non_json_content_type_is_rejected(client, settings):
    res = client.post(
        "/api/auth",
        content="email=user1%40example.com&password=password123",
        headers={"content-type": "application/x-www-form-urlencoded"},
    )
    assert res.status_code == 400
    assert res.json() == {"error": "Request must be JSON"}


def test_malformed_json_is_rejected(client):
    res = client.post("/api/auth", content="{not json", headers={"content-type": "application/json"})
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid JSON data"}


def test_json_array_body_is_malformed(client):
    res = client.post("/api/auth", json=["login"])
    assert res.status_code == 400
    assert res.json() == {"error": "Invalid JSON data"}


def test_dedicated_register_and_login_routes(client):
    res = client.post(
        "/api/register",
        json={"email": EMAIL, "password": PASSWORD, "confirmPassword": PASSWORD},
    )
    assert res.status_code == 200, res.text

    # the route decides the action, not the body
    res = client.post("/api/login", json={"type": "register", "email": EMAIL, "password": PASSWORD})
    assert res.status_code == 200, res.text
    assert res.json()["redirect"] == "/dashboard"


def test_persistence_failure_maps_to_500(client, settings, monkeypatch):
    def boom(src, dst):
        raise OSError("read-only file system")

    monkeypatch.setattr("authvault.stores.user_store.shutil.move", boom)
    res = client.post("/api/auth", json=_register_body())
    assert res.status_code == 500
    assert "read-only" not in res.json()["error"]
