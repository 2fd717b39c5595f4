"""Tests for app wiring: health, request ids, error envelopes and settings."""
import inspect

import pytest
from fastapi.routing import APIRoute
from fastapi.testclient import TestClient
from pydantic import ValidationError as SettingsError

from config import Settings, load_settings
from errors import DatabaseError
from main import app, create_app


def test_health(anon_client) -> None:
    body = anon_client.get("/api/health").json()
    assert body["status"] == "OK"
    assert "timestamp" in body


def test_request_id_is_echoed(anon_client) -> None:
    response = anon_client.get("/api/health", headers={"X-Request-ID": "req-abc"})
    assert response.headers["X-Request-ID"] == "req-abc"
    assert anon_client.get("/api/health").headers["X-Request-ID"].startswith("req-")


def test_unknown_route_uses_error_envelope(anon_client) -> None:
    response = anon_client.get("/api/nope", headers={"X-Request-ID": "req-404"})
    assert response.status_code == 404
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "NOT_FOUND"
    assert body["path"] == "/api/nope"
    assert body["method"] == "GET"
    assert body["requestId"] == "req-404"


def test_method_not_allowed(anon_client) -> None:
    response = anon_client.put("/api/health")
    assert response.status_code == 405
    assert response.json()["code"] == "METHOD_NOT_ALLOWED"


def test_load_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "production")
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.delenv("DATABASE_URL", raising=False)

    settings = load_settings()
    assert settings.is_production
    assert settings.port == 8080
    assert settings.log_level == "DEBUG"
    assert settings.database_url == Settings().database_url


def test_invalid_environment_is_rejected(monkeypatch) -> None:
    monkeypatch.setenv("APP_ENV", "staging")
    with pytest.raises(SettingsError):
        load_settings()


def test_session_secret_defaults_to_random() -> None:
    assert Settings().session_secret != Settings().session_secret


def test_openapi_documents_error_envelope(anon_client) -> None:
    schema = anon_client.get("/openapi.json").json()
    assert "ErrorResponse" in schema["components"]["schemas"]
    responses = schema["paths"]["/api/tasks"]["get"]["responses"]
    assert responses["401"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")


def test_api_handlers_run_in_threadpool() -> None:
    """Handlers touching the database are plain functions, not coroutines."""
    for route in app.routes:
        if isinstance(route, APIRoute) and route.path != "/api/health":
            assert not inspect.iscoroutinefunction(route.endpoint), route.path


@pytest.fixture
def production_client():
    settings = Settings(app_env="production", database_url="sqlite://", session_secret="prod-secret")
    with TestClient(create_app(settings), base_url="https://testserver") as client:
        yield client


def test_production_session_cookie(production_client) -> None:
    """Secure, httpOnly, lax, one day."""
    response = production_client.post(
        "/api/register", json={"email": "prod@example.com", "password": "prod-password"})
    assert response.status_code == 201
    cookie = response.headers["set-cookie"].lower()
    assert cookie.startswith("producti.sid=")
    assert "max-age=86400" in cookie
    assert "httponly" in cookie
    assert "samesite=lax" in cookie
    assert "; secure" in cookie
    assert production_client.get("/api/user").status_code == 200


def test_development_session_cookie_is_not_secure(anon_client) -> None:
    response = anon_client.post("/api/register", json={"email": "dev@example.com", "password": "dev-password"})
    assert "; secure" not in response.headers["set-cookie"].lower()


def test_production_hides_database_error_text(production_client, monkeypatch) -> None:
    storage = production_client.app.state.storage

    def broken(email):
        raise DatabaseError("(sqlite3.OperationalError) disk I/O error [SQL: SELECT ...]")

    monkeypatch.setattr(storage, "get_user_by_email", broken)
    response = production_client.post(
        "/api/register", json={"email": "prod@example.com", "password": "prod-password"})
    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "DATABASE_ERROR"
    assert body["message"] == "Database operation failed"


def test_development_shows_database_error_text(anon_client, monkeypatch) -> None:
    storage = anon_client.app.state.storage

    def broken(email):
        raise DatabaseError("disk I/O error")

    monkeypatch.setattr(storage, "get_user_by_email", broken)
    response = anon_client.post("/api/register", json={"email": "dev@example.com", "password": "dev-password"})
    assert response.status_code == 500
    assert response.json()["message"] == "disk I/O error"
