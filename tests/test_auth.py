"""Tests for registration, login, logout and session handling."""
from auth import SESSION_COOKIE_NAME, get_password_hash, verify_password
from tests.conftest import PASSWORD, register


def test_password_hash_round_trip() -> None:
    """Hashes verify against the right password only."""
    hashed = get_password_hash("hunter22")
    digest, salt = hashed.split(".")
    assert len(digest) == 128
    assert len(salt) == 32
    assert verify_password("hunter22", hashed)
    assert not verify_password("hunter23", hashed)


def test_password_hashes_are_salted() -> None:
    assert get_password_hash("same-password") != get_password_hash("same-password")


def test_verify_password_rejects_malformed_hash() -> None:
    assert not verify_password("anything", "no-salt-here")
    assert not verify_password("anything", "zz.abcd")


def test_register_returns_user_and_starts_session(anon_client) -> None:
    """Registering logs the new user in."""
    user = register(anon_client, "carol@example.com", name="Carol")
    assert user["email"] == "carol@example.com"
    assert user["name"] == "Carol"
    assert "password" not in user
    assert {"id", "createdAt", "updatedAt"} <= set(user)
    assert SESSION_COOKIE_NAME in anon_client.cookies

    response = anon_client.get("/api/user")
    assert response.status_code == 200
    assert response.json()["id"] == user["id"]


def test_register_duplicate_email_conflicts(anon_client) -> None:
    register(anon_client, "dup@example.com")
    response = anon_client.post("/api/register", json={"email": "dup@example.com", "password": PASSWORD})
    assert response.status_code == 409
    body = response.json()
    assert body["status"] == "error"
    assert body["code"] == "CONFLICT"


def test_register_validation_errors(anon_client) -> None:
    """Short passwords and malformed emails are reported per field."""
    response = anon_client.post("/api/register", json={"email": "not-an-email", "password": "123"})
    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert set(body["errors"]) == {"email", "password"}
    assert body["message"].startswith("Validation error: ")
    assert body["path"] == "/api/register"
    assert body["method"] == "POST"


def test_login_with_wrong_password(anon_client) -> None:
    register(anon_client, "dave@example.com")
    anon_client.post("/api/logout")

    response = anon_client.post("/api/login", json={"email": "dave@example.com", "password": "wrong-password"})
    assert response.status_code == 401
    assert response.json()["message"] == "Invalid email or password"


def test_login_with_unknown_email(anon_client) -> None:
    response = anon_client.post("/api/login", json={"email": "nobody@example.com", "password": PASSWORD})
    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"


def test_login_and_logout(anon_client) -> None:
    """A logged out session can log back in with the same credentials."""
    user = register(anon_client, "erin@example.com")
    assert anon_client.post("/api/logout").json() == {"status": "OK"}
    assert anon_client.get("/api/user").status_code == 401

    response = anon_client.post("/api/login", json={"email": "erin@example.com", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["id"] == user["id"]
    assert anon_client.get("/api/user").status_code == 200


def test_current_user_requires_session(anon_client) -> None:
    response = anon_client.get("/api/user")
    assert response.status_code == 401
    body = response.json()
    assert body["message"] == "You must be logged in to access this resource"
    assert body["requestId"]


def test_login_with_mixed_case_email(anon_client) -> None:
    """The address used at registration logs in however its case is typed."""
    user = register(anon_client, "Bob@Example.COM")
    anon_client.post("/api/logout")

    response = anon_client.post("/api/login", json={"email": "Bob@Example.COM", "password": PASSWORD})
    assert response.status_code == 200
    assert response.json()["id"] == user["id"]

    anon_client.post("/api/logout")
    response = anon_client.post("/api/login", json={"email": "bob@example.com", "password": PASSWORD})
    assert response.status_code == 200


def test_register_conflicts_regardless_of_case(anon_client) -> None:
    register(anon_client, "Case@Example.com")
    response = anon_client.post("/api/register", json={"email": "case@example.com", "password": PASSWORD})
    assert response.status_code == 409
