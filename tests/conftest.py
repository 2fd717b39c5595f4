import pytest
from fastapi.testclient import TestClient

from config import Settings
from main import create_app

PASSWORD = "secret-password"


@pytest.fixture
def app():
    settings = Settings(app_env="test", database_url="sqlite://", session_secret="test-secret", log_level="DEBUG")
    return create_app(settings)


@pytest.fixture
def anon_client(app):
    with TestClient(app) as client:
        yield client


def register(client: TestClient, email: str, password: str = PASSWORD, name: str = "Test User") -> dict:
    response = client.post("/api/register", json={"email": email, "password": password, "name": name})
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def client(anon_client):
    """A client logged in as alice@example.com."""
    register(anon_client, "alice@example.com")
    return anon_client


@pytest.fixture
def other_client(app, client):
    """A second, independent session logged in as bob@example.com."""
    # no context manager: the lifespan is already running through ``client``
    other = TestClient(app)
    register(other, "bob@example.com")
    yield other
    other.close()
