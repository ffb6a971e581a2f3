import pytest
from fastapi.testclient import TestClient

from ledger.config import Settings
from ledger.main import AppServices, build_services, create_app
from ledger.persistence import InMemoryPersistence

TEST_SETTINGS = Settings(
    storage_backend="memory",
    jwt_secret="test-signing-secret-0123456789abcdef",
    jwt_algorithm="HS256",
    jwt_expires_in=3600,
    password_hash_iterations=1000,
)


@pytest.fixture
def ledger_settings() -> Settings:
    return TEST_SETTINGS


@pytest.fixture
def persistence() -> InMemoryPersistence:
    return InMemoryPersistence()


@pytest.fixture
def services(persistence: InMemoryPersistence) -> AppServices:
    return build_services(persistence, TEST_SETTINGS)


@pytest.fixture
def client(persistence: InMemoryPersistence) -> TestClient:
    return TestClient(create_app(persistence, TEST_SETTINGS))


@pytest.fixture
def alice(client: TestClient) -> dict:
    res = client.post("/api/auth/register", json={"name": "alice", "password": "secret1"})
    assert res.status_code == 201
    body = res.json()
    return {"user": body["user"], "headers": {"Authorization": f"Bearer {body['accessToken']}"}}
