from concurrent.futures import ThreadPoolExecutor

import pytest

from ledger.errors import AuthenticationError, ConflictError, ValidationError
from ledger.main import AppServices


def test_register_then_login_resolves_to_same_user(services: AppServices) -> None:
    user, token = services.identity.register("alice", "secret1")
    assert user["name"] == "alice"
    assert "password_hash" not in user
    assert services.identity.verify(token) == user["id"]

    login_token = services.identity.login("alice", "secret1")
    assert services.identity.verify(login_token) == user["id"]


def test_register_stores_only_a_hash(services: AppServices, persistence) -> None:
    user, _ = services.identity.register("alice", "secret1")
    with persistence.transaction() as uow:
        row = uow.find_by_id("users", user["id"])
    assert row["password_hash"] != "secret1"
    assert row["password_hash"].startswith("pbkdf2_sha256$")


def test_register_duplicate_name_conflicts(services: AppServices) -> None:
    services.identity.register("alice", "secret1")
    with pytest.raises(ConflictError):
        services.identity.register("alice", "another1")


@pytest.mark.parametrize(
    "name,password",
    [
        ("", "secret1"),
        ("x" * 256, "secret1"),
        ("alice", "short"),
        ("alice", "p" * 256),
        (None, "secret1"),
        ("alice", 123456),
    ],
)
def test_register_rejects_malformed_input(services: AppServices, name, password) -> None:
    with pytest.raises(ValidationError):
        services.identity.register(name, password)


def test_register_accepts_boundary_lengths(services: AppServices) -> None:
    user, _ = services.identity.register("a" * 255, "p" * 6)
    assert len(user["name"]) == 255


def test_login_failures_are_indistinguishable(services: AppServices) -> None:
    services.identity.register("alice", "secret1")
    with pytest.raises(AuthenticationError) as wrong_password:
        services.identity.login("alice", "wrong-password")
    with pytest.raises(AuthenticationError) as unknown_name:
        services.identity.login("mallory", "secret1")
    assert wrong_password.value.reason == unknown_name.value.reason == "bad_credentials"
    assert wrong_password.value.code == unknown_name.value.code
    assert wrong_password.value.message == unknown_name.value.message == "Invalid credentials"


def test_login_rejects_malformed_input(services: AppServices) -> None:
    with pytest.raises(ValidationError):
        services.identity.login("alice", "123")


def test_verify_without_token(services: AppServices) -> None:
    with pytest.raises(AuthenticationError) as info:
        services.identity.verify(None)
    assert info.value.reason == "missing"
    with pytest.raises(AuthenticationError):
        services.identity.verify("")


def test_concurrent_registration_of_one_name_creates_one_user(services: AppServices) -> None:
    def attempt(_: int) -> str:
        try:
            services.identity.register("bob", "secret1")
        except ConflictError:
            return "conflict"
        return "created"

    with ThreadPoolExecutor(max_workers=8) as pool:
        outcomes = list(pool.map(attempt, range(8)))

    assert outcomes.count("created") == 1
    assert outcomes.count("conflict") == 7
    assert [u["name"] for u in services.users.list_users()] == ["bob"]
