import math

import pytest

from ledger.errors import NotFoundError, ValidationError
from ledger.main import AppServices


@pytest.fixture
def owner_and_category(services: AppServices) -> tuple[dict, dict]:
    user, _ = services.identity.register("alice", "secret1")
    return user, services.categories.create_category("Food")


def test_create_record(services: AppServices, owner_and_category) -> None:
    user, food = owner_and_category
    record = services.records.create(user["id"], food["id"], 12.5)
    assert record["amount"] == 12.5
    assert record["user_id"] == user["id"]
    assert record["category_id"] == food["id"]
    assert record["created_at"] is not None
    assert services.records.get(record["id"]) == record


def test_create_checks_user_before_category(services: AppServices, owner_and_category) -> None:
    user, food = owner_and_category
    with pytest.raises(NotFoundError, match="User not found"):
        services.records.create(999, 999, 5)
    with pytest.raises(NotFoundError, match="Category not found"):
        services.records.create(user["id"], 999, 5)


@pytest.mark.parametrize("amount", [0, -1, -0.01, "abc", "12", None, True, math.nan, math.inf])
def test_create_rejects_bad_amount(services: AppServices, owner_and_category, amount) -> None:
    user, food = owner_and_category
    with pytest.raises(ValidationError):
        services.records.create(user["id"], food["id"], amount)


@pytest.mark.parametrize("user_id,category_id", [(0, 1), (1, -3), ("1", 1), (1, 1.5), (None, 1)])
def test_create_rejects_bad_ids(services: AppServices, owner_and_category, user_id, category_id) -> None:
    with pytest.raises(ValidationError):
        services.records.create(user_id, category_id, 10)


def test_list_requires_a_filter(services: AppServices) -> None:
    with pytest.raises(ValidationError):
        services.records.list()
    with pytest.raises(ValidationError):
        services.records.list(user_id=-2)


def test_list_filters_and_orders_most_recent_first(services: AppServices, owner_and_category) -> None:
    user, food = owner_and_category
    other, _ = services.identity.register("bob", "secret1")
    rent = services.categories.create_category("Rent")
    first = services.records.create(user["id"], food["id"], 1)
    second = services.records.create(user["id"], rent["id"], 2)
    third = services.records.create(user["id"], food["id"], 3)
    services.records.create(other["id"], food["id"], 4)

    assert [r["id"] for r in services.records.list(user_id=user["id"])] == [third["id"], second["id"], first["id"]]
    assert [r["id"] for r in services.records.list(user_id=user["id"], category_id=food["id"])] == [third["id"], first["id"]]
    assert len(services.records.list(category_id=food["id"])) == 3


def test_delete_record(services: AppServices, owner_and_category) -> None:
    user, food = owner_and_category
    record = services.records.create(user["id"], food["id"], 7)
    services.records.delete(record["id"])
    with pytest.raises(NotFoundError):
        services.records.get(record["id"])
    with pytest.raises(NotFoundError):
        services.records.delete(record["id"])
