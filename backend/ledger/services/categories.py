from __future__ import annotations

import logging
from typing import Any

from ..errors import NotFoundError, PermissionDeniedError
from ..persistence import Persistence, UnitOfWork
from .validation import require_positive_int, require_text

logger = logging.getLogger(__name__)


def public_category(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "is_custom": bool(row["is_custom"]),
        "owner_id": row.get("owner_id"),
    }


def delete_category_cascade(uow: UnitOfWork, category_id: int) -> int:
    """Delete the records filed under a category, then the category. Returns the record count."""
    removed = uow.delete_where("records", category_id=category_id)
    if not uow.delete("categories", category_id):
        raise NotFoundError("Category not found")
    return removed


class CategoryPolicy:
    """Decides which categories a user may see and manages their lifecycle.

    Global categories (``is_custom`` false, no owner) are visible to everyone. A
    custom category belongs to exactly one user and is only listed for that user.
    Listing without a user returns the global categories alone.

    Methods taking ``acting_user_id`` apply ownership on behalf of an authenticated
    caller: they may only list, create or delete custom categories of their own.
    """

    def __init__(self, persistence: Persistence) -> None:
        self.persistence = persistence

    def list_visible(self, user_id: Any = None, acting_user_id: int | None = None) -> list[dict[str, Any]]:
        if user_id is not None:
            user_id = require_positive_int(user_id, "user_id")
        if acting_user_id is not None:
            if user_id is not None and user_id != acting_user_id:
                raise PermissionDeniedError("Custom categories of other users are not visible")
            user_id = acting_user_id
        with self.persistence.transaction() as uow:
            rows = uow.find_where("categories", is_custom=False)
            if user_id is not None:
                rows += uow.find_where("categories", is_custom=True, owner_id=user_id)
        return [public_category(row) for row in sorted(rows, key=lambda r: r["id"])]

    def get_category(self, category_id: Any) -> dict[str, Any]:
        category_id = require_positive_int(category_id, "category_id")
        with self.persistence.transaction() as uow:
            row = uow.find_by_id("categories", category_id)
        if row is None:
            raise NotFoundError("Category not found")
        return public_category(row)

    def create_category(self, name: Any, owner_id: Any = None, acting_user_id: int | None = None) -> dict[str, Any]:
        if isinstance(name, str):
            name = name.strip()
        name = require_text(name, "name")
        if owner_id is not None:
            owner_id = require_positive_int(owner_id, "userId")
            if acting_user_id is not None and owner_id != acting_user_id:
                raise PermissionDeniedError("Custom categories can only be created for yourself")
        with self.persistence.transaction() as uow:
            if owner_id is not None and uow.find_by_id("users", owner_id, for_update=True) is None:
                raise NotFoundError("User not found")
            row = uow.insert(
                "categories",
                {"name": name, "is_custom": owner_id is not None, "owner_id": owner_id},
            )
        logger.info("created %s category %s", "custom" if row["is_custom"] else "global", row["id"])
        return public_category(row)

    def delete_category(self, category_id: Any, acting_user_id: int | None = None) -> None:
        category_id = require_positive_int(category_id, "id")
        with self.persistence.transaction() as uow:
            row = uow.find_by_id("categories", category_id)
            if row is None:
                raise NotFoundError("Category not found")
            if acting_user_id is not None and row["is_custom"] and row["owner_id"] != acting_user_id:
                raise PermissionDeniedError("Custom categories can only be deleted by their owner")
            removed = delete_category_cascade(uow, category_id)
        logger.info("deleted category %s and %d records", category_id, removed)
