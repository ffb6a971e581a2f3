from __future__ import annotations

import logging
from typing import Any

from ..errors import NotFoundError, PermissionDeniedError
from ..persistence import Persistence
from .categories import delete_category_cascade
from .validation import require_positive_int

logger = logging.getLogger(__name__)


def public_user(row: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in row.items() if key != "password_hash"}


class UserService:
    def __init__(self, persistence: Persistence) -> None:
        self.persistence = persistence

    def list_users(self) -> list[dict[str, Any]]:
        with self.persistence.transaction() as uow:
            return [public_user(row) for row in uow.find_where("users")]

    def get_user(self, user_id: Any) -> dict[str, Any]:
        user_id = require_positive_int(user_id, "user_id")
        with self.persistence.transaction() as uow:
            row = uow.find_by_id("users", user_id)
        if row is None:
            raise NotFoundError("User not found")
        return public_user(row)

    def delete_user(self, user_id: Any, acting_user_id: int | None = None) -> None:
        """Remove a user with their records and custom categories in one transaction.

        When ``acting_user_id`` is given, only that user may delete their own account.
        """
        user_id = require_positive_int(user_id, "user_id")
        if acting_user_id is not None and acting_user_id != user_id:
            raise PermissionDeniedError("Users may only delete their own account")
        with self.persistence.transaction() as uow:
            if uow.find_by_id("users", user_id) is None:
                raise NotFoundError("User not found")
            removed_records = uow.delete_where("records", user_id=user_id)
            owned = uow.find_where("categories", owner_id=user_id)
            for category in owned:
                removed_records += delete_category_cascade(uow, category["id"])
            if not uow.delete("users", user_id):
                raise NotFoundError("User not found")
        logger.info(
            "deleted user %s with %d custom categories and %d records", user_id, len(owned), removed_records
        )
