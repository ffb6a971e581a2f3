from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..errors import NotFoundError, ValidationError
from ..persistence import Persistence
from .validation import require_amount, require_positive_int

logger = logging.getLogger(__name__)


def public_record(row: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": row["id"],
        "user_id": row["user_id"],
        "category_id": row["category_id"],
        "amount": float(row["amount"]),
        "created_at": row["created_at"],
    }


class RecordManager:
    def __init__(self, persistence: Persistence) -> None:
        self.persistence = persistence

    def list(self, user_id: Any = None, category_id: Any = None) -> list[dict[str, Any]]:
        """Records matching every supplied filter, most recent first."""
        if user_id is None and category_id is None:
            raise ValidationError('At least one of query params "user_id" or "category_id" is required')
        criteria: dict[str, int] = {}
        if user_id is not None:
            criteria["user_id"] = require_positive_int(user_id, "user_id")
        if category_id is not None:
            criteria["category_id"] = require_positive_int(category_id, "category_id")
        with self.persistence.transaction() as uow:
            rows = uow.find_where("records", **criteria)
        rows.sort(key=lambda r: (r["created_at"], r["id"]), reverse=True)
        return [public_record(row) for row in rows]

    def get(self, record_id: Any) -> dict[str, Any]:
        record_id = require_positive_int(record_id, "record_id")
        with self.persistence.transaction() as uow:
            row = uow.find_by_id("records", record_id)
        if row is None:
            raise NotFoundError("Record not found")
        return public_record(row)

    def create(self, user_id: Any, category_id: Any, amount: Any) -> dict[str, Any]:
        user_id = require_positive_int(user_id, "userId")
        category_id = require_positive_int(category_id, "categoryId")
        amount = require_amount(amount)
        with self.persistence.transaction() as uow:
            if uow.find_by_id("users", user_id, for_update=True) is None:
                raise NotFoundError("User not found")
            if uow.find_by_id("categories", category_id, for_update=True) is None:
                raise NotFoundError("Category not found")
            row = uow.insert(
                "records",
                {
                    "user_id": user_id,
                    "category_id": category_id,
                    "amount": amount,
                    "created_at": datetime.now(timezone.utc),
                },
            )
        logger.info("created record %s for user %s", row["id"], user_id)
        return public_record(row)

    def delete(self, record_id: Any) -> None:
        record_id = require_positive_int(record_id, "record_id")
        with self.persistence.transaction() as uow:
            if not uow.delete("records", record_id):
                raise NotFoundError("Record not found")
        logger.info("deleted record %s", record_id)
