from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from ..auth_utils import TokenService, hash_password, verify_password
from ..errors import AuthenticationError, ConflictError
from ..persistence import Persistence
from .users import public_user
from .validation import PASSWORD_MAX_LENGTH, PASSWORD_MIN_LENGTH, require_text

logger = logging.getLogger(__name__)


class IdentityService:
    """Registration, login and bearer-token verification."""

    def __init__(self, persistence: Persistence, tokens: TokenService, hash_iterations: int = 390000) -> None:
        self.persistence = persistence
        self.tokens = tokens
        self.hash_iterations = hash_iterations
        # verified against on unknown names
        self._dummy_hash = hash_password("dummy-password", hash_iterations)

    @staticmethod
    def _check_credentials(name: Any, password: Any) -> tuple[str, str]:
        return (
            require_text(name, "name"),
            require_text(password, "password", PASSWORD_MIN_LENGTH, PASSWORD_MAX_LENGTH),
        )

    def register(self, name: Any, password: Any) -> tuple[dict[str, Any], str]:
        name, password = self._check_credentials(name, password)
        password_hash = hash_password(password, self.hash_iterations)
        with self.persistence.transaction() as uow:
            if uow.find_where("users", name=name):
                raise ConflictError("User with this name already exists")
            row = uow.insert(
                "users",
                {"name": name, "password_hash": password_hash, "created_at": datetime.now(timezone.utc)},
            )
        logger.info("registered user %s", row["id"])
        return public_user(row), self.tokens.issue(row["id"])

    def login(self, name: Any, password: Any) -> str:
        name, password = self._check_credentials(name, password)
        with self.persistence.transaction() as uow:
            matches = uow.find_where("users", name=name)
        row = matches[0] if matches else None
        stored_hash = row["password_hash"] if row else self._dummy_hash
        password_ok = verify_password(password, stored_hash)
        if row is None or not password_ok:
            logger.warning("failed login attempt")
            raise AuthenticationError("bad_credentials")
        return self.tokens.issue(row["id"])

    def verify(self, token: str | None) -> int:
        if not token:
            raise AuthenticationError("missing")
        return self.tokens.decode(token)
