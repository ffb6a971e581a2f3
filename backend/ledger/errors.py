from __future__ import annotations

from typing import Any


class LedgerError(Exception):
    code = "LEDGER_ERROR"
    status_code = 500

    def __init__(self, message: str, details: list[dict[str, str]] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or []

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ValidationError(LedgerError):
    code = "VALIDATION_ERROR"
    status_code = 400

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationError":
        return cls(message, details=[{"field": field, "message": message}])


class NotFoundError(LedgerError):
    code = "NOT_FOUND"
    status_code = 404


class PermissionDeniedError(LedgerError):
    code = "FORBIDDEN"
    status_code = 403


class ConflictError(LedgerError):
    code = "CONFLICT"
    status_code = 409


class StorageError(LedgerError):
    code = "STORAGE_ERROR"
    status_code = 500


class AuthenticationError(LedgerError):
    """Unauthorized outcome; ``reason`` tells missing, expired and invalid tokens apart."""

    status_code = 401
    codes = {
        "missing": "AUTHORIZATION_REQUIRED",
        "expired": "TOKEN_EXPIRED",
        "invalid": "INVALID_TOKEN",
        "bad_credentials": "INVALID_CREDENTIALS",
    }
    messages = {
        "missing": "Request does not contain an access token.",
        "expired": "The token has expired.",
        "invalid": "Signature verification failed.",
        "bad_credentials": "Invalid credentials",
    }

    def __init__(self, reason: str, message: str | None = None) -> None:
        if reason not in self.codes:
            raise ValueError(f"unknown authentication failure reason: {reason}")
        super().__init__(message or self.messages[reason])
        self.reason = reason
        self.code = self.codes[reason]
