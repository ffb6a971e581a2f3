import hashlib
import logging
import secrets
from datetime import datetime, timedelta, timezone

import jwt

from .errors import AuthenticationError

logger = logging.getLogger(__name__)

HASH_SCHEME = "pbkdf2_sha256"


def hash_password(password: str, iterations: int = 390000) -> str:
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), iterations).hex()
    return f"{HASH_SCHEME}${iterations}${salt}${digest}"


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        scheme, iterations, salt, expected = stored_hash.split("$", 3)
        rounds = int(iterations)
    except ValueError:
        return False
    if scheme != HASH_SCHEME or rounds <= 0:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt.encode("utf-8"), rounds).hex()
    return secrets.compare_digest(digest, expected)


class TokenService:
    """Signs and checks stateless bearer tokens carrying the user id and an expiry."""

    def __init__(self, secret: str, algorithm: str = "HS256", expires_in: int = 3600) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.expires_in = expires_in

    def issue(self, user_id: int) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=self.expires_in)).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def decode(self, token: str) -> int:
        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["sub", "exp"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise AuthenticationError("expired") from exc
        except jwt.InvalidTokenError as exc:
            logger.warning("rejected bearer token: %s", exc.__class__.__name__)
            raise AuthenticationError("invalid") from exc
        try:
            user_id = int(claims["sub"])
        except (TypeError, ValueError) as exc:
            raise AuthenticationError("invalid") from exc
        if user_id <= 0:
            raise AuthenticationError("invalid")
        return user_id
