import time

import jwt
import pytest

from ledger.auth_utils import TokenService, hash_password, verify_password
from ledger.errors import AuthenticationError

SECRET = "test-signing-secret-0123456789abcdef"


def test_hash_password_is_salted() -> None:
    first = hash_password("secret1", iterations=1000)
    second = hash_password("secret1", iterations=1000)
    assert first != second
    assert first.startswith("pbkdf2_sha256$1000$")
    assert "secret1" not in first


def test_verify_password() -> None:
    stored = hash_password("secret1", iterations=1000)
    assert verify_password("secret1", stored) is True
    assert verify_password("secret2", stored) is False


@pytest.mark.parametrize("stored", ["", "plain", "md5$1$salt$digest", "pbkdf2_sha256$abc$salt$digest", "pbkdf2_sha256$0$salt$x"])
def test_verify_password_rejects_malformed_hashes(stored: str) -> None:
    assert verify_password("secret1", stored) is False


def test_token_roundtrip_carries_subject() -> None:
    tokens = TokenService(SECRET)
    token = tokens.issue(42)
    claims = jwt.decode(token, SECRET, algorithms=["HS256"])
    assert claims["sub"] == "42"
    assert claims["exp"] - claims["iat"] == 3600
    assert tokens.decode(token) == 42


def test_expired_token() -> None:
    tokens = TokenService(SECRET, expires_in=-10)
    with pytest.raises(AuthenticationError) as info:
        tokens.decode(tokens.issue(1))
    assert info.value.reason == "expired"
    assert info.value.code == "TOKEN_EXPIRED"


def test_token_signed_with_other_secret_is_invalid() -> None:
    foreign = TokenService("another-signing-secret-0123456789abcd").issue(1)
    with pytest.raises(AuthenticationError) as info:
        TokenService(SECRET).decode(foreign)
    assert info.value.reason == "invalid"


def test_garbage_token_is_invalid() -> None:
    with pytest.raises(AuthenticationError) as info:
        TokenService(SECRET).decode("not-a-token")
    assert info.value.reason == "invalid"


def test_token_with_non_numeric_subject_is_invalid() -> None:
    token = jwt.encode({"sub": "alice", "exp": int(time.time()) + 60}, SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError) as info:
        TokenService(SECRET).decode(token)
    assert info.value.reason == "invalid"


def test_token_without_expiry_is_invalid() -> None:
    token = jwt.encode({"sub": "1"}, SECRET, algorithm="HS256")
    with pytest.raises(AuthenticationError) as info:
        TokenService(SECRET).decode(token)
    assert info.value.reason == "invalid"
