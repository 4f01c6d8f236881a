from __future__ import annotations

from functools import lru_cache
from typing import Any

from jose import JWTError, jwt

from factoring.core.settings import settings


class JWTKeyError(RuntimeError):
    pass


@lru_cache(maxsize=1)
def _load_verification_key() -> str:
    if settings.jwt_algorithm.upper().startswith("HS"):
        if settings.jwt_secret:
            return settings.jwt_secret
        raise JWTKeyError("JWT secret not configured")
    if settings.jwt_public_key:
        return settings.jwt_public_key
    if settings.jwt_public_key_path:
        return _read_key(settings.jwt_public_key_path)
    raise JWTKeyError("JWT public key not configured")


def _read_key(path: str) -> str:
    with open(path, "r", encoding="utf-8") as key_file:
        return key_file.read()


def decode_token(token: str) -> dict[str, Any]:
    """Verify an access token issued by the identity provider and return its claims."""
    key = _load_verification_key()
    options = {"verify_aud": bool(settings.jwt_audience)}
    try:
        return jwt.decode(
            token,
            key,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience or None,
            options=options,
        )
    except JWTError as exc:
        raise ValueError("Invalid token") from exc
