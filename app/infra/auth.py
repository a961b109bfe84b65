from __future__ import annotations

import os
from datetime import timedelta
from typing import Any

import jwt

from app.domain.models import UserRole, now_utc

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))
JWT_ISSUER = os.getenv("JWT_ISSUER", "asset-lifecycle")


def create_access_token(
    *,
    user_id: str,
    role: UserRole | str,
    expires_minutes: int | None = None,
) -> str:
    issued_at = now_utc()
    lifetime = timedelta(minutes=expires_minutes or JWT_EXPIRES_MIN)
    claims: dict[str, Any] = {
        "iss": JWT_ISSUER,
        "sub": user_id,
        "role": str(role),
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    return jwt.encode(claims, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature, expiry and issuer; raises ``jwt.PyJWTError`` otherwise."""
    return jwt.decode(
        token,
        JWT_SECRET,
        algorithms=[JWT_ALGORITHM],
        issuer=JWT_ISSUER,
        options={"require": ["exp", "iat", "sub"]},
    )
