"""
Password hashing (bcrypt) and access tokens (JWT, HS256).

Token claims: ``sub`` (user id as string), ``email``, ``name``, ``role``,
``iat`` and ``exp``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

import bcrypt
import jwt

from ridebooking.config import settings
from ridebooking.domain.entities import utcnow
from ridebooking.domain.enums import UserRole


class AuthError(Exception):
    """Raised for bad credentials or unusable tokens."""


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    email: str
    name: str
    role: UserRole


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.bcrypt_rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def create_access_token(user, expires_days: int | None = None) -> str:
    now = utcnow()
    days = expires_days if expires_days is not None else settings.jwt_expires_days
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "name": user.name,
        "role": UserRole(user.role).value,
        "iat": now,
        "exp": now + timedelta(days=days),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> TokenClaims:
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthError("Invalid token") from exc

    try:
        return TokenClaims(
            user_id=int(payload["sub"]),
            email=payload["email"],
            name=payload["name"],
            role=UserRole(payload["role"]),
        )
    except (KeyError, ValueError) as exc:
        raise AuthError("Invalid token") from exc
