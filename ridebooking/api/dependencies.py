"""FastAPI dependency injection helpers."""

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.domain.enums import ADMIN_ROLES, UserRole
from ridebooking.infrastructure.database import async_session_factory
from ridebooking.infrastructure.models import UserModel
from ridebooking.infrastructure.redis_client import get_redis
from ridebooking.infrastructure.repositories import UserRepository
from ridebooking.infrastructure.security import AuthError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield an async DB session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_redis_client() -> aioredis.Redis:
    return await get_redis()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> UserModel:
    """Resolve the bearer token to a user that still exists (401 otherwise)."""
    if credentials is None:
        raise HTTPException(status_code=401, detail="Authorization token required")
    try:
        claims = decode_access_token(credentials.credentials)
    except AuthError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc

    user = await UserRepository(db).get_by_id(claims.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


async def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    if UserRole(user.role) not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


async def require_super_admin(user: UserModel = Depends(require_admin)) -> UserModel:
    if UserRole(user.role) != UserRole.SUPER_ADMIN:
        raise HTTPException(status_code=403, detail="Super admin access required")
    return user
