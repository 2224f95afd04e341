"""
Admin authentication
====================

POST /api/v1/admin/auth/login     -- exchange e-mail + password for a JWT
POST /api/v1/admin/auth/register  -- create an admin (first one bootstraps as SUPER_ADMIN)
GET  /api/v1/admin/auth/me        -- verify the token and return its user
PUT  /api/v1/admin/auth/password  -- change the caller's password
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import bearer_scheme, get_db, require_admin
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from ridebooking.config import settings
from ridebooking.domain.enums import ADMIN_ROLES, UserRole
from ridebooking.domain.identifiers import is_valid_email
from ridebooking.infrastructure.models import UserModel
from ridebooking.infrastructure.repositories import AuditLogRepository, UserRepository
from ridebooking.infrastructure.security import (
    AuthError,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from ridebooking.services.notifications import NotificationService
from ridebooking.services.settings_store import SettingsService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/auth", tags=["auth"])


async def _issue_token(db: AsyncSession, user: UserModel) -> str:
    days = await SettingsService(db).get("jwt_expires_days", settings.jwt_expires_days)
    return create_access_token(user, expires_days=int(days))


@router.post("/login", response_model=TokenResponse, summary="Admin login")
@limiter.limit(settings.login_rate_limit)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    if not body.email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password are required")

    user = await UserRepository(db).get_by_email(body.email.strip())
    if not user or not verify_password(body.password, user.password_hash):
        logger.info("Failed admin login for %s", body.email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if UserRole(user.role) not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="Admin access required")

    await AuditLogRepository(db).record("ADMIN_LOGIN", "user", user.id, user_id=user.id)
    return TokenResponse(
        token=await _issue_token(db, user), user=UserResponse.model_validate(user)
    )


@router.post(
    "/register",
    status_code=201,
    response_model=TokenResponse,
    summary="Register an admin account",
    description=(
        "While no admin exists the call is open and the account becomes "
        "SUPER_ADMIN. Afterwards a SUPER_ADMIN token is required and the "
        "account becomes ADMIN."
    ),
)
@limiter.limit(settings.login_rate_limit)
async def register(
    request: Request,
    body: RegisterRequest,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
):
    users = UserRepository(db)
    creator_id = None

    if await users.count_by_roles(list(ADMIN_ROLES)) == 0:
        role = UserRole.SUPER_ADMIN
    else:
        if credentials is None:
            raise HTTPException(status_code=401, detail="Authorization token required")
        try:
            claims = decode_access_token(credentials.credentials)
        except AuthError as exc:
            raise HTTPException(status_code=401, detail=str(exc)) from exc
        creator = await users.get_by_id(claims.user_id)
        if creator is None:
            raise HTTPException(status_code=401, detail="User not found")
        if UserRole(creator.role) != UserRole.SUPER_ADMIN:
            raise HTTPException(status_code=403, detail="Super admin access required")
        role = UserRole.ADMIN
        creator_id = creator.id

    email = body.email.strip().lower()
    if not is_valid_email(email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if await users.get_by_email(email):
        raise HTTPException(status_code=409, detail="User with this email already exists")

    user = await users.create(
        UserModel(
            name=body.name.strip(),
            email=email,
            phone=body.phone,
            password_hash=hash_password(body.password),
            role=role,
        )
    )
    await AuditLogRepository(db).record(
        "USER_REGISTERED",
        "user",
        user.id,
        user_id=creator_id,
        new_values={"email": user.email, "role": role.value},
    )
    app_name = await SettingsService(db).get("app_name", "Ride Booking App")
    await NotificationService(db).welcome(user, app_name)
    logger.info("Registered %s account %s", role.value, user.email)

    return TokenResponse(
        token=await _issue_token(db, user), user=UserResponse.model_validate(user)
    )


@router.get("/me", response_model=UserResponse, summary="Verify token")
@limiter.limit(settings.rate_limit)
async def me(request: Request, user: UserModel = Depends(require_admin)):
    return user


@router.put("/password", summary="Change password")
@limiter.limit(settings.login_rate_limit)
async def change_password(
    request: Request,
    body: ChangePasswordRequest,
    user: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not verify_password(body.current_password, user.password_hash):
        raise HTTPException(status_code=400, detail="Current password is incorrect")
    user.password_hash = hash_password(body.new_password)
    await AuditLogRepository(db).record(
        "PASSWORD_CHANGED", "user", user.id, user_id=user.id
    )
    return {"message": "Password updated"}
