"""
Settings endpoints
==================

GET    /api/v1/settings/pricing            -- public pricing parameters (never fails)
GET    /api/v1/admin/settings              -- list, sensitive values masked
POST   /api/v1/admin/settings              -- upsert one setting
POST   /api/v1/admin/settings/bulk         -- upsert many
DELETE /api/v1/admin/settings/{key}
POST   /api/v1/admin/settings/initialize   -- write missing defaults (SUPER_ADMIN)
GET    /api/v1/admin/settings/missing      -- keys the booking form still needs
"""

from __future__ import annotations

import logging
from typing import Optional

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import (
    get_db,
    get_redis_client,
    require_admin,
    require_super_admin,
)
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    BulkSettingsRequest,
    MissingSettingsResponse,
    PublicPricingSettings,
    SettingResponse,
    SettingUpsertRequest,
)
from ridebooking.config import settings
from ridebooking.infrastructure.locks import DistributedLock, LockNotAcquired
from ridebooking.infrastructure.models import UserModel
from ridebooking.infrastructure.repositories import AuditLogRepository
from ridebooking.services.settings_store import SettingsError, SettingsService, as_flag

logger = logging.getLogger(__name__)

public_router = APIRouter(prefix="/settings", tags=["settings"])
router = APIRouter(prefix="/admin/settings", tags=["admin"])


@public_router.get(
    "/pricing", response_model=PublicPricingSettings, summary="Public pricing settings"
)
@limiter.limit(settings.rate_limit)
async def public_pricing(request: Request, db: AsyncSession = Depends(get_db)):
    defaults = PublicPricingSettings()
    try:
        stored = await SettingsService(db).category_values("pricing")
    except SQLAlchemyError:
        logger.exception("Could not read pricing settings; serving defaults")
        return defaults
    values = {key: stored.get(key, value) for key, value in defaults.model_dump().items()}
    values["use_simple_pricing"] = as_flag(values["use_simple_pricing"])
    return PublicPricingSettings(**values)


async def _upsert(
    service: SettingsService, body: SettingUpsertRequest, admin: UserModel, db: AsyncSession
) -> dict:
    try:
        setting = await service.set(
            body.key,
            body.value,
            description=body.description,
            category=body.category,
            is_encrypted=body.is_encrypted,
            is_sensitive=body.is_sensitive,
            data_type=body.data_type,
        )
    except SettingsError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    await AuditLogRepository(db).record(
        "SETTING_UPDATED",
        "setting",
        body.key,
        user_id=admin.id,
        new_values={"category": setting.category, "sensitive": setting.is_sensitive},
    )
    return service.to_public(setting)


@router.get("", response_model=list[SettingResponse], summary="List settings")
@limiter.limit(settings.rate_limit)
async def list_settings(
    request: Request,
    category: Optional[str] = None,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await SettingsService(db).list(category)


@router.post("", response_model=SettingResponse, summary="Create or update a setting")
@limiter.limit(settings.rate_limit)
async def upsert_setting(
    request: Request,
    body: SettingUpsertRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _upsert(SettingsService(db), body, admin, db)


@router.post("/bulk", summary="Create or update several settings")
@limiter.limit(settings.rate_limit)
async def bulk_upsert(
    request: Request,
    body: BulkSettingsRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    service = SettingsService(db)
    updated, skipped = [], 0
    for entry in body.settings:
        if not entry.get("key") or entry.get("value") is None:
            skipped += 1
            continue
        try:
            item = SettingUpsertRequest.model_validate(entry)
        except ValidationError as exc:
            raise HTTPException(
                status_code=400, detail=f"Invalid setting {entry['key']!r}"
            ) from exc
        updated.append((await _upsert(service, item, admin, db))["key"])
    return {"updated": updated, "skipped": skipped}


@router.get(
    "/missing", response_model=MissingSettingsResponse, summary="Missing required settings"
)
@limiter.limit(settings.rate_limit)
async def missing_settings(
    request: Request,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    missing = await SettingsService(db).missing_required()
    return MissingSettingsResponse(missing=missing, configured=not missing)


@router.post("/initialize", summary="Write default settings")
@limiter.limit(settings.rate_limit)
async def initialize_settings(
    request: Request,
    admin: UserModel = Depends(require_super_admin),
    db: AsyncSession = Depends(get_db),
    redis: aioredis.Redis = Depends(get_redis_client),
):
    try:
        async with DistributedLock(redis, "settings_init", ttl_seconds=30):
            created = await SettingsService(db).initialize_defaults()
            await db.commit()
    except LockNotAcquired as exc:
        raise HTTPException(
            status_code=409, detail="Settings initialisation already in progress"
        ) from exc

    if created:
        await AuditLogRepository(db).record(
            "SETTINGS_INITIALIZED", "setting", user_id=admin.id,
            new_values={"keys": created},
        )
    return {"created": created}


@router.delete("/{key}", summary="Delete a setting")
@limiter.limit(settings.rate_limit)
async def delete_setting(
    request: Request,
    key: str,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    try:
        await SettingsService(db).delete(key)
    except SettingsError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    await AuditLogRepository(db).record("SETTING_DELETED", "setting", key, user_id=admin.id)
    return {"message": "Setting deleted"}
