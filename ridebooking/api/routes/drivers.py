"""
Driver administration
=====================

GET   /api/v1/admin/drivers       -- list (optional ``active`` filter)
POST  /api/v1/admin/drivers       -- create (409 on duplicate e-mail)
GET   /api/v1/admin/drivers/{id}
PATCH /api/v1/admin/drivers/{id}  -- partial update, including deactivation
"""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db, require_admin
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    DriverCreateRequest,
    DriverResponse,
    DriverUpdateRequest,
)
from ridebooking.config import settings
from ridebooking.domain.identifiers import is_valid_email, is_valid_phone
from ridebooking.infrastructure.models import DriverModel, UserModel
from ridebooking.infrastructure.repositories import AuditLogRepository, DriverRepository

router = APIRouter(prefix="/admin/drivers", tags=["admin"])


async def _get_or_404(db: AsyncSession, driver_id: int) -> DriverModel:
    driver = await DriverRepository(db).get_by_id(driver_id)
    if not driver:
        raise HTTPException(status_code=404, detail="Driver not found")
    return driver


@router.get("", response_model=list[DriverResponse], summary="List drivers")
@limiter.limit(settings.rate_limit)
async def list_drivers(
    request: Request,
    active: Optional[bool] = None,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await DriverRepository(db).list(active)


@router.post("", status_code=201, response_model=DriverResponse, summary="Add a driver")
@limiter.limit(settings.rate_limit)
async def create_driver(
    request: Request,
    body: DriverCreateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    if not is_valid_email(body.email):
        raise HTTPException(status_code=400, detail="Invalid email address")
    if not is_valid_phone(body.phone):
        raise HTTPException(status_code=400, detail="Invalid phone number")

    repo = DriverRepository(db)
    if await repo.get_by_email(body.email):
        raise HTTPException(status_code=409, detail="Driver with this email already exists")

    driver = await repo.create(DriverModel(**body.model_dump()))
    await AuditLogRepository(db).record(
        "DRIVER_CREATED", "driver", driver.id,
        user_id=admin.id, new_values={"name": driver.name, "email": driver.email},
    )
    return driver


@router.get("/{driver_id}", response_model=DriverResponse, summary="Get a driver")
@limiter.limit(settings.rate_limit)
async def get_driver(
    request: Request,
    driver_id: int,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _get_or_404(db, driver_id)


@router.patch("/{driver_id}", response_model=DriverResponse, summary="Update a driver")
@limiter.limit(settings.rate_limit)
async def update_driver(
    request: Request,
    driver_id: int,
    body: DriverUpdateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    driver = await _get_or_404(db, driver_id)
    changes = {
        field: value
        for field, value in body.model_dump(exclude_unset=True).items()
        if value is not None or field not in ("name", "phone", "is_active")
    }
    if changes.get("phone") and not is_valid_phone(changes["phone"]):
        raise HTTPException(status_code=400, detail="Invalid phone number")

    before = {field: getattr(driver, field) for field in changes}
    for field, value in changes.items():
        setattr(driver, field, value)
    await db.flush()

    await AuditLogRepository(db).record(
        "DRIVER_UPDATED", "driver", driver.id,
        user_id=admin.id, old_values=before, new_values=changes,
    )
    return driver
