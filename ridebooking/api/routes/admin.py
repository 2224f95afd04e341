"""
Admin / observability endpoints
===============================

GET /api/v1/admin/dashboard   -- stats, charts, recent activity
GET /api/v1/admin/audit-logs  -- paginated audit trail
GET /api/v1/admin/health      -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db, require_admin
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    AuditLogListResponse,
    AuditLogResponse,
    BookingResponse,
    DashboardResponse,
    HealthResponse,
)
from ridebooking.config import settings
from ridebooking.infrastructure.models import UserModel
from ridebooking.infrastructure.repositories import AuditLogRepository
from ridebooking.services.dashboard import build_dashboard

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/dashboard",
    response_model=DashboardResponse,
    summary="Dashboard statistics",
)
@limiter.limit(settings.rate_limit)
async def dashboard(
    request: Request,
    period: int = Query(30, ge=1, le=365, description="Look-back window in days"),
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    data = await build_dashboard(db, period)
    data["recent_bookings"] = [
        BookingResponse.model_validate(b) for b in data["recent_bookings"]
    ]
    return data


@router.get(
    "/audit-logs",
    response_model=AuditLogListResponse,
    summary="Audit trail",
)
@limiter.limit(settings.rate_limit)
async def audit_logs(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    action: Optional[str] = None,
    resource: Optional[str] = None,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await AuditLogRepository(db).list(
        page=page, limit=limit, action=action, resource=resource
    )
    return AuditLogListResponse(
        logs=[AuditLogResponse.model_validate(entry) for entry in result.items],
        total=result.total,
        pages=result.pages,
        current_page=result.page,
    )


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
