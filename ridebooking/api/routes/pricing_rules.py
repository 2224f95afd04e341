"""
Pricing rule administration
===========================

GET    /api/v1/admin/pricing-rules         -- paginated listing (optional ``active`` filter)
GET    /api/v1/admin/pricing-rules/active  -- the rule currently used for quotes
POST   /api/v1/admin/pricing-rules         -- create
GET    /api/v1/admin/pricing-rules/{id}
PATCH  /api/v1/admin/pricing-rules/{id}    -- partial update
DELETE /api/v1/admin/pricing-rules/{id}
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ridebooking.api.dependencies import get_db, require_admin
from ridebooking.api.middleware import limiter
from ridebooking.api.schemas import (
    PricingRuleCreateRequest,
    PricingRuleListResponse,
    PricingRuleResponse,
    PricingRuleUpdateRequest,
)
from ridebooking.config import settings
from ridebooking.domain.pricing import select_active_rule
from ridebooking.infrastructure.models import PricingRuleModel, UserModel
from ridebooking.infrastructure.repositories import (
    AuditLogRepository,
    PricingRuleRepository,
)
from ridebooking.services.bookings import BookingService

router = APIRouter(prefix="/admin/pricing-rules", tags=["admin"])


def _values(rule: PricingRuleModel) -> dict:
    return PricingRuleResponse.model_validate(rule).model_dump(mode="json")


async def _get_or_404(db: AsyncSession, rule_id: int) -> PricingRuleModel:
    rule = await PricingRuleRepository(db).get_by_id(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail="Pricing rule not found")
    return rule


@router.get("", response_model=PricingRuleListResponse, summary="List pricing rules")
@limiter.limit(settings.rate_limit)
async def list_rules(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    active: Optional[bool] = None,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    result = await PricingRuleRepository(db).list(page=page, limit=limit, active=active)
    return PricingRuleListResponse(
        rules=[PricingRuleResponse.model_validate(r) for r in result.items],
        total=result.total,
        pages=result.pages,
        current_page=result.page,
    )


@router.get(
    "/active",
    response_model=Optional[PricingRuleResponse],
    summary="Current active pricing rule",
)
@limiter.limit(settings.rate_limit)
async def active_rule(
    request: Request,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    now = await BookingService(db).business_now()
    candidates = await PricingRuleRepository(db).get_active_candidates()
    return select_active_rule(candidates, now)


@router.post(
    "", status_code=201, response_model=PricingRuleResponse, summary="Create a pricing rule"
)
@limiter.limit(settings.rate_limit)
async def create_rule(
    request: Request,
    body: PricingRuleCreateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await PricingRuleRepository(db).create(PricingRuleModel(**body.model_dump()))
    await AuditLogRepository(db).record(
        "PRICING_RULE_CREATED", "pricing_rule", rule.id,
        user_id=admin.id, new_values=_values(rule),
    )
    return rule


@router.get("/{rule_id}", response_model=PricingRuleResponse, summary="Get a pricing rule")
@limiter.limit(settings.rate_limit)
async def get_rule(
    request: Request,
    rule_id: int,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _get_or_404(db, rule_id)


@router.patch(
    "/{rule_id}", response_model=PricingRuleResponse, summary="Update a pricing rule"
)
@limiter.limit(settings.rate_limit)
async def update_rule(
    request: Request,
    rule_id: int,
    body: PricingRuleUpdateRequest,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await _get_or_404(db, rule_id)
    before = _values(rule)
    changes = body.model_dump(exclude_unset=True)

    valid_from = changes.get("valid_from", rule.valid_from)
    valid_to = changes.get("valid_to", rule.valid_to)
    if valid_from and valid_to and valid_from > valid_to:
        raise HTTPException(status_code=400, detail="valid_from must not be after valid_to")
    for field, value in changes.items():
        if value is None and field not in ("description", "valid_from", "valid_to"):
            raise HTTPException(status_code=400, detail=f"{field} cannot be null")
        setattr(rule, field, value)

    await db.flush()
    await AuditLogRepository(db).record(
        "PRICING_RULE_UPDATED", "pricing_rule", rule.id,
        user_id=admin.id, old_values=before, new_values=_values(rule),
    )
    return rule


@router.delete("/{rule_id}", summary="Delete a pricing rule")
@limiter.limit(settings.rate_limit)
async def delete_rule(
    request: Request,
    rule_id: int,
    admin: UserModel = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    rule = await _get_or_404(db, rule_id)
    before = _values(rule)
    await PricingRuleRepository(db).delete(rule)
    await AuditLogRepository(db).record(
        "PRICING_RULE_DELETED", "pricing_rule", rule_id,
        user_id=admin.id, old_values=before,
    )
    return {"message": "Pricing rule deleted"}
