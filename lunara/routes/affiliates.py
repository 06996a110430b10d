from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ..affiliate_service import affiliate_stats, create_affiliate, get_affiliate, list_affiliates, update_affiliate
from ..auth_service import CurrentUser
from ..dependencies import get_current_user, require_role
from ..models import UserRole
from ..responses import ok
from ..schemas import AffiliateCreateIn, AffiliateUpdateIn, UUIDStr

router = APIRouter(prefix="/api/affiliates", tags=["Affiliates"])


@router.get("")
def affiliates(_: CurrentUser = Depends(require_role(UserRole.ADMIN, UserRole.THERAPIST))) -> dict[str, Any]:
    return ok(list_affiliates())


@router.get("/{affiliate_id}")
def affiliate(affiliate_id: UUIDStr, user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(get_affiliate(user, affiliate_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def new_affiliate(payload: AffiliateCreateIn, _: CurrentUser = Depends(require_role(UserRole.ADMIN))) -> dict[str, Any]:
    data = create_affiliate(payload.user_id, payload.commission_rate, payload.referral_code)
    return ok(data, "Affiliate created successfully")


@router.put("/{affiliate_id}")
def edit_affiliate(
    affiliate_id: UUIDStr,
    payload: AffiliateUpdateIn,
    _: CurrentUser = Depends(require_role(UserRole.ADMIN)),
) -> dict[str, Any]:
    return ok(update_affiliate(affiliate_id, payload.model_dump()), "Affiliate updated successfully")


@router.get("/{affiliate_id}/stats")
def stats(
    affiliate_id: UUIDStr,
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(affiliate_stats(user, affiliate_id, month, year))
