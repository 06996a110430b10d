from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query

from ..auth_service import CurrentUser
from ..commission_service import (
    commission_summary,
    commissions_by_affiliate,
    get_commission,
    list_commissions,
    pay_commission,
)
from ..dependencies import get_current_user, require_role
from ..email_service import send_commission_paid_email
from ..models import CommissionStatus, UserRole
from ..responses import ok
from ..schemas import CommissionPayIn, UUIDStr

router = APIRouter(prefix="/api/commissions", tags=["Commissions"])

admin_only = require_role(UserRole.ADMIN)


@router.get("")
def commissions(
    affiliate_id: UUIDStr | None = Query(default=None),
    status: CommissionStatus | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(list_commissions(user, affiliate_id, status, date_from, date_to))


# the stats paths are declared before /{commission_id} so they are not taken for ids
@router.get("/stats/summary")
def summary(
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    _: CurrentUser = Depends(admin_only),
) -> dict[str, Any]:
    return ok(commission_summary(month, year))


@router.get("/stats/by-affiliate")
def by_affiliate(_: CurrentUser = Depends(admin_only)) -> dict[str, Any]:
    return ok(commissions_by_affiliate())


@router.get("/{commission_id}")
def commission(commission_id: UUIDStr, user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(get_commission(user, commission_id))


@router.post("/{commission_id}/pay")
def pay(
    commission_id: UUIDStr,
    background: BackgroundTasks,
    payload: CommissionPayIn | None = Body(default=None),
    _: CurrentUser = Depends(admin_only),
) -> dict[str, Any]:
    payload = payload or CommissionPayIn()
    paid = pay_commission(commission_id, payload.payment_method, payload.payment_reference, payload.notes)
    background.add_task(
        send_commission_paid_email,
        paid.affiliate_email,
        paid.affiliate_name,
        paid.commission["amount"],
        paid.booking_details,
    )
    return ok(paid.commission, "Commission paid successfully")
