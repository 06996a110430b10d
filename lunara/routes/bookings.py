from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Body, Depends, Query, status

from ..auth_service import CurrentUser
from ..booking_service import (
    BookingRequest,
    cancel_booking,
    complete_booking,
    confirm_booking,
    create_booking,
    list_bookings,
)
from ..dependencies import get_current_user, require_role
from ..email_service import send_booking_confirmation_email
from ..models import BookingStatus, UserRole
from ..responses import ok
from ..schemas import BookingCancelIn, BookingCreateIn, UUIDStr

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


@router.get("")
def bookings(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status_filter: BookingStatus | None = Query(default=None, alias="status"),
    therapist_id: UUIDStr | None = Query(default=None),
    affiliate_id: UUIDStr | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(
        list_bookings(
            user,
            page=page,
            limit=limit,
            status=status_filter,
            therapist_id=therapist_id,
            affiliate_id=affiliate_id,
            date_from=date_from,
            date_to=date_to,
        )
    )


@router.post("", status_code=status.HTTP_201_CREATED)
def new_booking(
    payload: BookingCreateIn,
    background: BackgroundTasks,
    _: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    created = create_booking(BookingRequest(**payload.model_dump()))

    # only after commit: the email never holds the transaction open
    b = created.booking
    background.add_task(
        send_booking_confirmation_email,
        b["client_email"],
        b["client_name"],
        created.service_name,
        f"{b['scheduled_date']} {b['scheduled_time']}",
        b["total_amount"],
        created.therapist_name,
    )
    return ok(b, "Booking created successfully")


@router.put("/{booking_id}/confirm")
def confirm(booking_id: UUIDStr, user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(confirm_booking(user, booking_id), "Booking confirmed successfully")


@router.put("/{booking_id}/cancel")
def cancel(
    booking_id: UUIDStr,
    payload: BookingCancelIn | None = Body(default=None),
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    reason = payload.reason if payload else None
    return ok(cancel_booking(user, booking_id, reason), "Booking cancelled successfully")


@router.put("/{booking_id}/complete")
def complete(
    booking_id: UUIDStr,
    user: CurrentUser = Depends(require_role(UserRole.ADMIN, UserRole.THERAPIST)),
) -> dict[str, Any]:
    return ok(complete_booking(user, booking_id), "Booking completed successfully")
