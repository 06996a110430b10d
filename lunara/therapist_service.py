from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select

from .auth_service import CurrentUser
from .db import db_session
from .errors import ConflictError, NotFoundError, PermissionDenied, ValidationFailed
from .models import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, Service, Therapist, User, UserRole
from .serializers import hhmm, money, therapist_to_dict

logger = logging.getLogger(__name__)

# Bookable grid: every 30 minutes from 08:00 to 17:30, each candidate slot one hour long
DAY_START_HOUR = 8
DAY_END_HOUR = 18
SLOT_STEP_MINUTES = 30
SLOT_LENGTH_MINUTES = 60


def _with_user(t: Therapist, u: User) -> dict:
    return {**therapist_to_dict(t), "name": u.name, "email": u.email, "is_active": u.is_active}


def _get_or_404(s, therapist_id: str) -> Therapist:
    t = s.get(Therapist, therapist_id)
    if not t:
        raise NotFoundError("Therapist not found")
    return t


def ensure_can_manage(s, user: CurrentUser, therapist_id: str) -> Therapist:
    """Admins manage every therapist; a therapist only their own record."""
    t = _get_or_404(s, therapist_id)
    if user.role == UserRole.THERAPIST and t.user_id != user.id:
        raise PermissionDenied("Permission denied")
    return t


def list_therapists() -> list[dict]:
    total_services = (
        select(func.count(Service.id))
        .where(Service.therapist_id == Therapist.id, Service.is_active.is_(True))
        .correlate(Therapist)
        .scalar_subquery()
    )
    total_bookings = (
        select(func.count(Booking.id)).where(Booking.therapist_id == Therapist.id).correlate(Therapist).scalar_subquery()
    )
    avg_value = (
        select(func.avg(Booking.total_amount))
        .where(Booking.therapist_id == Therapist.id, Booking.status == BookingStatus.COMPLETED)
        .correlate(Therapist)
        .scalar_subquery()
    )

    with db_session() as s:
        rows = s.execute(
            select(
                Therapist,
                User,
                total_services.label("total_services"),
                total_bookings.label("total_bookings"),
                avg_value.label("avg_booking_value"),
            )
            .join(User, User.id == Therapist.user_id)
            .order_by(Therapist.created_at.desc())
        ).all()
        return [
            {
                **_with_user(r.Therapist, r.User),
                "total_services": r.total_services or 0,
                "total_bookings": r.total_bookings or 0,
                "avg_booking_value": money(r.avg_booking_value) if r.avg_booking_value is not None else None,
            }
            for r in rows
        ]


def get_therapist(therapist_id: str) -> dict:
    with db_session() as s:
        t = _get_or_404(s, therapist_id)
        return _with_user(t, t.user)


def create_therapist(user_id: str, specialty: str, bio: str | None, commission_rate: Decimal) -> dict:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")

        exists = s.execute(select(Therapist.id).where(Therapist.user_id == user_id)).first()
        if exists:
            raise ConflictError("User is already a therapist")

        t = Therapist(user_id=user_id, specialty=specialty, bio=bio, commission_rate=commission_rate, is_available=True)
        s.add(t)
        s.flush()
        logger.info(f"Therapist {t.id} created for user {user_id}")
        return therapist_to_dict(t)


def update_therapist(user: CurrentUser, therapist_id: str, changes: dict[str, Any]) -> dict:
    # bio may be cleared explicitly; the other fields ignore nulls
    changes = {k: v for k, v in changes.items() if v is not None or k == "bio"}
    if not changes:
        raise ValidationFailed("No fields to update")

    with db_session() as s:
        t = ensure_can_manage(s, user, therapist_id)
        for field, value in changes.items():
            setattr(t, field, value)
        s.flush()
        return therapist_to_dict(t)


def _minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def candidate_slots() -> list[time]:
    slots = []
    current = datetime.combine(date.min, time(DAY_START_HOUR, 0))
    end = datetime.combine(date.min, time(DAY_END_HOUR, 0))
    while current < end:
        slots.append(current.time())
        current += timedelta(minutes=SLOT_STEP_MINUTES)
    return slots


def get_availability(therapist_id: str, day: date) -> dict:
    """
    A candidate slot [t, t+60) is busy when it overlaps any booking still holding
    its time, [start, start+service duration).
    """
    with db_session() as s:
        _get_or_404(s, therapist_id)
        busy = s.execute(
            select(Booking.scheduled_time, Service.duration_minutes)
            .join(Service, Service.id == Booking.service_id)
            .where(
                Booking.therapist_id == therapist_id,
                Booking.scheduled_date == day,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
            .order_by(Booking.scheduled_time)
        ).all()

    intervals = [(_minutes(b.scheduled_time), _minutes(b.scheduled_time) + b.duration_minutes) for b in busy]
    available = []
    for slot in candidate_slots():
        start = _minutes(slot)
        end = start + SLOT_LENGTH_MINUTES
        if not any(start < busy_end and end > busy_start for busy_start, busy_end in intervals):
            available.append(hhmm(slot))

    return {
        "date": day.isoformat(),
        "available_slots": available,
        "busy_slots": [hhmm(b.scheduled_time) for b in busy],
    }
