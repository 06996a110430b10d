from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy import and_, func, select
from sqlalchemy.orm import aliased

from .auth_service import CurrentUser
from .db import db_session
from .errors import ConflictError, NotFoundError
from .helpers import paginate, percentage_of
from .models import (
    ACTIVE_BOOKING_STATUSES,
    Affiliate,
    Booking,
    BookingStatus,
    Commission,
    CommissionStatus,
    Service,
    Therapist,
    User,
    UserRole,
)
from .serializers import booking_to_dict, money

logger = logging.getLogger(__name__)


# =========================
# DTO
# =========================
@dataclass(frozen=True)
class BookingRequest:
    therapist_id: str
    service_id: str
    client_name: str
    client_email: str
    scheduled_date: date
    scheduled_time: time
    client_phone: str | None = None
    affiliate_code: str | None = None
    notes: str | None = None


@dataclass(frozen=True)
class BookingCreated:
    booking: dict
    service_name: str
    therapist_name: str
    commission_id: str | None


# =========================
# Listing
# =========================
def _scope_to_user(q, user: CurrentUser):
    """Admins see everything; therapists and affiliates only their own bookings."""
    if user.role == UserRole.THERAPIST:
        own = select(Therapist.id).where(Therapist.user_id == user.id)
        return q.where(Booking.therapist_id.in_(own))
    if user.role == UserRole.AFFILIATE:
        own = select(Affiliate.id).where(Affiliate.user_id == user.id)
        return q.where(Booking.affiliate_id.in_(own))
    return q


def list_bookings(
    user: CurrentUser,
    page: int = 1,
    limit: int = 10,
    status: BookingStatus | None = None,
    therapist_id: str | None = None,
    affiliate_id: str | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict:
    conditions = []
    if status:
        conditions.append(Booking.status == status)
    if therapist_id:
        conditions.append(Booking.therapist_id == therapist_id)
    if affiliate_id:
        conditions.append(Booking.affiliate_id == affiliate_id)
    if date_from:
        conditions.append(Booking.scheduled_date >= date_from)
    if date_to:
        conditions.append(Booking.scheduled_date <= date_to)

    therapist_user = aliased(User)
    affiliate_user = aliased(User)

    q = (
        select(
            Booking,
            Service.name.label("service_name"),
            Service.price.label("service_price"),
            Service.duration_minutes,
            therapist_user.name.label("therapist_name"),
            therapist_user.email.label("therapist_email"),
            affiliate_user.name.label("affiliate_name"),
            affiliate_user.email.label("affiliate_email"),
            Affiliate.referral_code,
        )
        .outerjoin(Service, Service.id == Booking.service_id)
        .outerjoin(Therapist, Therapist.id == Booking.therapist_id)
        .outerjoin(therapist_user, therapist_user.id == Therapist.user_id)
        .outerjoin(Affiliate, Affiliate.id == Booking.affiliate_id)
        .outerjoin(affiliate_user, affiliate_user.id == Affiliate.user_id)
        .where(*conditions)
    )
    q = _scope_to_user(q, user)

    count_q = _scope_to_user(select(func.count(Booking.id)).where(*conditions), user)

    with db_session() as s:
        total = s.execute(count_q).scalar_one()
        rows = s.execute(
            q.order_by(Booking.scheduled_date.desc(), Booking.scheduled_time.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        ).all()

        bookings = [
            {
                **booking_to_dict(r.Booking),
                "service_name": r.service_name,
                "service_price": money(r.service_price) if r.service_price is not None else None,
                "duration_minutes": r.duration_minutes,
                "therapist_name": r.therapist_name,
                "therapist_email": r.therapist_email,
                "affiliate_name": r.affiliate_name,
                "affiliate_email": r.affiliate_email,
                "referral_code": r.referral_code,
            }
            for r in rows
        ]

    return {"bookings": bookings, "pagination": paginate(page, limit, total)}


# =========================
# Availability
# =========================
def _as_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def _slot_free(s, therapist_id: str, day: date, start: time, duration_minutes: int) -> bool:
    """
    No overlap with the therapist's bookings that still hold their time,
    comparing [start, start+duration) intervals on the same day.
    """
    taken = s.execute(
        select(Booking.scheduled_time, Service.duration_minutes)
        .outerjoin(Service, Service.id == Booking.service_id)
        .where(
            and_(
                Booking.therapist_id == therapist_id,
                Booking.scheduled_date == day,
                Booking.status.in_(ACTIVE_BOOKING_STATUSES),
            )
        )
    ).all()

    new_start = _as_minutes(start)
    new_end = new_start + duration_minutes
    for row in taken:
        other_start = _as_minutes(row.scheduled_time)
        # a booking whose service is gone still blocks its exact start time
        other_end = other_start + (row.duration_minutes or 1)
        if new_start < other_end and new_end > other_start:
            return False
    return True


# =========================
# Booking creation (core use case)
# =========================
def create_booking(req: BookingRequest) -> BookingCreated:
    """
    In one transaction:
    - look up the active service offered by the therapist
    - refuse overlapping time slots
    - resolve the optional affiliate code (unknown or inactive codes are ignored)
    - insert the booking as pending, priced at the service price
    - when referred, insert the pending commission and count the referral
    """
    with db_session() as s:
        service = s.execute(
            select(Service).where(
                Service.id == req.service_id,
                Service.therapist_id == req.therapist_id,
                Service.is_active.is_(True),
            )
        ).scalar_one_or_none()
        if not service:
            raise NotFoundError("Service not found or inactive")

        if not _slot_free(s, req.therapist_id, req.scheduled_date, req.scheduled_time, service.duration_minutes):
            raise ConflictError("Time slot not available")

        affiliate = None
        if req.affiliate_code:
            affiliate = s.execute(
                select(Affiliate).where(
                    Affiliate.referral_code == req.affiliate_code.strip().upper(),
                    Affiliate.is_active.is_(True),
                )
            ).scalar_one_or_none()
            if affiliate is None:
                logger.info(f"Unknown affiliate code '{req.affiliate_code}', booking left unattributed")

        booking = Booking(
            service_id=service.id,
            therapist_id=req.therapist_id,
            affiliate_id=affiliate.id if affiliate else None,
            client_name=req.client_name,
            client_email=req.client_email,
            client_phone=req.client_phone,
            scheduled_date=req.scheduled_date,
            scheduled_time=req.scheduled_time,
            notes=req.notes,
            total_amount=service.price,
            status=BookingStatus.PENDING,
        )
        s.add(booking)
        s.flush()

        commission_id = None
        if affiliate is not None:
            commission = Commission(
                affiliate_id=affiliate.id,
                booking_id=booking.id,
                amount=percentage_of(service.price, affiliate.commission_rate),
                percentage=affiliate.commission_rate,
                status=CommissionStatus.PENDING,
            )
            s.add(commission)
            affiliate.total_referrals = (affiliate.total_referrals or 0) + 1
            s.flush()
            commission_id = commission.id

        logger.info(
            f"Booking {booking.id} created for therapist {req.therapist_id} on "
            f"{req.scheduled_date.isoformat()} {req.scheduled_time.strftime('%H:%M')}"
            + (f" (affiliate {affiliate.id})" if affiliate else "")
        )

        therapist_name = service.therapist.user.name if service.therapist and service.therapist.user else ""
        return BookingCreated(
            booking=booking_to_dict(booking),
            service_name=service.name,
            therapist_name=therapist_name,
            commission_id=commission_id,
        )


# =========================
# Status transitions
# =========================
def _transition(
    user: CurrentUser,
    booking_id: str,
    allowed_from: tuple[BookingStatus, ...],
    to: BookingStatus,
    not_found_message: str,
    on_change=None,
    **fields,
) -> dict:
    """
    Moves a booking the caller can see from one of `allowed_from` to `to`.
    Bookings outside the caller's scope are reported as not found.
    """
    with db_session() as s:
        q = select(Booking).where(Booking.id == booking_id, Booking.status.in_(allowed_from))
        b = s.execute(_scope_to_user(q, user)).scalar_one_or_none()
        if not b:
            raise NotFoundError(not_found_message)
        b.status = to
        for field, value in fields.items():
            setattr(b, field, value)
        b.updated_at = datetime.utcnow()
        if on_change:
            on_change(s, b)
        s.flush()
        logger.info(f"Booking {booking_id} -> {to.value}")
        return booking_to_dict(b)


def _void_referral(s, b: Booking) -> None:
    """A cancelled booking earns nothing: its pending commission is cancelled and the referral undone."""
    if not b.affiliate_id:
        return
    pending = s.scalars(
        select(Commission).where(Commission.booking_id == b.id, Commission.status == CommissionStatus.PENDING)
    ).all()
    for c in pending:
        c.status = CommissionStatus.CANCELLED
        c.notes = "Booking cancelled"
    affiliate = s.get(Affiliate, b.affiliate_id)
    if affiliate and affiliate.total_referrals > 0:
        affiliate.total_referrals -= 1
    logger.info(f"Booking {b.id} cancelled: {len(pending)} commission(s) voided for affiliate {b.affiliate_id}")


def confirm_booking(user: CurrentUser, booking_id: str) -> dict:
    return _transition(
        user,
        booking_id,
        (BookingStatus.PENDING,),
        BookingStatus.CONFIRMED,
        "Booking not found or already processed",
    )


def cancel_booking(user: CurrentUser, booking_id: str, reason: str | None = None) -> dict:
    return _transition(
        user,
        booking_id,
        (BookingStatus.PENDING, BookingStatus.CONFIRMED),
        BookingStatus.CANCELLED,
        "Booking not found or cannot be cancelled",
        on_change=_void_referral,
        cancellation_reason=reason,
    )


def complete_booking(user: CurrentUser, booking_id: str) -> dict:
    return _transition(
        user,
        booking_id,
        (BookingStatus.CONFIRMED,),
        BookingStatus.COMPLETED,
        "Booking not found or not confirmed",
    )
