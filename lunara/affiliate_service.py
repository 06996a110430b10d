from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import case, func, select

from .auth_service import CurrentUser
from .db import db_session
from .errors import ConflictError, NotFoundError, PermissionDenied, ValidationFailed
from .helpers import generate_referral_code, month_range
from .models import Affiliate, Booking, BookingStatus, Commission, CommissionStatus, User, UserRole
from .serializers import affiliate_to_dict, money

logger = logging.getLogger(__name__)

_MAX_CODE_ATTEMPTS = 10


def _get_or_404(s, affiliate_id: str) -> Affiliate:
    a = s.get(Affiliate, affiliate_id)
    if not a:
        raise NotFoundError("Affiliate not found")
    return a


def _ensure_can_read(user: CurrentUser, a: Affiliate) -> None:
    if user.role == UserRole.AFFILIATE and a.user_id != user.id:
        raise PermissionDenied("Permission denied")


def list_affiliates() -> list[dict]:
    # one correlated subquery per aggregate, so bookings and commissions never multiply each other
    total_bookings = (
        select(func.count(Booking.id)).where(Booking.affiliate_id == Affiliate.id).correlate(Affiliate).scalar_subquery()
    )
    total_revenue = (
        select(func.coalesce(func.sum(Booking.total_amount), 0))
        .where(Booking.affiliate_id == Affiliate.id, Booking.status == BookingStatus.COMPLETED)
        .correlate(Affiliate)
        .scalar_subquery()
    )
    paid = (
        select(func.coalesce(func.sum(Commission.amount), 0))
        .where(Commission.affiliate_id == Affiliate.id, Commission.status == CommissionStatus.PAID)
        .correlate(Affiliate)
        .scalar_subquery()
    )
    pending = (
        select(func.coalesce(func.sum(Commission.amount), 0))
        .where(Commission.affiliate_id == Affiliate.id, Commission.status == CommissionStatus.PENDING)
        .correlate(Affiliate)
        .scalar_subquery()
    )

    with db_session() as s:
        rows = s.execute(
            select(
                Affiliate,
                User.name,
                User.email,
                User.is_active.label("user_is_active"),
                total_bookings.label("total_bookings"),
                total_revenue.label("total_revenue"),
                paid.label("total_commissions_paid"),
                pending.label("total_commissions_pending"),
            )
            .join(User, User.id == Affiliate.user_id)
            .order_by(Affiliate.created_at.desc())
        ).all()

        return [
            {
                **affiliate_to_dict(r.Affiliate),
                "name": r.name,
                "email": r.email,
                "user_is_active": r.user_is_active,
                "total_bookings": r.total_bookings or 0,
                "total_revenue": money(r.total_revenue),
                "total_commissions_paid": money(r.total_commissions_paid),
                "total_commissions_pending": money(r.total_commissions_pending),
            }
            for r in rows
        ]


def get_affiliate(user: CurrentUser, affiliate_id: str) -> dict:
    with db_session() as s:
        a = _get_or_404(s, affiliate_id)
        _ensure_can_read(user, a)
        return {**affiliate_to_dict(a), "name": a.user.name, "email": a.user.email}


def _code_taken(s, code: str) -> bool:
    return s.execute(select(Affiliate.id).where(Affiliate.referral_code == code)).first() is not None


def _fresh_code(s) -> str:
    for _ in range(_MAX_CODE_ATTEMPTS):
        code = generate_referral_code()
        if not _code_taken(s, code):
            return code
    raise ConflictError("Could not generate a unique referral code")


def create_affiliate(user_id: str, commission_rate: Decimal, referral_code: str | None = None) -> dict:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")

        if s.execute(select(Affiliate.id).where(Affiliate.user_id == user_id)).first():
            raise ConflictError("User is already an affiliate")

        if referral_code:
            code = referral_code.strip().upper()
            if _code_taken(s, code):
                raise ConflictError("Referral code already in use")
        else:
            code = _fresh_code(s)

        a = Affiliate(user_id=user_id, referral_code=code, commission_rate=commission_rate, is_active=True)
        s.add(a)
        s.flush()
        logger.info(f"Affiliate {a.id} created for user {user_id} with code {code}")
        return affiliate_to_dict(a)


def update_affiliate(affiliate_id: str, changes: dict[str, Any]) -> dict:
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise ValidationFailed("No fields to update")

    with db_session() as s:
        a = _get_or_404(s, affiliate_id)
        for field, value in changes.items():
            setattr(a, field, value)
        s.flush()
        return affiliate_to_dict(a)


def affiliate_stats(user: CurrentUser, affiliate_id: str, month: int | None = None, year: int | None = None) -> dict:
    """Booking and commission figures for one affiliate, optionally restricted to a month of booking creation."""
    with db_session() as s:
        a = _get_or_404(s, affiliate_id)
        _ensure_can_read(user, a)

        conditions = [Booking.affiliate_id == affiliate_id]
        if month and year:
            start, end = month_range(month, year)
            conditions += [Booking.created_at >= start, Booking.created_at < end]

        def count_status(status: BookingStatus):
            return func.coalesce(func.sum(case((Booking.status == status, 1), else_=0)), 0)

        b = s.execute(
            select(
                func.count(Booking.id).label("total_bookings"),
                count_status(BookingStatus.COMPLETED).label("completed_bookings"),
                count_status(BookingStatus.PENDING).label("pending_bookings"),
                count_status(BookingStatus.CANCELLED).label("cancelled_bookings"),
                func.coalesce(
                    func.sum(case((Booking.status == BookingStatus.COMPLETED, Booking.total_amount), else_=0)), 0
                ).label("total_revenue"),
                func.avg(Booking.total_amount).label("avg_booking_value"),
            ).where(*conditions)
        ).one()

        booking_ids = select(Booking.id).where(*conditions)
        c = s.execute(
            select(
                func.coalesce(
                    func.sum(case((Commission.status == CommissionStatus.PAID, Commission.amount), else_=0)), 0
                ).label("paid"),
                func.coalesce(
                    func.sum(case((Commission.status == CommissionStatus.PENDING, Commission.amount), else_=0)), 0
                ).label("pending"),
            ).where(Commission.affiliate_id == affiliate_id, Commission.booking_id.in_(booking_ids))
        ).one()

    return {
        "total_bookings": b.total_bookings or 0,
        "completed_bookings": int(b.completed_bookings or 0),
        "pending_bookings": int(b.pending_bookings or 0),
        "cancelled_bookings": int(b.cancelled_bookings or 0),
        "total_revenue": money(b.total_revenue),
        "commissions_paid": money(c.paid),
        "commissions_pending": money(c.pending),
        "avg_booking_value": money(b.avg_booking_value),
    }
