from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from sqlalchemy import case, func, select
from sqlalchemy.orm import aliased

from .auth_service import CurrentUser
from .db import db_session
from .errors import NotFoundError, ValidationFailed
from .helpers import month_range
from .models import Affiliate, Booking, BookingStatus, Commission, CommissionStatus, Service, Therapist, User, UserRole
from .serializers import commission_to_dict, hhmm, iso, money

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommissionPaid:
    commission: dict
    affiliate_email: str
    affiliate_name: str
    booking_details: str


def _detail_query():
    affiliate_user = aliased(User)
    therapist_user = aliased(User)
    return (
        select(
            Commission,
            affiliate_user.name.label("affiliate_name"),
            affiliate_user.email.label("affiliate_email"),
            Affiliate.referral_code,
            Affiliate.user_id.label("affiliate_user_id"),
            Booking.client_name,
            Booking.client_email,
            Booking.total_amount.label("booking_amount"),
            Booking.scheduled_date,
            Booking.scheduled_time,
            Service.name.label("service_name"),
            therapist_user.name.label("therapist_name"),
        )
        .join(Affiliate, Affiliate.id == Commission.affiliate_id)
        .join(affiliate_user, affiliate_user.id == Affiliate.user_id)
        .join(Booking, Booking.id == Commission.booking_id)
        .outerjoin(Service, Service.id == Booking.service_id)
        .outerjoin(Therapist, Therapist.id == Booking.therapist_id)
        .outerjoin(therapist_user, therapist_user.id == Therapist.user_id)
    )


def _row_to_dict(r) -> dict:
    return {
        **commission_to_dict(r.Commission),
        "affiliate_name": r.affiliate_name,
        "affiliate_email": r.affiliate_email,
        "referral_code": r.referral_code,
        "client_name": r.client_name,
        "client_email": r.client_email,
        "booking_amount": money(r.booking_amount),
        "scheduled_date": iso(r.scheduled_date),
        "scheduled_time": hhmm(r.scheduled_time),
        "service_name": r.service_name,
        "therapist_name": r.therapist_name,
    }


def list_commissions(
    user: CurrentUser,
    affiliate_id: str | None = None,
    status: CommissionStatus | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[dict]:
    q = _detail_query()
    if user.role == UserRole.AFFILIATE:
        q = q.where(Affiliate.user_id == user.id)
    if affiliate_id:
        q = q.where(Commission.affiliate_id == affiliate_id)
    if status:
        q = q.where(Commission.status == status)
    if date_from:
        q = q.where(Commission.created_at >= datetime.combine(date_from, datetime.min.time()))
    if date_to:
        # inclusive: everything before the start of the following day
        q = q.where(Commission.created_at < datetime.combine(date_to + timedelta(days=1), datetime.min.time()))

    with db_session() as s:
        rows = s.execute(q.order_by(Commission.created_at.desc())).all()
        return [_row_to_dict(r) for r in rows]


def get_commission(user: CurrentUser, commission_id: str) -> dict:
    with db_session() as s:
        r = s.execute(_detail_query().where(Commission.id == commission_id)).first()
        if not r or (user.role == UserRole.AFFILIATE and r.affiliate_user_id != user.id):
            raise NotFoundError("Commission not found")
        return _row_to_dict(r)


def pay_commission(
    commission_id: str,
    payment_method: str | None = None,
    payment_reference: str | None = None,
    notes: str | None = None,
) -> CommissionPaid:
    """Marks a pending commission paid and credits the affiliate's running total, atomically."""
    with db_session() as s:
        c = s.execute(
            select(Commission).where(Commission.id == commission_id, Commission.status == CommissionStatus.PENDING)
        ).scalar_one_or_none()
        if not c:
            raise NotFoundError("Commission not found or already processed")
        if c.booking.status == BookingStatus.CANCELLED:
            raise ValidationFailed("Cannot pay a commission for a cancelled booking")

        c.status = CommissionStatus.PAID
        c.payment_date = datetime.utcnow()
        c.payment_method = payment_method
        c.payment_reference = payment_reference
        c.notes = notes

        affiliate = c.affiliate
        affiliate.total_commission = (affiliate.total_commission or 0) + c.amount
        s.flush()

        booking = c.booking
        service_name = booking.service.name if booking.service else "Service"
        details = f"{service_name} - {booking.client_name} ({iso(booking.scheduled_date)} {hhmm(booking.scheduled_time)})"

        logger.info(f"Commission {commission_id} paid to affiliate {affiliate.id}")
        return CommissionPaid(
            commission=commission_to_dict(c),
            affiliate_email=affiliate.user.email,
            affiliate_name=affiliate.user.name,
            booking_details=details,
        )


def _sum_when(status: CommissionStatus):
    return func.coalesce(func.sum(case((Commission.status == status, Commission.amount), else_=0)), 0)


def _count_when(status: CommissionStatus):
    return func.coalesce(func.sum(case((Commission.status == status, 1), else_=0)), 0)


def commission_summary(month: int | None = None, year: int | None = None) -> dict:
    q = select(
        func.count(Commission.id).label("total_commissions"),
        _count_when(CommissionStatus.PENDING).label("pending_commissions"),
        _count_when(CommissionStatus.PAID).label("paid_commissions"),
        _count_when(CommissionStatus.CANCELLED).label("cancelled_commissions"),
        func.coalesce(func.sum(Commission.amount), 0).label("total_amount"),
        _sum_when(CommissionStatus.PAID).label("paid_amount"),
        _sum_when(CommissionStatus.PENDING).label("pending_amount"),
        func.avg(Commission.amount).label("avg_commission_amount"),
    )
    if month and year:
        start, end = month_range(month, year)
        q = q.where(Commission.created_at >= start, Commission.created_at < end)

    with db_session() as s:
        r = s.execute(q).one()

    return {
        "total_commissions": r.total_commissions or 0,
        "pending_commissions": int(r.pending_commissions),
        "paid_commissions": int(r.paid_commissions),
        "cancelled_commissions": int(r.cancelled_commissions),
        "total_amount": money(r.total_amount),
        "paid_amount": money(r.paid_amount),
        "pending_amount": money(r.pending_amount),
        "avg_commission_amount": money(r.avg_commission_amount),
    }


def commissions_by_affiliate() -> list[dict]:
    total = func.sum(Commission.amount)
    with db_session() as s:
        rows = s.execute(
            select(
                Affiliate.id.label("affiliate_id"),
                Affiliate.referral_code,
                User.name,
                User.email,
                func.count(Commission.id).label("total_commissions"),
                total.label("total_amount"),
                _sum_when(CommissionStatus.PAID).label("paid_amount"),
                _sum_when(CommissionStatus.PENDING).label("pending_amount"),
                func.avg(Commission.amount).label("avg_commission"),
            )
            .join(User, User.id == Affiliate.user_id)
            .outerjoin(Commission, Commission.affiliate_id == Affiliate.id)
            .group_by(Affiliate.id, Affiliate.referral_code, User.name, User.email)
            # affiliates without commissions sort last
            .order_by(total.is_(None), total.desc())
        ).all()

    return [
        {
            "affiliate_id": r.affiliate_id,
            "referral_code": r.referral_code,
            "name": r.name,
            "email": r.email,
            "total_commissions": r.total_commissions or 0,
            "total_amount": money(r.total_amount),
            "paid_amount": money(r.paid_amount),
            "pending_amount": money(r.pending_amount),
            "avg_commission": money(r.avg_commission),
        }
        for r in rows
    ]
