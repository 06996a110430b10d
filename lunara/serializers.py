"""
Flat, JSON-ready dicts built while the session is still open
(no lazy loads after the session closes).
"""
from __future__ import annotations

from datetime import date, datetime, time
from decimal import Decimal

from .models import Affiliate, Booking, Commission, License, Service, Therapist, User


def money(value: Decimal | float | int | None) -> float:
    if value is None:
        return 0.0
    return float(Decimal(str(value)).quantize(Decimal("0.01")))


def iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def hhmm(value: time | None) -> str | None:
    return value.strftime("%H:%M") if value is not None else None


def user_to_dict(u: User) -> dict:
    return {
        "id": u.id,
        "name": u.name,
        "email": u.email,
        "role": u.role.value,
        "is_active": u.is_active,
        "is_master": u.is_master,
        "created_at": iso(u.created_at),
        "updated_at": iso(u.updated_at),
    }


def affiliate_to_dict(a: Affiliate) -> dict:
    return {
        "id": a.id,
        "user_id": a.user_id,
        "referral_code": a.referral_code,
        "commission_rate": money(a.commission_rate),
        "total_referrals": a.total_referrals,
        "total_commission": money(a.total_commission),
        "is_active": a.is_active,
        "created_at": iso(a.created_at),
        "updated_at": iso(a.updated_at),
    }


def therapist_to_dict(t: Therapist) -> dict:
    return {
        "id": t.id,
        "user_id": t.user_id,
        "specialty": t.specialty,
        "bio": t.bio,
        "commission_rate": money(t.commission_rate),
        "is_available": t.is_available,
        "created_at": iso(t.created_at),
        "updated_at": iso(t.updated_at),
    }


def service_to_dict(s: Service) -> dict:
    return {
        "id": s.id,
        "therapist_id": s.therapist_id,
        "name": s.name,
        "description": s.description,
        "price": money(s.price),
        "duration_minutes": s.duration_minutes,
        "is_active": s.is_active,
        "created_at": iso(s.created_at),
        "updated_at": iso(s.updated_at),
    }


def booking_to_dict(b: Booking) -> dict:
    return {
        "id": b.id,
        "service_id": b.service_id,
        "therapist_id": b.therapist_id,
        "affiliate_id": b.affiliate_id,
        "client_name": b.client_name,
        "client_email": b.client_email,
        "client_phone": b.client_phone,
        "scheduled_date": iso(b.scheduled_date),
        "scheduled_time": hhmm(b.scheduled_time),
        "status": b.status.value,
        "total_amount": money(b.total_amount),
        "payment_status": b.payment_status.value,
        "notes": b.notes,
        "cancellation_reason": b.cancellation_reason,
        "created_at": iso(b.created_at),
        "updated_at": iso(b.updated_at),
    }


def commission_to_dict(c: Commission) -> dict:
    return {
        "id": c.id,
        "affiliate_id": c.affiliate_id,
        "booking_id": c.booking_id,
        "amount": money(c.amount),
        "percentage": money(c.percentage),
        "status": c.status.value,
        "payment_date": iso(c.payment_date),
        "payment_method": c.payment_method,
        "payment_reference": c.payment_reference,
        "notes": c.notes,
        "created_at": iso(c.created_at),
        "updated_at": iso(c.updated_at),
    }


def license_to_dict(lic: License) -> dict:
    return {
        "id": lic.id,
        "serial_key": lic.serial_key,
        "license_type": lic.license_type,
        "status": lic.status.value,
        "activated_by": lic.activated_by,
        "activated_at": iso(lic.activated_at),
        "expires_at": iso(lic.expires_at),
        "max_users": lic.max_users,
        "current_users": lic.current_users,
        "created_at": iso(lic.created_at),
    }
