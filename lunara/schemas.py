from __future__ import annotations

import uuid
from datetime import date, time
from decimal import Decimal
from typing import Annotated

from pydantic import AfterValidator, BaseModel, BeforeValidator, EmailStr, Field, StringConstraints

from .helpers import is_valid_time
from .models import UserRole


# =========================
# Reusable field types
# =========================
def _check_uuid(value: str) -> str:
    try:
        return str(uuid.UUID(str(value)))
    except (ValueError, AttributeError) as e:
        raise ValueError("Invalid id") from e


def _strip(value):
    return value.strip() if isinstance(value, str) else value


def _lower(value: str) -> str:
    return value.lower()


def _check_self_service_role(value: UserRole) -> UserRole:
    if value == UserRole.ADMIN:
        raise ValueError("Admins cannot self-register")
    return value


def parse_clock_time(value):
    if isinstance(value, time):
        return value
    if isinstance(value, str) and is_valid_time(value.strip()):
        hours, minutes = value.strip().split(":")
        return time(int(hours), int(minutes))
    raise ValueError("Invalid time, expected HH:MM")


UUIDStr = Annotated[str, AfterValidator(_check_uuid)]
Email = Annotated[EmailStr, BeforeValidator(_strip), AfterValidator(_lower)]
Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=255)]
Password = Annotated[str, StringConstraints(min_length=6, max_length=128)]
LongText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=1000)]
ShortText = Annotated[str, StringConstraints(strip_whitespace=True, max_length=500)]
Rate = Annotated[Decimal, Field(ge=0, le=100, max_digits=5, decimal_places=2)]
ClockTime = Annotated[time, BeforeValidator(parse_clock_time)]


# =========================
# Auth
# =========================
class RegisterIn(BaseModel):
    name: Name
    email: Email
    password: Password
    role: Annotated[UserRole, AfterValidator(_check_self_service_role)] = UserRole.AFFILIATE


class LoginIn(BaseModel):
    email: Email
    password: Annotated[str, StringConstraints(min_length=1)]


# =========================
# Users
# =========================
class ProfileUpdateIn(BaseModel):
    name: Name | None = None
    email: Email | None = None


class PasswordChangeIn(BaseModel):
    current_password: Annotated[str, StringConstraints(min_length=1)]
    new_password: Password


class UserAdminUpdateIn(BaseModel):
    name: Name | None = None
    email: Email | None = None
    role: UserRole | None = None
    is_active: bool | None = None


# =========================
# Affiliates
# =========================
class AffiliateCreateIn(BaseModel):
    user_id: UUIDStr
    commission_rate: Rate
    referral_code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=3, max_length=20)] | None = None


class AffiliateUpdateIn(BaseModel):
    commission_rate: Rate | None = None
    is_active: bool | None = None


# =========================
# Therapists
# =========================
class TherapistCreateIn(BaseModel):
    user_id: UUIDStr
    specialty: Name
    bio: LongText | None = None
    commission_rate: Rate


class TherapistUpdateIn(BaseModel):
    specialty: Name | None = None
    bio: LongText | None = None
    commission_rate: Rate | None = None
    is_available: bool | None = None


# =========================
# Services
# =========================
class ServiceCreateIn(BaseModel):
    therapist_id: UUIDStr
    name: Name
    description: LongText | None = None
    price: Annotated[Decimal, Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)]
    duration_minutes: Annotated[int, Field(ge=15, le=480)]


class ServiceUpdateIn(BaseModel):
    name: Name | None = None
    description: LongText | None = None
    price: Annotated[Decimal, Field(ge=Decimal("0.01"), max_digits=10, decimal_places=2)] | None = None
    duration_minutes: Annotated[int, Field(ge=15, le=480)] | None = None
    is_active: bool | None = None


# =========================
# Bookings
# =========================
class BookingCreateIn(BaseModel):
    therapist_id: UUIDStr
    service_id: UUIDStr
    client_name: Name
    client_email: Email
    client_phone: Annotated[str, StringConstraints(strip_whitespace=True, min_length=10, max_length=20)] | None = None
    scheduled_date: date
    scheduled_time: ClockTime
    affiliate_code: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=20)] | None = None
    notes: ShortText | None = None


class BookingCancelIn(BaseModel):
    reason: ShortText | None = None


# =========================
# Commissions
# =========================
class CommissionPayIn(BaseModel):
    payment_method: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)] | None = None
    payment_reference: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=255)] | None = None
    notes: ShortText | None = None


# =========================
# Licenses
# =========================
class LicenseCreateIn(BaseModel):
    license_type: Annotated[str, StringConstraints(strip_whitespace=True, min_length=2, max_length=50)]
    max_users: Annotated[int, Field(ge=1)] = 1
    valid_days: Annotated[int, Field(ge=1)] = 365


class LicenseActivateIn(BaseModel):
    serial_key: Annotated[str, StringConstraints(strip_whitespace=True, to_upper=True, min_length=5, max_length=50)]
