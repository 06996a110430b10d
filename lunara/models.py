from __future__ import annotations

import enum
import uuid
from datetime import date, datetime, time
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.utcnow()


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    THERAPIST = "therapist"
    AFFILIATE = "affiliate"


class BookingStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class CommissionStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class LicenseStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    REVOKED = "revoked"


# Bookings in these states still hold their time slot
ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING, BookingStatus.CONFIRMED)


def _enum_column(enum_cls: type[enum.Enum], name: str) -> Enum:
    # store the lowercase values and guard them with a CHECK constraint
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda e: [m.value for m in e],
        native_enum=False,
        create_constraint=True,
        validate_strings=True,
        length=20,
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)


class User(TimestampMixin, Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        _enum_column(UserRole, "user_role"), default=UserRole.AFFILIATE, nullable=False, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_master: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    affiliate: Mapped[Optional["Affiliate"]] = relationship(back_populates="user", uselist=False)
    therapist: Mapped[Optional["Therapist"]] = relationship(back_populates="user", uselist=False)

    def __repr__(self) -> str:
        return f"User({self.email}, {self.role.value})"


class Affiliate(TimestampMixin, Base):
    __tablename__ = "affiliates"
    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_affiliate_commission_rate"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    referral_code: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("15.00"), nullable=False)
    total_referrals: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_commission: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped["User"] = relationship(back_populates="affiliate")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="affiliate")
    commissions: Mapped[list["Commission"]] = relationship(back_populates="affiliate", cascade="all, delete-orphan")


class Therapist(TimestampMixin, Base):
    __tablename__ = "therapists"
    __table_args__ = (
        CheckConstraint("commission_rate >= 0 AND commission_rate <= 100", name="ck_therapist_commission_rate"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    user_id: Mapped[str] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False, index=True
    )
    specialty: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=Decimal("30.00"), nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    user: Mapped["User"] = relationship(back_populates="therapist")
    services: Mapped[list["Service"]] = relationship(back_populates="therapist", cascade="all, delete-orphan")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="therapist")


class Service(TimestampMixin, Base):
    __tablename__ = "services"
    __table_args__ = (
        CheckConstraint("price > 0", name="ck_service_price"),
        CheckConstraint("duration_minutes > 0", name="ck_service_duration"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    therapist_id: Mapped[str] = mapped_column(
        ForeignKey("therapists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, default=60, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    therapist: Mapped["Therapist"] = relationship(back_populates="services")
    bookings: Mapped[list["Booking"]] = relationship(back_populates="service")


class Booking(TimestampMixin, Base):
    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    service_id: Mapped[str | None] = mapped_column(ForeignKey("services.id", ondelete="SET NULL"), nullable=True)
    therapist_id: Mapped[str | None] = mapped_column(
        ForeignKey("therapists.id", ondelete="SET NULL"), nullable=True, index=True
    )
    affiliate_id: Mapped[str | None] = mapped_column(
        ForeignKey("affiliates.id", ondelete="SET NULL"), nullable=True, index=True
    )

    client_name: Mapped[str] = mapped_column(String(255), nullable=False)
    client_email: Mapped[str] = mapped_column(String(255), nullable=False)
    client_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    scheduled_time: Mapped[time] = mapped_column(Time, nullable=False)

    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus, "booking_status"), default=BookingStatus.PENDING, nullable=False, index=True
    )
    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_status: Mapped[PaymentStatus] = mapped_column(
        _enum_column(PaymentStatus, "payment_status"), default=PaymentStatus.PENDING, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    service: Mapped[Optional["Service"]] = relationship(back_populates="bookings")
    therapist: Mapped[Optional["Therapist"]] = relationship(back_populates="bookings")
    affiliate: Mapped[Optional["Affiliate"]] = relationship(back_populates="bookings")
    commissions: Mapped[list["Commission"]] = relationship(back_populates="booking", cascade="all, delete-orphan")


class Commission(TimestampMixin, Base):
    __tablename__ = "commissions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    affiliate_id: Mapped[str] = mapped_column(
        ForeignKey("affiliates.id", ondelete="CASCADE"), nullable=False, index=True
    )
    booking_id: Mapped[str] = mapped_column(ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    status: Mapped[CommissionStatus] = mapped_column(
        _enum_column(CommissionStatus, "commission_status"),
        default=CommissionStatus.PENDING,
        nullable=False,
        index=True,
    )
    payment_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    payment_method: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    affiliate: Mapped["Affiliate"] = relationship(back_populates="commissions")
    booking: Mapped["Booking"] = relationship(back_populates="commissions")


class License(TimestampMixin, Base):
    __tablename__ = "licenses"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    serial_key: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    license_type: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[LicenseStatus] = mapped_column(
        _enum_column(LicenseStatus, "license_status"), default=LicenseStatus.PENDING, nullable=False
    )
    activated_by: Mapped[str | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    activated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    max_users: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    current_users: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    seats: Mapped[list["LicenseSeat"]] = relationship(back_populates="license", cascade="all, delete-orphan")


class LicenseSeat(Base):
    """A user holding one of a license's `max_users` seats."""

    __tablename__ = "license_seats"
    __table_args__ = (UniqueConstraint("license_id", "user_id", name="uq_license_seat_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    license_id: Mapped[str] = mapped_column(ForeignKey("licenses.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    activated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, nullable=False)

    license: Mapped["License"] = relationship(back_populates="seats")
