from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select

from .auth_service import CurrentUser
from .db import db_session
from .errors import NotFoundError, ValidationFailed
from .models import ACTIVE_BOOKING_STATUSES, Booking, Service, Therapist, User
from .serializers import service_to_dict
from .therapist_service import ensure_can_manage

logger = logging.getLogger(__name__)


def _catalog_query():
    return (
        select(
            Service,
            Therapist.specialty,
            User.name.label("therapist_name"),
            User.email.label("therapist_email"),
        )
        .join(Therapist, Therapist.id == Service.therapist_id)
        .join(User, User.id == Therapist.user_id)
    )


def _row_to_dict(r) -> dict:
    return {
        **service_to_dict(r.Service),
        "specialty": r.specialty,
        "therapist_name": r.therapist_name,
        "therapist_email": r.therapist_email,
    }


def list_services(therapist_id: str | None = None) -> list[dict]:
    q = _catalog_query().where(Service.is_active.is_(True))
    if therapist_id:
        q = q.where(Service.therapist_id == therapist_id)
    q = q.order_by(Service.created_at.desc())

    with db_session() as s:
        return [_row_to_dict(r) for r in s.execute(q).all()]


def get_service(service_id: str) -> dict:
    with db_session() as s:
        r = s.execute(_catalog_query().where(Service.id == service_id)).first()
        if not r:
            raise NotFoundError("Service not found")
        return _row_to_dict(r)


def create_service(
    user: CurrentUser,
    therapist_id: str,
    name: str,
    description: str | None,
    price: Decimal,
    duration_minutes: int,
) -> dict:
    with db_session() as s:
        ensure_can_manage(s, user, therapist_id)
        svc = Service(
            therapist_id=therapist_id,
            name=name,
            description=description,
            price=price,
            duration_minutes=duration_minutes,
            is_active=True,
        )
        s.add(svc)
        s.flush()
        logger.info(f"Service {svc.id} created for therapist {therapist_id}")
        return service_to_dict(svc)


def _get_for_update(s, user: CurrentUser, service_id: str) -> Service:
    svc = s.get(Service, service_id)
    if not svc:
        raise NotFoundError("Service not found")
    ensure_can_manage(s, user, svc.therapist_id)
    return svc


def update_service(user: CurrentUser, service_id: str, changes: dict[str, Any]) -> dict:
    changes = {k: v for k, v in changes.items() if v is not None or k == "description"}
    if not changes:
        raise ValidationFailed("No fields to update")

    with db_session() as s:
        svc = _get_for_update(s, user, service_id)
        for field, value in changes.items():
            setattr(svc, field, value)
        s.flush()
        return service_to_dict(svc)


def deactivate_service(user: CurrentUser, service_id: str) -> None:
    """Soft delete: refused while the service still has pending or confirmed bookings."""
    with db_session() as s:
        svc = _get_for_update(s, user, service_id)

        active = s.execute(
            select(func.count(Booking.id)).where(
                Booking.service_id == service_id, Booking.status.in_(ACTIVE_BOOKING_STATUSES)
            )
        ).scalar_one()
        if active:
            raise ValidationFailed("Cannot delete a service with active bookings")

        svc.is_active = False
        logger.info(f"Service {service_id} deactivated")
