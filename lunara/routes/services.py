from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ..auth_service import CurrentUser
from ..dependencies import get_current_user, require_role
from ..models import UserRole
from ..responses import ok
from ..schemas import ServiceCreateIn, ServiceUpdateIn, UUIDStr
from ..service_catalog import create_service, deactivate_service, get_service, list_services, update_service

router = APIRouter(prefix="/api/services", tags=["Services"])

catalog_managers = require_role(UserRole.ADMIN, UserRole.THERAPIST)


@router.get("")
def services(
    therapist_id: UUIDStr | None = Query(default=None),
    _: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(list_services(therapist_id))


@router.get("/{service_id}")
def service(service_id: UUIDStr, _: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(get_service(service_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def new_service(payload: ServiceCreateIn, user: CurrentUser = Depends(catalog_managers)) -> dict[str, Any]:
    data = create_service(
        user,
        payload.therapist_id,
        payload.name,
        payload.description,
        payload.price,
        payload.duration_minutes,
    )
    return ok(data, "Service created successfully")


@router.put("/{service_id}")
def edit_service(
    service_id: UUIDStr,
    payload: ServiceUpdateIn,
    user: CurrentUser = Depends(catalog_managers),
) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    return ok(update_service(user, service_id, changes), "Service updated successfully")


@router.delete("/{service_id}")
def remove_service(service_id: UUIDStr, user: CurrentUser = Depends(catalog_managers)) -> dict[str, Any]:
    deactivate_service(user, service_id)
    return ok(message="Service deactivated successfully")
