from __future__ import annotations

from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, status

from ..auth_service import CurrentUser
from ..dependencies import get_current_user, require_master, require_role
from ..email_service import send_license_activated_email
from ..license_service import activate_license, create_license, list_licenses, revoke_license
from ..models import UserRole
from ..responses import ok
from ..schemas import LicenseActivateIn, LicenseCreateIn, UUIDStr

router = APIRouter(prefix="/api/licenses", tags=["Licenses"])


@router.get("")
def licenses(_: CurrentUser = Depends(require_role(UserRole.ADMIN))) -> dict[str, Any]:
    return ok(list_licenses())


@router.post("", status_code=status.HTTP_201_CREATED)
def new_license(payload: LicenseCreateIn, _: CurrentUser = Depends(require_master)) -> dict[str, Any]:
    return ok(create_license(payload.license_type, payload.max_users, payload.valid_days), "License created successfully")


@router.post("/activate")
def activate(
    payload: LicenseActivateIn,
    background: BackgroundTasks,
    user: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    activated = activate_license(user, payload.serial_key)
    background.add_task(
        send_license_activated_email,
        activated.user_email,
        activated.user_name,
        activated.license["license_type"],
    )
    return ok(activated.license, "License activated successfully")


@router.post("/{license_id}/revoke")
def revoke(license_id: UUIDStr, _: CurrentUser = Depends(require_master)) -> dict[str, Any]:
    return ok(revoke_license(license_id), "License revoked successfully")
