from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from ..auth_service import CurrentUser
from ..dependencies import get_current_user, require_role
from ..models import UserRole
from ..responses import ok
from ..schemas import PasswordChangeIn, ProfileUpdateIn, UserAdminUpdateIn, UUIDStr
from ..user_service import admin_update_user, change_password, get_profile, list_users, update_profile

router = APIRouter(prefix="/api/users", tags=["Users"])

admin_only = require_role(UserRole.ADMIN)


@router.get("/profile")
def profile(user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(get_profile(user.id))


@router.put("/profile")
def edit_profile(payload: ProfileUpdateIn, user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(update_profile(user.id, payload.name, payload.email), "Profile updated successfully")


@router.put("/password")
def edit_password(payload: PasswordChangeIn, user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    change_password(user.id, payload.current_password, payload.new_password)
    return ok(message="Password changed successfully")


@router.get("")
def users(_: CurrentUser = Depends(admin_only)) -> dict[str, Any]:
    return ok(list_users())


@router.put("/{user_id}")
def edit_user(user_id: UUIDStr, payload: UserAdminUpdateIn, _: CurrentUser = Depends(admin_only)) -> dict[str, Any]:
    return ok(admin_update_user(user_id, payload.model_dump()), "User updated successfully")
