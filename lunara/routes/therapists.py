from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query, status

from ..auth_service import CurrentUser
from ..dependencies import get_current_user, require_role
from ..models import UserRole
from ..responses import ok
from ..schemas import TherapistCreateIn, TherapistUpdateIn, UUIDStr
from ..therapist_service import create_therapist, get_availability, get_therapist, list_therapists, update_therapist

router = APIRouter(prefix="/api/therapists", tags=["Therapists"])


@router.get("")
def therapists(_: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(list_therapists())


@router.get("/{therapist_id}")
def therapist(therapist_id: UUIDStr, _: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok(get_therapist(therapist_id))


@router.post("", status_code=status.HTTP_201_CREATED)
def new_therapist(payload: TherapistCreateIn, _: CurrentUser = Depends(require_role(UserRole.ADMIN))) -> dict[str, Any]:
    data = create_therapist(payload.user_id, payload.specialty, payload.bio, payload.commission_rate)
    return ok(data, "Therapist created successfully")


@router.put("/{therapist_id}")
def edit_therapist(
    therapist_id: UUIDStr,
    payload: TherapistUpdateIn,
    user: CurrentUser = Depends(require_role(UserRole.ADMIN, UserRole.THERAPIST)),
) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    return ok(update_therapist(user, therapist_id, changes), "Therapist updated successfully")


@router.get("/{therapist_id}/availability")
def availability(
    therapist_id: UUIDStr,
    day: date = Query(..., alias="date"),
    _: CurrentUser = Depends(get_current_user),
) -> dict[str, Any]:
    return ok(get_availability(therapist_id, day))
