from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import select

from .auth_security import hash_password, verify_password
from .db import db_session
from .errors import NotFoundError, ValidationFailed
from .models import Affiliate, Therapist, User, UserRole
from .serializers import money, user_to_dict

logger = logging.getLogger(__name__)


def _email_taken(s, email: str, exclude_user_id: str) -> bool:
    q = select(User.id).where(User.email == email, User.id != exclude_user_id)
    return s.execute(q).first() is not None


def _apply_user_changes(s, u: User, changes: dict[str, Any]) -> None:
    """Shared by profile and admin updates: only non-null fields are written."""
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        raise ValidationFailed("No fields to update")

    if "email" in changes and changes["email"] != u.email:
        if _email_taken(s, changes["email"], u.id):
            raise ValidationFailed("Email already in use")

    for field, value in changes.items():
        setattr(u, field, value)
    s.flush()


def get_profile(user_id: str) -> dict:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")

        profile_data = None
        if u.role == UserRole.AFFILIATE:
            a = s.execute(select(Affiliate).where(Affiliate.user_id == u.id)).scalar_one_or_none()
            if a:
                profile_data = {
                    "id": a.id,
                    "referral_code": a.referral_code,
                    "commission_rate": money(a.commission_rate),
                    "total_referrals": a.total_referrals,
                    "total_commission": money(a.total_commission),
                }
        elif u.role == UserRole.THERAPIST:
            t = s.execute(select(Therapist).where(Therapist.user_id == u.id)).scalar_one_or_none()
            if t:
                profile_data = {
                    "id": t.id,
                    "specialty": t.specialty,
                    "bio": t.bio,
                    "commission_rate": money(t.commission_rate),
                    "is_available": t.is_available,
                }

        return {**user_to_dict(u), "profile_data": profile_data}


def update_profile(user_id: str, name: str | None = None, email: str | None = None) -> dict:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")
        _apply_user_changes(s, u, {"name": name, "email": email})
        return user_to_dict(u)


def change_password(user_id: str, current_password: str, new_password: str) -> None:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")
        if not verify_password(current_password, u.password_hash):
            raise ValidationFailed("Current password is incorrect")
        u.password_hash = hash_password(new_password)
        logger.info(f"Password changed for user {u.id}")


def list_users() -> list[dict]:
    with db_session() as s:
        users = s.scalars(select(User).order_by(User.created_at.desc()))
        return [user_to_dict(u) for u in users]


def admin_update_user(user_id: str, changes: dict[str, Any]) -> dict:
    with db_session() as s:
        u = s.get(User, user_id)
        if not u:
            raise NotFoundError("User not found")
        _apply_user_changes(s, u, changes)
        return user_to_dict(u)
