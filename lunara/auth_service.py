from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import select

from . import config
from .auth_security import create_access_token, hash_password, verify_password
from .db import db_session
from .errors import AuthenticationError, ValidationFailed
from .helpers import mask_sensitive_data
from .models import User, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CurrentUser:
    id: str
    name: str
    email: str
    role: UserRole
    is_active: bool
    is_master: bool

    @classmethod
    def from_model(cls, u: User) -> "CurrentUser":
        return cls(u.id, u.name, u.email, u.role, u.is_active, u.is_master)

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_master_user(self) -> bool:
        return self.is_master or self.email == config.MASTER_EMAIL or self.id == config.MASTER_USER_ID

    def public(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email, "role": self.role.value}


def issue_token(user: CurrentUser) -> str:
    return create_access_token(subject=user.id, extra={"email": user.email, "role": user.role.value})


def register_user(name: str, email: str, password: str, role: UserRole = UserRole.AFFILIATE) -> CurrentUser:
    email = email.strip().lower()
    with db_session() as s:
        exists = s.execute(select(User.id).where(User.email == email)).first()
        if exists:
            raise ValidationFailed("Email already registered")

        u = User(name=name.strip(), email=email, password_hash=hash_password(password), role=role, is_active=True)
        s.add(u)
        s.flush()
        logger.info(f"Registered {role.value} user {mask_sensitive_data(email)}")
        return CurrentUser.from_model(u)


def authenticate(email: str, password: str) -> CurrentUser:
    email = email.strip().lower()
    with db_session() as s:
        u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not u:
            raise AuthenticationError("Invalid credentials")
        if not u.is_active:
            raise AuthenticationError("Account deactivated")
        if not verify_password(password, u.password_hash):
            logger.warning(f"Failed login for {mask_sensitive_data(email)}")
            raise AuthenticationError("Invalid credentials")
        return CurrentUser.from_model(u)


def get_user_by_id(user_id: str) -> CurrentUser | None:
    with db_session() as s:
        u = s.get(User, user_id)
        return CurrentUser.from_model(u) if u else None
