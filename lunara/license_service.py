from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import select

from .auth_service import CurrentUser
from .db import db_session
from .errors import ConflictError, NotFoundError, ValidationFailed
from .helpers import generate_serial_key
from .models import License, LicenseSeat, LicenseStatus
from .serializers import license_to_dict

logger = logging.getLogger(__name__)

_MAX_KEY_ATTEMPTS = 10


@dataclass(frozen=True)
class LicenseActivated:
    license: dict
    user_email: str
    user_name: str


def list_licenses() -> list[dict]:
    with db_session() as s:
        return [license_to_dict(lic) for lic in s.scalars(select(License).order_by(License.created_at.desc()))]


def _unique_serial(s, license_type: str) -> str:
    for _ in range(_MAX_KEY_ATTEMPTS):
        key = generate_serial_key(license_type)
        if not s.execute(select(License.id).where(License.serial_key == key)).first():
            return key
    raise ConflictError("Could not generate a unique serial key")


def create_license(license_type: str, max_users: int = 1, valid_days: int = 365) -> dict:
    with db_session() as s:
        lic = License(
            serial_key=_unique_serial(s, license_type),
            license_type=license_type,
            status=LicenseStatus.PENDING,
            max_users=max_users,
            current_users=0,
            expires_at=datetime.utcnow() + timedelta(days=valid_days),
        )
        s.add(lic)
        s.flush()
        logger.info(f"License {lic.serial_key} created ({license_type}, {max_users} users)")
        return license_to_dict(lic)


def activate_license(user: CurrentUser, serial_key: str) -> LicenseActivated:
    """
    Takes one seat of a pending or active license for the calling user.
    The first seat moves the license pending -> active and records who
    activated it. An expired key is marked expired and refused; the expiry
    is committed even though activation fails.
    """
    with db_session() as s:
        lic = s.execute(select(License).where(License.serial_key == serial_key)).scalar_one_or_none()
        if not lic:
            raise NotFoundError("License not found")
        if lic.status not in (LicenseStatus.PENDING, LicenseStatus.ACTIVE):
            raise ConflictError("License is not available for activation")

        now = datetime.utcnow()
        if lic.expires_at and lic.expires_at < now:
            lic.status = LicenseStatus.EXPIRED
        else:
            if any(seat.user_id == user.id for seat in lic.seats):
                raise ConflictError("License already activated by this user")
            if lic.current_users >= lic.max_users:
                raise ConflictError("License has reached its user limit")

            if lic.status == LicenseStatus.PENDING:
                lic.status = LicenseStatus.ACTIVE
                lic.activated_by = user.id
                lic.activated_at = now
            lic.seats.append(LicenseSeat(user_id=user.id, activated_at=now))
            lic.current_users += 1
            s.flush()
            logger.info(f"License {serial_key} seat {lic.current_users}/{lic.max_users} taken by user {user.id}")
            return LicenseActivated(license=license_to_dict(lic), user_email=user.email, user_name=user.name)

    logger.info(f"License {serial_key} expired before activation")
    raise ValidationFailed("License has expired")


def revoke_license(license_id: str) -> dict:
    with db_session() as s:
        lic = s.get(License, license_id)
        if not lic:
            raise NotFoundError("License not found")
        if lic.status == LicenseStatus.REVOKED:
            raise ConflictError("License already revoked")
        lic.status = LicenseStatus.REVOKED
        s.flush()
        logger.info(f"License {lic.serial_key} revoked")
        return license_to_dict(lic)
