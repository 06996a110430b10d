from __future__ import annotations

import logging
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import select

from . import config
from .auth_security import hash_password
from .db import db_session
from .models import Affiliate, License, LicenseSeat, LicenseStatus, Service, Therapist, User, UserRole

logger = logging.getLogger(__name__)

# key, status (the first one is activated by the master user)
MASTER_LICENSES = [
    ("LUNA-MASTER-X9K7-M2P5-Q8R3", LicenseStatus.ACTIVE),
    ("LUNA-MASTER-L4N6-V7W9-T1Y4", LicenseStatus.PENDING),
    ("LUNA-MASTER-F3H8-B5C2-D9G1", LicenseStatus.PENDING),
]
MASTER_LICENSE_USERS = 999
MASTER_LICENSE_YEARS = 10


def _get_or_create_user(s, email: str, name: str, password: str, role: UserRole, **extra) -> User:
    u = s.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if u is None:
        u = User(name=name, email=email, password_hash=hash_password(password), role=role, is_active=True, **extra)
        s.add(u)
        s.flush()
        logger.info(f"Seeded {role.value} user {email}")
    return u


def seed_base() -> None:
    """
    Minimal data (idempotent):
    - master admin user
    - master licenses
    - demo therapist, services and affiliate when SEED_DEMO_DATA is on
    """
    with db_session() as s:
        master = s.get(User, config.MASTER_USER_ID) or s.execute(
            select(User).where(User.email == config.MASTER_EMAIL)
        ).scalar_one_or_none()
        if master is None:
            master = User(
                id=config.MASTER_USER_ID,
                name=config.MASTER_NAME,
                email=config.MASTER_EMAIL,
                password_hash=hash_password(config.MASTER_PASSWORD),
                role=UserRole.ADMIN,
                is_active=True,
                is_master=True,
            )
            s.add(master)
            s.flush()
            logger.info(f"Seeded master user {config.MASTER_EMAIL}")

        now = datetime.utcnow()
        for key, status in MASTER_LICENSES:
            if s.execute(select(License.id).where(License.serial_key == key)).first():
                continue
            active = status == LicenseStatus.ACTIVE
            s.add(
                License(
                    serial_key=key,
                    license_type="master",
                    status=status,
                    activated_by=master.id if active else None,
                    activated_at=now if active else None,
                    expires_at=now + timedelta(days=365 * MASTER_LICENSE_YEARS),
                    max_users=MASTER_LICENSE_USERS,
                    current_users=1 if active else 0,
                    seats=[LicenseSeat(user_id=master.id)] if active else [],
                )
            )

        if config.SEED_DEMO_DATA:
            _seed_demo(s)


def _seed_demo(s) -> None:
    therapist_user = _get_or_create_user(
        s, "terapeuta@lunara.com.br", "Ana Terapeuta", "Demo123!", UserRole.THERAPIST
    )
    therapist = s.execute(select(Therapist).where(Therapist.user_id == therapist_user.id)).scalar_one_or_none()
    if therapist is None:
        therapist = Therapist(
            user_id=therapist_user.id,
            specialty="Massoterapia",
            bio="Massagens terapêuticas e relaxantes.",
            commission_rate=Decimal("30.00"),
            is_available=True,
        )
        s.add(therapist)
        s.flush()

    services = [
        ("Massagem Relaxante", "Sessão de relaxamento corporal", Decimal("150.00"), 60),
        ("Drenagem Linfática", "Drenagem manual", Decimal("180.00"), 90),
    ]
    for name, description, price, duration in services:
        exists = s.execute(
            select(Service.id).where(Service.therapist_id == therapist.id, Service.name == name)
        ).first()
        if not exists:
            s.add(
                Service(
                    therapist_id=therapist.id,
                    name=name,
                    description=description,
                    price=price,
                    duration_minutes=duration,
                )
            )

    affiliate_user = _get_or_create_user(s, "afiliado@lunara.com.br", "Bruno Afiliado", "Demo123!", UserRole.AFFILIATE)
    if s.execute(select(Affiliate.id).where(Affiliate.user_id == affiliate_user.id)).first() is None:
        s.add(Affiliate(user_id=affiliate_user.id, referral_code="LUNADEMO", commission_rate=Decimal("15.00")))
