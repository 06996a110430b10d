from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, status

from ..auth_service import CurrentUser, authenticate, issue_token, register_user
from ..dependencies import get_current_user
from ..email_service import send_welcome_email
from ..responses import ok
from ..schemas import LoginIn, RegisterIn

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(payload: RegisterIn, background: BackgroundTasks) -> dict[str, Any]:
    user = register_user(payload.name, payload.email, payload.password, payload.role)
    background.add_task(send_welcome_email, user.email, user.name, user.role.value)
    return ok({"user": user.public(), "token": issue_token(user)}, "User registered successfully")


@router.post("/login")
def login(payload: LoginIn) -> dict[str, Any]:
    user = authenticate(payload.email, payload.password)
    return ok({"user": user.public(), "token": issue_token(user)}, "Login successful")


@router.post("/refresh")
def refresh(user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok({"token": issue_token(user)}, "Token refreshed")


@router.post("/logout")
def logout(user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    # tokens are stateless; the client drops its copy
    logger.info(f"User {user.id} logged out")
    return ok(message="Logout successful")


@router.get("/verify")
def verify(user: CurrentUser = Depends(get_current_user)) -> dict[str, Any]:
    return ok({"user": user.public()}, "Valid token")
