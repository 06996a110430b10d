from __future__ import annotations

from typing import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from .auth_security import TokenExpired, TokenInvalid, decode_token
from .auth_service import CurrentUser, get_user_by_id
from .models import UserRole

# Authorization: Bearer <token>; a missing header is reported by get_current_user
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_current_user(token: str | None = Depends(oauth2_scheme)) -> CurrentUser:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")

    # strip stray spaces or quotes pasted along with the token
    token = token.strip().strip('"').strip("'")

    try:
        payload = decode_token(token)
    except TokenExpired:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Token expired")
    except TokenInvalid:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid token")

    user_id = payload.get("sub")
    u = get_user_by_id(user_id) if user_id else None
    if not u:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    if not u.is_active:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account deactivated")
    return u


def require_role(*roles: UserRole) -> Callable[..., CurrentUser]:
    allowed = set(roles)

    def checker(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")
        return user

    return checker


def require_master(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not user.is_master_user:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Restricted to the master user")
    return user
