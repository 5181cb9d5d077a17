# backend/aerolms/security.py
"""
Caller identity for the training API.

Tokens are issued by the identity provider; this service only verifies
them and resolves the `sub` claim to a local account. Role checks for
trainer/admin-only endpoints live here as FastAPI dependencies.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta
from typing import Callable, FrozenSet, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from .database import get_db
from aerolms.apps.accounts import models as account_models
from aerolms.apps.accounts.models import AccountRole

SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME_IN_PRODUCTION")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

try:
    TOKEN_TTL_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))
except ValueError:
    TOKEN_TTL_MINUTES = 60

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")

_UNAUTHORIZED = {
    "status_code": status.HTTP_401_UNAUTHORIZED,
    "detail": "Could not validate credentials",
    "headers": {"WWW-Authenticate": "Bearer"},
}


def create_access_token(*, data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign a token for service tooling and tests. `data` must carry `sub`."""
    ttl = expires_delta if expires_delta is not None else timedelta(minutes=TOKEN_TTL_MINUTES)
    claims = dict(data, exp=datetime.utcnow() + ttl)
    return jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)


def _subject(token: str) -> str:
    try:
        claims = jwt.decode(token, SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError:
        raise HTTPException(**_UNAUTHORIZED)
    subject = claims.get("sub")
    if subject is None or not str(subject).strip():
        raise HTTPException(**_UNAUTHORIZED)
    return str(subject).strip()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> account_models.User:
    user = db.get(account_models.User, _subject(token))
    if user is None:
        raise HTTPException(**_UNAUTHORIZED)
    return user


def get_current_active_user(
    current_user: account_models.User = Depends(get_current_user),
) -> account_models.User:
    if not current_user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Inactive user account")
    return current_user


def require_roles(*roles) -> Callable[[account_models.User], account_models.User]:
    """
    Dependency factory: the caller must hold one of `roles`. ADMIN always
    passes. Unknown role names fail at import time, not per request.
    """
    try:
        allowed: FrozenSet[AccountRole] = frozenset(AccountRole(r) for r in roles)
    except ValueError as exc:
        raise ValueError(f"Unknown role passed to require_roles(): {exc}") from exc

    def dependency(
        current_user: account_models.User = Depends(get_current_active_user),
    ) -> account_models.User:
        if account_models.is_admin(current_user.role) or current_user.role in allowed:
            return current_user
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Insufficient permissions for this operation",
        )

    return dependency
