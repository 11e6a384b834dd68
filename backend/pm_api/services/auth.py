from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import HTTPException, status

from ..config import settings


def normalize_email(value: str) -> str:
    return value.strip().lower()


def create_access_token(
    email: str,
    *,
    name: str | None = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.auth_access_token_expire_minutes)
    )
    normalized = normalize_email(email)
    to_encode = {"sub": normalized, "email": normalized, "exp": expire}
    if name:
        to_encode["name"] = name
    return jwt.encode(to_encode, settings.auth_secret_key, algorithm=settings.auth_algorithm)


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired") from exc
    except jwt.PyJWTError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token") from exc


def email_from_payload(payload: dict) -> str:
    raw = payload.get("email") or payload.get("sub")
    if not isinstance(raw, str) or "@" not in raw:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token carries no e-mail")
    return normalize_email(raw)
