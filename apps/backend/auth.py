"""JWT authentication for admins and dashboard users."""
from datetime import datetime, timedelta
from typing import Optional

import bcrypt
from jose import JWTError, jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from apps.backend.config import get_settings

security = HTTPBearer(auto_error=False)

# bcrypt limit; pass as bytes to avoid passlib's internal 72-byte test crash
_MAX_PW_BYTES = 72


def _to_bytes(s: str) -> bytes:
    b = s.encode("utf-8")
    return b[: _MAX_PW_BYTES] if len(b) > _MAX_PW_BYTES else b


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(_to_bytes(plain), hashed.encode() if isinstance(hashed, str) else hashed)
    except ValueError:
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(_to_bytes(password), bcrypt.gensalt()).decode()


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    s = get_settings()
    to_encode = data.copy()
    exp = expires_delta or timedelta(minutes=s.jwt_expire_minutes)
    to_encode.update({"exp": datetime.utcnow() + exp})
    return jwt.encode(to_encode, s.jwt_secret, algorithm=s.jwt_algorithm)


def decode_token(token: str) -> Optional[dict]:
    s = get_settings()
    try:
        return jwt.decode(token, s.jwt_secret, algorithms=[s.jwt_algorithm])
    except JWTError:
        return None


def create_user_token(user_id: str, email: str | None = None, expires_minutes: int | None = None) -> str:
    """Dashboard user JWT (sub=user_id, type=user)."""
    data = {"sub": str(user_id), "type": "user"}
    if email:
        data["email"] = email
    delta = timedelta(minutes=expires_minutes) if expires_minutes else None
    return create_access_token(data, delta)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> dict:
    if not credentials:
        raise HTTPException(status_code=401, detail="Authentication required")
    payload = decode_token(credentials.credentials)
    if not payload or "sub" not in payload:
        raise HTTPException(status_code=401, detail="Invalid token")
    if payload.get("type") == "user":
        raise HTTPException(status_code=403, detail="Admin access required")
    return payload


def _user_id_from_token(token: str | None) -> str | None:
    if not token:
        return None
    payload = decode_token(token)
    if not payload or payload.get("type") != "user" or "sub" not in payload:
        return None
    return str(payload["sub"])


async def get_optional_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """User id from Bearer header or session cookie; None when anonymous."""
    if credentials:
        uid = _user_id_from_token(credentials.credentials)
        if uid:
            return uid
    cookie = request.cookies.get(get_settings().session_cookie_name)
    return _user_id_from_token(cookie)


async def get_current_user(user_id: str | None = Depends(get_optional_user)) -> str:
    if not user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return user_id
