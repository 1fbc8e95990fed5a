"""Admin login, token refresh and profile."""
import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from apps.backend.deps import get_db
from apps.backend.models.admin import AdminUser
from apps.backend.auth import (
    get_password_hash,
    create_access_token,
    verify_password,
    get_current_admin,
)
from apps.backend.config import get_settings

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


def ensure_bootstrap_admin(db: Session) -> None:
    """First login on an empty admin_users table creates the ADMIN_DEFAULT_* account."""
    if db.execute(select(func.count(AdminUser.id))).scalar_one():
        return
    s = get_settings()
    db.add(AdminUser(email=s.admin_default_email.lower(), password_hash=get_password_hash(s.admin_default_password)))
    db.commit()
    logger.info("bootstrap_admin_created email=%s", s.admin_default_email)


def _admin_token(user: AdminUser) -> TokenResponse:
    return TokenResponse(access_token=create_access_token({"sub": str(user.id), "email": user.email, "type": "admin"}))


def _active_admin(db: Session, payload: dict) -> AdminUser:
    try:
        admin_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid token")
    user = db.get(AdminUser, admin_id)
    if not user:
        raise HTTPException(status_code=401, detail="Unknown admin")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is disabled")
    return user


@router.post("/login", response_model=TokenResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    ensure_bootstrap_admin(db)
    email = data.email.strip().lower()
    user = db.execute(select(AdminUser).where(AdminUser.email == email)).scalar_one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        logger.info("admin_login_failed email=%s", email)
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="User is disabled")
    user.last_login_at = datetime.utcnow()
    db.commit()
    return _admin_token(user)


@router.post("/refresh", response_model=TokenResponse)
def refresh(payload: dict = Depends(get_current_admin), db: Session = Depends(get_db)):
    return _admin_token(_active_admin(db, payload))


@router.get("/me")
def me(payload: dict = Depends(get_current_admin), db: Session = Depends(get_db)):
    user = _active_admin(db, payload)
    return {
        "id": user.id,
        "email": user.email,
        "last_login_at": user.last_login_at.isoformat() if user.last_login_at else None,
    }
