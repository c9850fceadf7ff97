# pos_backend/routers/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from pos_backend.core.database import atomic, get_db
from pos_backend.core.errors import TenantInactive, ValidationFailed
from pos_backend.deps import get_current_user
from pos_backend.models.tenant import Tenant
from pos_backend.models.user import User
from pos_backend.schemas.auth import LoginPayload, RegisterPayload
from pos_backend.services.auth import create_access_token, hash_password, verify_password

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])

logger = logging.getLogger(__name__)


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "tenant_id": user.tenant_id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "created_at": user.created_at.isoformat() if user.created_at else None,
    }


def _issue_token(db: Session, email: str, password: str) -> dict:
    user = db.query(User).filter(User.email == email.lower()).first()
    if not user or not verify_password(password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    tenant = db.query(Tenant).filter(Tenant.id == user.tenant_id).first()
    if tenant is None or not tenant.is_active:
        logger.info("login refused for inactive tenant user_id=%s tenant_id=%s", user.id, user.tenant_id)
        raise TenantInactive(user.tenant_id)

    token = create_access_token(user.id, extra={"tenant_id": int(user.tenant_id), "role": user.role})
    return {"access_token": token, "token_type": "bearer", "user": _user_to_dict(user)}


@router.post("/register", status_code=201)
def register(payload: RegisterPayload, db: Session = Depends(get_db)):
    email = payload.email.lower()
    with atomic(db):
        if db.query(Tenant).filter(Tenant.id == payload.tenant_id).first() is None:
            raise ValidationFailed("The selected tenant id is invalid.", field="tenant_id")
        if db.query(User).filter(User.email == email).first():
            raise ValidationFailed("The email has already been taken.", field="email")

        user = User(
            tenant_id=payload.tenant_id,
            name=payload.name,
            email=email,
            password_hash=hash_password(payload.password),
            role=payload.role,
        )
        db.add(user)
        db.flush()

    db.refresh(user)
    logger.info("user registered user_id=%s tenant_id=%s role=%s", user.id, user.tenant_id, user.role)
    token = create_access_token(user.id, extra={"tenant_id": int(user.tenant_id), "role": user.role})
    return {"access_token": token, "token_type": "bearer", "user": _user_to_dict(user)}


@router.post("/login")
def login(payload: LoginPayload, db: Session = Depends(get_db)):
    return _issue_token(db, payload.email, payload.password)


@router.post("/token")
def token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    """Endpoint used by the Swagger UI Authorize button (form fields username/password)."""
    return _issue_token(db, form_data.username, form_data.password)


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return _user_to_dict(user)
