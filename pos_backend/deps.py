# pos_backend/deps.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from pos_backend.core.database import get_db
from pos_backend.core.errors import AccessDenied, TenantInactive
from pos_backend.core.request_context import set_request_context
from pos_backend.models.tenant import Tenant
from pos_backend.models.user import User
from pos_backend.services.auth import decode_access_token
from pos_backend.services.authorization_service import AuthorizationService
from pos_backend.services.tenant_context import TenantContext, get_tenant_context
from pos_backend.services.tenant_scope import TenantScope

# Swagger "Authorize" (OAuth2 password flow) chama este endpoint
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")

logger = logging.getLogger(__name__)


def _credentials_error(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _extract_user_id(payload: Dict[str, Any]) -> Optional[int]:
    raw = payload.get("sub")
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Decode the bearer token and load the user; inactive tenants are refused."""
    try:
        payload = decode_access_token(token)
    except ValueError:
        raise _credentials_error("Invalid or expired token")

    user_id = _extract_user_id(payload)
    if user_id is None:
        raise _credentials_error("Invalid token (missing subject)")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise _credentials_error("User not found")

    tenant = db.query(Tenant).filter(Tenant.id == user.tenant_id).first()
    if tenant is None or not tenant.is_active:
        raise TenantInactive(user.tenant_id)

    request.state.user_id = user.id
    set_request_context(user_id=str(user.id))
    return user


def get_tenant_scope(
    context: TenantContext = Depends(get_tenant_context),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TenantScope:
    """Bind the request session to the header tenant; the user must belong to it."""
    if int(user.tenant_id) != context.tenant_id:
        logger.warning(
            "Access denied (tenant_mismatch): user_id=%s user_tenant=%s tenant_id=%s",
            user.id,
            user.tenant_id,
            context.tenant_id,
        )
        raise AccessDenied("tenant_mismatch")
    return TenantScope(db, context)


def require_permission(resource: str, action: str):
    def _dependency(user: User = Depends(get_current_user)) -> User:
        AuthorizationService.authorize(user, resource, action)
        return user

    return _dependency
