from __future__ import annotations

import logging
from typing import Any

from pos_backend.core.errors import AccessDenied
from pos_backend.models.user import UserRole

logger = logging.getLogger(__name__)

_ANY_ROLE = frozenset({UserRole.OWNER.value, UserRole.STAFF.value})
_OWNER_ONLY = frozenset({UserRole.OWNER.value})

POLICIES: dict[str, dict[str, frozenset[str]]] = {
    "products": {
        "view": _ANY_ROLE,
        "create": _OWNER_ONLY,
        "update": _OWNER_ONLY,
        "delete": _OWNER_ONLY,
        "restore": _OWNER_ONLY,
    },
    "customers": {
        "view": _ANY_ROLE,
        "create": _OWNER_ONLY,
        "update": _OWNER_ONLY,
        "delete": _OWNER_ONLY,
        "restore": _OWNER_ONLY,
    },
    "orders": {
        "view": _ANY_ROLE,
        "create": _ANY_ROLE,
        "update": _OWNER_ONLY,
        "cancel": _OWNER_ONLY,
        "delete": _OWNER_ONLY,
    },
    "reports": {"view": _ANY_ROLE},
    "metrics": {"view": _OWNER_ONLY},
}


class AuthorizationService:
    """Role policies plus a tenant ownership check on the target resource."""

    @staticmethod
    def normalize_role(role: str | None) -> str:
        return (role or "").strip().lower()

    @staticmethod
    def log_access_denied(*, reason: str, user: Any, resource: str, action: str, tenant_id: int | None) -> None:
        logger.warning(
            "Access denied (%s): user_id=%s user_role=%s user_tenant=%s tenant_id=%s resource=%s action=%s",
            reason,
            getattr(user, "id", None),
            getattr(user, "role", None),
            getattr(user, "tenant_id", None),
            tenant_id,
            resource,
            action,
        )

    @classmethod
    def ensure_tenant_access(cls, *, user: Any, target: Any, resource: str, action: str) -> None:
        target_tenant_id = getattr(target, "tenant_id", None)
        if target_tenant_id is None:
            return
        if int(user.tenant_id) != int(target_tenant_id):
            cls.log_access_denied(
                reason="tenant_mismatch",
                user=user,
                resource=resource,
                action=action,
                tenant_id=target_tenant_id,
            )
            raise AccessDenied("tenant_mismatch")

    @classmethod
    def authorize(cls, user: Any, resource: str, action: str, target: Any = None) -> None:
        allowed = POLICIES.get(resource, {}).get(action, frozenset())
        if cls.normalize_role(user.role) not in allowed:
            cls.log_access_denied(
                reason="role_denied",
                user=user,
                resource=resource,
                action=action,
                tenant_id=getattr(target, "tenant_id", None),
            )
            raise AccessDenied("role_denied")
        if target is not None:
            cls.ensure_tenant_access(user=user, target=target, resource=resource, action=action)

