from __future__ import annotations

import logging

from fastapi import Request
from sqlalchemy.orm import Session

from pos_backend.core.config import TENANT_HEADER
from pos_backend.core.errors import InvalidTenantIdentifier, MissingTenantHeader, TenantInactive, TenantNotFound
from pos_backend.models.tenant import Tenant


logger = logging.getLogger(__name__)


class TenantResolver:
    """Resolve the tenant of a request from the tenant header only.

    Path, query string and body never take part in tenant resolution.
    """

    @staticmethod
    def parse_tenant_id(raw_value: str | None) -> int:
        value = (raw_value or "").strip()
        if not value:
            raise MissingTenantHeader(TENANT_HEADER)
        if not (value.isascii() and value.isdigit()):
            raise InvalidTenantIdentifier(value)
        tenant_id = int(value)
        if tenant_id <= 0:
            raise InvalidTenantIdentifier(value)
        return tenant_id

    @staticmethod
    def resolve_tenant(db: Session, tenant_id: int) -> Tenant:
        tenant = db.query(Tenant).filter(Tenant.id == tenant_id).first()
        if tenant is None:
            logger.info("Tenant resolution failed: tenant_id=%s reason=not_found", tenant_id)
            raise TenantNotFound(tenant_id)
        if not tenant.is_active:
            logger.info("Tenant resolution failed: tenant_id=%s reason=inactive", tenant_id)
            raise TenantInactive(tenant_id)
        return tenant

    @classmethod
    def resolve_from_request(cls, db: Session, request: Request) -> Tenant:
        tenant_id = cls.parse_tenant_id(request.headers.get(TENANT_HEADER))
        return cls.resolve_tenant(db, tenant_id)
