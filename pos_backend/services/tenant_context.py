from __future__ import annotations

from dataclasses import dataclass

from fastapi import Request

from pos_backend.core.config import TENANT_HEADER
from pos_backend.core.errors import MissingTenantHeader


@dataclass(frozen=True)
class TenantContext:
    """Tenant resolved for the current request, threaded into the data access layer."""

    tenant_id: int
    tenant_name: str | None = None

    @classmethod
    def from_tenant(cls, tenant) -> "TenantContext":
        return cls(tenant_id=int(tenant.id), tenant_name=getattr(tenant, "name", None))


def get_current_tenant_id(request: Request) -> int | None:
    context = getattr(request.state, "tenant", None)
    if context is None:
        return None
    return context.tenant_id


def get_tenant_context(request: Request) -> TenantContext:
    context = getattr(request.state, "tenant", None)
    if context is None:
        # rota tenant-scoped sem passar pelo middleware
        raise MissingTenantHeader(TENANT_HEADER)
    return context
