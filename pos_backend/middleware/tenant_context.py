from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware

from pos_backend.core import database
from pos_backend.core.config import TENANT_SCOPED_PREFIXES
from pos_backend.core.errors import PosError, error_response
from pos_backend.core.request_context import bind_tenant_id, reset_tenant_id
from pos_backend.services.tenant_context import TenantContext
from pos_backend.services.tenant_resolver import TenantResolver


def is_tenant_scoped_path(path: str) -> bool:
    return any(path == prefix or path.startswith(f"{prefix}/") for prefix in TENANT_SCOPED_PREFIXES)


class TenantContextMiddleware(BaseHTTPMiddleware):
    """Resolve the tenant header before any tenant-scoped handler runs."""

    async def dispatch(self, request, call_next):
        request.state.tenant = None
        if not is_tenant_scoped_path(request.url.path):
            return await call_next(request)

        db = database.SessionLocal()
        try:
            tenant = TenantResolver.resolve_from_request(db, request)
            context = TenantContext.from_tenant(tenant)
        except PosError as exc:
            return error_response(exc)
        finally:
            db.close()

        request.state.tenant = context
        token = bind_tenant_id(context.tenant_id)
        try:
            return await call_next(request)
        finally:
            reset_tenant_id(token)
