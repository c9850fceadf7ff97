from __future__ import annotations

import logging
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from pos_backend.core.metrics import request_metrics
from pos_backend.core.request_context import clear_request_context, set_request_context
from pos_backend.services.tenant_context import get_current_tenant_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


def _log_level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Outermost middleware: request id, per-tenant metrics and one access log line."""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        request_id = (request.headers.get(REQUEST_ID_HEADER) or "").strip() or uuid.uuid4().hex
        request.state.request_id = request_id
        set_request_context(request_id=request_id)

        response = None
        try:
            response = await call_next(request)
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            duration_ms = round((time.perf_counter() - started) * 1000, 2)
            tenant_id = _resolved_tenant_id(request)

            request_metrics.observe(
                endpoint=request.url.path,
                method=request.method,
                status_code=status_code,
                duration_ms=duration_ms,
                tenant_id=tenant_id,
            )
            logger.log(
                _log_level_for(status_code),
                "request completed",
                extra={
                    "request_id": request_id,
                    "tenant_id": tenant_id,
                    "user_id": _authenticated_user_id(request),
                    "endpoint": request.url.path,
                    "method": request.method,
                    "status_code": status_code,
                    "duration_ms": duration_ms,
                },
            )
            if response is not None:
                response.headers[REQUEST_ID_HEADER] = request_id
            clear_request_context()


def _resolved_tenant_id(request: Request) -> str | None:
    # só conta tenants resolvidos pelo TenantContextMiddleware, nunca o header cru
    tenant_id = get_current_tenant_id(request)
    return str(tenant_id) if tenant_id is not None else None


def _authenticated_user_id(request: Request) -> str | None:
    user_id = getattr(request.state, "user_id", None)
    return str(user_id) if user_id is not None else None
