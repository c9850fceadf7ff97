from __future__ import annotations

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from pos_backend.core.config import RATE_LIMIT_ENABLED, TENANT_HEADER
from pos_backend.core.errors import RateLimited, error_response
from pos_backend.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService, endpoint_key
from pos_backend.middleware.tenant_context import is_tenant_scoped_path

logger = logging.getLogger(__name__)


class TenantRateLimitMiddleware(BaseHTTPMiddleware):
    """Per-tenant request budget on tenant-scoped routes, keyed by the tenant header."""

    def __init__(self, app, *, rate_limiter: RateLimiterService | None = None, enabled: bool = RATE_LIMIT_ENABLED) -> None:
        super().__init__(app)
        self.rate_limiter = rate_limiter or InMemoryRateLimiterService()
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next):
        if not self.enabled or not is_tenant_scoped_path(request.url.path):
            return await call_next(request)

        # somente o header: path, query string e body nunca identificam o tenant
        tenant_id = (request.headers.get(TENANT_HEADER) or "").strip()
        if not tenant_id:
            return await call_next(request)

        endpoint = endpoint_key(request.method, request.url.path)
        decision = self.rate_limiter.check(tenant_id=tenant_id, endpoint=endpoint)
        if not decision.allowed:
            logger.warning(
                "rate limit exceeded tenant_id=%s endpoint=%s retry_after=%s",
                tenant_id,
                endpoint,
                decision.retry_after_seconds,
            )
            response = error_response(RateLimited(decision.retry_after_seconds))
            response.headers.update(decision.headers())
            return response

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
