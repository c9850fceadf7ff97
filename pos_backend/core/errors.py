"""Typed errors raised by the POS backend.

Every error carries a machine readable ``code`` and the HTTP status the API
renders it with. Handlers registered in ``pos_backend.main`` turn them into
``{"detail": ..., "error": {"type": code, ...}}`` responses.
"""
from __future__ import annotations

from typing import Any

from fastapi.responses import JSONResponse

from pos_backend.core.config import CONTENTION_RETRY_AFTER_SECONDS


class PosError(Exception):
    code: str = "internal_error"
    status_code: int = 500

    def __init__(self, message: str = "Internal server error.", **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.message, "error": {"type": self.code, **self.details}}

    def headers(self) -> dict[str, str] | None:
        return None


# Tenant resolution


class MissingTenantHeader(PosError):
    code = "missing_tenant_header"
    status_code = 400

    def __init__(self, header_name: str) -> None:
        super().__init__(f"Missing required header: {header_name}", header=header_name)


class InvalidTenantIdentifier(PosError):
    code = "invalid_tenant_identifier"
    status_code = 400

    def __init__(self, raw_value: str | None = None) -> None:
        super().__init__("Invalid tenant ID format.")
        self.raw_value = raw_value


class TenantNotFound(PosError):
    code = "tenant_not_found"
    status_code = 404

    def __init__(self, tenant_id: int) -> None:
        self.tenant_id = tenant_id
        super().__init__("Tenant not found.")


class TenantInactive(PosError):
    code = "tenant_inactive"
    status_code = 403

    def __init__(self, tenant_id: int) -> None:
        self.tenant_id = tenant_id
        super().__init__("Tenant is inactive.")


# Lookup / authorization


class ValidationFailed(PosError):
    code = "validation_failed"
    status_code = 422

    def __init__(self, message: str, *, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, **details)
        self.field = field


class ResourceNotFound(PosError):
    code = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: Any = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        super().__init__(f"{resource} not found.", resource=resource)


class AccessDenied(PosError):
    code = "access_denied"
    status_code = 403

    def __init__(self, reason: str, message: str = "This action is unauthorized.") -> None:
        self.reason = reason
        super().__init__(message, reason=reason)


class DuplicateResource(PosError):
    code = "duplicate_resource"
    status_code = 409

    def __init__(self, message: str, *, field: str | None = None) -> None:
        details = {"field": field} if field else {}
        super().__init__(message, **details)
        self.field = field


# Business rules


class InsufficientStock(PosError):
    code = "insufficient_stock"
    status_code = 422

    def __init__(
        self,
        *,
        product_id: int,
        product_name: str,
        product_sku: str,
        requested_quantity: int,
        available_quantity: int,
    ) -> None:
        self.product_id = product_id
        self.requested_quantity = requested_quantity
        self.available_quantity = available_quantity
        super().__init__(
            f'Insufficient stock for product "{product_name}" (SKU: {product_sku}). '
            f"Requested: {requested_quantity}, Available: {available_quantity}",
            product_id=product_id,
            product_name=product_name,
            product_sku=product_sku,
            requested_quantity=requested_quantity,
            available_quantity=available_quantity,
        )


class InvalidTransition(PosError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, *, order_id: int, current_status: str, requested_status: str) -> None:
        self.order_id = order_id
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            f"Order {order_id} cannot move from {current_status} to {requested_status}.",
            order_id=order_id,
            current_status=current_status,
            requested_status=requested_status,
        )


class OrderNotDeletable(PosError):
    code = "order_not_deletable"
    status_code = 422

    def __init__(self, order_id: int) -> None:
        self.order_id = order_id
        super().__init__("Only cancelled orders can be deleted.", order_id=order_id)


class RateLimited(PosError):
    code = "rate_limited"
    status_code = 429

    def __init__(self, retry_after_seconds: int) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__("Too many requests.", retry_after=retry_after_seconds)

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(self.retry_after_seconds)}


# Contention (transient, safe to retry)


class ContentionError(PosError):
    code = "contention"
    status_code = 503

    def headers(self) -> dict[str, str] | None:
        return {"Retry-After": str(CONTENTION_RETRY_AFTER_SECONDS)}


class LockTimeout(ContentionError):
    code = "lock_timeout"

    def __init__(self) -> None:
        super().__init__("The resource is busy, please retry.")


class OrderNumberConflict(ContentionError):
    code = "order_number_conflict"

    def __init__(self, tenant_id: int | None = None, attempts: int = 1) -> None:
        self.tenant_id = tenant_id
        self.attempts = attempts
        super().__init__("Could not allocate an order number, please retry.", attempts=attempts)


class PersistenceError(PosError):
    code = "persistence_error"
    status_code = 500

    def __init__(self) -> None:
        super().__init__("The operation could not be stored.")


def error_response(exc: PosError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload(), headers=exc.headers())
