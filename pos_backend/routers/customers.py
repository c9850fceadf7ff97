from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, Response

from pos_backend.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from pos_backend.deps import get_tenant_scope, require_permission
from pos_backend.models.customer import Customer
from pos_backend.models.user import User
from pos_backend.schemas.customers import CustomerCreate, CustomerUpdate
from pos_backend.services import customers as customer_service
from pos_backend.services.pagination import paginate
from pos_backend.services.tenant_scope import TenantScope

router = APIRouter(prefix="/api/v1/customers", tags=["customers"])

NULLABLE_FIELDS = {"email", "phone", "address", "notes"}


def _customer_to_dict(c: Customer) -> Dict[str, Any]:
    return {
        "id": c.id,
        "tenant_id": c.tenant_id,
        "name": c.name,
        "email": c.email,
        "phone": c.phone,
        "address": c.address,
        "notes": c.notes,
        "created_at": c.created_at.isoformat() if c.created_at else None,
        "updated_at": c.updated_at.isoformat() if c.updated_at else None,
        "deleted_at": c.deleted_at.isoformat() if c.deleted_at else None,
    }


@router.get("")
def list_customers(
    search: str | None = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("customers", "view")),
):
    query = customer_service.list_customers(scope, search=search)
    return paginate(query, page=page, limit=limit, serializer=_customer_to_dict)


@router.post("", status_code=201)
def create_customer(
    payload: CustomerCreate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("customers", "create")),
):
    return _customer_to_dict(customer_service.create_customer(scope, user, payload.model_dump()))


@router.get("/{customer_id}")
def get_customer(
    customer_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("customers", "view")),
):
    return _customer_to_dict(scope.get_or_404(Customer, customer_id))


@router.put("/{customer_id}")
@router.patch("/{customer_id}")
def update_customer(
    customer_id: int,
    payload: CustomerUpdate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("customers", "update")),
):
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    return _customer_to_dict(customer_service.update_customer(scope, user, customer_id, changes))


@router.delete("/{customer_id}", status_code=204)
def delete_customer(
    customer_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("customers", "delete")),
):
    customer_service.delete_customer(scope, user, customer_id)
    return Response(status_code=204)


@router.post("/{customer_id}/restore")
def restore_customer(
    customer_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("customers", "restore")),
):
    return _customer_to_dict(customer_service.restore_customer(scope, user, customer_id))
