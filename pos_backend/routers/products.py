from __future__ import annotations

from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, Query, Response

from pos_backend.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from pos_backend.core.money import format_money
from pos_backend.deps import get_tenant_scope, require_permission
from pos_backend.models.product import Product
from pos_backend.models.user import User
from pos_backend.schemas.products import ProductCreate, ProductUpdate
from pos_backend.services import products as product_service
from pos_backend.services.pagination import paginate
from pos_backend.services.tenant_scope import TenantScope

router = APIRouter(prefix="/api/v1/products", tags=["products"])

NULLABLE_FIELDS = {"description"}


def _product_to_dict(p: Product) -> Dict[str, Any]:
    return {
        "id": p.id,
        "tenant_id": p.tenant_id,
        "name": p.name,
        "sku": p.sku,
        "description": p.description,
        "price": format_money(p.price),
        "stock_quantity": p.stock_quantity,
        "low_stock_threshold": p.low_stock_threshold,
        "is_low_stock": p.stock_quantity <= p.low_stock_threshold,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
        "deleted_at": p.deleted_at.isoformat() if p.deleted_at else None,
    }


@router.get("")
def list_products(
    search: str | None = Query(None, max_length=255),
    low_stock: bool = False,
    sort_by: Literal["name", "sku", "price", "stock_quantity", "created_at"] = "name",
    sort_dir: Literal["asc", "desc"] = "asc",
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("products", "view")),
):
    query = product_service.list_products(scope, search=search, low_stock=low_stock, sort_by=sort_by, sort_dir=sort_dir)
    return paginate(query, page=page, limit=limit, serializer=_product_to_dict)


@router.post("", status_code=201)
def create_product(
    payload: ProductCreate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("products", "create")),
):
    return _product_to_dict(product_service.create_product(scope, user, payload.model_dump()))


@router.get("/{product_id}")
def get_product(
    product_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("products", "view")),
):
    return _product_to_dict(scope.get_or_404(Product, product_id))


@router.put("/{product_id}")
@router.patch("/{product_id}")
def update_product(
    product_id: int,
    payload: ProductUpdate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("products", "update")),
):
    changes = {
        field: value
        for field, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or field in NULLABLE_FIELDS
    }
    return _product_to_dict(product_service.update_product(scope, user, product_id, changes))


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("products", "delete")),
):
    product_service.delete_product(scope, user, product_id)
    return Response(status_code=204)


@router.post("/{product_id}/restore")
def restore_product(
    product_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("products", "restore")),
):
    return _product_to_dict(product_service.restore_product(scope, user, product_id))
