from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import asc, desc, or_
from sqlalchemy.orm import Query

from pos_backend.core import clock
from pos_backend.core.database import atomic
from pos_backend.core.errors import DuplicateResource, ResourceNotFound
from pos_backend.models.product import Product
from pos_backend.services.authorization_service import AuthorizationService
from pos_backend.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

SORTABLE_COLUMNS = {
    "name": Product.name,
    "sku": Product.sku,
    "price": Product.price,
    "stock_quantity": Product.stock_quantity,
    "created_at": Product.created_at,
}


def _ensure_sku_available(scope: TenantScope, sku: str, *, exclude_id: int | None = None) -> None:
    # soft-deleted continuam ocupando o sku (constraint única no banco)
    query = scope.query(Product, with_trashed=True).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise DuplicateResource("The sku has already been taken.", field="sku")


def list_products(
    scope: TenantScope,
    *,
    search: str | None = None,
    low_stock: bool = False,
    sort_by: str = "name",
    sort_dir: str = "asc",
) -> Query:
    query = scope.query(Product)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(Product.name.ilike(pattern), Product.sku.ilike(pattern)))
    if low_stock:
        query = query.filter(Product.stock_quantity <= Product.low_stock_threshold)
    column = SORTABLE_COLUMNS.get(sort_by, Product.name)
    direction = desc if (sort_dir or "").lower() == "desc" else asc
    return query.order_by(direction(column), Product.id.asc())


def create_product(scope: TenantScope, user, data: Dict[str, Any]) -> Product:
    AuthorizationService.authorize(user, "products", "create")
    with atomic(scope.db):
        _ensure_sku_available(scope, data["sku"])
        product = scope.add(Product(**data))
        scope.db.flush()
    scope.db.refresh(product)
    logger.info("product created tenant_id=%s product_id=%s sku=%s", scope.tenant_id, product.id, product.sku)
    return product


def update_product(scope: TenantScope, user, product_id: int, changes: Dict[str, Any]) -> Product:
    AuthorizationService.authorize(user, "products", "update")
    with atomic(scope.db):
        product = scope.get_or_404(Product, product_id)
        AuthorizationService.ensure_tenant_access(user=user, target=product, resource="products", action="update")
        if "sku" in changes and changes["sku"] != product.sku:
            _ensure_sku_available(scope, changes["sku"], exclude_id=product.id)
        for field, value in changes.items():
            setattr(product, field, value)
    scope.db.refresh(product)
    return product


def delete_product(scope: TenantScope, user, product_id: int) -> None:
    AuthorizationService.authorize(user, "products", "delete")
    with atomic(scope.db):
        product = scope.get_or_404(Product, product_id)
        AuthorizationService.ensure_tenant_access(user=user, target=product, resource="products", action="delete")
        product.deleted_at = clock.utcnow()
    logger.info("product deleted tenant_id=%s product_id=%s", scope.tenant_id, product_id)


def restore_product(scope: TenantScope, user, product_id: int) -> Product:
    AuthorizationService.authorize(user, "products", "restore")
    with atomic(scope.db):
        product = scope.get(Product, product_id, with_trashed=True)
        if product is None or product.deleted_at is None:
            raise ResourceNotFound("Product", product_id)
        AuthorizationService.ensure_tenant_access(user=user, target=product, resource="products", action="restore")
        product.deleted_at = None
    scope.db.refresh(product)
    return product
