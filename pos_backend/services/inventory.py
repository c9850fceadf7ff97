"""Stock ledger: reserve/deduct and restore product stock under row locks.

Both operations lock every touched product in ascending id order before
reading its stock, so two transactions touching overlapping products always
queue in the same order. Nothing here commits; the caller's ``atomic()``
block owns the transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from pos_backend.core.database import apply_lock_timeout
from pos_backend.core.errors import InsufficientStock, ValidationFailed
from pos_backend.models.product import Product
from pos_backend.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockLine:
    product_id: int
    quantity: int


def merge_lines(lines: Iterable[StockLine]) -> dict[int, int]:
    """Sum quantities per product so repeated lines are checked as one request."""
    merged: dict[int, int] = {}
    for line in lines:
        quantity = int(line.quantity)
        if quantity <= 0:
            raise ValidationFailed("The quantity must be at least 1.", field="quantity")
        merged[int(line.product_id)] = merged.get(int(line.product_id), 0) + quantity
    return merged


def _lock_products(scope: TenantScope, product_ids: Iterable[int], *, with_trashed: bool) -> dict[int, Product]:
    apply_lock_timeout(scope.db)
    products = scope.lock(Product, product_ids, with_trashed=with_trashed)
    return {product.id: product for product in products}


def reserve_and_deduct(scope: TenantScope, lines: Iterable[StockLine]) -> dict[int, Product]:
    """Lock, verify and decrement stock for every line, all or nothing.

    Returns the locked products keyed by id so callers can read the price
    that was current while the lock was held.
    """
    requested = merge_lines(lines)
    if not requested:
        raise ValidationFailed("At least one item is required.", field="items")

    locked = _lock_products(scope, requested.keys(), with_trashed=False)

    missing = [product_id for product_id in requested if product_id not in locked]
    if missing:
        raise ValidationFailed(f"The selected product {missing[0]} is invalid.", field="product_id")

    for product_id in sorted(requested):
        product = locked[product_id]
        quantity = requested[product_id]
        if product.stock_quantity < quantity:
            logger.info(
                "Insufficient stock: tenant_id=%s product_id=%s requested=%s available=%s",
                scope.tenant_id,
                product_id,
                quantity,
                product.stock_quantity,
            )
            raise InsufficientStock(
                product_id=product.id,
                product_name=product.name,
                product_sku=product.sku,
                requested_quantity=quantity,
                available_quantity=product.stock_quantity,
            )

    for product_id in sorted(requested):
        product = locked[product_id]
        product.stock_quantity = Product.stock_quantity - requested[product_id]

    scope.db.flush()
    for product in locked.values():
        # lê de volta o valor calculado pelo banco
        scope.db.refresh(product, attribute_names=["stock_quantity"])
    return locked


def restore(scope: TenantScope, lines: Iterable[StockLine]) -> dict[int, Product]:
    """Give stock back for cancelled lines (soft-deleted products included)."""
    returned = merge_lines(lines)
    if not returned:
        return {}

    locked = _lock_products(scope, returned.keys(), with_trashed=True)
    for product_id in sorted(returned):
        product = locked.get(product_id)
        if product is None:
            logger.warning(
                "Stock restore skipped missing product: tenant_id=%s product_id=%s",
                scope.tenant_id,
                product_id,
            )
            continue
        product.stock_quantity = Product.stock_quantity + returned[product_id]

    scope.db.flush()
    for product in locked.values():
        scope.db.refresh(product, attribute_names=["stock_quantity"])
    return locked
