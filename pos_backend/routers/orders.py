from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Literal, Optional

from fastapi import APIRouter, Depends, Query, Response

from pos_backend.core.config import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE
from pos_backend.core.money import format_money
from pos_backend.deps import get_tenant_scope, require_permission
from pos_backend.models.order import Order, OrderStatus
from pos_backend.models.order_item import OrderItem
from pos_backend.models.user import User
from pos_backend.schemas.orders import OrderCreate, StatusUpdate
from pos_backend.services import orders as order_service
from pos_backend.services.inventory import StockLine
from pos_backend.services.pagination import paginate
from pos_backend.services.tenant_scope import TenantScope

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def _order_item_to_dict(item: OrderItem) -> Dict[str, Any]:
    product = item.product
    return {
        "id": item.id,
        "product_id": item.product_id,
        "product_name": product.name if product is not None else None,
        "product_sku": product.sku if product is not None else None,
        "quantity": item.quantity,
        "unit_price": format_money(item.unit_price),
        "subtotal": format_money(item.subtotal),
    }


def _order_to_dict(o: Order, *, with_items: bool = True) -> Dict[str, Any]:
    payload = {
        "id": o.id,
        "tenant_id": o.tenant_id,
        "order_number": o.order_number,
        "status": o.status,
        "customer_id": o.customer_id,
        "user_id": o.user_id,
        "subtotal": format_money(o.subtotal),
        "tax_amount": format_money(o.tax_amount),
        "discount_amount": format_money(o.discount_amount),
        "total_amount": format_money(o.total_amount),
        "notes": o.notes,
        "paid_at": _isoformat(o.paid_at),
        "cancelled_at": _isoformat(o.cancelled_at),
        "created_at": _isoformat(o.created_at),
        "updated_at": _isoformat(o.updated_at),
    }
    if with_items:
        payload["items"] = [_order_item_to_dict(item) for item in o.items]
    return payload


def _order_summary(o: Order) -> Dict[str, Any]:
    return _order_to_dict(o, with_items=False)


@router.get("")
def list_orders(
    status: Optional[OrderStatus] = None,
    date_: Optional[date] = Query(None, alias="date"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    customer_id: Optional[int] = Query(None, ge=1),
    sort_by: Literal["created_at", "order_number", "total_amount", "status"] = "created_at",
    sort_dir: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
    scope: TenantScope = Depends(get_tenant_scope),
    _user: User = Depends(require_permission("orders", "view")),
):
    query = order_service.list_orders(
        scope,
        status=status,
        on_date=date_,
        start_date=start_date,
        end_date=end_date,
        customer_id=customer_id,
        sort_by=sort_by,
        sort_dir=sort_dir,
    )
    return paginate(query, page=page, limit=limit, serializer=_order_summary)


@router.post("", status_code=201)
def create_order(
    payload: OrderCreate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("orders", "create")),
):
    order = order_service.create_order(
        scope,
        user,
        [StockLine(product_id=item.product_id, quantity=item.quantity) for item in payload.items],
        customer_id=payload.customer_id,
        tax_rate=payload.tax_rate or Decimal("0"),
        discount=payload.discount_amount or Decimal("0"),
        notes=payload.notes,
    )
    return _order_to_dict(order)


@router.get("/{order_id}")
def get_order(
    order_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("orders", "view")),
):
    return _order_to_dict(order_service.get_order(scope, user, order_id))


@router.patch("/{order_id}/status")
def update_status(
    order_id: int,
    body: StatusUpdate,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("orders", "update")),
):
    return _order_to_dict(order_service.update_status(scope, user, order_id, body.status))


@router.post("/{order_id}/cancel")
def cancel_order(
    order_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("orders", "cancel")),
):
    return _order_to_dict(order_service.cancel_order(scope, user, order_id))


@router.delete("/{order_id}", status_code=204)
def delete_order(
    order_id: int,
    scope: TenantScope = Depends(get_tenant_scope),
    user: User = Depends(require_permission("orders", "delete")),
):
    order_service.delete_order(scope, user, order_id)
    return Response(status_code=204)
