from __future__ import annotations

import copy
import time
from datetime import date
from threading import Lock
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func
from sqlalchemy.orm import Session

from pos_backend.core import clock
from pos_backend.core.config import DAILY_SALES_CACHE_TTL_SECONDS
from pos_backend.core.money import ZERO, format_money, to_money
from pos_backend.models.order import Order, OrderStatus
from pos_backend.models.order_item import OrderItem
from pos_backend.models.product import Product
from pos_backend.services.tenant_scope import for_tenant

DEFAULT_TOP_PRODUCTS_LIMIT = 5


class DailySalesCache:
    """Per-process TTL cache for summaries of days that are already closed."""

    def __init__(self, ttl_seconds: int = DAILY_SALES_CACHE_TTL_SECONDS) -> None:
        self.ttl_seconds = ttl_seconds
        self._entries: dict[tuple[int, date], tuple[float, Dict[str, Any]]] = {}
        self._lock = Lock()

    def get(self, tenant_id: int, day: date) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._entries.get((tenant_id, day))
            if entry is None:
                return None
            expires_at, summary = entry
            if time.monotonic() >= expires_at:
                del self._entries[(tenant_id, day)]
                return None
            return copy.deepcopy(summary)

    def put(self, tenant_id: int, day: date, summary: Dict[str, Any]) -> None:
        if self.ttl_seconds <= 0:
            return
        with self._lock:
            self._entries[(tenant_id, day)] = (time.monotonic() + self.ttl_seconds, copy.deepcopy(summary))

    def invalidate(self, tenant_id: int, day: date) -> None:
        with self._lock:
            self._entries.pop((tenant_id, day), None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()


daily_sales_cache = DailySalesCache()


def invalidate_daily_sales_cache(tenant_id: int, day: date) -> None:
    daily_sales_cache.invalidate(tenant_id, day)


def daily_sales_summary(db: Session, tenant_id: int, day: date) -> Dict[str, Any]:
    # o dia corrente ainda muda, só cacheia dias fechados
    if day >= clock.today():
        return _calculate_daily_sales_summary(db, tenant_id, day)

    cached = daily_sales_cache.get(tenant_id, day)
    if cached is not None:
        return cached
    summary = _calculate_daily_sales_summary(db, tenant_id, day)
    daily_sales_cache.put(tenant_id, day, summary)
    return summary


def _calculate_daily_sales_summary(db: Session, tenant_id: int, day: date) -> Dict[str, Any]:
    start, end = clock.day_bounds(day)
    orders_of_day = for_tenant(db, Order, tenant_id).filter(Order.created_at >= start, Order.created_at < end)

    paid_count, paid_revenue = (
        orders_of_day.filter(Order.status == OrderStatus.PAID.value)
        .with_entities(func.count(Order.id), func.coalesce(func.sum(Order.total_amount), 0))
        .one()
    )
    status_rows = orders_of_day.with_entities(Order.status, func.count(Order.id)).group_by(Order.status).all()

    orders_by_status = {status.value: 0 for status in OrderStatus}
    for status_value, count in status_rows:
        orders_by_status[status_value] = int(count)

    paid_count = int(paid_count or 0)
    revenue = to_money(paid_revenue)
    average = to_money(revenue / paid_count) if paid_count else ZERO

    return {
        "date": day.isoformat(),
        "total_orders": paid_count,
        "total_revenue": format_money(revenue),
        "average_order_value": format_money(average),
        "orders_by_status": orders_by_status,
    }


def top_selling_products(
    db: Session,
    tenant_id: int,
    start_day: date,
    end_day: date,
    limit: int = DEFAULT_TOP_PRODUCTS_LIMIT,
) -> List[Dict[str, Any]]:
    start, end = clock.day_bounds(start_day, end_day)
    quantity_sold = func.sum(OrderItem.quantity).label("total_quantity_sold")
    revenue = func.sum(OrderItem.subtotal).label("total_revenue")

    rows = (
        for_tenant(db, OrderItem, tenant_id)
        .join(Order, Order.id == OrderItem.order_id)
        .join(Product, Product.id == OrderItem.product_id)
        .filter(
            Order.tenant_id == tenant_id,
            Product.tenant_id == tenant_id,
            Order.status == OrderStatus.PAID.value,
            Order.created_at >= start,
            Order.created_at < end,
        )
        .with_entities(Product.id, Product.name, Product.sku, quantity_sold, revenue)
        .group_by(Product.id, Product.name, Product.sku)
        .order_by(desc(quantity_sold), Product.id.asc())
        .limit(limit)
        .all()
    )

    return [
        {
            "id": row.id,
            "name": row.name,
            "sku": row.sku,
            "total_quantity_sold": int(row.total_quantity_sold or 0),
            "total_revenue": format_money(row.total_revenue),
        }
        for row in rows
    ]


def low_stock_products(db: Session, tenant_id: int) -> List[Dict[str, Any]]:
    products = (
        for_tenant(db, Product, tenant_id)
        .filter(Product.stock_quantity <= Product.low_stock_threshold)
        .order_by(Product.stock_quantity.asc(), Product.id.asc())
        .all()
    )
    return [
        {
            "id": product.id,
            "name": product.name,
            "sku": product.sku,
            "stock_quantity": product.stock_quantity,
            "low_stock_threshold": product.low_stock_threshold,
            "shortage": product.low_stock_threshold - product.stock_quantity,
        }
        for product in products
    ]
