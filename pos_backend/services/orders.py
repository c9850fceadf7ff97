"""Order workflow: creation with stock deduction, status transitions and cancellation.

Allowed transitions::

    pending -> paid
    pending -> cancelled
    paid    -> cancelled

``cancelled`` is terminal. Moving an order to cancelled always goes through
``cancel_order`` so stock is restored exactly once.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable

from sqlalchemy import asc, desc
from sqlalchemy.orm import Query

from pos_backend.core import clock
from pos_backend.core.config import ORDER_NUMBER_MAX_RETRIES
from pos_backend.core.database import apply_lock_timeout, atomic
from pos_backend.core.errors import (
    InvalidTransition,
    OrderNotDeletable,
    OrderNumberConflict,
    ResourceNotFound,
    ValidationFailed,
)
from pos_backend.core.money import ZERO, to_money
from pos_backend.models.customer import Customer
from pos_backend.models.order import Order, OrderStatus
from pos_backend.models.order_item import OrderItem
from pos_backend.services.authorization_service import AuthorizationService
from pos_backend.services.inventory import StockLine, reserve_and_deduct, restore
from pos_backend.services.order_numbers import next_order_number
from pos_backend.services.reports import invalidate_daily_sales_cache
from pos_backend.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.CANCELLED}),
    OrderStatus.CANCELLED: frozenset(),
}

SORTABLE_COLUMNS = {
    "created_at": Order.created_at,
    "order_number": Order.order_number,
    "total_amount": Order.total_amount,
    "status": Order.status,
}


@dataclass(frozen=True)
class OrderTotals:
    subtotal: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal


def can_transition(current: OrderStatus | str, target: OrderStatus | str) -> bool:
    return OrderStatus(target) in ALLOWED_TRANSITIONS[OrderStatus(current)]


def ensure_transition(order: Order, target: OrderStatus) -> None:
    if not can_transition(order.status, target):
        raise InvalidTransition(
            order_id=order.id,
            current_status=OrderStatus(order.status).value,
            requested_status=OrderStatus(target).value,
        )


def compute_totals(subtotal: Decimal, tax_rate: Decimal, discount: Decimal) -> OrderTotals:
    subtotal = to_money(subtotal)
    tax_rate = Decimal(tax_rate or 0)
    if tax_rate < 0 or tax_rate > 100:
        raise ValidationFailed("The tax rate must be between 0 and 100.", field="tax_rate")
    discount = to_money(discount)
    if discount < ZERO:
        raise ValidationFailed("The discount must be at least 0.", field="discount_amount")

    tax_amount = to_money(subtotal * tax_rate / Decimal(100))
    if discount > subtotal + tax_amount:
        raise ValidationFailed("The discount cannot exceed the order amount.", field="discount_amount")

    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        discount_amount=discount,
        total_amount=to_money(subtotal + tax_amount - discount),
    )


def _lock_order(scope: TenantScope, order_id: int) -> Order:
    apply_lock_timeout(scope.db)
    order = (
        scope.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if order is None:
        raise ResourceNotFound("Order", order_id)
    return order


def _create_order_once(
    scope: TenantScope,
    user,
    lines: list[StockLine],
    *,
    customer_id: int | None,
    tax_rate: Decimal,
    discount: Decimal,
    notes: str | None,
) -> Order:
    if customer_id is not None and scope.get(Customer, customer_id) is None:
        raise ValidationFailed("The selected customer id is invalid.", field="customer_id")

    products = reserve_and_deduct(scope, lines)

    items: list[OrderItem] = []
    subtotal = ZERO
    for line in lines:
        product = products[int(line.product_id)]
        unit_price = to_money(product.price)
        line_subtotal = to_money(unit_price * int(line.quantity))
        subtotal += line_subtotal
        items.append(
            OrderItem(
                tenant_id=scope.tenant_id,
                product_id=product.id,
                quantity=int(line.quantity),
                unit_price=unit_price,
                subtotal=line_subtotal,
            )
        )

    totals = compute_totals(subtotal, tax_rate, discount)
    now = clock.utcnow()
    order = Order(
        customer_id=customer_id,
        user_id=user.id,
        order_number=next_order_number(scope.db, scope.tenant_id, now.date()),
        status=OrderStatus.PENDING.value,
        subtotal=totals.subtotal,
        tax_amount=totals.tax_amount,
        discount_amount=totals.discount_amount,
        total_amount=totals.total_amount,
        notes=notes,
        created_at=now,
        updated_at=now,
    )
    order.items = items
    scope.add(order)
    scope.db.flush()
    return order


def create_order(
    scope: TenantScope,
    user,
    lines: Iterable[StockLine],
    *,
    customer_id: int | None = None,
    tax_rate: Decimal = Decimal("0"),
    discount: Decimal = Decimal("0"),
    notes: str | None = None,
) -> Order:
    """Create a pending order, deducting stock in the same transaction.

    Retried when the per-tenant order number uniqueness constraint fires;
    every other failure rolls back stock, counter and order together.
    """
    AuthorizationService.authorize(user, "orders", "create")
    lines = list(lines)
    if not lines:
        raise ValidationFailed("At least one item is required.", field="items")

    for attempt in range(1, ORDER_NUMBER_MAX_RETRIES + 1):
        try:
            with atomic(scope.db):
                order = _create_order_once(
                    scope,
                    user,
                    lines,
                    customer_id=customer_id,
                    tax_rate=tax_rate,
                    discount=discount,
                    notes=notes,
                )
        except OrderNumberConflict:
            logger.warning(
                "order number conflict tenant_id=%s attempt=%s max_attempts=%s",
                scope.tenant_id,
                attempt,
                ORDER_NUMBER_MAX_RETRIES,
            )
            continue

        scope.db.refresh(order)
        logger.info(
            "order created tenant_id=%s order_id=%s order_number=%s total=%s",
            scope.tenant_id,
            order.id,
            order.order_number,
            order.total_amount,
        )
        return order

    raise OrderNumberConflict(scope.tenant_id, ORDER_NUMBER_MAX_RETRIES)


def get_order(scope: TenantScope, user, order_id: int) -> Order:
    AuthorizationService.authorize(user, "orders", "view")
    order = scope.get_or_404(Order, order_id)
    AuthorizationService.ensure_tenant_access(user=user, target=order, resource="orders", action="view")
    return order


def update_status(scope: TenantScope, user, order_id: int, new_status: OrderStatus | str) -> Order:
    target = OrderStatus(new_status)
    if target is OrderStatus.CANCELLED:
        return cancel_order(scope, user, order_id)

    AuthorizationService.authorize(user, "orders", "update")
    with atomic(scope.db):
        order = _lock_order(scope, order_id)
        AuthorizationService.ensure_tenant_access(user=user, target=order, resource="orders", action="update")
        previous = order.status
        ensure_transition(order, target)
        order.status = target.value
        if target is OrderStatus.PAID and order.paid_at is None:
            order.paid_at = clock.utcnow()

    scope.db.refresh(order)
    invalidate_daily_sales_cache(scope.tenant_id, clock.utc_day(order.created_at))
    logger.info(
        "order status changed tenant_id=%s order_id=%s from=%s to=%s",
        scope.tenant_id,
        order.id,
        previous,
        order.status,
    )
    return order


def cancel_order(scope: TenantScope, user, order_id: int) -> Order:
    """Cancel a pending or paid order and give its stock back."""
    AuthorizationService.authorize(user, "orders", "cancel")
    with atomic(scope.db):
        order = _lock_order(scope, order_id)
        AuthorizationService.ensure_tenant_access(user=user, target=order, resource="orders", action="cancel")
        previous = order.status
        ensure_transition(order, OrderStatus.CANCELLED)
        restore(scope, [StockLine(item.product_id, item.quantity) for item in order.items])
        order.status = OrderStatus.CANCELLED.value
        order.cancelled_at = clock.utcnow()

    scope.db.refresh(order)
    invalidate_daily_sales_cache(scope.tenant_id, clock.utc_day(order.created_at))
    logger.info(
        "order cancelled tenant_id=%s order_id=%s from=%s",
        scope.tenant_id,
        order.id,
        previous,
    )
    return order


def delete_order(scope: TenantScope, user, order_id: int) -> None:
    AuthorizationService.authorize(user, "orders", "delete")
    with atomic(scope.db):
        order = _lock_order(scope, order_id)
        AuthorizationService.ensure_tenant_access(user=user, target=order, resource="orders", action="delete")
        if OrderStatus(order.status) is not OrderStatus.CANCELLED:
            raise OrderNotDeletable(order.id)
        created_on = clock.utc_day(order.created_at)
        scope.db.delete(order)
    invalidate_daily_sales_cache(scope.tenant_id, created_on)
    logger.info("order deleted tenant_id=%s order_id=%s", scope.tenant_id, order_id)


def list_orders(
    scope: TenantScope,
    *,
    status: OrderStatus | None = None,
    on_date: date | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    customer_id: int | None = None,
    sort_by: str = "created_at",
    sort_dir: str = "desc",
) -> Query:
    query = scope.query(Order)
    if status is not None:
        query = query.filter(Order.status == OrderStatus(status).value)
    if on_date is not None:
        start, end = clock.day_bounds(on_date)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    elif start_date is not None and end_date is not None:
        if end_date < start_date:
            raise ValidationFailed("The end date must be a date after or equal to start date.", field="end_date")
        start, end = clock.day_bounds(start_date, end_date)
        query = query.filter(Order.created_at >= start, Order.created_at < end)
    if customer_id is not None:
        query = query.filter(Order.customer_id == customer_id)

    column = SORTABLE_COLUMNS.get(sort_by, Order.created_at)
    direction = asc if (sort_dir or "").lower() == "asc" else desc
    return query.order_by(direction(column), direction(Order.id))
