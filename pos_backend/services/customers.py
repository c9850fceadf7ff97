from __future__ import annotations

import logging
from typing import Any, Dict

from sqlalchemy import or_
from sqlalchemy.orm import Query

from pos_backend.core import clock
from pos_backend.core.database import atomic
from pos_backend.core.errors import ResourceNotFound
from pos_backend.models.customer import Customer
from pos_backend.services.authorization_service import AuthorizationService
from pos_backend.services.tenant_scope import TenantScope

logger = logging.getLogger(__name__)


def list_customers(scope: TenantScope, *, search: str | None = None) -> Query:
    query = scope.query(Customer)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(pattern), Customer.email.ilike(pattern), Customer.phone.ilike(pattern))
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc())


def create_customer(scope: TenantScope, user, data: Dict[str, Any]) -> Customer:
    AuthorizationService.authorize(user, "customers", "create")
    with atomic(scope.db):
        customer = scope.add(Customer(**data))
        scope.db.flush()
    scope.db.refresh(customer)
    logger.info("customer created tenant_id=%s customer_id=%s", scope.tenant_id, customer.id)
    return customer


def update_customer(scope: TenantScope, user, customer_id: int, changes: Dict[str, Any]) -> Customer:
    AuthorizationService.authorize(user, "customers", "update")
    with atomic(scope.db):
        customer = scope.get_or_404(Customer, customer_id)
        AuthorizationService.ensure_tenant_access(user=user, target=customer, resource="customers", action="update")
        for field, value in changes.items():
            setattr(customer, field, value)
    scope.db.refresh(customer)
    return customer


def delete_customer(scope: TenantScope, user, customer_id: int) -> None:
    AuthorizationService.authorize(user, "customers", "delete")
    with atomic(scope.db):
        customer = scope.get_or_404(Customer, customer_id)
        AuthorizationService.ensure_tenant_access(user=user, target=customer, resource="customers", action="delete")
        customer.deleted_at = clock.utcnow()
    logger.info("customer deleted tenant_id=%s customer_id=%s", scope.tenant_id, customer_id)


def restore_customer(scope: TenantScope, user, customer_id: int) -> Customer:
    AuthorizationService.authorize(user, "customers", "restore")
    with atomic(scope.db):
        customer = scope.get(Customer, customer_id, with_trashed=True)
        if customer is None or customer.deleted_at is None:
            raise ResourceNotFound("Customer", customer_id)
        AuthorizationService.ensure_tenant_access(user=user, target=customer, resource="customers", action="restore")
        customer.deleted_at = None
    scope.db.refresh(customer)
    return customer
