"""Seed helpers shared by the test modules.

Every helper commits, so data is visible to other sessions (requests,
worker threads). Close the seeding session before issuing requests: on
SQLite an open transaction holds the database write lock.
"""
from decimal import Decimal
from types import SimpleNamespace

from pos_backend.models.customer import Customer
from pos_backend.models.product import Product
from pos_backend.models.tenant import Tenant
from pos_backend.models.user import User
from pos_backend.services.auth import create_access_token, hash_password
from pos_backend.services.tenant_context import TenantContext
from pos_backend.services.tenant_scope import TenantScope

DEFAULT_PASSWORD = "secret-password"


def create_tenant(db, name="Loja Centro", is_active=True) -> Tenant:
    tenant = Tenant(name=name, is_active=is_active)
    db.add(tenant)
    db.commit()
    db.refresh(tenant)
    return tenant


def create_user(db, tenant_id, role="owner", email=None, password=DEFAULT_PASSWORD) -> User:
    user = User(
        tenant_id=tenant_id,
        name=f"{role.title()} {tenant_id}",
        email=email or f"{role}.{tenant_id}@example.com",
        password_hash=hash_password(password),
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def create_product(db, tenant_id, sku="SKU-001", name="Widget", price="10.00", stock=50, threshold=10) -> Product:
    product = Product(
        tenant_id=tenant_id,
        name=name,
        sku=sku,
        price=Decimal(price),
        stock_quantity=stock,
        low_stock_threshold=threshold,
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def create_customer(db, tenant_id, name="Maria Silva") -> Customer:
    customer = Customer(tenant_id=tenant_id, name=name, email="maria@example.com", phone="11999990000")
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def scope_for(db, tenant_id) -> TenantScope:
    return TenantScope(db, TenantContext(tenant_id=int(tenant_id)))


def actor(user_id, tenant_id, role="owner"):
    """Lightweight stand-in for an authenticated user (no session attached)."""
    return SimpleNamespace(id=user_id, tenant_id=tenant_id, role=role)


def auth_headers(user_id, tenant_id, role="owner", header_tenant=None) -> dict:
    token = create_access_token(user_id, extra={"tenant_id": tenant_id, "role": role})
    return {
        "Authorization": f"Bearer {token}",
        "X-Tenant-ID": str(tenant_id if header_tenant is None else header_tenant),
    }
