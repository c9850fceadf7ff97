from sqlalchemy import Column, DateTime, ForeignKey, Integer, func
from sqlalchemy.orm import declared_attr


class TenantOwnedMixin:
    """Rows that belong to exactly one tenant.

    Only reach these models through ``TenantScope`` (or ``for_tenant`` when the
    tenant id is already known), never through a bare ``db.query``.
    """

    @declared_attr
    def tenant_id(cls):
        return Column(Integer, ForeignKey("tenants.id"), index=True, nullable=False)


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)


class SoftDeleteMixin:
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None


def is_tenant_owned(model) -> bool:
    return isinstance(model, type) and issubclass(model, TenantOwnedMixin)


def is_soft_deletable(model) -> bool:
    return isinstance(model, type) and issubclass(model, SoftDeleteMixin)
