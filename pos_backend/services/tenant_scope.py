from __future__ import annotations

import logging
from typing import Iterable

from sqlalchemy.orm import Query, Session

from pos_backend.core.errors import AccessDenied, ResourceNotFound
from pos_backend.models.mixins import is_soft_deletable, is_tenant_owned
from pos_backend.services.tenant_context import TenantContext

logger = logging.getLogger(__name__)


def _ensure_tenant_owned(model) -> None:
    if not is_tenant_owned(model):
        raise TypeError(f"{getattr(model, '__name__', model)!r} is not a tenant-owned model")


def for_tenant(db: Session, model, tenant_id: int, *, with_trashed: bool = False) -> Query:
    """Query a tenant-owned model for an explicit tenant id.

    Used where no request context exists (reports, order number counters);
    the caller is responsible for passing an already validated tenant id.
    """
    _ensure_tenant_owned(model)
    query = db.query(model).filter(model.tenant_id == int(tenant_id))
    if is_soft_deletable(model) and not with_trashed:
        query = query.filter(model.deleted_at.is_(None))
    return query


class TenantScope:
    """Data access bound to one tenant; every query is filtered by it."""

    def __init__(self, db: Session, context: TenantContext) -> None:
        self.db = db
        self.context = context

    @property
    def tenant_id(self) -> int:
        return self.context.tenant_id

    def query(self, model, *, with_trashed: bool = False) -> Query:
        return for_tenant(self.db, model, self.tenant_id, with_trashed=with_trashed)

    def get(self, model, object_id: int, *, with_trashed: bool = False):
        return self.query(model, with_trashed=with_trashed).filter(model.id == object_id).first()

    def get_or_404(self, model, object_id: int, *, with_trashed: bool = False):
        instance = self.get(model, object_id, with_trashed=with_trashed)
        if instance is None:
            # registro de outro tenant é indistinguível de inexistente
            raise ResourceNotFound(model.__name__, object_id)
        return instance

    def add(self, instance):
        _ensure_tenant_owned(type(instance))
        current = getattr(instance, "tenant_id", None)
        if current is None:
            instance.tenant_id = self.tenant_id
        elif int(current) != self.tenant_id:
            logger.warning(
                "Cross-tenant write blocked: model=%s tenant_id=%s target_tenant=%s",
                type(instance).__name__,
                self.tenant_id,
                current,
            )
            raise AccessDenied("tenant_mismatch")
        self.db.add(instance)
        return instance

    def lock(self, model, ids: Iterable[int], *, with_trashed: bool = False) -> list:
        """SELECT ... FOR UPDATE the given rows in ascending id order."""
        id_list = sorted({int(object_id) for object_id in ids})
        if not id_list:
            return []
        return (
            self.query(model, with_trashed=with_trashed)
            .filter(model.id.in_(id_list))
            .order_by(model.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        )
