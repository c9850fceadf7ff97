"""Order numbers: ``ORD-{tenant}-{YYYYMMDD}-{NNNN}``, one counter per tenant per day.

The counter row is locked with ``SELECT ... FOR UPDATE`` and incremented in
the caller's transaction; max()+1 over existing orders is never used. A
rolled back transaction gives its value back.
"""
from __future__ import annotations

import logging
from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from pos_backend.core.database import apply_lock_timeout
from pos_backend.models.order_sequence import OrderNumberSequence
from pos_backend.services.tenant_scope import for_tenant

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "ORD"


def format_order_number(tenant_id: int, day: date, sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}-{int(tenant_id)}-{day:%Y%m%d}-{int(sequence):04d}"


def _locked_counter(db: Session, tenant_id: int, day: date) -> OrderNumberSequence | None:
    return (
        for_tenant(db, OrderNumberSequence, tenant_id)
        .filter(OrderNumberSequence.sequence_date == day)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )


def next_sequence_value(db: Session, tenant_id: int, day: date) -> int:
    apply_lock_timeout(db)
    counter = _locked_counter(db, tenant_id, day)

    if counter is None:
        # primeira venda do dia: cria o contador num savepoint para não perder o resto da transação
        savepoint = db.begin_nested()
        try:
            counter = OrderNumberSequence(tenant_id=int(tenant_id), sequence_date=day, last_value=1)
            db.add(counter)
            db.flush()
            savepoint.commit()
            logger.debug("order sequence created tenant_id=%s day=%s", tenant_id, day.isoformat())
            return 1
        except IntegrityError:
            logger.debug("order sequence creation race tenant_id=%s day=%s", tenant_id, day.isoformat())
            savepoint.rollback()
            counter = _locked_counter(db, tenant_id, day)
            if counter is None:
                raise

    counter.last_value = OrderNumberSequence.last_value + 1
    db.flush()
    db.refresh(counter, attribute_names=["last_value"])
    return int(counter.last_value)


def next_order_number(db: Session, tenant_id: int, day: date) -> str:
    return format_order_number(tenant_id, day, next_sequence_value(db, tenant_id, day))
