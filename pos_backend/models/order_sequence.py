from sqlalchemy import Column, Date, Integer, UniqueConstraint

from pos_backend.core.database import Base
from pos_backend.models.mixins import TenantOwnedMixin


class OrderNumberSequence(TenantOwnedMixin, Base):
    """Counter row per (tenant, calendar day); the only source of order sequence values."""

    __tablename__ = "order_number_sequences"
    __table_args__ = (
        UniqueConstraint("tenant_id", "sequence_date", name="uq_order_number_sequences_tenant_date"),
    )

    id = Column(Integer, primary_key=True)
    sequence_date = Column(Date, nullable=False)
    last_value = Column(Integer, nullable=False, default=0)
