from sqlalchemy import Column, Integer, String, Text
from sqlalchemy.orm import relationship

from pos_backend.core.database import Base
from pos_backend.models.mixins import SoftDeleteMixin, TenantOwnedMixin, TimestampMixin


class Customer(TenantOwnedMixin, TimestampMixin, SoftDeleteMixin, Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)

    orders = relationship("Order", back_populates="customer")
