from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from pos_backend.models.order import OrderStatus


class OrderItemPayload(BaseModel):
    product_id: int = Field(..., ge=1)
    quantity: int = Field(..., ge=1)


class OrderCreate(BaseModel):
    items: List[OrderItemPayload] = Field(..., min_length=1)
    customer_id: Optional[int] = Field(None, ge=1)
    # ausente ou null vale 0
    tax_rate: Optional[Decimal] = Field(None, ge=0, le=100)
    discount_amount: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=1000)


class StatusUpdate(BaseModel):
    status: OrderStatus
