from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

MAX_PRICE = Decimal("9999999.99")


class ProductCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    sku: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price: Decimal = Field(..., ge=0, le=MAX_PRICE, decimal_places=2)
    stock_quantity: int = Field(..., ge=0)
    low_stock_threshold: int = Field(10, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, le=MAX_PRICE, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    low_stock_threshold: Optional[int] = Field(None, ge=0)
