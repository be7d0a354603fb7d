"""Payloads for budget + stock endpoints."""
import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class _Trimmed(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)


class InventoryItemCreate(_Trimmed):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    unit: Optional[str] = Field(default=None, max_length=40)
    onHand: Optional[int] = Field(default=None, ge=0)
    parLevel: Optional[int] = Field(default=None, ge=0)
    reorderPoint: Optional[int] = Field(default=None, ge=0)
    costPerUnit: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = Field(default=None, max_length=120)


class InventoryItemUpdate(_Trimmed):
    name: Optional[str] = Field(default=None, min_length=1)
    category: Optional[str] = Field(default=None, min_length=1)
    unit: Optional[str] = Field(default=None, max_length=40)
    onHand: Optional[int] = Field(default=None, ge=0)
    parLevel: Optional[int] = Field(default=None, ge=0)
    reorderPoint: Optional[int] = Field(default=None, ge=0)
    costPerUnit: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = Field(default=None, max_length=120)
    isActive: Optional[bool] = None


class StockAdjust(BaseModel):
    delta: float


class SaleCreate(_Trimmed):
    itemId: uuid.UUID
    qty: float
    sellPricePerUnit: float
    residentName: Optional[str] = Field(default=None, max_length=120)
    note: Optional[str] = Field(default=None, max_length=300)
    date: Optional[datetime] = None


class CategoryCreate(_Trimmed):
    name: str = Field(min_length=1)
    monthlyLimit: Optional[float] = Field(default=None, ge=0)


class CategoryUpdate(_Trimmed):
    name: Optional[str] = Field(default=None, min_length=1)
    monthlyLimit: Optional[float] = Field(default=None, ge=0)


class ExpenseCreate(_Trimmed):
    date: datetime
    category: str = Field(min_length=1)
    amount: float = Field(ge=0)
    vendor: Optional[str] = Field(default=None, max_length=120)
    note: Optional[str] = Field(default=None, max_length=500)
    linkedItemId: Optional[uuid.UUID] = None


class ExpenseUpdate(_Trimmed):
    date: Optional[datetime] = None
    category: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[float] = Field(default=None, ge=0)
    vendor: Optional[str] = Field(default=None, max_length=120)
    note: Optional[str] = Field(default=None, max_length=500)
    linkedItemId: Optional[uuid.UUID] = None
