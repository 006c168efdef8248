"""Pydantic schemas for purchase orders produced by conversion."""
import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class PurchaseOrderItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    line_number: int
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class PurchaseOrderOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    order_number: str
    pr_id: uuid.UUID | None
    supplier_id: uuid.UUID | None
    order_date: date
    expected_delivery_date: date | None
    status: str
    payment_terms: int
    currency: str
    subtotal: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    notes: str | None
    created_by: uuid.UUID | None
    line_items: list[PurchaseOrderItemOut] = []


# ─── Conversion request body ───

class ConvertRequest(BaseModel):
    supplier_id: uuid.UUID | None = None
    order_date: date | None = None
    expected_delivery_date: date | None = None
    payment_terms: int | None = Field(default=None, ge=0)
    tax_amount: Decimal | None = Field(default=None, ge=0)
    notes: str | None = None
