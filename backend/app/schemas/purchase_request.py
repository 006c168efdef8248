"""Pydantic schemas for purchase request workflow endpoints."""
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from app.schemas.purchase_order import PurchaseOrderOut


# ─── Items ───

class PurchaseRequestItemIn(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(gt=0)
    unit_price: Decimal = Field(ge=0)
    notes: str | None = None


class PurchaseRequestItemOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    notes: str | None


# ─── Requests ───

class PurchaseRequestCreate(BaseModel):
    supplier_id: uuid.UUID | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None
    items: list[PurchaseRequestItemIn] = []


class PurchaseRequestUpdate(BaseModel):
    supplier_id: uuid.UUID | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    notes: str | None = None


class PurchaseRequestOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_number: str
    requester_id: uuid.UUID
    supplier_id: uuid.UUID | None
    total_amount: Decimal
    currency: str
    status: str
    notes: str | None
    submitted_at: datetime | None
    approved_at: datetime | None
    converted_to_po: uuid.UUID | None
    version: int
    created_at: datetime
    updated_at: datetime


class PurchaseRequestListResponse(BaseModel):
    items: list[PurchaseRequestOut]
    total: int


# ─── Approvals ───

class PurchaseRequestApprovalOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    pr_id: uuid.UUID
    rule_id: uuid.UUID
    level: int
    approver_id: uuid.UUID
    status: str
    decided_at: datetime | None
    comment: str | None
    notified_at: datetime | None
    created_at: datetime


class PurchaseRequestDetail(PurchaseRequestOut):
    items: list[PurchaseRequestItemOut] = []
    approvals: list[PurchaseRequestApprovalOut] = []


class SubmitResponse(BaseModel):
    request: PurchaseRequestOut
    created_approvals: list[PurchaseRequestApprovalOut]


class DecisionRequest(BaseModel):
    level: int = Field(ge=1)
    outcome: Literal["approved", "rejected"]
    comment: str | None = None


class DecisionResponse(BaseModel):
    request: PurchaseRequestOut
    approval: PurchaseRequestApprovalOut
    is_fully_approved: bool


class ConvertResponse(BaseModel):
    request: PurchaseRequestOut
    purchase_order: PurchaseOrderOut


class PendingApprovalOut(BaseModel):
    """An approval task joined with its purchase request and line items."""

    approval: PurchaseRequestApprovalOut
    request: PurchaseRequestOut
    items: list[PurchaseRequestItemOut]


class PendingApprovalListResponse(BaseModel):
    items: list[PendingApprovalOut]
    total: int
