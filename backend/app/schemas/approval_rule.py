"""Pydantic schemas for approval rules."""
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ApprovalRuleIn(BaseModel):
    entity_type: str = "purchase_request"
    amount_min: Decimal = Field(default=Decimal("0"), ge=0)
    amount_max: Decimal | None = None
    currency: str = Field(default="USD", min_length=3, max_length=3)
    level: int = Field(ge=1)
    approver_role: str | None = None
    specific_approver_id: uuid.UUID | None = None
    is_active: bool = True


class ApprovalRuleOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    entity_type: str
    amount_min: Decimal
    amount_max: Decimal | None
    currency: str
    level: int
    approver_role: str | None
    specific_approver_id: uuid.UUID | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class ApprovalRuleUpdate(BaseModel):
    amount_min: Decimal | None = Field(default=None, ge=0)
    amount_max: Decimal | None = None
    currency: str | None = Field(default=None, min_length=3, max_length=3)
    level: int | None = Field(default=None, ge=1)
    approver_role: str | None = None
    specific_approver_id: uuid.UUID | None = None
    is_active: bool | None = None
