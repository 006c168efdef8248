"""Approval rules: who must sign off on an entity, by amount range and currency."""
import uuid
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base, TimestampMixin, UUIDMixin

ENTITY_PURCHASE_REQUEST = "purchase_request"


class ApprovalRule(Base, UUIDMixin, TimestampMixin):
    """One approval level for amounts in [amount_min, amount_max] of a currency.

    amount_max = None means unbounded above. Exactly one of approver_role or
    specific_approver_id is expected; a specific approver wins when both are set.
    """

    __tablename__ = "approval_rules"
    __table_args__ = (
        Index("ix_approval_rules_entity_amount", "entity_type", "amount_min", "amount_max"),
        Index("ix_approval_rules_level", "level"),
        CheckConstraint("level >= 1", name="level_positive"),
    )

    entity_type: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ENTITY_PURCHASE_REQUEST
    )
    amount_min: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    amount_max: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_role: Mapped[str | None] = mapped_column(String(50), nullable=True)
    specific_approver_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    def covers(self, amount: Decimal) -> bool:
        if amount < self.amount_min:
            return False
        return self.amount_max is None or amount <= self.amount_max
