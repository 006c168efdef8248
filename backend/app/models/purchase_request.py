import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db.base import Base, TimestampMixin, UUIDMixin


class PRStatus(str, enum.Enum):
    draft = "draft"
    submitted = "submitted"
    approved = "approved"
    rejected = "rejected"
    converted = "converted"


class ApprovalStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# rejected and converted are terminal
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    PRStatus.draft.value: frozenset({PRStatus.submitted.value}),
    PRStatus.submitted.value: frozenset({PRStatus.approved.value, PRStatus.rejected.value}),
    PRStatus.approved.value: frozenset({PRStatus.converted.value}),
    PRStatus.rejected.value: frozenset(),
    PRStatus.converted.value: frozenset(),
}


class PurchaseRequest(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "purchase_requests"

    pr_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    requester_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    supplier_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="USD")
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=PRStatus.draft.value, index=True
    )  # draft, submitted, approved, rejected, converted
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    converted_to_po: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_orders.id"), nullable=True
    )
    # Optimistic lock: bumped on every UPDATE, a stale writer gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list["PurchaseRequestItem"]] = relationship(
        "PurchaseRequestItem",
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    approvals: Mapped[list["PurchaseRequestApproval"]] = relationship(
        "PurchaseRequestApproval",
        back_populates="request",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __mapper_args__ = {"version_id_col": version}

    def can_transition_to(self, target: str) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.status, frozenset())


class PurchaseRequestItem(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "purchase_request_items"

    pr_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    line_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    request: Mapped["PurchaseRequest"] = relationship("PurchaseRequest", back_populates="items")


class PurchaseRequestApproval(Base, UUIDMixin, TimestampMixin):
    """One approval task per (request, rule), created when the request is submitted."""

    __tablename__ = "purchase_request_approvals"
    __table_args__ = (
        UniqueConstraint("pr_id", "rule_id", name="uq_pr_approvals_pr_rule"),
        Index("ix_pr_approvals_approver_status", "approver_id", "status"),
        Index("ix_pr_approvals_pr_level", "pr_id", "level"),
    )

    pr_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("purchase_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rule_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("approval_rules.id"), nullable=False
    )
    level: Mapped[int] = mapped_column(Integer, nullable=False)
    approver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ApprovalStatus.pending.value
    )  # pending, approved, rejected
    decided_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    request: Mapped["PurchaseRequest"] = relationship("PurchaseRequest", back_populates="approvals")
