"""Storage protocols the workflow depends on.

Split per concern so each service asks only for what it uses. Both the
in-memory and the SQLAlchemy backends implement all of them.
"""
import uuid
from typing import Protocol

from app.models.approval_rule import ApprovalRule
from app.models.audit import AuditLog
from app.models.notification import Notification
from app.models.purchase_order import PurchaseOrder
from app.models.purchase_request import (
    PurchaseRequest,
    PurchaseRequestApproval,
    PurchaseRequestItem,
)
from app.models.user import User


class UnitOfWork(Protocol):
    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...


class ApprovalRuleRepository(Protocol):
    async def list_rules(
        self,
        entity_type: str | None = None,
        currency: str | None = None,
        include_inactive: bool = False,
    ) -> list[ApprovalRule]: ...

    async def get_rule(self, rule_id: uuid.UUID) -> ApprovalRule | None: ...

    async def add_rule(self, rule: ApprovalRule) -> ApprovalRule: ...

    async def save_rule(self, rule: ApprovalRule) -> ApprovalRule: ...


class PurchaseRequestRepository(Protocol):
    async def get_request(
        self, request_id: uuid.UUID, for_update: bool = False
    ) -> PurchaseRequest | None: ...

    async def list_requests(
        self,
        status: str | None = None,
        requester_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[PurchaseRequest]: ...

    async def last_request_number(self, prefix: str) -> str | None: ...

    async def add_request(self, request: PurchaseRequest) -> PurchaseRequest: ...

    async def save_request(self, request: PurchaseRequest) -> PurchaseRequest: ...

    async def delete_request(self, request: PurchaseRequest) -> None:
        """Remove the request together with its items and approvals."""
        ...

    async def list_items(self, request_id: uuid.UUID) -> list[PurchaseRequestItem]: ...

    async def add_item(self, item: PurchaseRequestItem) -> PurchaseRequestItem: ...

    async def list_approvals(self, request_id: uuid.UUID) -> list[PurchaseRequestApproval]: ...

    async def add_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval: ...

    async def save_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval: ...

    async def list_pending_approvals_for_approver(
        self, approver_id: uuid.UUID
    ) -> list[PurchaseRequestApproval]: ...


class PurchaseOrderRepository(Protocol):
    async def last_order_number(self, prefix: str) -> str | None: ...

    async def add_order(self, order: PurchaseOrder) -> PurchaseOrder:
        """Persist the order and its line_items."""
        ...

    async def get_order(self, order_id: uuid.UUID) -> PurchaseOrder | None: ...


class NotificationRepository(Protocol):
    async def add_notification(self, notification: Notification) -> Notification: ...

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None: ...

    async def list_notifications(
        self, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]: ...

    async def save_notification(self, notification: Notification) -> Notification: ...


class AuditRepository(Protocol):
    async def add_audit_log(self, entry: AuditLog) -> AuditLog: ...


class UserDirectory(Protocol):
    async def find_active_user_by_role(self, role: str) -> User | None: ...

    async def get_user(self, user_id: uuid.UUID) -> User | None: ...


class WorkflowRepository(
    ApprovalRuleRepository,
    PurchaseRequestRepository,
    PurchaseOrderRepository,
    NotificationRepository,
    AuditRepository,
    UnitOfWork,
    Protocol,
):
    """Everything the purchase-request workflow touches in one transaction."""

    def user_directory(self) -> UserDirectory: ...
