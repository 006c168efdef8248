"""Process-local storage backend.

Used by the test-suite and by STORAGE_BACKEND=memory for demos. Objects are
the same ORM classes the SQL backend persists, kept transient in dicts.
Writes land immediately; commit/rollback are no-ops, so callers must finish
validation before their first write.
"""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone

from app.models.approval_rule import ApprovalRule
from app.models.audit import AuditLog
from app.models.notification import Notification
from app.models.purchase_order import PurchaseOrder
from app.models.purchase_request import (
    ApprovalStatus,
    PurchaseRequest,
    PurchaseRequestApproval,
    PurchaseRequestItem,
)
from app.models.user import User


@dataclass
class InMemoryStore:
    users: dict[uuid.UUID, User] = field(default_factory=dict)
    rules: dict[uuid.UUID, ApprovalRule] = field(default_factory=dict)
    requests: dict[uuid.UUID, PurchaseRequest] = field(default_factory=dict)
    items: dict[uuid.UUID, PurchaseRequestItem] = field(default_factory=dict)
    approvals: dict[uuid.UUID, PurchaseRequestApproval] = field(default_factory=dict)
    orders: dict[uuid.UUID, PurchaseOrder] = field(default_factory=dict)
    notifications: dict[uuid.UUID, Notification] = field(default_factory=dict)
    audit_logs: list[AuditLog] = field(default_factory=list)

    def add_user(self, user: User) -> User:
        _stamp(user)
        if user.is_active is None:
            user.is_active = True
        self.users[user.id] = user
        return user


def _stamp(obj) -> None:
    """Fill the columns the database would default on INSERT."""
    now = datetime.now(timezone.utc)
    if obj.id is None:
        obj.id = uuid.uuid4()
    if obj.created_at is None:
        obj.created_at = now
    obj.updated_at = now


def _highest(numbers) -> str | None:
    # Longer suffixes sort after shorter ones once a year passes 9999 documents
    return max(numbers, key=lambda n: (len(n), n), default=None)


class InMemoryUserDirectory:
    def __init__(self, store: InMemoryStore):
        self.store = store

    async def find_active_user_by_role(self, role: str) -> User | None:
        candidates = [
            u for u in self.store.users.values()
            if u.role == role and u.is_active and u.deleted_at is None
        ]
        candidates.sort(key=lambda u: u.created_at)
        return candidates[0] if candidates else None

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        return self.store.users.get(user_id)


class InMemoryRepository:
    def __init__(self, store: InMemoryStore):
        self.store = store

    def user_directory(self) -> InMemoryUserDirectory:
        return InMemoryUserDirectory(self.store)

    async def commit(self) -> None:
        pass

    async def rollback(self) -> None:
        pass

    # ─── Approval rules ───

    async def list_rules(
        self,
        entity_type: str | None = None,
        currency: str | None = None,
        include_inactive: bool = False,
    ) -> list[ApprovalRule]:
        rules = [
            r for r in self.store.rules.values()
            if (entity_type is None or r.entity_type == entity_type)
            and (currency is None or r.currency == currency)
            and (include_inactive or r.is_active)
        ]
        return sorted(rules, key=lambda r: (r.level, r.amount_min))

    async def get_rule(self, rule_id: uuid.UUID) -> ApprovalRule | None:
        return self.store.rules.get(rule_id)

    async def add_rule(self, rule: ApprovalRule) -> ApprovalRule:
        _stamp(rule)
        self.store.rules[rule.id] = rule
        return rule

    async def save_rule(self, rule: ApprovalRule) -> ApprovalRule:
        rule.updated_at = datetime.now(timezone.utc)
        return rule

    # ─── Purchase requests ───

    async def get_request(
        self, request_id: uuid.UUID, for_update: bool = False
    ) -> PurchaseRequest | None:
        return self.store.requests.get(request_id)

    async def list_requests(
        self,
        status: str | None = None,
        requester_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[PurchaseRequest]:
        requests = [
            r for r in self.store.requests.values()
            if (status is None or r.status == status)
            and (requester_id is None or r.requester_id == requester_id)
        ]
        requests.sort(key=lambda r: r.created_at, reverse=True)
        return requests[:limit]

    async def last_request_number(self, prefix: str) -> str | None:
        return _highest(r.pr_number for r in self.store.requests.values() if r.pr_number.startswith(prefix))

    async def add_request(self, request: PurchaseRequest) -> PurchaseRequest:
        _stamp(request)
        request.version = 1
        self.store.requests[request.id] = request
        return request

    async def save_request(self, request: PurchaseRequest) -> PurchaseRequest:
        request.updated_at = datetime.now(timezone.utc)
        request.version += 1
        return request

    async def delete_request(self, request: PurchaseRequest) -> None:
        for item_id in [i.id for i in self.store.items.values() if i.pr_id == request.id]:
            del self.store.items[item_id]
        for approval_id in [a.id for a in self.store.approvals.values() if a.pr_id == request.id]:
            del self.store.approvals[approval_id]
        self.store.requests.pop(request.id, None)

    async def list_items(self, request_id: uuid.UUID) -> list[PurchaseRequestItem]:
        items = [i for i in self.store.items.values() if i.pr_id == request_id]
        return sorted(items, key=lambda i: i.created_at)

    async def add_item(self, item: PurchaseRequestItem) -> PurchaseRequestItem:
        _stamp(item)
        self.store.items[item.id] = item
        return item

    async def list_approvals(self, request_id: uuid.UUID) -> list[PurchaseRequestApproval]:
        approvals = [a for a in self.store.approvals.values() if a.pr_id == request_id]
        return sorted(approvals, key=lambda a: (a.level, a.created_at))

    async def add_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval:
        for existing in self.store.approvals.values():
            if existing.pr_id == approval.pr_id and existing.rule_id == approval.rule_id:
                raise ValueError(
                    f"Approval for request {approval.pr_id} and rule {approval.rule_id} already exists."
                )
        _stamp(approval)
        self.store.approvals[approval.id] = approval
        return approval

    async def save_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval:
        approval.updated_at = datetime.now(timezone.utc)
        return approval

    async def list_pending_approvals_for_approver(
        self, approver_id: uuid.UUID
    ) -> list[PurchaseRequestApproval]:
        approvals = [
            a for a in self.store.approvals.values()
            if a.approver_id == approver_id and a.status == ApprovalStatus.pending.value
        ]
        return sorted(approvals, key=lambda a: a.created_at)

    # ─── Purchase orders ───

    async def last_order_number(self, prefix: str) -> str | None:
        return _highest(o.order_number for o in self.store.orders.values() if o.order_number.startswith(prefix))

    async def add_order(self, order: PurchaseOrder) -> PurchaseOrder:
        _stamp(order)
        for line in order.line_items:
            _stamp(line)
            line.order_id = order.id
        self.store.orders[order.id] = order
        return order

    async def get_order(self, order_id: uuid.UUID) -> PurchaseOrder | None:
        return self.store.orders.get(order_id)

    # ─── Notifications ───

    async def add_notification(self, notification: Notification) -> Notification:
        _stamp(notification)
        if notification.is_read is None:
            notification.is_read = False
        self.store.notifications[notification.id] = notification
        return notification

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None:
        return self.store.notifications.get(notification_id)

    async def list_notifications(
        self, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        notifications = [
            n for n in self.store.notifications.values()
            if n.user_id == user_id and (not unread_only or not n.is_read)
        ]
        notifications.sort(key=lambda n: n.created_at, reverse=True)
        return notifications[:limit]

    async def save_notification(self, notification: Notification) -> Notification:
        notification.updated_at = datetime.now(timezone.utc)
        return notification

    # ─── Audit ───

    async def add_audit_log(self, entry: AuditLog) -> AuditLog:
        _stamp(entry)
        self.store.audit_logs.append(entry)
        return entry
