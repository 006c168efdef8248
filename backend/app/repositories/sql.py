"""SQLAlchemy (async) storage backend."""
import logging
import uuid

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrentModificationError
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

logger = logging.getLogger(__name__)


class SqlUserDirectory:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def find_active_user_by_role(self, role: str) -> User | None:
        result = await self.session.execute(
            select(User)
            .where(
                User.role == role,
                User.is_active.is_(True),
                User.deleted_at.is_(None),
            )
            .order_by(User.created_at)
            .limit(1)
        )
        return result.scalars().first()

    async def get_user(self, user_id: uuid.UUID) -> User | None:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()


class SqlRepository:
    """All workflow repositories over one AsyncSession (one transaction)."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def user_directory(self) -> SqlUserDirectory:
        return SqlUserDirectory(self.session)

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except StaleDataError as exc:
            await self.session.rollback()
            raise ConcurrentModificationError(
                "Purchase request was modified concurrently; reload and retry."
            ) from exc

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _flush(self) -> None:
        try:
            await self.session.flush()
        except StaleDataError as exc:
            raise ConcurrentModificationError(
                "Purchase request was modified concurrently; reload and retry."
            ) from exc

    # ─── Approval rules ───

    async def list_rules(
        self,
        entity_type: str | None = None,
        currency: str | None = None,
        include_inactive: bool = False,
    ) -> list[ApprovalRule]:
        stmt = select(ApprovalRule)
        if entity_type is not None:
            stmt = stmt.where(ApprovalRule.entity_type == entity_type)
        if currency is not None:
            stmt = stmt.where(ApprovalRule.currency == currency)
        if not include_inactive:
            stmt = stmt.where(ApprovalRule.is_active.is_(True))
        stmt = stmt.order_by(ApprovalRule.level, ApprovalRule.amount_min)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_rule(self, rule_id: uuid.UUID) -> ApprovalRule | None:
        result = await self.session.execute(
            select(ApprovalRule).where(ApprovalRule.id == rule_id)
        )
        return result.scalar_one_or_none()

    async def add_rule(self, rule: ApprovalRule) -> ApprovalRule:
        self.session.add(rule)
        await self._flush()
        return rule

    async def save_rule(self, rule: ApprovalRule) -> ApprovalRule:
        await self._flush()
        return rule

    # ─── Purchase requests ───

    async def get_request(
        self, request_id: uuid.UUID, for_update: bool = False
    ) -> PurchaseRequest | None:
        stmt = select(PurchaseRequest).where(PurchaseRequest.id == request_id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_requests(
        self,
        status: str | None = None,
        requester_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[PurchaseRequest]:
        stmt = select(PurchaseRequest)
        if status is not None:
            stmt = stmt.where(PurchaseRequest.status == status)
        if requester_id is not None:
            stmt = stmt.where(PurchaseRequest.requester_id == requester_id)
        stmt = stmt.order_by(PurchaseRequest.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def last_request_number(self, prefix: str) -> str | None:
        result = await self.session.execute(
            select(PurchaseRequest.pr_number)
            .where(PurchaseRequest.pr_number.startswith(prefix))
            .order_by(func.length(PurchaseRequest.pr_number).desc(), PurchaseRequest.pr_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_request(self, request: PurchaseRequest) -> PurchaseRequest:
        self.session.add(request)
        await self._flush()
        return request

    async def save_request(self, request: PurchaseRequest) -> PurchaseRequest:
        await self._flush()
        return request

    async def delete_request(self, request: PurchaseRequest) -> None:
        # Explicit deletes avoid lazy-loading the collections on an async session
        await self.session.execute(
            delete(PurchaseRequestItem).where(PurchaseRequestItem.pr_id == request.id)
        )
        await self.session.execute(
            delete(PurchaseRequestApproval).where(PurchaseRequestApproval.pr_id == request.id)
        )
        await self.session.delete(request)
        await self._flush()

    async def list_items(self, request_id: uuid.UUID) -> list[PurchaseRequestItem]:
        result = await self.session.execute(
            select(PurchaseRequestItem)
            .where(PurchaseRequestItem.pr_id == request_id)
            .order_by(PurchaseRequestItem.created_at)
        )
        return list(result.scalars().all())

    async def add_item(self, item: PurchaseRequestItem) -> PurchaseRequestItem:
        self.session.add(item)
        await self._flush()
        return item

    async def list_approvals(self, request_id: uuid.UUID) -> list[PurchaseRequestApproval]:
        result = await self.session.execute(
            select(PurchaseRequestApproval)
            .where(PurchaseRequestApproval.pr_id == request_id)
            .order_by(PurchaseRequestApproval.level, PurchaseRequestApproval.created_at)
        )
        return list(result.scalars().all())

    async def add_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval:
        self.session.add(approval)
        await self._flush()
        return approval

    async def save_approval(self, approval: PurchaseRequestApproval) -> PurchaseRequestApproval:
        await self._flush()
        return approval

    async def list_pending_approvals_for_approver(
        self, approver_id: uuid.UUID
    ) -> list[PurchaseRequestApproval]:
        result = await self.session.execute(
            select(PurchaseRequestApproval)
            .where(
                PurchaseRequestApproval.approver_id == approver_id,
                PurchaseRequestApproval.status == ApprovalStatus.pending.value,
            )
            .order_by(PurchaseRequestApproval.created_at.asc())
        )
        return list(result.scalars().all())

    # ─── Purchase orders ───

    async def last_order_number(self, prefix: str) -> str | None:
        result = await self.session.execute(
            select(PurchaseOrder.order_number)
            .where(PurchaseOrder.order_number.startswith(prefix))
            .order_by(func.length(PurchaseOrder.order_number).desc(), PurchaseOrder.order_number.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def add_order(self, order: PurchaseOrder) -> PurchaseOrder:
        self.session.add(order)  # line_items cascade
        await self._flush()
        return order

    async def get_order(self, order_id: uuid.UUID) -> PurchaseOrder | None:
        result = await self.session.execute(
            select(PurchaseOrder)
            .where(PurchaseOrder.id == order_id)
            .options(selectinload(PurchaseOrder.line_items))
        )
        return result.scalar_one_or_none()

    # ─── Notifications ───

    async def add_notification(self, notification: Notification) -> Notification:
        self.session.add(notification)
        await self._flush()
        return notification

    async def get_notification(self, notification_id: uuid.UUID) -> Notification | None:
        result = await self.session.execute(
            select(Notification).where(Notification.id == notification_id)
        )
        return result.scalar_one_or_none()

    async def list_notifications(
        self, user_id: uuid.UUID, unread_only: bool = False, limit: int = 50
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def save_notification(self, notification: Notification) -> Notification:
        await self._flush()
        return notification

    # ─── Audit ───

    async def add_audit_log(self, entry: AuditLog) -> AuditLog:
        self.session.add(entry)
        await self._flush()  # get id without committing; caller controls the transaction
        logger.debug("Audit: %s %s/%s", entry.action, entry.entity_type, entry.entity_id)
        return entry
