"""Purchase request lifecycle.

    draft ──submit──▶ submitted ──decide──▶ approved ──convert──▶ converted
                                    └──────▶ rejected

Every mutating call runs under a per-request lock, loads the request
FOR UPDATE and commits once; notifications go out only after the commit.
rejected and converted are terminal.
"""
import logging
import uuid
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from app.core.config import settings
from app.core.exceptions import (
    ApprovalNotFoundError,
    EmptyRequestError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from app.models.approval_rule import ENTITY_PURCHASE_REQUEST
from app.models.purchase_order import PurchaseOrder
from app.models.purchase_request import (
    ApprovalStatus,
    PRStatus,
    PurchaseRequest,
    PurchaseRequestApproval,
    PurchaseRequestItem,
)
from app.repositories.base import UserDirectory, WorkflowRepository
from app.services import approval_engine
from app.services import audit as audit_svc
from app.services.conversion import OrderFields, build_purchase_order
from app.services.locks import KeyedLocks, request_locks
from app.services.money import line_total, to_money
from app.services.notifications import NotificationOutbox, NotificationSink

logger = logging.getLogger(__name__)

DECISION_OUTCOMES = (ApprovalStatus.approved.value, ApprovalStatus.rejected.value)
EDITABLE_FIELDS = ("supplier_id", "currency", "notes")
DELETABLE_STATUSES = (PRStatus.draft.value, PRStatus.rejected.value)


# ─── Results ───

@dataclass
class RequestDetail:
    request: PurchaseRequest
    items: list[PurchaseRequestItem] = field(default_factory=list)
    approvals: list[PurchaseRequestApproval] = field(default_factory=list)


@dataclass
class SubmitResult:
    request: PurchaseRequest
    created_approvals: list[PurchaseRequestApproval]


@dataclass
class DecisionResult:
    request: PurchaseRequest
    approval: PurchaseRequestApproval
    is_fully_approved: bool


@dataclass
class ConversionResult:
    request: PurchaseRequest
    purchase_order: PurchaseOrder


@dataclass
class PendingApproval:
    approval: PurchaseRequestApproval
    request: PurchaseRequest
    items: list[PurchaseRequestItem]


def _snapshot(request: PurchaseRequest) -> dict:
    return {
        "status": request.status,
        "total_amount": request.total_amount,
        "currency": request.currency,
        "version": request.version,
    }


def _normalise_currency(currency: str | None) -> str:
    code = (currency or settings.DEFAULT_CURRENCY).strip().upper()
    if len(code) != 3 or not code.isalpha():
        raise ValidationError(f"Invalid currency code '{currency}'.")
    return code


class PurchaseRequestWorkflow:
    def __init__(
        self,
        repo: WorkflowRepository,
        notifier: NotificationSink,
        users: UserDirectory | None = None,
        locks: KeyedLocks | None = None,
    ):
        self.repo = repo
        self.notifier = notifier
        self.users = users or repo.user_directory()
        self.locks = locks or request_locks

    # ─── Transaction plumbing ───

    @asynccontextmanager
    async def _transition(self, *keys) -> AsyncIterator[NotificationOutbox]:
        """Hold every key until the commit or rollback, then dispatch the outbox."""
        outbox = NotificationOutbox()
        async with AsyncExitStack() as held:
            for key in keys:
                await held.enter_async_context(self.locks.hold(key))
            try:
                yield outbox
                await self.repo.commit()
            except BaseException:
                outbox.clear()
                await self.repo.rollback()
                raise
        await outbox.dispatch(self.notifier)

    async def _load(self, request_id: uuid.UUID, for_update: bool = False) -> PurchaseRequest:
        request = await self.repo.get_request(request_id, for_update=for_update)
        if request is None:
            raise NotFoundError(f"Purchase request {request_id} not found.")
        return request

    async def _next_number(self, prefix: str, last_number) -> str:
        """Next PREFIX-YYYY-NNNN after the highest number issued this year; deleted numbers are never reused."""
        year = datetime.now(timezone.utc).year
        stem = f"{prefix}-{year}-"
        last = await last_number(stem)
        sequence = int(last[len(stem):]) if last else 0
        return f"{stem}{sequence + 1:04d}"

    # ─── Queries ───

    async def get_request(self, request_id: uuid.UUID) -> RequestDetail:
        request = await self._load(request_id)
        return RequestDetail(
            request=request,
            items=await self.repo.list_items(request.id),
            approvals=await self.repo.list_approvals(request.id),
        )

    async def list_requests(
        self,
        status: str | None = None,
        requester_id: uuid.UUID | None = None,
        limit: int = 50,
    ) -> list[PurchaseRequest]:
        return await self.repo.list_requests(status=status, requester_id=requester_id, limit=limit)

    async def list_approvals(self, request_id: uuid.UUID) -> list[PurchaseRequestApproval]:
        await self._load(request_id)
        return await self.repo.list_approvals(request_id)

    async def list_pending_approvals_for_user(self, user_id: uuid.UUID) -> list[PendingApproval]:
        """Pending tasks assigned to user_id, joined with their request and items, oldest first."""
        pending: list[PendingApproval] = []
        for approval in await self.repo.list_pending_approvals_for_approver(user_id):
            request = await self.repo.get_request(approval.pr_id)
            if request is None:
                logger.warning("Pending approval %s points at missing request %s.", approval.id, approval.pr_id)
                continue
            pending.append(
                PendingApproval(
                    approval=approval,
                    request=request,
                    items=await self.repo.list_items(request.id),
                )
            )
        return pending

    # ─── Draft editing ───

    async def create_request(
        self,
        requester_id: uuid.UUID,
        currency: str | None = None,
        supplier_id: uuid.UUID | None = None,
        notes: str | None = None,
        items: list[dict] | None = None,
    ) -> RequestDetail:
        currency = _normalise_currency(currency)
        lines = [self._build_item(None, **item) for item in items or []]

        async with self._transition(f"number:{settings.PR_NUMBER_PREFIX}"):
            pr_number = await self._next_number(
                settings.PR_NUMBER_PREFIX, self.repo.last_request_number
            )
            request = PurchaseRequest(
                pr_number=pr_number,
                requester_id=requester_id,
                supplier_id=supplier_id,
                currency=currency,
                notes=notes,
                status=PRStatus.draft.value,
                total_amount=to_money(sum((line.line_total for line in lines), Decimal("0"))),
            )
            await self.repo.add_request(request)
            for line in lines:
                line.pr_id = request.id
                await self.repo.add_item(line)
            await audit_svc.log(
                self.repo,
                action="purchase_request.created",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=requester_id,
                after=_snapshot(request),
            )

        logger.info("Purchase request created: %s (%s lines)", request.pr_number, len(lines))
        return RequestDetail(request=request, items=lines, approvals=[])

    def _build_item(
        self,
        request_id: uuid.UUID | None,
        product_id: uuid.UUID,
        quantity: int,
        unit_price: Decimal,
        notes: str | None = None,
    ) -> PurchaseRequestItem:
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError("Item quantity must be a positive integer.")
        unit_price = Decimal(str(unit_price))
        if unit_price < 0:
            raise ValidationError("Item unit price cannot be negative.")
        return PurchaseRequestItem(
            pr_id=request_id,
            product_id=product_id,
            quantity=quantity,
            unit_price=to_money(unit_price),
            line_total=line_total(quantity, unit_price),
            notes=notes,
        )

    async def add_item(
        self,
        request_id: uuid.UUID,
        product_id: uuid.UUID,
        quantity: int,
        unit_price: Decimal,
        notes: str | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> PurchaseRequestItem:
        item = self._build_item(request_id, product_id, quantity, unit_price, notes)

        async with self._transition(request_id):
            request = await self._load(request_id, for_update=True)
            if request.status != PRStatus.draft.value:
                raise InvalidStateError(
                    f"Items can only be added to draft requests (status={request.status})."
                )
            before = _snapshot(request)
            await self.repo.add_item(item)
            items = await self.repo.list_items(request.id)
            request.total_amount = to_money(sum((i.line_total for i in items), Decimal("0")))
            await self.repo.save_request(request)
            await audit_svc.log(
                self.repo,
                action="purchase_request.item_added",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after=_snapshot(request),
                notes=f"product={product_id} qty={quantity} price={item.unit_price}",
            )
        return item

    async def update_request(
        self,
        request_id: uuid.UUID,
        fields: dict,
        actor_id: uuid.UUID | None = None,
    ) -> PurchaseRequest:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValidationError(f"Fields not editable: {', '.join(sorted(unknown))}.")
        if "currency" in fields:
            fields = {**fields, "currency": _normalise_currency(fields["currency"])}

        async with self._transition(request_id):
            request = await self._load(request_id, for_update=True)
            if request.status != PRStatus.draft.value:
                raise InvalidStateError(
                    f"Only draft requests can be edited (status={request.status})."
                )
            before = _snapshot(request)
            for name, value in fields.items():
                setattr(request, name, value)
            await self.repo.save_request(request)
            await audit_svc.log(
                self.repo,
                action="purchase_request.updated",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after={**_snapshot(request), **fields},
            )
        return request

    async def delete_request(self, request_id: uuid.UUID, actor_id: uuid.UUID | None = None) -> None:
        async with self._transition(request_id):
            request = await self._load(request_id, for_update=True)
            if request.status not in DELETABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot delete a {request.status} purchase request."
                )
            before = _snapshot(request)
            await self.repo.delete_request(request)
            await audit_svc.log(
                self.repo,
                action="purchase_request.deleted",
                entity_type="purchase_request",
                entity_id=request_id,
                actor_id=actor_id,
                before=before,
            )
        logger.info("Purchase request deleted: %s", request_id)

    # ─── Submit ───

    async def submit(self, request_id: uuid.UUID, actor_id: uuid.UUID | None = None) -> SubmitResult:
        """Move a draft to submitted and open one approval task per applicable rule.

        Rules and approvers are resolved before anything is written, so a
        NoApplicableRuleError / NoAvailableApproverError leaves the request in draft.
        """
        async with self._transition(request_id) as outbox:
            request = await self._load(request_id, for_update=True)
            if not request.can_transition_to(PRStatus.submitted.value):
                raise InvalidStateError(
                    f"Only draft requests can be submitted (status={request.status})."
                )

            rules = await approval_engine.select_applicable_rules(
                self.repo, ENTITY_PURCHASE_REQUEST, request.total_amount, request.currency
            )
            now = datetime.now(timezone.utc)
            approvals = await approval_engine.create_approval_tasks(
                self.repo, self.users, outbox, request, rules, now=now
            )

            before = _snapshot(request)
            request.status = PRStatus.submitted.value
            request.submitted_at = now
            await self.repo.save_request(request)
            await audit_svc.log(
                self.repo,
                action="purchase_request.submitted",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after={**_snapshot(request), "approval_levels": [a.level for a in approvals]},
            )

        logger.info(
            "Purchase request submitted: %s tasks=%d", request.pr_number, len(approvals)
        )
        return SubmitResult(request=request, created_approvals=approvals)

    # ─── Decide ───

    async def decide(
        self,
        request_id: uuid.UUID,
        level: int,
        approver_id: uuid.UUID,
        outcome: str,
        comment: str | None = None,
    ) -> DecisionResult:
        """Record one approver's decision.

        Approval semantics are AND across levels, in any order: the request is
        approved on the decision that leaves no task pending. A single
        rejection rejects the request at once and cancels the remaining tasks.
        """
        outcome = str(getattr(outcome, "value", outcome)).lower()
        if outcome not in DECISION_OUTCOMES:
            raise ValidationError(
                f"Invalid outcome '{outcome}'. Must be 'approved' or 'rejected'."
            )

        async with self._transition(request_id) as outbox:
            request = await self._load(request_id, for_update=True)
            approvals = await self.repo.list_approvals(request.id)
            matching = [a for a in approvals if a.level == level and a.approver_id == approver_id]
            task = next((a for a in matching if a.status == ApprovalStatus.pending.value), None)

            if not request.can_transition_to(PRStatus.approved.value):
                if matching:
                    # The task existed but was already decided or cancelled
                    raise ApprovalNotFoundError(
                        f"No pending approval at level {level} for approver {approver_id}."
                    )
                raise InvalidStateError(
                    f"Decisions require a submitted request (status={request.status})."
                )
            if task is None:
                raise ApprovalNotFoundError(
                    f"No pending approval at level {level} for approver {approver_id}."
                )

            now = datetime.now(timezone.utc)
            before = _snapshot(request)
            task.status = outcome
            task.decided_at = now
            task.comment = comment
            await self.repo.save_approval(task)

            if outcome == ApprovalStatus.rejected.value:
                await self._reject(request, approvals, task, now, outbox)
            elif approval_engine.is_fully_approved(approvals):
                request.status = PRStatus.approved.value
                request.approved_at = now
                outbox.add(
                    user_id=request.requester_id,
                    type="pr_approved",
                    title=f"Purchase request {request.pr_number} approved",
                    message=f"All {len(approvals)} approval level(s) signed off.",
                    entity_type="purchase_request",
                    entity_id=request.id,
                )

            # Touch the request so every decision bumps its version
            request.updated_at = now
            await self.repo.save_request(request)

            fully_approved = request.status == PRStatus.approved.value
            await audit_svc.log(
                self.repo,
                action=f"purchase_request.approval_{outcome}",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=approver_id,
                before=before,
                after={**_snapshot(request), "level": level, "approval_id": task.id},
                notes=comment,
            )

        logger.info(
            "Approval decision: request=%s level=%s approver=%s outcome=%s status=%s",
            request.pr_number, level, approver_id, outcome, request.status,
        )
        return DecisionResult(request=request, approval=task, is_fully_approved=fully_approved)

    async def _reject(
        self,
        request: PurchaseRequest,
        approvals: list[PurchaseRequestApproval],
        task: PurchaseRequestApproval,
        now: datetime,
        outbox: NotificationOutbox,
    ) -> None:
        for other in approvals:
            if other is not task and other.status == ApprovalStatus.pending.value:
                other.status = ApprovalStatus.rejected.value
                other.decided_at = now
                other.comment = f"Cancelled: request rejected at level {task.level}"
                await self.repo.save_approval(other)
        request.status = PRStatus.rejected.value
        outbox.add(
            user_id=request.requester_id,
            type="pr_rejected",
            title=f"Purchase request {request.pr_number} rejected",
            message=f"Rejected at level {task.level}: {task.comment or 'no comment given'}",
            entity_type="purchase_request",
            entity_id=request.id,
        )

    # ─── Convert ───

    async def convert_to_order(
        self,
        request_id: uuid.UUID,
        fields: OrderFields | None = None,
        actor_id: uuid.UUID | None = None,
    ) -> ConversionResult:
        fields = fields or OrderFields()

        # The order number stays reserved until the new order is committed
        async with self._transition(f"number:{settings.PO_NUMBER_PREFIX}", request_id) as outbox:
            request = await self._load(request_id, for_update=True)
            if not request.can_transition_to(PRStatus.converted.value):
                raise InvalidStateError(
                    f"Only approved requests can be converted (status={request.status})."
                )
            items = await self.repo.list_items(request.id)
            if not items:
                raise EmptyRequestError(
                    f"Purchase request {request.pr_number} has no line items to convert."
                )

            order_number = await self._next_number(
                settings.PO_NUMBER_PREFIX, self.repo.last_order_number
            )
            order = build_purchase_order(request, items, fields, order_number, created_by=actor_id)
            await self.repo.add_order(order)

            before = _snapshot(request)
            request.status = PRStatus.converted.value
            request.converted_to_po = order.id
            await self.repo.save_request(request)
            await audit_svc.log(
                self.repo,
                action="purchase_request.converted",
                entity_type="purchase_request",
                entity_id=request.id,
                actor_id=actor_id,
                before=before,
                after={**_snapshot(request), "purchase_order_id": order.id, "order_number": order.order_number},
            )
            outbox.add(
                user_id=request.requester_id,
                type="pr_converted",
                title=f"Purchase request {request.pr_number} converted",
                message=f"Purchase order {order.order_number} was created from your request.",
                entity_type="purchase_request",
                entity_id=request.id,
            )

        logger.info("Purchase request %s converted to %s", request.pr_number, order.order_number)
        return ConversionResult(request=request, purchase_order=order)
