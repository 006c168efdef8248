"""Approval engine — rule matching, approver routing and task creation.

Rules are matched on entity type, currency and an inclusive amount range;
every matching rule becomes one pending approval task. A request is fully
approved once none of its tasks is pending and none is rejected.
"""
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from app.core.exceptions import NoApplicableRuleError, NoAvailableApproverError
from app.models.approval_rule import ApprovalRule
from app.models.purchase_request import (
    ApprovalStatus,
    PurchaseRequest,
    PurchaseRequestApproval,
)
from app.repositories.base import ApprovalRuleRepository, PurchaseRequestRepository, UserDirectory
from app.services.notifications import NotificationOutbox

logger = logging.getLogger(__name__)


# ─── Rule selection ───

async def select_applicable_rules(
    repo: ApprovalRuleRepository,
    entity_type: str,
    amount: Decimal,
    currency: str,
) -> list[ApprovalRule]:
    """Return active rules whose [amount_min, amount_max] contains amount, by level.

    Raises:
        NoApplicableRuleError: when no rule covers (entity_type, amount, currency).
    """
    currency = currency.upper()
    candidates = await repo.list_rules(entity_type=entity_type, currency=currency)
    rules = [r for r in candidates if r.is_active and r.covers(amount)]
    rules.sort(key=lambda r: (r.level, r.amount_min))

    if not rules:
        raise NoApplicableRuleError(
            f"No active approval rule covers {entity_type} amount {amount} {currency}. "
            "An administrator must add one."
        )

    logger.debug(
        "select_applicable_rules: %s %s %s -> levels %s",
        entity_type, amount, currency, [r.level for r in rules],
    )
    return rules


# ─── Approver routing ───

async def resolve_approver(users: UserDirectory, rule: ApprovalRule) -> uuid.UUID:
    """Return the rule's specific approver, else the first active user holding its role.

    Never auto-approves: an unstaffed role is an explicit error.
    """
    if rule.specific_approver_id is not None:
        return rule.specific_approver_id

    if not rule.approver_role:
        raise NoAvailableApproverError(
            f"Approval rule {rule.id} (level {rule.level}) names neither a role nor an approver."
        )

    user = await users.find_active_user_by_role(rule.approver_role)
    if user is None:
        logger.warning(
            "resolve_approver: no active user with role=%s for rule %s (level %s).",
            rule.approver_role, rule.id, rule.level,
        )
        raise NoAvailableApproverError(
            f"No approver configured for role '{rule.approver_role}'."
        )
    return user.id


# ─── Task creation ───

async def create_approval_tasks(
    repo: PurchaseRequestRepository,
    users: UserDirectory,
    outbox: NotificationOutbox,
    request: PurchaseRequest,
    rules: list[ApprovalRule],
    now: datetime | None = None,
) -> list[PurchaseRequestApproval]:
    """Create one pending approval per rule, in level order, and queue a notification each.

    Every approver is resolved before the first row is written, so a routing
    failure leaves nothing behind. Rules that already have a row for this
    request are skipped, which makes a retried submission idempotent.
    """
    now = now or datetime.now(timezone.utc)

    existing = {a.rule_id for a in await repo.list_approvals(request.id)}
    assignments: list[tuple[ApprovalRule, uuid.UUID]] = []
    for rule in sorted(rules, key=lambda r: r.level):
        if rule.id in existing:
            logger.info(
                "create_approval_tasks: request=%s rule=%s already has a task, skipping.",
                request.id, rule.id,
            )
            continue
        assignments.append((rule, await resolve_approver(users, rule)))

    created: list[PurchaseRequestApproval] = []
    for rule, approver_id in assignments:
        approval = PurchaseRequestApproval(
            pr_id=request.id,
            rule_id=rule.id,
            level=rule.level,
            approver_id=approver_id,
            status=ApprovalStatus.pending.value,
            notified_at=now,
        )
        await repo.add_approval(approval)
        created.append(approval)

        outbox.add(
            user_id=approver_id,
            type="pr_approval_required",
            title=f"Approval required: {request.pr_number}",
            message=(
                f"Purchase request {request.pr_number} for {request.total_amount} "
                f"{request.currency} awaits your level {rule.level} approval."
            ),
            entity_type="purchase_request",
            entity_id=request.id,
        )

    logger.info(
        "create_approval_tasks: request=%s created=%d levels=%s",
        request.id, len(created), [a.level for a in created],
    )
    return created


def is_fully_approved(approvals: list[PurchaseRequestApproval]) -> bool:
    if not approvals:
        return False
    statuses = {a.status for a in approvals}
    return statuses == {ApprovalStatus.approved.value}
