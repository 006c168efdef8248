"""Approval rule administration (the rule store's write side)."""
import logging
import uuid
from decimal import Decimal

from app.core.exceptions import NotFoundError, ValidationError
from app.models.approval_rule import ENTITY_PURCHASE_REQUEST, ApprovalRule
from app.models.user import ROLES
from app.services import audit as audit_svc

logger = logging.getLogger(__name__)

RULE_FIELDS = (
    "entity_type", "amount_min", "amount_max", "currency", "level",
    "approver_role", "specific_approver_id", "is_active",
)


def _rule_state(rule: ApprovalRule) -> dict:
    return {name: getattr(rule, name) for name in RULE_FIELDS}


def validate_rule(rule: ApprovalRule) -> None:
    if rule.level is None or rule.level < 1:
        raise ValidationError("Approval level must be a positive integer.")
    if rule.amount_min is None or rule.amount_min < 0:
        raise ValidationError("amount_min must be zero or greater.")
    if rule.amount_max is not None and rule.amount_max < rule.amount_min:
        raise ValidationError("amount_max must be greater than or equal to amount_min.")
    if not rule.approver_role and rule.specific_approver_id is None:
        raise ValidationError("A rule needs an approver_role or a specific_approver_id.")
    if rule.approver_role and rule.approver_role not in ROLES:
        raise ValidationError(f"Unknown approver role '{rule.approver_role}'.")
    if not rule.currency or len(rule.currency) != 3:
        raise ValidationError(f"Invalid currency code '{rule.currency}'.")


async def list_rules(
    repo,
    entity_type: str | None = ENTITY_PURCHASE_REQUEST,
    currency: str | None = None,
    include_inactive: bool = False,
) -> list[ApprovalRule]:
    return await repo.list_rules(
        entity_type=entity_type,
        currency=currency.upper() if currency else None,
        include_inactive=include_inactive,
    )


async def create_rule(repo, fields: dict, actor_id: uuid.UUID | None = None) -> ApprovalRule:
    rule = ApprovalRule(
        entity_type=fields.get("entity_type") or ENTITY_PURCHASE_REQUEST,
        amount_min=Decimal(str(fields.get("amount_min") or 0)),
        amount_max=fields.get("amount_max"),
        currency=(fields.get("currency") or "USD").upper(),
        level=fields.get("level"),
        approver_role=fields.get("approver_role"),
        specific_approver_id=fields.get("specific_approver_id"),
        is_active=fields.get("is_active", True),
    )
    validate_rule(rule)

    await repo.add_rule(rule)
    await audit_svc.log(
        repo,
        action="approval_rule.created",
        entity_type="approval_rule",
        entity_id=rule.id,
        actor_id=actor_id,
        after=_rule_state(rule),
    )
    await repo.commit()
    logger.info("Approval rule created: %s level=%s %s", rule.id, rule.level, rule.currency)
    return rule


async def update_rule(
    repo, rule_id: uuid.UUID, fields: dict, actor_id: uuid.UUID | None = None
) -> ApprovalRule:
    rule = await repo.get_rule(rule_id)
    if rule is None:
        raise NotFoundError(f"Approval rule {rule_id} not found.")

    unknown = sorted(set(fields) - set(RULE_FIELDS))
    if unknown:
        raise ValidationError(f"Unknown approval rule field(s): {', '.join(unknown)}.")

    before = _rule_state(rule)
    for name, value in fields.items():
        if name == "currency" and value:
            value = value.upper()
        setattr(rule, name, value)

    try:
        validate_rule(rule)
    except ValidationError:
        await repo.rollback()
        for name, value in before.items():
            setattr(rule, name, value)
        raise

    await repo.save_rule(rule)
    await audit_svc.log(
        repo,
        action="approval_rule.updated",
        entity_type="approval_rule",
        entity_id=rule.id,
        actor_id=actor_id,
        before=before,
        after=_rule_state(rule),
    )
    await repo.commit()
    return rule


async def deactivate_rule(repo, rule_id: uuid.UUID, actor_id: uuid.UUID | None = None) -> ApprovalRule:
    """Soft delete: inactive rules never match, existing approval rows keep their reference."""
    rule = await repo.get_rule(rule_id)
    if rule is None:
        raise NotFoundError(f"Approval rule {rule_id} not found.")

    rule.is_active = False
    await repo.save_rule(rule)
    await audit_svc.log(
        repo,
        action="approval_rule.deactivated",
        entity_type="approval_rule",
        entity_id=rule.id,
        actor_id=actor_id,
    )
    await repo.commit()
    return rule
