"""Seed default approval rules."""
import asyncio
import logging
from decimal import Decimal

from app.db.session import session_scope
from app.models.approval_rule import ENTITY_PURCHASE_REQUEST, ApprovalRule
from app.repositories.base import WorkflowRepository
from app.repositories.sql import SqlRepository

logger = logging.getLogger(__name__)

# Default purchase request bands: (amount_min, amount_max, currency, level, approver_role)
DEFAULT_APPROVAL_RULES = [
    (Decimal("0.00"), Decimal("1000.00"), "USD", 1, "admin"),
    (Decimal("1000.01"), Decimal("5000.00"), "USD", 1, "finance"),
    (Decimal("5000.01"), None, "USD", 1, "finance"),
    (Decimal("5000.01"), None, "USD", 2, "admin"),
]


async def seed_default_approval_rules(repo: WorkflowRepository) -> int:
    """Insert each default band unless an identical rule already exists. Returns inserts."""
    existing = {
        (r.amount_min, r.amount_max, r.currency, r.level, r.approver_role)
        for r in await repo.list_rules(entity_type=ENTITY_PURCHASE_REQUEST, include_inactive=True)
    }
    created = 0
    for amount_min, amount_max, currency, level, role in DEFAULT_APPROVAL_RULES:
        if (amount_min, amount_max, currency, level, role) in existing:
            logger.info("Approval rule already exists: L%s %s-%s %s, skipping", level, amount_min, amount_max, currency)
            continue
        await repo.add_rule(
            ApprovalRule(
                entity_type=ENTITY_PURCHASE_REQUEST,
                amount_min=amount_min,
                amount_max=amount_max,
                currency=currency,
                level=level,
                approver_role=role,
                is_active=True,
            )
        )
        created += 1
        logger.info("Seeded approval rule: L%s %s-%s %s -> %s", level, amount_min, amount_max, currency, role)

    await repo.commit()
    return created


async def run_seed() -> None:
    async with session_scope() as db:
        await seed_default_approval_rules(SqlRepository(db))
    logger.info("Seeding complete.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(run_seed())
