"""Tests for rule selection, approver routing and approval task creation."""
import uuid
from decimal import Decimal

import pytest

from app.core.exceptions import NoApplicableRuleError, NoAvailableApproverError
from app.models.approval_rule import ENTITY_PURCHASE_REQUEST
from app.models.purchase_request import PurchaseRequest
from app.services import approval_engine
from app.services.notifications import NotificationOutbox


# ─── Rule selection ───────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_selected_rules_cover_amount_and_are_level_ordered(repo, add_rule):
    add_rule(2, "0", "10000", role="admin")
    add_rule(1, "0", "1000", role="finance")
    add_rule(1, "1000.01", "5000", role="finance")
    add_rule(3, "5000.01", None, role="admin")
    add_rule(1, "0", None, role="admin", currency="EUR")
    add_rule(1, "0", None, role="admin", is_active=False)

    for amount in ["0", "0.01", "999.99", "1000", "1000.01", "4999", "5000", "5000.01", "250000"]:
        amount = Decimal(amount)
        rules = await approval_engine.select_applicable_rules(
            repo, ENTITY_PURCHASE_REQUEST, amount, "USD"
        )
        assert rules, f"no rules for {amount}"
        levels = [r.level for r in rules]
        assert levels == sorted(levels)
        for rule in rules:
            assert rule.currency == "USD"
            assert rule.is_active
            assert rule.amount_min <= amount
            assert rule.amount_max is None or amount <= rule.amount_max


@pytest.mark.asyncio
async def test_range_bounds_are_inclusive(repo, add_rule):
    low = add_rule(1, "0", "1000", role="admin")
    high = add_rule(1, "1000.01", "5000", role="finance")

    at_max = await approval_engine.select_applicable_rules(
        repo, ENTITY_PURCHASE_REQUEST, Decimal("1000.00"), "USD"
    )
    at_min = await approval_engine.select_applicable_rules(
        repo, ENTITY_PURCHASE_REQUEST, Decimal("1000.01"), "USD"
    )
    assert [r.id for r in at_max] == [low.id]
    assert [r.id for r in at_min] == [high.id]


@pytest.mark.asyncio
async def test_currency_match_is_case_insensitive(repo, add_rule):
    rule = add_rule(1, "0", None, role="admin", currency="EUR")
    rules = await approval_engine.select_applicable_rules(
        repo, ENTITY_PURCHASE_REQUEST, Decimal("10"), "eur"
    )
    assert [r.id for r in rules] == [rule.id]


@pytest.mark.asyncio
async def test_no_covering_rule_raises(repo, add_rule):
    add_rule(1, "0", "1000", role="admin")
    add_rule(1, "0", None, role="admin", currency="EUR")

    with pytest.raises(NoApplicableRuleError):
        await approval_engine.select_applicable_rules(
            repo, ENTITY_PURCHASE_REQUEST, Decimal("1500"), "USD"
        )
    with pytest.raises(NoApplicableRuleError):
        await approval_engine.select_applicable_rules(
            repo, ENTITY_PURCHASE_REQUEST, Decimal("10"), "GBP"
        )


@pytest.mark.asyncio
async def test_1500_usd_selects_only_finance_band(repo, add_rule):
    add_rule(1, "0", "1000", role="admin")
    finance_band = add_rule(1, "1000.01", "5000", role="finance")

    rules = await approval_engine.select_applicable_rules(
        repo, ENTITY_PURCHASE_REQUEST, Decimal("1500"), "USD"
    )
    assert [r.id for r in rules] == [finance_band.id]
    assert rules[0].approver_role == "finance"


# ─── Approver routing ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_specific_approver_wins_over_role(repo, users, add_rule):
    rule = add_rule(1, role="finance", approver_id=users["inventory"].id)
    approver = await approval_engine.resolve_approver(repo.user_directory(), rule)
    assert approver == users["inventory"].id


@pytest.mark.asyncio
async def test_role_resolves_to_oldest_active_user(store, repo, users, add_rule):
    from app.models.user import User

    store.add_user(User(email="finance2@example.com", name="Second", role="finance", is_active=True))
    rule = add_rule(1, role="finance")

    approver = await approval_engine.resolve_approver(repo.user_directory(), rule)
    assert approver == users["finance"].id


@pytest.mark.asyncio
async def test_inactive_or_deleted_users_are_skipped(repo, users, add_rule):
    users["finance"].is_active = False
    rule = add_rule(1, role="finance")

    with pytest.raises(NoAvailableApproverError, match="finance"):
        await approval_engine.resolve_approver(repo.user_directory(), rule)


@pytest.mark.asyncio
async def test_unstaffed_role_raises(repo, users, add_rule):
    rule = add_rule(1, role="hr")
    with pytest.raises(NoAvailableApproverError):
        await approval_engine.resolve_approver(repo.user_directory(), rule)


# ─── Task creation ────────────────────────────────────────────────────────────

def _submitted_request(requester_id) -> PurchaseRequest:
    return PurchaseRequest(
        id=uuid.uuid4(),
        pr_number="PR-2026-0001",
        requester_id=requester_id,
        total_amount=Decimal("1500.00"),
        currency="USD",
        status="draft",
    )


@pytest.mark.asyncio
async def test_create_tasks_one_per_rule_with_notification(repo, users, add_rule):
    rules = [add_rule(2, role="admin"), add_rule(1, role="finance")]
    request = _submitted_request(users["sales"].id)
    outbox = NotificationOutbox()

    created = await approval_engine.create_approval_tasks(
        repo, repo.user_directory(), outbox, request, rules
    )

    assert [a.level for a in created] == [1, 2]
    assert [a.approver_id for a in created] == [users["finance"].id, users["admin"].id]
    assert all(a.status == "pending" and a.notified_at is not None for a in created)
    assert [n.user_id for n in outbox.pending] == [users["finance"].id, users["admin"].id]
    assert {n.type for n in outbox.pending} == {"pr_approval_required"}


@pytest.mark.asyncio
async def test_create_tasks_skips_existing_rows(repo, users, add_rule):
    rules = [add_rule(1, role="finance"), add_rule(2, role="admin")]
    request = _submitted_request(users["sales"].id)

    await approval_engine.create_approval_tasks(
        repo, repo.user_directory(), NotificationOutbox(), request, rules[:1]
    )
    outbox = NotificationOutbox()
    retried = await approval_engine.create_approval_tasks(
        repo, repo.user_directory(), outbox, request, rules
    )

    assert [a.level for a in retried] == [2]
    assert len(await repo.list_approvals(request.id)) == 2
    assert len(outbox.pending) == 1


@pytest.mark.asyncio
async def test_create_tasks_writes_nothing_when_an_approver_is_missing(repo, users, add_rule):
    rules = [add_rule(1, role="finance"), add_rule(2, role="hr")]
    request = _submitted_request(users["sales"].id)
    outbox = NotificationOutbox()

    with pytest.raises(NoAvailableApproverError):
        await approval_engine.create_approval_tasks(
            repo, repo.user_directory(), outbox, request, rules
        )

    assert await repo.list_approvals(request.id) == []
    assert outbox.pending == []


def test_is_fully_approved():
    from app.models.purchase_request import PurchaseRequestApproval

    def task(status):
        return PurchaseRequestApproval(status=status)

    assert approval_engine.is_fully_approved([task("approved"), task("approved")])
    assert not approval_engine.is_fully_approved([task("approved"), task("pending")])
    assert not approval_engine.is_fully_approved([task("approved"), task("rejected")])
    assert not approval_engine.is_fully_approved([])
