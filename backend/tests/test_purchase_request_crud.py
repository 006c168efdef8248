"""Tests for draft editing, queries and the audit trail of purchase requests."""
import uuid
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import InvalidStateError, NotFoundError, ValidationError


@pytest.mark.asyncio
async def test_create_request_numbers_and_totals(workflow, users, create_draft):
    first = await create_draft((10, "5.00"), (2, "20.00"))
    second = await create_draft((3, "0.333"))

    year = datetime.now(timezone.utc).year
    assert first.pr_number == f"PR-{year}-0001"
    assert second.pr_number == f"PR-{year}-0002"
    assert first.status == "draft"
    assert first.total_amount == Decimal("90.00")
    assert second.total_amount == Decimal("1.00")
    assert first.requester_id == users["sales"].id
    assert first.version == 1


@pytest.mark.asyncio
async def test_create_request_normalises_currency(workflow, users):
    detail = await workflow.create_request(requester_id=users["sales"].id, currency="eur")
    assert detail.request.currency == "EUR"

    with pytest.raises(ValidationError):
        await workflow.create_request(requester_id=users["sales"].id, currency="EURO")


@pytest.mark.asyncio
@pytest.mark.parametrize("quantity,price", [(0, "1.00"), (-2, "1.00"), (1, "-0.01")])
async def test_invalid_items_are_rejected(workflow, store, users, quantity, price):
    with pytest.raises(ValidationError):
        await workflow.create_request(
            requester_id=users["sales"].id,
            items=[{"product_id": uuid.uuid4(), "quantity": quantity, "unit_price": price}],
        )
    assert store.requests == {}


@pytest.mark.asyncio
async def test_add_item_recomputes_total(workflow, users, create_draft):
    request = await create_draft((1, "10.00"))
    version = request.version

    item = await workflow.add_item(
        request.id, product_id=uuid.uuid4(), quantity=4, unit_price=Decimal("2.25"),
        actor_id=users["sales"].id,
    )

    assert item.line_total == Decimal("9.00")
    assert request.total_amount == Decimal("19.00")
    assert request.version == version + 1
    detail = await workflow.get_request(request.id)
    assert len(detail.items) == 2


@pytest.mark.asyncio
async def test_add_item_after_submit_is_invalid(workflow, add_rule, create_draft):
    add_rule(1, role="admin")
    request = await create_draft((1, "10.00"))
    await workflow.submit(request.id)

    with pytest.raises(InvalidStateError):
        await workflow.add_item(request.id, product_id=uuid.uuid4(), quantity=1, unit_price=Decimal("1"))


@pytest.mark.asyncio
async def test_update_draft_fields(workflow, users, create_draft):
    request = await create_draft((1, "10.00"))
    supplier_id = uuid.uuid4()

    updated = await workflow.update_request(
        request.id, {"supplier_id": supplier_id, "currency": "gbp", "notes": "Q3 restock"},
        actor_id=users["sales"].id,
    )

    assert updated.supplier_id == supplier_id
    assert updated.currency == "GBP"
    assert updated.notes == "Q3 restock"


@pytest.mark.asyncio
async def test_update_rejects_workflow_fields(workflow, create_draft):
    request = await create_draft((1, "10.00"))
    with pytest.raises(ValidationError):
        await workflow.update_request(request.id, {"status": "approved"})
    assert request.status == "draft"


@pytest.mark.asyncio
async def test_update_after_submit_is_invalid(workflow, add_rule, create_draft):
    add_rule(1, role="admin")
    request = await create_draft((1, "10.00"))
    await workflow.submit(request.id)

    with pytest.raises(InvalidStateError):
        await workflow.update_request(request.id, {"notes": "too late"})


@pytest.mark.asyncio
async def test_delete_draft_cascades_items(workflow, store, create_draft):
    request = await create_draft((1, "10.00"), (2, "3.00"))
    assert len(store.items) == 2

    await workflow.delete_request(request.id)

    assert request.id not in store.requests
    assert store.items == {}
    with pytest.raises(NotFoundError):
        await workflow.get_request(request.id)


@pytest.mark.asyncio
async def test_delete_rejected_request_cascades_approvals(workflow, store, users, add_rule, create_draft):
    add_rule(1, role="finance")
    request = await create_draft((1, "10.00"))
    await workflow.submit(request.id)
    await workflow.decide(request.id, 1, users["finance"].id, "rejected")

    await workflow.delete_request(request.id)

    assert store.approvals == {}
    assert store.requests == {}


@pytest.mark.asyncio
async def test_delete_submitted_request_is_invalid(workflow, add_rule, create_draft):
    add_rule(1, role="admin")
    request = await create_draft((1, "10.00"))
    await workflow.submit(request.id)

    with pytest.raises(InvalidStateError):
        await workflow.delete_request(request.id)


@pytest.mark.asyncio
async def test_unknown_request_is_not_found(workflow):
    missing = uuid.uuid4()
    with pytest.raises(NotFoundError):
        await workflow.get_request(missing)
    with pytest.raises(NotFoundError):
        await workflow.submit(missing)
    with pytest.raises(NotFoundError):
        await workflow.list_approvals(missing)


@pytest.mark.asyncio
async def test_list_requests_filters(workflow, users, add_rule, create_draft):
    add_rule(1, role="admin")
    draft = await create_draft((1, "10.00"))
    submitted = await create_draft((1, "20.00"), requester=users["inventory"])
    await workflow.submit(submitted.id)

    assert [r.id for r in await workflow.list_requests(status="draft")] == [draft.id]
    assert [r.id for r in await workflow.list_requests(requester_id=users["inventory"].id)] == [submitted.id]
    assert len(await workflow.list_requests()) == 2


@pytest.mark.asyncio
async def test_pending_approvals_are_joined_with_request_and_items(workflow, users, add_rule, create_draft):
    add_rule(1, role="finance")
    add_rule(2, role="admin")
    request = await create_draft((10, "5.00"), (2, "20.00"))
    await workflow.submit(request.id)

    pending = await workflow.list_pending_approvals_for_user(users["finance"].id)

    assert len(pending) == 1
    assert pending[0].approval.level == 1
    assert pending[0].request.id == request.id
    assert len(pending[0].items) == 2

    await workflow.decide(request.id, 1, users["finance"].id, "approved")
    assert await workflow.list_pending_approvals_for_user(users["finance"].id) == []
    assert len(await workflow.list_pending_approvals_for_user(users["admin"].id)) == 1


@pytest.mark.asyncio
async def test_transitions_are_audited(workflow, store, users, add_rule, create_draft):
    add_rule(1, role="admin")
    request = await create_draft((1, "10.00"))
    await workflow.submit(request.id, actor_id=users["sales"].id)
    await workflow.decide(request.id, 1, users["admin"].id, "approved", comment="ok")
    await workflow.convert_to_order(request.id, actor_id=users["admin"].id)

    actions = [entry.action for entry in store.audit_logs if entry.entity_id == request.id]
    assert actions == [
        "purchase_request.created",
        "purchase_request.submitted",
        "purchase_request.approval_approved",
        "purchase_request.converted",
    ]
    decision = store.audit_logs[2]
    assert decision.actor_id == users["admin"].id
    assert decision.notes == "ok"
    assert '"status": "approved"' in decision.after_state


@pytest.mark.asyncio
async def test_numbers_are_not_reused_after_delete(workflow, store, create_draft):
    first = await create_draft((1, "10.00"))
    second = await create_draft((1, "10.00"))

    await workflow.delete_request(first.id)
    third = await create_draft((1, "10.00"))

    year = datetime.now(timezone.utc).year
    assert second.pr_number == f"PR-{year}-0002"
    assert third.pr_number == f"PR-{year}-0003"
    assert len({r.pr_number for r in store.requests.values()}) == 2


@pytest.mark.asyncio
async def test_numbering_continues_past_four_digits(workflow, store, users, create_draft):
    year = datetime.now(timezone.utc).year
    seeded = await create_draft((1, "10.00"))
    seeded.pr_number = f"PR-{year}-9999"

    request = await create_draft((1, "10.00"))

    assert request.pr_number == f"PR-{year}-10000"
    assert (await create_draft((1, "10.00"))).pr_number == f"PR-{year}-10001"
