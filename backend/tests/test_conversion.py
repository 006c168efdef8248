"""Tests for converting approved purchase requests into purchase orders."""
import asyncio
import uuid
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from app.core.exceptions import EmptyRequestError, InvalidStateError
from app.models.purchase_request import PurchaseRequest, PurchaseRequestItem
from app.repositories.memory import InMemoryRepository
from app.services.conversion import OrderFields, build_purchase_order
from app.services.locks import KeyedLocks
from app.services.purchase_requests import PurchaseRequestWorkflow


async def _approved(workflow, users, add_rule, create_draft, *lines):
    add_rule(1, "0", None, role="admin")
    request = await create_draft(*lines)
    await workflow.submit(request.id)
    await workflow.decide(request.id, 1, users["admin"].id, "approved")
    return request


@pytest.mark.asyncio
async def test_conversion_copies_lines_and_marks_request_converted(workflow, store, users, add_rule, create_draft, sink):
    request = await _approved(
        workflow, users, add_rule, create_draft, (10, "5.00"), (2, "20.00")
    )
    assert request.total_amount == Decimal("90.00")

    result = await workflow.convert_to_order(request.id, actor_id=users["admin"].id)
    order = result.purchase_order

    assert order.status == "draft"
    assert order.pr_id == request.id
    assert order.currency == "USD"
    assert [line.line_number for line in order.line_items] == [1, 2]
    assert [line.total_price for line in order.line_items] == [Decimal("50.00"), Decimal("40.00")]
    assert sum(line.total_price for line in order.line_items) == request.total_amount
    assert order.total_amount == Decimal("90.00")
    assert order.created_by == users["admin"].id
    year = datetime.now(timezone.utc).year
    assert order.order_number == f"PO-{year}-0001"

    assert result.request.status == "converted"
    assert result.request.converted_to_po == order.id
    assert store.orders[order.id] is order

    converted = sink.of_type("pr_converted")
    assert len(converted) == 1
    assert converted[0].user_id == users["sales"].id
    assert order.order_number in converted[0].message


@pytest.mark.asyncio
async def test_conversion_applies_order_fields(workflow, users, add_rule, create_draft):
    request = await _approved(workflow, users, add_rule, create_draft, (10, "5.00"), (2, "20.00"))
    supplier_id = uuid.uuid4()

    result = await workflow.convert_to_order(
        request.id,
        OrderFields(
            supplier_id=supplier_id,
            order_date=date(2026, 3, 2),
            expected_delivery_date=date(2026, 3, 16),
            payment_terms=45,
            tax_amount=Decimal("9.00"),
            notes="Deliver to warehouse B",
        ),
    )
    order = result.purchase_order

    assert order.supplier_id == supplier_id
    assert order.order_date == date(2026, 3, 2)
    assert order.expected_delivery_date == date(2026, 3, 16)
    assert order.payment_terms == 45
    assert order.subtotal == Decimal("90.00")
    assert order.tax_amount == Decimal("9.00")
    assert order.total_amount == Decimal("99.00")
    assert order.notes == "Deliver to warehouse B"


@pytest.mark.asyncio
async def test_converting_twice_is_invalid(workflow, users, add_rule, create_draft):
    request = await _approved(workflow, users, add_rule, create_draft, (1, "5.00"))
    await workflow.convert_to_order(request.id)

    with pytest.raises(InvalidStateError):
        await workflow.convert_to_order(request.id)


@pytest.mark.asyncio
async def test_converting_unapproved_request_is_invalid(workflow, add_rule, create_draft):
    add_rule(1, role="admin")
    request = await create_draft((1, "5.00"))

    with pytest.raises(InvalidStateError):
        await workflow.convert_to_order(request.id)
    await workflow.submit(request.id)
    with pytest.raises(InvalidStateError):
        await workflow.convert_to_order(request.id)


@pytest.mark.asyncio
async def test_converting_request_without_items_fails(workflow, store, users, add_rule, create_draft, sink):
    request = await _approved(workflow, users, add_rule, create_draft)

    with pytest.raises(EmptyRequestError):
        await workflow.convert_to_order(request.id)

    assert store.requests[request.id].status == "approved"
    assert store.orders == {}
    assert sink.of_type("pr_converted") == []


def test_build_purchase_order_defaults():
    supplier_id = uuid.uuid4()
    request = PurchaseRequest(
        id=uuid.uuid4(),
        pr_number="PR-2026-0007",
        requester_id=uuid.uuid4(),
        supplier_id=supplier_id,
        total_amount=Decimal("7.50"),
        currency="EUR",
        status="approved",
        notes="Urgent",
    )
    items = [
        PurchaseRequestItem(
            product_id=uuid.uuid4(),
            quantity=3,
            unit_price=Decimal("2.50"),
            line_total=Decimal("7.50"),
        )
    ]

    order = build_purchase_order(request, items, OrderFields(), "PO-2026-0042")

    assert order.order_number == "PO-2026-0042"
    assert order.supplier_id == supplier_id
    assert order.currency == "EUR"
    assert order.order_date == date.today()
    assert order.payment_terms == 30
    assert order.tax_amount == Decimal("0.00")
    assert order.total_amount == Decimal("7.50")
    assert order.notes == "Urgent"
    assert len(order.line_items) == 1


class StagedOrderRepository(InMemoryRepository):
    """Orders become visible to other callers only on commit, which yields first."""

    def __init__(self, store):
        super().__init__(store)
        self.staged = []

    async def add_order(self, order):
        await super().add_order(order)
        del self.store.orders[order.id]
        self.staged.append(order)
        return order

    async def commit(self):
        await asyncio.sleep(0)
        for order in self.staged:
            self.store.orders[order.id] = order
        self.staged.clear()


@pytest.mark.asyncio
async def test_concurrent_conversions_get_distinct_order_numbers(store, users, add_rule, sink):
    add_rule(1, "0", None, role="admin")
    locks = KeyedLocks()
    setup = PurchaseRequestWorkflow(repo=InMemoryRepository(store), notifier=sink, locks=locks)
    request_ids = []
    for _ in range(2):
        detail = await setup.create_request(
            requester_id=users["sales"].id,
            items=[{"product_id": uuid.uuid4(), "quantity": 1, "unit_price": "10.00"}],
        )
        await setup.submit(detail.request.id)
        await setup.decide(detail.request.id, 1, users["admin"].id, "approved")
        request_ids.append(detail.request.id)

    # one repository (transaction) per caller, as with one session per HTTP request
    results = await asyncio.gather(*(
        PurchaseRequestWorkflow(
            repo=StagedOrderRepository(store), notifier=sink, locks=locks
        ).convert_to_order(request_id)
        for request_id in request_ids
    ))

    year = datetime.now(timezone.utc).year
    assert sorted(r.purchase_order.order_number for r in results) == [
        f"PO-{year}-0001",
        f"PO-{year}-0002",
    ]
    assert len(locks) == 0
