"""Shared fixtures: an isolated in-memory store, staff users and rule factories."""
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.models.approval_rule import ENTITY_PURCHASE_REQUEST, ApprovalRule
from app.models.user import User
from app.repositories.memory import InMemoryRepository, InMemoryStore
from app.services.locks import KeyedLocks
from app.services.notifications import OutgoingNotification
from app.services.purchase_requests import PurchaseRequestWorkflow


# ─── Doubles ──────────────────────────────────────────────────────────────────

class RecordingSink:
    """Notification sink that keeps every delivered message in memory."""

    def __init__(self):
        self.sent: list[OutgoingNotification] = []

    async def notify(self, user_id, type, title, message, entity_type, entity_id):
        self.sent.append(
            OutgoingNotification(user_id, type, title, message, entity_type, entity_id)
        )

    def of_type(self, type: str) -> list[OutgoingNotification]:
        return [n for n in self.sent if n.type == type]


# ─── Fixtures ─────────────────────────────────────────────────────────────────

@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def users(store):
    """One active user per role used by the tests, oldest first."""
    created = {}
    base = datetime(2000, 1, 1, tzinfo=timezone.utc)
    for offset, (key, role) in enumerate(
        [("admin", "admin"), ("finance", "finance"), ("inventory", "inventory"), ("sales", "sales")]
    ):
        user = User(
            email=f"{key}@example.com",
            name=key.title(),
            role=role,
            is_active=True,
            created_at=base + timedelta(minutes=offset),
        )
        created[key] = store.add_user(user)
    return created


@pytest.fixture
def add_rule(store):
    def _add(
        level: int,
        amount_min: str = "0",
        amount_max: str | None = None,
        role: str | None = None,
        approver_id: uuid.UUID | None = None,
        currency: str = "USD",
        is_active: bool = True,
    ) -> ApprovalRule:
        rule = ApprovalRule(
            id=uuid.uuid4(),
            entity_type=ENTITY_PURCHASE_REQUEST,
            amount_min=Decimal(amount_min),
            amount_max=Decimal(amount_max) if amount_max is not None else None,
            currency=currency,
            level=level,
            approver_role=role,
            specific_approver_id=approver_id,
            is_active=is_active,
            created_at=datetime.now(timezone.utc),
            updated_at=datetime.now(timezone.utc),
        )
        store.rules[rule.id] = rule
        return rule

    return _add


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def repo(store):
    return InMemoryRepository(store)


@pytest.fixture
def workflow(repo, sink):
    return PurchaseRequestWorkflow(repo=repo, notifier=sink, locks=KeyedLocks())


@pytest.fixture
def create_draft(workflow, users):
    """Factory: create a draft from (quantity, unit_price) pairs."""

    async def _create(*lines, currency: str = "USD", requester: User | None = None):
        items = [
            {"product_id": uuid.uuid4(), "quantity": quantity, "unit_price": Decimal(price)}
            for quantity, price in lines
        ]
        detail = await workflow.create_request(
            requester_id=(requester or users["sales"]).id,
            currency=currency,
            items=items,
        )
        return detail.request

    return _create
