"""Tests for the SQLAlchemy repository using mocked async sessions."""
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.orm.exc import StaleDataError

from app.core.exceptions import ConcurrentModificationError
from app.models.purchase_request import PurchaseRequest
from app.repositories.sql import SqlRepository


# ─── Helpers ──────────────────────────────────────────────────────────────────

def _mock_session(row=None):
    """Build an AsyncSession double whose execute() returns `row` for single-row lookups."""
    session = MagicMock()
    result = MagicMock()
    result.scalar_one_or_none.return_value = row
    result.scalars.return_value.all.return_value = [row] if row is not None else []
    session.execute = AsyncMock(return_value=result)
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    return session


# ─── Tests ────────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_stale_commit_becomes_concurrent_modification():
    session = _mock_session()
    session.commit.side_effect = StaleDataError("UPDATE statement on table 'purchase_requests' expected to update 1 row(s); 0 were matched.")
    repo = SqlRepository(session)

    with pytest.raises(ConcurrentModificationError):
        await repo.commit()
    session.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_stale_flush_becomes_concurrent_modification():
    session = _mock_session()
    session.flush.side_effect = StaleDataError("stale")
    repo = SqlRepository(session)

    with pytest.raises(ConcurrentModificationError):
        await repo.save_request(PurchaseRequest(id=uuid.uuid4()))


@pytest.mark.asyncio
async def test_get_request_for_update_locks_row():
    request = PurchaseRequest(id=uuid.uuid4(), status="submitted")
    session = _mock_session(request)
    repo = SqlRepository(session)

    found = await repo.get_request(request.id, for_update=True)

    assert found is request
    stmt = session.execute.await_args.args[0]
    assert stmt._for_update_arg is not None


@pytest.mark.asyncio
async def test_plain_get_request_does_not_lock():
    session = _mock_session(None)
    repo = SqlRepository(session)

    assert await repo.get_request(uuid.uuid4()) is None
    stmt = session.execute.await_args.args[0]
    assert stmt._for_update_arg is None


@pytest.mark.asyncio
async def test_delete_request_removes_children_explicitly():
    request = PurchaseRequest(id=uuid.uuid4(), status="draft")
    session = _mock_session()
    repo = SqlRepository(session)

    await repo.delete_request(request)

    assert session.execute.await_count == 2
    deleted_tables = [call.args[0].table.name for call in session.execute.await_args_list]
    assert deleted_tables == ["purchase_request_items", "purchase_request_approvals"]
    session.delete.assert_awaited_once_with(request)
    session.flush.assert_awaited_once()


@pytest.mark.asyncio
async def test_user_directory_queries_active_role_holders():
    session = _mock_session()
    user = MagicMock(role="finance")
    session.execute.return_value.scalars.return_value.first.return_value = user
    repo = SqlRepository(session)

    found = await repo.user_directory().find_active_user_by_role("finance")

    assert found is user
    sql = str(session.execute.await_args.args[0])
    assert "users.role" in sql
    assert "users.is_active" in sql
    assert "users.deleted_at IS NULL" in sql


@pytest.mark.asyncio
async def test_last_request_number_orders_by_length_then_value():
    session = _mock_session(row="PR-2026-10000")
    repo = SqlRepository(session)

    assert await repo.last_request_number("PR-2026-") == "PR-2026-10000"

    stmt = session.execute.await_args.args[0]
    sql = str(stmt.compile(compile_kwargs={"literal_binds": True}))
    assert "length(purchase_requests.pr_number) DESC" in sql
    assert "purchase_requests.pr_number DESC" in sql
    assert "LIMIT 1" in sql
