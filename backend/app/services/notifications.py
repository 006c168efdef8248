"""Workflow notifications.

Transitions queue messages on a NotificationOutbox; the outbox is flushed
only after the transition has committed. Delivery is best-effort: each
send is bounded by NOTIFICATION_TIMEOUT_SECONDS and any failure is logged,
never raised back into the workflow.
"""
import asyncio
import logging
import uuid
from collections.abc import Callable
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.db.session import session_scope
from app.models.notification import Notification
from app.repositories.base import NotificationRepository
from app.repositories.memory import InMemoryRepository, InMemoryStore
from app.repositories.sql import SqlRepository
from app.services import email as email_svc

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str | None,
        entity_type: str | None,
        entity_id: uuid.UUID | None,
    ) -> None: ...


@dataclass
class OutgoingNotification:
    user_id: uuid.UUID
    type: str
    title: str
    message: str | None
    entity_type: str | None
    entity_id: uuid.UUID | None


class NotificationOutbox:
    def __init__(self) -> None:
        self._pending: list[OutgoingNotification] = []

    def add(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str | None = None,
        entity_type: str | None = None,
        entity_id: uuid.UUID | None = None,
    ) -> None:
        self._pending.append(
            OutgoingNotification(user_id, type, title, message, entity_type, entity_id)
        )

    @property
    def pending(self) -> list[OutgoingNotification]:
        return list(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    async def dispatch(self, sink: NotificationSink, timeout: float | None = None) -> int:
        """Deliver queued notifications; returns how many were delivered."""
        timeout = settings.NOTIFICATION_TIMEOUT_SECONDS if timeout is None else timeout
        delivered = 0
        pending, self._pending = self._pending, []
        for note in pending:
            try:
                await asyncio.wait_for(sink.notify(**asdict(note)), timeout=timeout)
                delivered += 1
            except Exception as exc:
                logger.warning(
                    "Notification delivery failed: type=%s user=%s entity=%s/%s: %r",
                    note.type, note.user_id, note.entity_type, note.entity_id, exc,
                )
        return delivered


class RepositoryNotificationSink:
    """Stores a Notification row via its own repository, then mails a copy.

    repo_factory returns an async context manager yielding a fresh repository,
    so the row commits independently of the transition that produced it.
    """

    def __init__(self, repo_factory: Callable):
        self._repo_factory = repo_factory

    async def notify(
        self,
        user_id: uuid.UUID,
        type: str,
        title: str,
        message: str | None,
        entity_type: str | None,
        entity_id: uuid.UUID | None,
    ) -> None:
        async with self._repo_factory() as repo:
            await repo.add_notification(
                Notification(
                    user_id=user_id,
                    type=type,
                    title=title,
                    message=message,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    is_read=False,
                )
            )
            await repo.commit()
            user = await repo.user_directory().get_user(user_id)

        link = None
        if entity_type == "purchase_request" and entity_id is not None:
            link = f"{settings.APP_BASE_URL.rstrip('/')}/api/v1/purchase-requests/{entity_id}"
        email_svc.send_notification_email(
            to_email=getattr(user, "email", None),
            title=title,
            message=message,
            link=link,
        )


def sql_notification_sink(session_factory: async_sessionmaker[AsyncSession]) -> RepositoryNotificationSink:
    @asynccontextmanager
    async def _factory():
        async with session_scope(session_factory) as session:
            yield SqlRepository(session)

    return RepositoryNotificationSink(_factory)


def memory_notification_sink(store: InMemoryStore) -> RepositoryNotificationSink:
    @asynccontextmanager
    async def _factory():
        yield InMemoryRepository(store)

    return RepositoryNotificationSink(_factory)


# ─── Inbox queries ───

async def list_notifications(
    repo: NotificationRepository,
    user_id: uuid.UUID,
    unread_only: bool = False,
    limit: int = 50,
) -> list[Notification]:
    return await repo.list_notifications(user_id, unread_only=unread_only, limit=limit)


async def mark_read(repo, notification_id: uuid.UUID, user_id: uuid.UUID) -> Notification:
    notification = await repo.get_notification(notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError(f"Notification {notification_id} not found.")
    if not notification.is_read:
        notification.is_read = True
        await repo.save_notification(notification)
        await repo.commit()
    return notification
