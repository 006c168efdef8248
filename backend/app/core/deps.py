from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.core.config import settings
from app.core.security import decode_token
from app.db.session import AsyncSessionLocal, session_scope
from app.repositories.base import UserDirectory, WorkflowRepository
from app.repositories.memory import InMemoryRepository, InMemoryStore
from app.repositories.sql import SqlRepository
from app.services.notifications import (
    NotificationSink,
    memory_notification_sink,
    sql_notification_sink,
)
from app.services.purchase_requests import PurchaseRequestWorkflow

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")

# Backing store for STORAGE_BACKEND=memory (single process only)
memory_store = InMemoryStore()


async def get_repository() -> AsyncGenerator[WorkflowRepository, None]:
    """Yield a request-scoped repository for the configured storage backend."""
    if settings.STORAGE_BACKEND == "memory":
        yield InMemoryRepository(memory_store)
        return

    async with session_scope() as session:
        yield SqlRepository(session)


def get_user_directory(
    repo: Annotated[WorkflowRepository, Depends(get_repository)],
) -> UserDirectory:
    return repo.user_directory()


def get_notification_sink() -> NotificationSink:
    if settings.STORAGE_BACKEND == "memory":
        return memory_notification_sink(memory_store)
    return sql_notification_sink(AsyncSessionLocal)


def get_workflow(
    repo: Annotated[WorkflowRepository, Depends(get_repository)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
    notifier: Annotated[NotificationSink, Depends(get_notification_sink)],
) -> PurchaseRequestWorkflow:
    return PurchaseRequestWorkflow(repo=repo, notifier=notifier, users=users)


async def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    users: Annotated[UserDirectory, Depends(get_user_directory)],
):
    """Validate JWT and return the User ORM object."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
        if payload.get("type") != "access":
            raise credentials_exc
        user_id: str = payload.get("sub")
        if not user_id:
            raise credentials_exc
        user_uuid = UUID(user_id)
    except (JWTError, ValueError):
        raise credentials_exc

    user = await users.get_user(user_uuid)
    if user is None or not user.is_active or user.deleted_at is not None:
        raise credentials_exc
    return user


def require_role(*roles: str):
    """Dependency factory — raises 403 if user role not in allowed list."""
    async def check(user=Depends(get_current_user)):
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user.role}' is not permitted for this action.",
            )
        return user
    return check
