"""Audit log helper — append-only writes through the repository."""
import json
import uuid
from typing import Any

from app.models.audit import AuditLog
from app.repositories.base import AuditRepository


async def log(
    repo: AuditRepository,
    action: str,
    entity_type: str,
    entity_id: uuid.UUID | None = None,
    actor_id: uuid.UUID | None = None,
    before: Any | None = None,
    after: Any | None = None,
    notes: str | None = None,
) -> AuditLog:
    """Write a single audit log entry inside the caller's transaction.

    Args:
        repo: Repository sharing the transaction of the state change.
        action: Short verb, e.g. 'purchase_request.submitted'.
        entity_type: Domain name, e.g. 'purchase_request', 'approval_rule'.
        entity_id: PK of the affected record.
        actor_id: User who performed the action (None for system actions).
        before: Dict snapshot of state before the action (JSON-serialisable).
        after: Dict snapshot of state after the action.
        notes: Free-text annotation.
    """
    entry = AuditLog(
        actor_id=actor_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        before_state=json.dumps(before, default=str) if before is not None else None,
        after_state=json.dumps(after, default=str) if after is not None else None,
        notes=notes,
    )
    return await repo.add_audit_log(entry)
