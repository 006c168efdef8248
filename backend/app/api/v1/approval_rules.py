"""Approval rule administration endpoints (ADMIN)."""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from app.core.deps import get_repository, require_role
from app.models.user import User
from app.repositories.base import WorkflowRepository
from app.schemas.approval_rule import ApprovalRuleIn, ApprovalRuleOut, ApprovalRuleUpdate
from app.services import approval_rules as rules_svc

router = APIRouter()

Repo = Annotated[WorkflowRepository, Depends(get_repository)]
Admin = Annotated[User, Depends(require_role("admin"))]


@router.get(
    "",
    response_model=list[ApprovalRuleOut],
    summary="List approval rules (ADMIN)",
)
async def list_rules(
    repo: Repo,
    current_user: Admin,
    currency: str | None = Query(None, min_length=3, max_length=3),
    include_inactive: bool = Query(False),
):
    rules = await rules_svc.list_rules(
        repo, currency=currency, include_inactive=include_inactive
    )
    return [ApprovalRuleOut.model_validate(r) for r in rules]


@router.post(
    "",
    response_model=ApprovalRuleOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create an approval rule (ADMIN)",
)
async def create_rule(body: ApprovalRuleIn, repo: Repo, current_user: Admin):
    rule = await rules_svc.create_rule(repo, body.model_dump(), actor_id=current_user.id)
    return ApprovalRuleOut.model_validate(rule)


@router.put(
    "/{rule_id}",
    response_model=ApprovalRuleOut,
    summary="Update an approval rule (ADMIN)",
)
async def update_rule(
    rule_id: uuid.UUID,
    body: ApprovalRuleUpdate,
    repo: Repo,
    current_user: Admin,
):
    rule = await rules_svc.update_rule(
        repo, rule_id, body.model_dump(exclude_unset=True), actor_id=current_user.id
    )
    return ApprovalRuleOut.model_validate(rule)


@router.delete(
    "/{rule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Soft-delete an approval rule (ADMIN)",
)
async def delete_rule(rule_id: uuid.UUID, repo: Repo, current_user: Admin):
    await rules_svc.deactivate_rule(repo, rule_id, actor_id=current_user.id)
