"""Approver inbox.

  GET /approvals/pending — pending tasks for the current user, with request and items
"""
from typing import Annotated

from fastapi import APIRouter, Depends

from app.core.deps import get_current_user, get_workflow
from app.models.user import User
from app.schemas.purchase_request import (
    PendingApprovalListResponse,
    PendingApprovalOut,
    PurchaseRequestApprovalOut,
    PurchaseRequestItemOut,
    PurchaseRequestOut,
)
from app.services.purchase_requests import PurchaseRequestWorkflow

router = APIRouter()


@router.get(
    "/pending",
    response_model=PendingApprovalListResponse,
    summary="List pending approval tasks for the current user",
)
async def list_my_pending_approvals(
    workflow: Annotated[PurchaseRequestWorkflow, Depends(get_workflow)],
    current_user: Annotated[User, Depends(get_current_user)],
):
    pending = await workflow.list_pending_approvals_for_user(current_user.id)
    items = [
        PendingApprovalOut(
            approval=PurchaseRequestApprovalOut.model_validate(p.approval),
            request=PurchaseRequestOut.model_validate(p.request),
            items=[PurchaseRequestItemOut.model_validate(i) for i in p.items],
        )
        for p in pending
    ]
    return PendingApprovalListResponse(items=items, total=len(items))
