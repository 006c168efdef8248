"""Purchase request endpoints.

  GET    /purchase-requests                 — list (filter by status / requester)
  POST   /purchase-requests                 — create a draft (optionally with items)
  GET    /purchase-requests/{id}            — detail with items and approvals
  PATCH  /purchase-requests/{id}            — edit a draft
  DELETE /purchase-requests/{id}            — delete a draft or rejected request
  POST   /purchase-requests/{id}/items      — add a line to a draft
  POST   /purchase-requests/{id}/submit     — open approval tasks
  POST   /purchase-requests/{id}/decisions  — approve / reject as the current user
  POST   /purchase-requests/{id}/convert    — turn an approved request into a PO
  GET    /purchase-requests/{id}/approvals  — approval history
"""
import uuid
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status

from app.core.config import settings
from app.core.deps import get_current_user, get_workflow, require_role
from app.core.limiter import limiter
from app.models.purchase_request import PRStatus
from app.models.user import User
from app.schemas.purchase_order import ConvertRequest, PurchaseOrderOut
from app.schemas.purchase_request import (
    ConvertResponse,
    DecisionRequest,
    DecisionResponse,
    PurchaseRequestApprovalOut,
    PurchaseRequestCreate,
    PurchaseRequestDetail,
    PurchaseRequestItemIn,
    PurchaseRequestItemOut,
    PurchaseRequestListResponse,
    PurchaseRequestOut,
    PurchaseRequestUpdate,
    SubmitResponse,
)
from app.services.conversion import OrderFields
from app.services.purchase_requests import PurchaseRequestWorkflow, RequestDetail

router = APIRouter()

CONVERT_ROLES = ("admin", "finance", "inventory")

Workflow = Annotated[PurchaseRequestWorkflow, Depends(get_workflow)]
CurrentUser = Annotated[User, Depends(get_current_user)]


def _detail_out(detail: RequestDetail) -> PurchaseRequestDetail:
    base = PurchaseRequestOut.model_validate(detail.request)
    return PurchaseRequestDetail(
        **base.model_dump(),
        items=[PurchaseRequestItemOut.model_validate(i) for i in detail.items],
        approvals=[PurchaseRequestApprovalOut.model_validate(a) for a in detail.approvals],
    )


@router.get(
    "",
    response_model=PurchaseRequestListResponse,
    summary="List purchase requests",
)
async def list_purchase_requests(
    workflow: Workflow,
    current_user: CurrentUser,
    status_filter: PRStatus | None = Query(None, alias="status"),
    requester_id: uuid.UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=500),
):
    requests = await workflow.list_requests(
        status=status_filter.value if status_filter else None,
        requester_id=requester_id,
        limit=limit,
    )
    items = [PurchaseRequestOut.model_validate(r) for r in requests]
    return PurchaseRequestListResponse(items=items, total=len(items))


@router.post(
    "",
    response_model=PurchaseRequestDetail,
    status_code=status.HTTP_201_CREATED,
    summary="Create a draft purchase request",
)
async def create_purchase_request(
    body: PurchaseRequestCreate,
    workflow: Workflow,
    current_user: CurrentUser,
):
    detail = await workflow.create_request(
        requester_id=current_user.id,
        currency=body.currency,
        supplier_id=body.supplier_id,
        notes=body.notes,
        items=[item.model_dump() for item in body.items],
    )
    return _detail_out(detail)


@router.get(
    "/{request_id}",
    response_model=PurchaseRequestDetail,
    summary="Get a purchase request with items and approvals",
)
async def get_purchase_request(
    request_id: uuid.UUID,
    workflow: Workflow,
    current_user: CurrentUser,
):
    return _detail_out(await workflow.get_request(request_id))


@router.patch(
    "/{request_id}",
    response_model=PurchaseRequestOut,
    summary="Edit a draft purchase request",
)
async def update_purchase_request(
    request_id: uuid.UUID,
    body: PurchaseRequestUpdate,
    workflow: Workflow,
    current_user: CurrentUser,
):
    request = await workflow.update_request(
        request_id, body.model_dump(exclude_unset=True), actor_id=current_user.id
    )
    return PurchaseRequestOut.model_validate(request)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a draft or rejected purchase request",
)
async def delete_purchase_request(
    request_id: uuid.UUID,
    workflow: Workflow,
    current_user: CurrentUser,
):
    await workflow.delete_request(request_id, actor_id=current_user.id)


@router.post(
    "/{request_id}/items",
    response_model=PurchaseRequestItemOut,
    status_code=status.HTTP_201_CREATED,
    summary="Add a line item to a draft purchase request",
)
async def add_purchase_request_item(
    request_id: uuid.UUID,
    body: PurchaseRequestItemIn,
    workflow: Workflow,
    current_user: CurrentUser,
):
    item = await workflow.add_item(
        request_id,
        product_id=body.product_id,
        quantity=body.quantity,
        unit_price=body.unit_price,
        notes=body.notes,
        actor_id=current_user.id,
    )
    return PurchaseRequestItemOut.model_validate(item)


@router.post(
    "/{request_id}/submit",
    response_model=SubmitResponse,
    summary="Submit a draft for approval",
)
@limiter.limit(settings.RATE_LIMIT_WORKFLOW)
async def submit_purchase_request(
    request: Request,
    request_id: uuid.UUID,
    workflow: Workflow,
    current_user: CurrentUser,
):
    result = await workflow.submit(request_id, actor_id=current_user.id)
    return SubmitResponse(
        request=PurchaseRequestOut.model_validate(result.request),
        created_approvals=[
            PurchaseRequestApprovalOut.model_validate(a) for a in result.created_approvals
        ],
    )


@router.post(
    "/{request_id}/decisions",
    response_model=DecisionResponse,
    summary="Approve or reject your pending approval task",
)
@limiter.limit(settings.RATE_LIMIT_WORKFLOW)
async def decide_purchase_request(
    request: Request,
    request_id: uuid.UUID,
    body: DecisionRequest,
    workflow: Workflow,
    current_user: CurrentUser,
):
    result = await workflow.decide(
        request_id,
        level=body.level,
        approver_id=current_user.id,
        outcome=body.outcome,
        comment=body.comment,
    )
    return DecisionResponse(
        request=PurchaseRequestOut.model_validate(result.request),
        approval=PurchaseRequestApprovalOut.model_validate(result.approval),
        is_fully_approved=result.is_fully_approved,
    )


@router.post(
    "/{request_id}/convert",
    response_model=ConvertResponse,
    summary="Convert an approved request into a draft purchase order",
)
async def convert_purchase_request(
    request_id: uuid.UUID,
    body: ConvertRequest,
    workflow: Workflow,
    current_user: Annotated[User, Depends(require_role(*CONVERT_ROLES))],
):
    result = await workflow.convert_to_order(
        request_id,
        OrderFields(**body.model_dump()),
        actor_id=current_user.id,
    )
    return ConvertResponse(
        request=PurchaseRequestOut.model_validate(result.request),
        purchase_order=PurchaseOrderOut.model_validate(result.purchase_order),
    )


@router.get(
    "/{request_id}/approvals",
    response_model=list[PurchaseRequestApprovalOut],
    summary="Approval history of a purchase request",
)
async def list_purchase_request_approvals(
    request_id: uuid.UUID,
    workflow: Workflow,
    current_user: CurrentUser,
):
    approvals = await workflow.list_approvals(request_id)
    return [PurchaseRequestApprovalOut.model_validate(a) for a in approvals]
