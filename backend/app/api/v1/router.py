from fastapi import APIRouter

from app.api.v1 import approval_rules, approvals, notifications, purchase_requests

api_router = APIRouter()

api_router.include_router(purchase_requests.router, prefix="/purchase-requests", tags=["purchase-requests"])
api_router.include_router(approvals.router, prefix="/approvals", tags=["approvals"])
api_router.include_router(approval_rules.router, prefix="/approval-rules", tags=["approval-rules"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
