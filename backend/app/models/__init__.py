from app.models.user import User
from app.models.approval_rule import ApprovalRule
from app.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from app.models.purchase_request import (
    ApprovalStatus,
    PRStatus,
    PurchaseRequest,
    PurchaseRequestApproval,
    PurchaseRequestItem,
)
from app.models.notification import Notification
from app.models.audit import AuditLog

__all__ = [
    "User",
    "ApprovalRule",
    "PurchaseOrder", "PurchaseOrderItem",
    "PurchaseRequest", "PurchaseRequestItem", "PurchaseRequestApproval",
    "PRStatus", "ApprovalStatus",
    "Notification",
    "AuditLog",
]
