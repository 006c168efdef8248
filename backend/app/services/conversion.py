"""Materialise an approved purchase request as a draft purchase order."""
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from app.core.config import settings
from app.models.purchase_order import PurchaseOrder, PurchaseOrderItem
from app.models.purchase_request import PurchaseRequest, PurchaseRequestItem
from app.services.money import line_total, to_money


@dataclass
class OrderFields:
    """Caller-supplied purchase order header fields; None falls back to the request/defaults."""

    supplier_id: uuid.UUID | None = None
    order_date: date | None = None
    expected_delivery_date: date | None = None
    payment_terms: int | None = None
    tax_amount: Decimal | None = None
    notes: str | None = None


def build_purchase_order(
    request: PurchaseRequest,
    items: list[PurchaseRequestItem],
    fields: OrderFields,
    order_number: str,
    created_by: uuid.UUID | None = None,
) -> PurchaseOrder:
    """Copy supplier, currency and every request line into a new draft PurchaseOrder.

    Line totals are recomputed from quantity * unit_price so the order always
    sums to the request's lines even if a stored line_total drifted.
    """
    lines = [
        PurchaseOrderItem(
            line_number=index,
            product_id=item.product_id,
            quantity=item.quantity,
            unit_price=to_money(item.unit_price),
            total_price=line_total(item.quantity, item.unit_price),
        )
        for index, item in enumerate(items, start=1)
    ]
    subtotal = to_money(sum((line.total_price for line in lines), Decimal("0")))
    tax_amount = to_money(fields.tax_amount or 0)

    order = PurchaseOrder(
        order_number=order_number,
        pr_id=request.id,
        supplier_id=fields.supplier_id or request.supplier_id,
        order_date=fields.order_date or date.today(),
        expected_delivery_date=fields.expected_delivery_date,
        status="draft",
        payment_terms=(
            fields.payment_terms
            if fields.payment_terms is not None
            else settings.DEFAULT_PAYMENT_TERMS_DAYS
        ),
        currency=request.currency,
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
        notes=fields.notes if fields.notes is not None else request.notes,
        created_by=created_by,
    )
    order.line_items.extend(lines)
    return order
