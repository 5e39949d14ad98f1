import logging
from datetime import date, datetime, time, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, Field
from tortoise.expressions import Q

from auth import finance_only
from billing import create_invoice_for_order, record_payment, set_invoice_status
from model import Invoice, Order
from schemas import ActionResult, InvoiceStatus
from store import get_record, list_records

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(finance_only)])


class InvoiceFromOrder(BaseModel):
    order_id: str


class InvoiceStatusUpdate(BaseModel):
    status: InvoiceStatus


class PaymentIn(BaseModel):
    amount_paid: float = Field(ge=0, description="Amount paid cannot be negative.")
    payment_date: Optional[datetime] = None


@router.get("/")
async def get_invoices(
    status: Optional[InvoiceStatus] = None,
    customer_id: Optional[str] = None,
    issue_date_start: Optional[date] = None,
    issue_date_end: Optional[date] = None,
):
    filters = []
    if status is not None:
        filters.append(Q(status=status.value))
    if customer_id:
        filters.append(Q(customer_id=customer_id))
    if issue_date_start is not None:
        filters.append(Q(issue_date__gte=datetime.combine(issue_date_start, time.min, tzinfo=timezone.utc)))
    if issue_date_end is not None:
        filters.append(Q(issue_date__lte=datetime.combine(issue_date_end, time.max, tzinfo=timezone.utc)))
    return await list_records(Invoice, *filters)


@router.get("/{invoice_id}")
async def get_invoice(invoice_id: str):
    invoice = await get_record(Invoice, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return {**invoice.model_dump(), "balance_due": invoice.total_amount - invoice.amount_paid}


@router.post("/from-order", status_code=201)
async def create_invoice(body: InvoiceFromOrder, response: Response):
    order = await Order.get_or_none(id=body.order_id)
    if not order:
        return ActionResult.fail("Order not found.", status_code=404).apply(response)
    result = await create_invoice_for_order(order)
    return result.apply(response)


@router.put("/{invoice_id}/status")
async def update_invoice_status(invoice_id: str, body: InvoiceStatusUpdate, response: Response):
    """手动覆盖发票状态"""
    result = await set_invoice_status(invoice_id, body.status)
    return result.apply(response)


@router.put("/{invoice_id}/payment")
async def update_amount_paid(invoice_id: str, body: PaymentIn, response: Response):
    """登记已收金额，状态由收款状态机推导"""
    result = await record_payment(invoice_id, body.amount_paid, body.payment_date)
    return result.apply(response)


@router.delete("/{invoice_id}")
async def delete_invoice(invoice_id: str, response: Response):
    invoice = await Invoice.get_or_none(id=invoice_id)
    if not invoice:
        return ActionResult.fail("Invoice not found.", status_code=404).apply(response)
    try:
        await invoice.delete()
    except Exception:
        logger.exception("删除发票 %s 失败", invoice_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Invoice deleted successfully!").apply(response)
