"""
单据流转：形式发票 -> 订单 -> 发票，以及发票收款状态机
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

from config import settings
from model import Invoice, Order, Quote
from schemas import ActionResult, InvoiceStatus, LineItem, QuoteStatus, to_datetime

logger = logging.getLogger(__name__)

# 余额为 0 时保持原状态
STICKY_STATUSES = (InvoiceStatus.cancelled.value, InvoiceStatus.overdue.value)


def next_invoice_status(current_status: str, new_amount_paid: float, total_amount: float) -> str:
    """根据已收金额推导发票状态"""
    if new_amount_paid >= total_amount:
        return InvoiceStatus.paid.value
    if new_amount_paid > 0:
        return InvoiceStatus.partially_paid.value
    if current_status not in STICKY_STATUSES:
        return InvoiceStatus.unpaid.value
    return current_status


def document_suffix(quote_number: str) -> str:
    return quote_number.replace("PI-", "", 1)


def order_number_for(quote_number: str) -> str:
    return f"O-{document_suffix(quote_number)}"


def invoice_number_for(quote_number: str) -> str:
    return f"INV-{document_suffix(quote_number)}"


def price_items(items: Iterable[LineItem], transport_cost: float = 0,
                commission_rate: float = 0) -> Tuple[List[dict], float, float]:
    """计算明细小计和总额：总额 = 小计 + 运输费 + (小计 + 运输费) × 佣金率"""
    priced = []
    sub_total = 0.0
    for item in items:
        line = item.model_dump()
        line["total"] = item.quantity * item.unit_price
        sub_total += line["total"]
        priced.append(line)
    transport = transport_cost or 0
    commission = (sub_total + transport) * ((commission_rate or 0) / 100)
    return priced, sub_total, sub_total + transport + commission


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def create_order_from_quote(quote: Quote) -> ActionResult:
    if quote.status != QuoteStatus.accepted.value:
        return ActionResult.fail("Only accepted proformas can be converted into orders.")
    try:
        # 明细和金额在下单时快照
        order = await Order.create(
            order_number=order_number_for(quote.quote_number),
            quote_id=quote.id,
            customer_id=quote.customer_id,
            customer_name=quote.customer_name,
            items=list(quote.items or []),
            sub_total=quote.sub_total,
            transport_cost=quote.transport_cost,
            commission_rate=quote.commission_rate,
            total_amount=quote.total_amount,
            status="processing",
            shipping_address=quote.shipping_address,
            order_date=_now(),
        )
    except Exception:
        logger.exception("根据形式发票 %s 创建订单失败", quote.id)
        return ActionResult.unexpected()
    logger.info("形式发票 %s 生成订单 %s", quote.quote_number, order.order_number)
    return ActionResult.ok("Order created successfully!", status_code=201, id=order.id)


async def create_invoice_for_order(order: Order, invoice_number: Optional[str] = None,
                                   issue_date: Optional[datetime] = None) -> ActionResult:
    issue_date = issue_date or _now()
    if invoice_number is None:
        invoice_number = f"INV-{order.order_number.replace('O-', '', 1)}"
    try:
        invoice = await Invoice.create(
            invoice_number=invoice_number,
            order_id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            items=list(order.items or []),
            sub_total=order.sub_total,
            transport_cost=order.transport_cost,
            commission_rate=order.commission_rate,
            total_amount=order.total_amount,
            amount_paid=0,
            status=InvoiceStatus.unpaid.value,
            issue_date=issue_date,
            due_date=issue_date + timedelta(days=settings.INVOICE_DUE_DAYS),
            shipping_address=order.shipping_address,
        )
    except Exception:
        logger.exception("为订单 %s 创建发票失败", order.id)
        return ActionResult.unexpected()
    logger.info("订单 %s 生成发票 %s", order.order_number, invoice.invoice_number)
    return ActionResult.ok("Invoice created successfully!", status_code=201, id=invoice.id)


async def update_quote_status(quote_id: str, status: QuoteStatus) -> ActionResult:
    """修改形式发票状态；首次变为 accepted 时生成订单和发票"""
    quote = await Quote.get_or_none(id=quote_id)
    if quote is None:
        return ActionResult.fail("Proforma not found.", status_code=404)

    previous_status = quote.status
    quote.status = QuoteStatus(status).value
    try:
        await quote.save(update_fields=["status"])
    except Exception:
        logger.exception("更新形式发票 %s 状态失败", quote_id)
        return ActionResult.unexpected()

    message = "Proforma status updated successfully!"
    order_id = invoice_id = None
    if quote.status == QuoteStatus.accepted.value and previous_status != QuoteStatus.accepted.value:
        order_result = await create_order_from_quote(quote)
        order_id = order_result.id
        if not order_result.success:
            logger.warning("形式发票 %s 已接受，但订单创建失败", quote.quote_number)
            message = "Proforma status updated, but the order could not be created."
        else:
            order = await Order.get(id=order_id)
            invoice_result = await create_invoice_for_order(
                order,
                invoice_number=invoice_number_for(quote.quote_number),
                issue_date=quote.issue_date,
            )
            invoice_id = invoice_result.id
            if not invoice_result.success:
                logger.warning("形式发票 %s 已生成订单 %s，但发票创建失败", quote.quote_number, order.order_number)
                message = "Proforma status updated and order created, but the invoice could not be created."
    return ActionResult.ok(message, id=quote.id, order_id=order_id, invoice_id=invoice_id)


async def sync_quote_to_order_and_invoice(quote: Quote) -> ActionResult:
    """把形式发票当前的明细和金额重新写入关联订单（按 quote_id）和发票（按 order_id）

    没有关联订单或发票时直接返回成功。
    """
    values = {
        "items": list(quote.items or []),
        "sub_total": quote.sub_total,
        "transport_cost": quote.transport_cost,
        "commission_rate": quote.commission_rate,
        "total_amount": quote.total_amount,
        "shipping_address": quote.shipping_address,
    }
    try:
        order = await Order.filter(quote_id=quote.id).first()
        if order is None:
            logger.info("形式发票 %s 没有关联订单，跳过同步", quote.id)
            return ActionResult.ok("No linked order to sync.", order_synced=False, invoice_synced=False)

        order.update_from_dict(values)
        await order.save(update_fields=list(values))

        invoice = await Invoice.filter(order_id=order.id).first()
        if invoice is None:
            return ActionResult.ok("Order synced; no linked invoice.", order_id=order.id,
                                   order_synced=True, invoice_synced=False)

        invoice.update_from_dict(values)
        await invoice.save(update_fields=list(values))
    except Exception:
        logger.exception("同步形式发票 %s 失败", quote.id)
        return ActionResult.unexpected()

    return ActionResult.ok("Order and invoice synced successfully!", order_id=order.id,
                           invoice_id=invoice.id, order_synced=True, invoice_synced=True)


async def record_payment(invoice_id: str, amount_paid: float,
                         payment_date: Optional[datetime] = None) -> ActionResult:
    invoice = await Invoice.get_or_none(id=invoice_id)
    if invoice is None:
        return ActionResult.fail("Invoice not found.", status_code=404)

    status = next_invoice_status(invoice.status, amount_paid, float(invoice.total_amount))
    invoice.amount_paid = amount_paid
    invoice.status = status
    if payment_date is not None:
        invoice.payment_date = to_datetime(payment_date)
    elif status == InvoiceStatus.paid.value and invoice.payment_date is None:
        invoice.payment_date = _now()
    try:
        await invoice.save(update_fields=["amount_paid", "status", "payment_date"])
    except Exception:
        logger.exception("记录发票 %s 收款失败", invoice_id)
        return ActionResult.unexpected()
    return ActionResult.ok("Payment recorded successfully!", id=invoice.id, status=status)


async def set_invoice_status(invoice_id: str, status: InvoiceStatus) -> ActionResult:
    """手动修改发票状态，不经过收款状态机"""
    invoice = await Invoice.get_or_none(id=invoice_id)
    if invoice is None:
        return ActionResult.fail("Invoice not found.", status_code=404)

    status = InvoiceStatus(status).value
    derived = next_invoice_status(invoice.status, float(invoice.amount_paid), float(invoice.total_amount))
    if status != derived:
        logger.warning("发票 %s 手动设为 %s，与已收金额推导出的 %s 不一致",
                       invoice.invoice_number, status, derived)
    invoice.status = status
    try:
        await invoice.save(update_fields=["status"])
    except Exception:
        logger.exception("更新发票 %s 状态失败", invoice_id)
        return ActionResult.unexpected()
    return ActionResult.ok("Invoice status updated successfully!", id=invoice.id)
