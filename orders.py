import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from auth import sales_or_finance
from billing import create_order_from_quote
from model import Order, Quote
from schemas import ActionResult, OrderStatus
from store import get_record, list_records

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(sales_or_finance)])


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderFromQuote(BaseModel):
    quote_id: str


@router.get("/")
async def get_orders(status: Optional[OrderStatus] = None, customer_id: Optional[str] = None):
    filters = {}
    if status is not None:
        filters["status"] = status.value
    if customer_id:
        filters["customer_id"] = customer_id
    return await list_records(Order, **filters)


@router.get("/{order_id}")
async def get_order(order_id: str):
    order = await get_record(Order, order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("/from-quote", status_code=201)
async def create_order(body: OrderFromQuote, response: Response):
    quote = await Quote.get_or_none(id=body.quote_id)
    if not quote:
        return ActionResult.fail("Proforma not found.", status_code=404).apply(response)
    result = await create_order_from_quote(quote)
    return result.apply(response)


@router.put("/{order_id}/status")
async def update_order_status(order_id: str, body: OrderStatusUpdate, response: Response):
    order = await Order.get_or_none(id=order_id)
    if not order:
        return ActionResult.fail("Order not found.", status_code=404).apply(response)
    order.status = body.status.value
    try:
        await order.save(update_fields=["status"])
    except Exception:
        logger.exception("更新订单 %s 状态失败", order_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Order status updated successfully!", id=order_id).apply(response)


@router.delete("/{order_id}")
async def delete_order(order_id: str, response: Response):
    order = await Order.get_or_none(id=order_id)
    if not order:
        return ActionResult.fail("Order not found.", status_code=404).apply(response)
    try:
        await order.delete()
    except Exception:
        logger.exception("删除订单 %s 失败", order_id)
        return ActionResult.unexpected().apply(response)
    return ActionResult.ok("Order deleted successfully!").apply(response)
